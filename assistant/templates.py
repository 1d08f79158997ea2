"""
Response Templates — Canned First-Pass Replies
===============================================
Two fixed variants per bucket. The bucket is picked by priority:

    emergency (classified or urgent)
      > symptoms mentioned
      > medical conditions mentioned
      > classified category (falling back to the ticket category)
      > other

Placeholders are filled from the message analysis:
  {topic}       — first three raw tokens
  {symptoms}    — comma-joined symptom tokens
  {conditions}  — comma-joined condition tokens
  {medications} — comma-joined medication tokens, or a generic noun
  {on_dates} / {for_dates} — " on 3/12" style clause, empty without dates

Randomness is injected (random.Random) so tests can pin the variant.
"""

from __future__ import annotations

import random
from typing import Optional

from .analyzer import MessageAnalysis

URGENT_PREFIX = (
    "I notice this seems urgent. I've flagged your message for priority "
    "review by our healthcare team. "
)

EMPATHY_PHRASES = (
    "I understand this may be frustrating. ",
    "I'm sorry to hear you're having difficulties. ",
    "I appreciate your patience with this matter. ",
)

# ── Templates ────────────────────────────────────────────────────────────

RESPONSE_TEMPLATES: dict[str, tuple[str, str]] = {
    "general": (
        "Thank you for your general healthcare inquiry. I understand you're "
        "asking about {topic}... A healthcare provider will review your case soon.",
        "I've noted your question about general healthcare matters. While I can "
        "provide basic information, a human healthcare provider will follow up "
        "with more specific guidance about {topic}...",
    ),
    "appointment": (
        "I see you have a question about appointments{on_dates}. I can help with "
        "basic scheduling information, but a staff member will need to confirm "
        "any changes to your appointments.",
        "Thank you for your appointment-related query. I've logged this in our "
        "system, and a healthcare provider will assist you with scheduling{for_dates}.",
    ),
    "prescription": (
        "I understand you have a question about your {medications}. For patient "
        "safety, a healthcare provider will need to review your medication request.",
        "Thank you for your prescription inquiry. While I cannot provide medical "
        "advice, I've prioritized your request about {medications_or_yours} for "
        "review by a qualified healthcare provider.",
    ),
    "billing": (
        "I see your question is about billing. I've recorded your concern, and a "
        "billing specialist will review your account and respond shortly.",
        "Thank you for your billing inquiry. Your financial questions are important "
        "to us, and a team member will address your concerns about {topic}... soon.",
    ),
    "technical": (
        "I understand you're experiencing technical difficulties with {topic}... "
        "I've logged this issue, and our technical support team will help resolve it.",
        "Thank you for reporting this technical issue. Our IT team will review your "
        "case about {topic}... and provide assistance shortly.",
    ),
    "symptoms": (
        "I notice you mentioned {symptoms}. While I can't provide medical advice, a "
        "healthcare professional will review your symptoms and respond soon.",
        "Thank you for sharing information about your {symptoms}. A qualified "
        "healthcare provider will assess this information and follow up with you shortly.",
    ),
    "medical_conditions": (
        "I see you've mentioned {conditions}. A healthcare provider with expertise "
        "in this area will review your message and respond soon.",
        "Thank you for providing information about {conditions}. This helps us "
        "direct your inquiry to the appropriate healthcare specialist.",
    ),
    "preventive": (
        "Thank you for your interest in preventive care. I've noted your question "
        "about {topic}... A healthcare provider will provide you with detailed "
        "preventive care information soon.",
        "I appreciate your focus on preventive healthcare. Your question about "
        "{topic}... has been logged, and a healthcare professional will follow up "
        "with personalized guidance.",
    ),
    "emergency": (
        "I understand you're asking about emergency care. If this is a medical "
        "emergency, please call 911 immediately. A healthcare provider will review "
        "your message as soon as possible.",
        "For emergency situations, please call 911 or go to your nearest emergency "
        "room. I've flagged your message for urgent review by our healthcare team.",
    ),
    "mental_health": (
        "Thank you for reaching out about mental health services. Your wellbeing is "
        "important to us, and a mental health professional will respond to your "
        "inquiry soon.",
        "I appreciate you sharing your mental health concerns. A qualified mental "
        "health provider will review your message and follow up with support "
        "options shortly.",
    ),
    "other": (
        "Thank you for your message. I've analyzed your request about {topic}... and "
        "a healthcare team member will respond to your specific needs soon.",
        "I've received your inquiry. While I can help with basic information, a "
        "healthcare provider will follow up with personalized assistance regarding "
        "{topic}...",
    ),
}


# ── Selection ────────────────────────────────────────────────────────────


def select_bucket(analysis: MessageAnalysis, category: Optional[str]) -> str:
    """Pick the template bucket by fixed priority."""
    response_category = analysis.intent or category
    if response_category == "emergency" or analysis.sentiment.is_urgent:
        return "emergency"
    if analysis.entities.symptoms:
        return "symptoms"
    if analysis.entities.medical_conditions:
        return "medical_conditions"
    if response_category in RESPONSE_TEMPLATES:
        return response_category
    return "other"


def _placeholders(analysis: MessageAnalysis) -> dict[str, str]:
    entities = analysis.entities
    dates = ", ".join(entities.dates)
    medications = ", ".join(entities.medications)
    return {
        "topic": " ".join(analysis.tokens[:3]),
        "symptoms": ", ".join(entities.symptoms),
        "conditions": ", ".join(entities.medical_conditions),
        "medications": medications or "prescription",
        "medications_or_yours": medications or "your medication",
        "on_dates": f" on {dates}" if dates else "",
        "for_dates": f" for {dates}" if dates else "",
    }


def response_prefix(analysis: MessageAnalysis, rng: random.Random) -> str:
    """Urgent prefix, or an empathy phrase for negative non-urgent messages."""
    sentiment = analysis.sentiment
    if sentiment.label == "negative" and not sentiment.is_urgent:
        return rng.choice(EMPATHY_PHRASES)
    if sentiment.is_urgent:
        return URGENT_PREFIX
    return ""


def select_response(
    analysis: MessageAnalysis,
    category: Optional[str],
    rng: Optional[random.Random] = None,
) -> str:
    """Fill one canned template for the analysed message."""
    rng = rng or random.Random()
    bucket = select_bucket(analysis, category)
    template = rng.choice(RESPONSE_TEMPLATES[bucket])
    return response_prefix(analysis, rng) + template.format(**_placeholders(analysis))
