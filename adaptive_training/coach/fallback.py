"""Deterministic responses used when the completion service is unavailable."""

from adaptive_training.coach.intents import IntentClassification, MessageIntent

FALLBACK_MESSAGE = (
    "I apologize, but I'm experiencing technical difficulties right now. "
    "Please try again in a few moments, or contact support if the issue persists."
)

EMPTY_MESSAGE_RESPONSE = "I didn't catch that. What would you like to know about your training?"


def fallback_classification() -> IntentClassification:
    """Unknown intent with the fixed fallback message."""
    return IntentClassification(
        intent=MessageIntent.UNKNOWN,
        response=FALLBACK_MESSAGE,
        fallback_used=True,
    )
