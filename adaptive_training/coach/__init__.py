"""Coach chat - intent classification with a deterministic fallback."""

from adaptive_training.coach.classifier import IntentClassifier, trigger_from_intent
from adaptive_training.coach.fallback import FALLBACK_MESSAGE
from adaptive_training.coach.intents import ChatMessage, IntentClassification, IntentSlots, MessageIntent
from adaptive_training.coach.llm_client import CompletionResult, CompletionService, OpenAICompletionService

__all__ = [
    "FALLBACK_MESSAGE",
    "ChatMessage",
    "CompletionResult",
    "CompletionService",
    "IntentClassification",
    "IntentClassifier",
    "IntentSlots",
    "MessageIntent",
    "OpenAICompletionService",
    "trigger_from_intent",
]
