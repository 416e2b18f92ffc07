"""Coach intent taxonomy, classification result and keyword rules.

The keyword rules are the deterministic baseline: they classify messages
when the completion service returns unparseable output, and they always
run as a post-processing pass over the model's answer (injury mentions win,
missing slots are filled in).
"""

import re
from enum import StrEnum

from pydantic import BaseModel, Field

from adaptive_training.plans.types import WEEKDAYS, IntensityDirection


class MessageIntent(StrEnum):
    WORKOUT_RATIONALE = "WorkoutRationale"
    INJURY_REPORT = "InjuryReport"
    PLAN_MODIFICATION = "PlanModification"
    SCHEDULE_CHANGE = "ScheduleChange"
    MOTIVATION = "Motivation"
    GENERAL_QUESTION = "GeneralQuestion"
    OUT_OF_SCOPE = "OutOfScope"
    UNKNOWN = "Unknown"


INTENT_ACTIONS: dict[MessageIntent, str] = {
    MessageIntent.INJURY_REPORT: "injury_noted",
    MessageIntent.PLAN_MODIFICATION: "modification_requested",
    MessageIntent.SCHEDULE_CHANGE: "schedule_change_requested",
}


class ChatMessage(BaseModel):
    role: str
    content: str


class IntentSlots(BaseModel):
    """Structured parameters extracted for an intent.

    Attributes:
        body_part: Injured body part (InjuryReport)
        direction: Requested difficulty change (PlanModification)
        days: Weekday indices, Monday == 0 (ScheduleChange)
    """

    body_part: str | None = None
    direction: IntensityDirection | None = None
    days: list[int] = Field(default_factory=list)


class IntentClassification(BaseModel):
    """Classifier output returned to callers.

    Attributes:
        intent: Classified intent (Unknown on any service failure)
        slots: Extracted parameters
        response: Reply text for the user (fallback message on failure)
        action: Follow-up action name for intents that imply a plan change
        prompt_tokens: Tokens sent to the completion service
        completion_tokens: Tokens received from the completion service
        fallback_used: Whether the fixed fallback response was returned
    """

    intent: MessageIntent
    slots: IntentSlots = Field(default_factory=IntentSlots)
    response: str = ""
    action: str | None = None
    prompt_tokens: int = 0
    completion_tokens: int = 0
    fallback_used: bool = False


WHY_WORDS = ("why",)
WORKOUT_WORDS = ("workout", "exercise", "training", "session", "run", "interval", "lift")
INJURY_WORDS = ("injury", "injured", "hurt", "pain", "sore", "sprain", "strain", "tweaked")
MODIFICATION_PHRASES = (
    "too hard",
    "too easy",
    "make it harder",
    "make it easier",
    "struggling",
    "modify",
    "harder",
    "easier",
    "more intense",
    "less intense",
)
SCHEDULE_WORDS = ("schedule", "reschedule", "available", "availability")
MOTIVATION_WORDS = ("motivat", "tired", "don't want", "dont want", "feeling down", "give up", "lazy")
FITNESS_WORDS = (
    "workout", "exercise", "training", "train", "fitness", "run", "running", "strength", "hyrox",
    "plan", "session", "gym", "cardio", "lift", "squat", "race", "pace", "recovery", "muscle",
    "coach", "intensity", "week", "rest",
)
EASIER_WORDS = ("too hard", "easier", "struggling", "exhausted", "less intense", "too much", "back off")
HARDER_WORDS = ("too easy", "harder", "more intense", "push me", "not challenging")

BODY_PARTS = (
    "knee", "ankle", "foot", "shin", "calf", "achilles", "hamstring", "quad", "hip", "back",
    "shoulder", "elbow", "wrist", "neck", "chest", "groin",
)

DAY_PATTERNS: dict[int, re.Pattern[str]] = {
    index: re.compile(rf"\b{name[:3]}(?:{name[3:]})?s?\b") for index, name in enumerate(WEEKDAYS)
}


def _contains_any(text: str, words: tuple[str, ...]) -> bool:
    return any(word in text for word in words)


def extract_days(text: str) -> list[int]:
    """Weekday indices mentioned in the text, Monday first."""
    lowered = text.lower()
    if "weekend" in lowered:
        found = {5, 6}
    else:
        found = set()
    found |= {index for index, pattern in DAY_PATTERNS.items() if pattern.search(lowered)}
    return sorted(found)


def extract_body_part(text: str) -> str | None:
    lowered = text.lower()
    for part in BODY_PARTS:
        if re.search(rf"\b{part}s?\b", lowered):
            return part
    return None


def extract_direction(text: str) -> IntensityDirection | None:
    lowered = text.lower()
    if _contains_any(lowered, HARDER_WORDS):
        return IntensityDirection.HARDER
    if _contains_any(lowered, EASIER_WORDS):
        return IntensityDirection.EASIER
    return None


def extract_slots(text: str) -> IntentSlots:
    return IntentSlots(
        body_part=extract_body_part(text),
        direction=extract_direction(text),
        days=extract_days(text),
    )


def classify_by_keywords(message: str) -> MessageIntent:
    """Deterministic keyword classification.

    Rules (first match wins):
    1. "why" plus a workout word → WorkoutRationale
    2. Injury words → InjuryReport
    3. Difficulty or modify phrases → PlanModification
    4. Schedule words, or "can only" plus a weekday → ScheduleChange
    5. Motivation words → Motivation
    6. No fitness words at all → OutOfScope
    7. Otherwise → GeneralQuestion
    """
    lowered = message.lower()
    if _contains_any(lowered, WHY_WORDS) and _contains_any(lowered, WORKOUT_WORDS):
        return MessageIntent.WORKOUT_RATIONALE
    if _contains_any(lowered, INJURY_WORDS):
        return MessageIntent.INJURY_REPORT
    if _contains_any(lowered, MODIFICATION_PHRASES):
        return MessageIntent.PLAN_MODIFICATION
    if _contains_any(lowered, SCHEDULE_WORDS) or ("can only" in lowered and extract_days(lowered)):
        return MessageIntent.SCHEDULE_CHANGE
    if _contains_any(lowered, MOTIVATION_WORDS):
        return MessageIntent.MOTIVATION
    if not _contains_any(lowered, FITNESS_WORDS):
        return MessageIntent.OUT_OF_SCOPE
    return MessageIntent.GENERAL_QUESTION


def apply_disambiguation_rules(result: IntentClassification, user_text: str) -> IntentClassification:
    """Apply deterministic rules over a model classification.

    Injury mentions always become InjuryReport so they are never lost as a
    general question. Missing slots are filled from keywords.

    Args:
        result: Classification from the completion service
        user_text: Original user message text

    Returns:
        IntentClassification with potentially corrected intent and slots
    """
    keyword_intent = classify_by_keywords(user_text)
    if keyword_intent == MessageIntent.INJURY_REPORT and result.intent not in {
        MessageIntent.INJURY_REPORT,
        MessageIntent.WORKOUT_RATIONALE,
    }:
        result.intent = MessageIntent.INJURY_REPORT

    keyword_slots = extract_slots(user_text)
    if result.slots.body_part is None:
        result.slots.body_part = keyword_slots.body_part
    if result.slots.direction is None:
        result.slots.direction = keyword_slots.direction
    if not result.slots.days:
        result.slots.days = keyword_slots.days

    result.action = INTENT_ACTIONS.get(result.intent)
    return result
