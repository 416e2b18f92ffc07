"""Coach intent classifier.

Flow:
1. Disabled service or blank message → Unknown, no service call
2. Send the prompt, the truncated history and the message through the
   RetryPolicy (per-attempt timeout, exponential backoff)
3. Parse the JSON answer; unparseable output falls back to keyword rules
   with the raw text as the reply
4. Run the deterministic disambiguation pass

``classify`` never raises: exhausted retries and timeouts return Unknown
with the fixed fallback message.
"""

import time
from collections.abc import Callable

from langchain_core.exceptions import OutputParserException
from langchain_core.output_parsers import PydanticOutputParser
from loguru import logger
from pydantic import BaseModel, Field

from adaptive_training.coach.fallback import EMPTY_MESSAGE_RESPONSE, fallback_classification
from adaptive_training.coach.intents import (
    ChatMessage,
    IntentClassification,
    IntentSlots,
    MessageIntent,
    apply_disambiguation_rules,
    classify_by_keywords,
    extract_slots,
)
from adaptive_training.coach.llm_client import CompletionResult, CompletionService
from adaptive_training.coach.prompts import CLASSIFIER_PROMPT
from adaptive_training.coach.retry import RetryPolicy
from adaptive_training.config.settings import LLMConfig
from adaptive_training.plans.adapt.types import InjuryTrigger, Trigger, UserRequestTrigger
from adaptive_training.plans.errors import ExternalServiceError


class ClassifierOutput(BaseModel):
    """JSON shape the model is asked to produce."""

    intent: MessageIntent = Field(description="Classified intent")
    slots: IntentSlots = Field(default_factory=IntentSlots, description="Extracted slots")
    reply: str = Field(default="", description="Short coaching reply to the user")


class IntentClassifier:
    """Classifies coach chat messages.

    Args:
        service: Completion service; None behaves like a disabled service
        config: LLM configuration (limits, retries, timeout)
        sleep: Sleep function used between retries
        clock: Monotonic clock used to measure elapsed time
    """

    def __init__(
        self,
        service: CompletionService | None,
        config: LLMConfig,
        *,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.service = service
        self.config = config
        self.retry = RetryPolicy(
            max_retries=config.max_retries,
            backoff_base_seconds=config.backoff_base_seconds,
            timeout_seconds=config.timeout_seconds,
            sleep=sleep,
            clock=clock,
        )
        self.parser = PydanticOutputParser(pydantic_object=ClassifierOutput)
        self.system_prompt = CLASSIFIER_PROMPT.replace(
            "{format_instructions}", self.parser.get_format_instructions()
        )

    def classify(self, message: str, history: list[ChatMessage] | None = None) -> IntentClassification:
        """Classify a message.

        Args:
            message: The user's latest message
            history: Prior messages, oldest first; only the most recent
                ``history_limit`` are sent

        Returns:
            IntentClassification; intent is Unknown with ``fallback_used`` set
            when the service is disabled or unavailable
        """
        service = self.service
        if not self.config.enabled or service is None:
            logger.info("Completion service disabled, returning fallback response")
            return fallback_classification()
        if not message.strip():
            return IntentClassification(intent=MessageIntent.UNKNOWN, response=EMPTY_MESSAGE_RESPONSE)

        recent = self._truncate_history(history or [])
        try:
            completion = self.retry.call(
                lambda: service.complete(self.system_prompt, message, recent),
                operation="Intent classification",
            )
        except ExternalServiceError as e:
            logger.error("Intent classification unavailable, using fallback: {error}", error=e.message, attempts=e.attempts)
            return fallback_classification()

        result = self._parse(completion, message)
        result = apply_disambiguation_rules(result, message)
        logger.info(
            "Message classified",
            intent=result.intent,
            action=result.action,
            prompt_tokens=result.prompt_tokens,
            completion_tokens=result.completion_tokens,
        )
        return result

    def _truncate_history(self, history: list[ChatMessage]) -> list[ChatMessage]:
        limit = self.config.history_limit
        if limit <= 0:
            return []
        return history[-limit:]

    def _parse(self, completion: CompletionResult, message: str) -> IntentClassification:
        try:
            output = self.parser.parse(completion.text)
        except OutputParserException as e:
            logger.warning(f"Unparseable classifier output, using keyword rules: {e}")
            return IntentClassification(
                intent=classify_by_keywords(message),
                slots=extract_slots(message),
                response=completion.text.strip(),
                prompt_tokens=completion.prompt_tokens,
                completion_tokens=completion.completion_tokens,
            )
        return IntentClassification(
            intent=output.intent,
            slots=output.slots,
            response=output.reply,
            prompt_tokens=completion.prompt_tokens,
            completion_tokens=completion.completion_tokens,
        )


def trigger_from_intent(result: IntentClassification) -> Trigger | None:
    """Adaptation trigger implied by a classification, if any.

    InjuryReport with a body part maps to an Injury trigger and
    PlanModification with a direction maps to a UserRequest trigger.
    Schedule changes need an explicit availability and are left to the caller.
    """
    if result.intent == MessageIntent.INJURY_REPORT and result.slots.body_part:
        return InjuryTrigger(body_part=result.slots.body_part)
    if result.intent == MessageIntent.PLAN_MODIFICATION and result.slots.direction is not None:
        return UserRequestTrigger(direction=result.slots.direction, reason="Requested in coach chat")
    return None
