"""Completion-service contract and the LangChain/OpenAI adapter.

The classifier depends only on ``CompletionService.complete``; any object
with that method can stand in (tests pass fakes). The default adapter wraps
``ChatOpenAI`` with retries disabled, because retry and timeout handling
belong to the caller's RetryPolicy.
"""

from typing import Protocol

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from loguru import logger
from pydantic import BaseModel

from adaptive_training.coach.intents import ChatMessage
from adaptive_training.config.settings import LLMConfig


class CompletionResult(BaseModel):
    text: str
    prompt_tokens: int = 0
    completion_tokens: int = 0


class CompletionService(Protocol):
    def complete(self, system_prompt: str, user_message: str, history: list[ChatMessage]) -> CompletionResult:
        """Return the model's completion for the conversation. May raise on failure."""
        ...


def _get_llm(config: LLMConfig) -> ChatOpenAI:
    """Get configured LLM instance.

    Returns:
        Configured ChatOpenAI instance

    Raises:
        ValueError: If no API key is configured
    """
    if config.api_key is None:
        raise ValueError("OPENAI_API_KEY is not set. Please configure it in your .env file or environment variables.")
    return ChatOpenAI(
        model=config.model,
        temperature=config.temperature,
        max_tokens=config.max_tokens,
        timeout=config.timeout_seconds,
        max_retries=0,
        api_key=config.api_key,
    )


def to_langchain_messages(system_prompt: str, user_message: str, history: list[ChatMessage]) -> list[BaseMessage]:
    messages: list[BaseMessage] = [SystemMessage(content=system_prompt)]
    for message in history:
        if message.role == "assistant":
            messages.append(AIMessage(content=message.content))
        else:
            messages.append(HumanMessage(content=message.content))
    messages.append(HumanMessage(content=user_message))
    return messages


class OpenAICompletionService:
    """CompletionService backed by a LangChain chat model."""

    def __init__(self, config: LLMConfig, llm: BaseChatModel | None = None) -> None:
        self.llm = llm or _get_llm(config)

    def complete(self, system_prompt: str, user_message: str, history: list[ChatMessage]) -> CompletionResult:
        response = self.llm.invoke(to_langchain_messages(system_prompt, user_message, history))
        content = response.content
        if not isinstance(content, str):
            content = "".join(part if isinstance(part, str) else str(part.get("text", "")) for part in content)

        usage = getattr(response, "usage_metadata", None) or {}
        result = CompletionResult(
            text=content,
            prompt_tokens=usage.get("input_tokens", 0),
            completion_tokens=usage.get("output_tokens", 0),
        )
        logger.debug(
            "Completion received",
            prompt_tokens=result.prompt_tokens,
            completion_tokens=result.completion_tokens,
        )
        return result
