from __future__ import annotations

from typing import Any, AsyncIterator, List, Optional

from pydantic_ai import Agent
from pydantic_ai.messages import (
    ModelRequest,
    ModelResponse,
    SystemPromptPart,
    TextPart,
    UserPromptPart,
)
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.litellm import LiteLLMProvider

from app.config import get_settings
from app.constants.default_system_prompt import DefaultSystemPrompt
from app.infra.logging_config import get_logger

logger = get_logger("llm")


def _history_to_message_list(history: List[dict[str, str]]) -> List[Any]:
    """Convert list of {role, content} to pydantic_ai ModelMessage list for message_history."""
    out: List[Any] = []
    for item in history:
        role = item.get("role", "user")
        content = (item.get("content") or "").strip()
        if not content:
            continue
        if role == "user":
            out.append(ModelRequest(parts=[UserPromptPart(content=content)]))
        elif role == "assistant":
            out.append(ModelResponse(parts=[TextPart(content=content)]))
        elif role == "system":
            out.append(ModelRequest(parts=[SystemPromptPart(content=content)]))
    return out


def _split_prompt(history: List[dict[str, str]]) -> tuple[str, List[dict[str, str]]]:
    """The newest user message is the prompt; everything before it is history."""
    for i in range(len(history) - 1, -1, -1):
        if history[i].get("role") == "user":
            return history[i].get("content") or "", history[:i]
    return "", history


class LLMRunner:
    """Streams replies from an OpenAI-compatible endpoint (OpenRouter by default)."""

    def __init__(
        self,
        model_name: str,
        api_key: Optional[str] = None,
        api_base: Optional[str] = None,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
    ) -> None:
        provider = LiteLLMProvider(api_key=api_key, api_base=api_base)
        model = OpenAIChatModel(model_name, provider=provider)
        logger.info("Initializing LLM runner with model %s", model_name)
        self._system_prompt = system_prompt or ""
        self._agent = Agent(model, model_settings={"temperature": temperature})

    async def stream(self, history: List[dict[str, str]]) -> AsyncIterator[str]:
        """Yield text deltas of the assistant reply to the conversation so far."""
        prompt, earlier = _split_prompt(history)
        message_history = [
            ModelRequest(parts=[SystemPromptPart(content=self._system_prompt)])
        ] + _history_to_message_list(earlier)
        async with self._agent.run_stream(
            prompt, message_history=message_history
        ) as result:
            async for delta in result.stream_text(delta=True):
                yield delta


def build_llm_runner_from_env() -> LLMRunner:
    settings = get_settings()
    logger.info(
        "LLM runner config: model=%s, api_key=%s, api_base=%s",
        settings.llm_model,
        "set" if settings.openrouter_api_key else "not set",
        settings.openrouter_api_base,
    )
    if not settings.openrouter_api_key:
        logger.warning(
            "OPENROUTER_API_KEY is not set; chat requests will fail with 401 errors."
        )
    return LLMRunner(
        model_name=settings.llm_model,
        api_key=settings.openrouter_api_key,
        api_base=settings.openrouter_api_base,
        system_prompt=DefaultSystemPrompt.CONTENT,
        temperature=settings.llm_temperature,
    )
