from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, List, Optional, Sequence

from pydantic_ai.direct import model_request
from pydantic_ai.exceptions import AgentRunError
from pydantic_ai.messages import (
    ModelMessage,
    ModelRequest,
    ModelResponse,
    SystemPromptPart,
    TextPart,
    UserPromptPart,
)
from pydantic_ai.models import Model
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.litellm import LiteLLMProvider

from app.config import get_settings
from app.core.step_result import GenerationError
from app.infra.logging_config import get_logger
from app.schemas.conversa import Role, Turn

logger = get_logger("llm")


class GenerationClient(ABC):
    """Stateless turn-list in, one text out. Raises GenerationError on failure."""

    @abstractmethod
    async def generate(self, turns: Sequence[Turn]) -> Optional[str]:
        """Return the first text part of the first candidate, or None if empty."""
        ...


def _turns_to_message_list(turns: Sequence[Turn]) -> List[ModelMessage]:
    """Convert role-tagged turns to pydantic_ai messages, order preserved."""
    out: List[ModelMessage] = []
    for turn in turns:
        if turn.role == Role.MODEL:
            out.append(ModelResponse(parts=[TextPart(content=turn.content)]))
        elif turn.role == Role.SYSTEM:
            out.append(ModelRequest(parts=[SystemPromptPart(content=turn.content)]))
        else:
            out.append(ModelRequest(parts=[UserPromptPart(content=turn.content)]))
    return out


def first_text(response: Any) -> Optional[str]:
    """First non-empty TextPart of a model response; None when there is none."""
    parts = getattr(response, "parts", None) or []
    for part in parts:
        if isinstance(part, TextPart):
            text = (part.content or "").strip()
            return text or None
    return None


class LLMRunner(GenerationClient):
    def __init__(
        self,
        model_name: str,
        api_key: Optional[str] = None,
        api_base: Optional[str] = None,
        model: Optional[Model] = None,
    ) -> None:
        if model is None:
            provider = LiteLLMProvider(api_key=api_key, api_base=api_base)
            model = OpenAIChatModel(model_name, provider=provider)
        logger.info(f"Initializing LLM runner with model {model_name}")
        self._model = model

    async def generate(self, turns: Sequence[Turn]) -> Optional[str]:
        if not turns:
            raise GenerationError("Cannot generate from an empty turn list")
        messages = _turns_to_message_list(turns)
        try:
            response = await model_request(self._model, messages)
        except AgentRunError as e:
            raise GenerationError(f"Model request failed: {e}") from e
        except Exception as e:
            # Provider SDKs raise their own transport/HTTP error types.
            raise GenerationError(f"Model transport failed: {e}") from e
        return first_text(response)


def build_llm_runner_from_env() -> LLMRunner:
    settings = get_settings()
    logger.info(
        "LLM runner config: model=%s, api_key=%s, api_base=%s",
        settings.llm_model,
        "set" if settings.litellm_api_key else "not set",
        settings.litellm_api_base or "(default)",
    )
    if not settings.litellm_api_key:
        logger.warning(
            "LITELLM_API_KEY is not set; set it to a valid LiteLLM API key to avoid 401 errors."
        )

    return LLMRunner(
        model_name=settings.llm_model,
        api_key=settings.litellm_api_key,
        api_base=settings.litellm_api_base,
    )
