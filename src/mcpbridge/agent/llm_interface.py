"""
Language model interface for the bridge.

This module is the only place that *directly* calls an LLM.  Everything else (orchestrator,
agents, tools) stays model-agnostic and only sees ``complete(prompt) -> text``.

We support three back-ends out of the box:

1. **Ollama** chat endpoint via httpx (default, no key needed).
2. **OpenAI** / **Anthropic** via their async SDKs (requires env keys).

None of them uses native tool-calling: tool intents are expressed as text and recovered by
:mod:`mcpbridge.tools.tool_call_parser`.  Additional providers can be added by subclassing
:class:`BaseChatModel` and registering via :func:`register_backend`.
"""

import logging
from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Type,
)

import httpx

from mcpbridge.config import settings

logger = logging.getLogger(__name__)


class LLMError(RuntimeError):
    """Raised when the language model cannot be reached or returns an error."""


# ---------------------------------------------------------------------------
# Registry helpers
# ---------------------------------------------------------------------------
_BACKEND_REGISTRY: dict[str, Type["BaseChatModel"]] = {}


def register_backend(name: str) -> Callable:
    """Decorator to register a chat back-end class under *name*."""

    def wrapper(cls: Type["BaseChatModel"]) -> Type["BaseChatModel"]:
        _BACKEND_REGISTRY[name] = cls
        return cls

    return wrapper


def load_backend(name: str | None = None) -> "BaseChatModel":
    """
    Factory that returns an instantiated chat back-end.

    Fallback order:
    1. *name* arg
    2. ``settings.LLM_BACKEND`` env option
    3. default: ``"ollama"``
    """

    target = name or getattr(settings, "LLM_BACKEND", "ollama")
    cls = _BACKEND_REGISTRY.get(target.lower())
    if cls is None:
        raise ValueError(f"LLM back-end '{target}' is not registered.")
    return cls()


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------
class BaseChatModel(ABC):
    """Abstract chat model: prompt in, completion text out."""

    default_model: str = ""

    @abstractmethod
    async def complete(
        self, prompt: str, model: str | None = None, system: str | None = None
    ) -> str:
        """Return the completion for *prompt*; raise :class:`LLMError` on failure."""

    async def list_models(self) -> List[Dict[str, Any]]:
        """Models the back-end can serve (empty when it cannot tell)."""
        return []

    @staticmethod
    def _messages(prompt: str, system: str | None) -> List[Dict[str, str]]:
        messages = [{"role": "system", "content": system}] if system else []
        messages.append({"role": "user", "content": prompt})
        return messages


# ---------------------------------------------------------------------------
# Concrete back-ends
# ---------------------------------------------------------------------------
@register_backend("ollama")
class OllamaChatModel(BaseChatModel):
    """Ollama ``/api/chat`` client (non-streaming)."""

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = (base_url or settings.OLLAMA_URL).rstrip("/")
        self.timeout = settings.LLM_TIMEOUT if timeout is None else timeout
        self.default_model = settings.OLLAMA_MODEL

    async def complete(
        self, prompt: str, model: str | None = None, system: str | None = None
    ) -> str:
        selected = model or self.default_model
        url = f"{self.base_url}{settings.OLLAMA_CHAT_ENDPOINT}"
        payload = {"model": selected, "messages": self._messages(prompt, system), "stream": False}
        logger.info("Calling Ollama at %s with model: %s", url, selected)

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(url, json=payload)
                resp.raise_for_status()
                data = resp.json()
        except httpx.TimeoutException as e:
            logger.error("Ollama request timed out: %s", e)
            raise LLMError("Ollama request timed out") from e
        except httpx.HTTPStatusError as e:
            logger.error("Ollama API error: %s", e)
            raise LLMError(
                f"Ollama API error: {e.response.status_code} {e.response.reason_phrase}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Error communicating with Ollama: %s", e)
            raise LLMError(f"Failed to communicate with Ollama: {e}") from e

        logger.debug("Ollama response data: %s", data)
        content = (data.get("message") or {}).get("content")
        return content or "No response from Ollama"

    async def list_models(self) -> List[Dict[str, Any]]:
        url = f"{self.base_url}{settings.OLLAMA_TAGS_ENDPOINT}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.get(url)
                resp.raise_for_status()
                return list(resp.json().get("models", []))
        except httpx.TimeoutException as e:
            raise LLMError("Models request timed out") from e
        except (httpx.HTTPError, ValueError) as e:
            raise LLMError(f"Failed to get models: {e}") from e


@register_backend("openai")
class OpenAIChatModel(BaseChatModel):
    """OpenAI chat-completions back-end."""

    def __init__(self) -> None:
        self.default_model = settings.OPENAI_MODEL

    async def complete(
        self, prompt: str, model: str | None = None, system: str | None = None
    ) -> str:
        import openai  # pylint: disable=import-outside-toplevel

        client = openai.AsyncOpenAI(api_key=settings.OPENAI_API_KEY)
        try:
            resp = await client.chat.completions.create(
                model=model or self.default_model,
                messages=self._messages(prompt, system),  # type: ignore[arg-type]
                temperature=0.2,
            )
        except openai.OpenAIError as e:
            logger.error("OpenAI error: %s", str(e))
            raise LLMError(f"Error calling OpenAI: {e}") from e

        content = resp.choices[0].message.content
        if not content:
            raise LLMError("Empty response from OpenAI")
        logger.debug("OpenAI response: %s", content)
        return content

    async def list_models(self) -> List[Dict[str, Any]]:
        return [{"name": self.default_model}]


@register_backend("anthropic")
class AnthropicChatModel(BaseChatModel):
    """Anthropic Claude back-end."""

    def __init__(self) -> None:
        self.default_model = settings.ANTHROPIC_MODEL

    async def complete(
        self, prompt: str, model: str | None = None, system: str | None = None
    ) -> str:
        import anthropic  # pylint: disable=import-outside-toplevel

        client = anthropic.AsyncAnthropic(api_key=settings.ANTHROPIC_API_KEY)
        kwargs: Dict[str, Any] = {}
        if system:
            kwargs["system"] = system
        try:
            response = await client.messages.create(
                model=model or self.default_model,
                max_tokens=4096,
                messages=[{"role": "user", "content": prompt}],
                temperature=0.2,
                **kwargs,
            )
        except anthropic.AnthropicError as e:
            logger.error("Anthropic error: %s", str(e))
            raise LLMError(f"Error calling Anthropic: {e}") from e

        # Handle different content block types from Anthropic API
        text = "".join(block.text for block in response.content if block.type == "text")
        if not text:
            raise LLMError("Empty response from Anthropic")
        logger.debug("Anthropic response: %s", text)
        return text

    async def list_models(self) -> List[Dict[str, Any]]:
        return [{"name": self.default_model}]
