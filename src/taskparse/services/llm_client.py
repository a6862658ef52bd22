"""Provider-agnostic completion client used by the intent resolver."""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import httpx

logger = logging.getLogger(__name__)


class LLMProvider(str, Enum):
    """Supported LLM providers."""

    OPENAI = "openai"
    GEMINI = "gemini"
    ANTHROPIC = "anthropic"


DEFAULT_PRIORITY = [LLMProvider.OPENAI, LLMProvider.GEMINI, LLMProvider.ANTHROPIC]


@dataclass
class LLMResponse:
    """Standardized response from any LLM provider."""

    text: str
    provider: LLMProvider
    model: str
    tokens_input: int = 0
    tokens_output: int = 0
    latency_ms: int = 0
    raw_response: dict[str, Any] = field(default_factory=dict)

    @property
    def total_tokens(self) -> int:
        return self.tokens_input + self.tokens_output


class BaseLLMProvider(ABC):
    """Abstract base class for LLM providers."""

    provider: LLMProvider
    default_model: str

    def __init__(
        self,
        api_key: str,
        model: str | None = None,
        client: httpx.Client | None = None,
        timeout: float = 15.0,
    ) -> None:
        self.api_key = api_key
        self.model = model or self.default_model
        self.timeout = timeout
        if client is None:
            import httpx

            self._client = httpx.Client(timeout=timeout)
            self._owns_client = True
        else:
            self._client = client
            self._owns_client = False

    def close(self) -> None:
        """Close the HTTP client if we own it."""
        if self._owns_client and self._client is not None:
            self._client.close()

    @abstractmethod
    def complete(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        temperature: float = 0.2,
        max_tokens: int = 1024,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Send a completion request and return standardized response."""
        ...

    def _post(self, endpoint: str, **kwargs: Any) -> tuple[dict[str, Any], int]:
        start_time = time.time()
        response = self._client.post(endpoint, **kwargs)
        response.raise_for_status()
        return response.json(), int((time.time() - start_time) * 1000)

    def _estimate_tokens(self, text: str) -> int:
        """Rough token estimate (4 chars per token)."""
        return max(1, len(text) // 4)


class OpenAIProvider(BaseLLMProvider):
    """OpenAI chat completions."""

    provider = LLMProvider.OPENAI
    default_model = "gpt-4.1-mini"

    def complete(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        temperature: float = 0.2,
        max_tokens: int = 1024,
        json_mode: bool = False,
    ) -> LLMResponse:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        request_body: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if json_mode:
            request_body["response_format"] = {"type": "json_object"}

        data, latency_ms = self._post(
            "https://api.openai.com/v1/chat/completions",
            headers={"Authorization": f"Bearer {self.api_key}"},
            json=request_body,
        )

        text = ""
        choices = data.get("choices", [])
        if choices:
            text = choices[0].get("message", {}).get("content") or ""

        usage = data.get("usage", {})
        return LLMResponse(
            text=text,
            provider=self.provider,
            model=self.model,
            tokens_input=usage.get("prompt_tokens", self._estimate_tokens(prompt)),
            tokens_output=usage.get("completion_tokens", self._estimate_tokens(text)),
            latency_ms=latency_ms,
            raw_response=data,
        )


class GeminiProvider(BaseLLMProvider):
    """Google Gemini generateContent."""

    provider = LLMProvider.GEMINI
    default_model = "gemini-2.0-flash"

    def complete(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        temperature: float = 0.2,
        max_tokens: int = 1024,
        json_mode: bool = False,
    ) -> LLMResponse:
        contents = []
        if system_prompt:
            contents.append({"role": "user", "parts": [{"text": system_prompt}]})
            contents.append(
                {"role": "model", "parts": [{"text": "Understood. Following instructions."}]}
            )
        contents.append({"role": "user", "parts": [{"text": prompt}]})

        generation_config: dict[str, Any] = {
            "temperature": temperature,
            "maxOutputTokens": max_tokens,
        }
        if json_mode:
            generation_config["response_mime_type"] = "application/json"

        data, latency_ms = self._post(
            f"https://generativelanguage.googleapis.com/v1beta/models/{self.model}:generateContent",
            params={"key": self.api_key},
            json={"contents": contents, "generationConfig": generation_config},
        )

        text = ""
        candidates = data.get("candidates", [])
        if candidates:
            for part in candidates[0].get("content", {}).get("parts", []):
                if "text" in part:
                    text = part["text"]
                    break

        usage = data.get("usageMetadata", {})
        return LLMResponse(
            text=text,
            provider=self.provider,
            model=self.model,
            tokens_input=usage.get("promptTokenCount", self._estimate_tokens(prompt)),
            tokens_output=usage.get("candidatesTokenCount", self._estimate_tokens(text)),
            latency_ms=latency_ms,
            raw_response=data,
        )


class AnthropicProvider(BaseLLMProvider):
    """Anthropic messages API."""

    provider = LLMProvider.ANTHROPIC
    default_model = "claude-3-5-haiku-20241022"

    def complete(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        temperature: float = 0.2,
        max_tokens: int = 1024,
        json_mode: bool = False,
    ) -> LLMResponse:
        content = prompt
        if json_mode:
            content = f"{prompt}\n\nRespond with valid JSON only, no other text."

        request_body: dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "user", "content": content}],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if system_prompt:
            request_body["system"] = system_prompt

        data, latency_ms = self._post(
            "https://api.anthropic.com/v1/messages",
            headers={
                "x-api-key": self.api_key,
                "anthropic-version": "2023-06-01",
                "content-type": "application/json",
            },
            json=request_body,
        )

        text = ""
        for block in data.get("content", []):
            if block.get("type") == "text":
                text = block.get("text", "")
                break

        usage = data.get("usage", {})
        return LLMResponse(
            text=text,
            provider=self.provider,
            model=self.model,
            tokens_input=usage.get("input_tokens", self._estimate_tokens(prompt)),
            tokens_output=usage.get("output_tokens", self._estimate_tokens(text)),
            latency_ms=latency_ms,
            raw_response=data,
        )


PROVIDER_CLASSES: dict[LLMProvider, type[BaseLLMProvider]] = {
    LLMProvider.OPENAI: OpenAIProvider,
    LLMProvider.GEMINI: GeminiProvider,
    LLMProvider.ANTHROPIC: AnthropicProvider,
}


class LLMClient:
    """Tries each configured provider once, in priority order."""

    def __init__(
        self,
        *,
        openai_api_key: str = "",
        gemini_api_key: str = "",
        anthropic_api_key: str = "",
        models: dict[LLMProvider, str] | None = None,
        primary_provider: LLMProvider | None = None,
        timeout: float = 15.0,
        providers: dict[LLMProvider, BaseLLMProvider] | None = None,
    ) -> None:
        if providers is not None:
            self._providers = dict(providers)
        else:
            keys = {
                LLMProvider.OPENAI: openai_api_key,
                LLMProvider.GEMINI: gemini_api_key,
                LLMProvider.ANTHROPIC: anthropic_api_key,
            }
            models = models or {}
            self._providers = {
                p: PROVIDER_CLASSES[p](api_key=key, model=models.get(p), timeout=timeout)
                for p, key in keys.items()
                if key
            }

        order = [p for p in DEFAULT_PRIORITY if p in self._providers]
        if primary_provider in self._providers:
            order.remove(primary_provider)
            order.insert(0, primary_provider)
        self._order: list[LLMProvider] = order

    @property
    def available_providers(self) -> list[LLMProvider]:
        return list(self._order)

    @property
    def primary_provider(self) -> LLMProvider | None:
        return self._order[0] if self._order else None

    @property
    def is_available(self) -> bool:
        """True if at least one provider is configured."""
        return bool(self._providers)

    def complete(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        temperature: float = 0.2,
        max_tokens: int = 1024,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Send completion request, falling through providers on failure.

        Raises:
            RuntimeError: If no providers are configured or all of them fail
        """
        if not self.is_available:
            raise RuntimeError("No LLM providers configured")

        errors: list[tuple[LLMProvider, Exception]] = []

        for p in self._order:
            try:
                response = self._providers[p].complete(
                    prompt,
                    system_prompt=system_prompt,
                    temperature=temperature,
                    max_tokens=max_tokens,
                    json_mode=json_mode,
                )
            except Exception as e:
                logger.warning("Provider %s failed: %s", p.value, e)
                errors.append((p, e))
                continue

            logger.debug(
                "Provider %s answered in %dms (%d tokens)",
                p.value,
                response.latency_ms,
                response.total_tokens,
            )
            return response

        error_summary = "; ".join(f"{p.value}: {e}" for p, e in errors)
        raise RuntimeError(f"All LLM providers failed: {error_summary}")

    def close(self) -> None:
        """Close all provider clients."""
        for provider in self._providers.values():
            provider.close()


# Module-level singleton
_client: LLMClient | None = None


def get_llm_client() -> LLMClient:
    """Get or create the singleton LLM client from settings."""
    global _client
    if _client is None:
        from taskparse.config import settings

        primary = None
        try:
            primary = LLMProvider(settings.llm_provider.lower())
        except ValueError:
            logger.warning("Unknown LLM_PROVIDER %r; using default order", settings.llm_provider)

        _client = LLMClient(
            openai_api_key=settings.openai_api_key,
            gemini_api_key=settings.gemini_api_key,
            anthropic_api_key=settings.anthropic_api_key,
            models={
                LLMProvider.OPENAI: settings.openai_model,
                LLMProvider.GEMINI: settings.gemini_model,
                LLMProvider.ANTHROPIC: settings.anthropic_model,
            },
            primary_provider=primary,
            timeout=settings.llm_timeout_seconds,
        )
    return _client


def reset_llm_client() -> None:
    global _client
    if _client is not None:
        _client.close()
    _client = None
