"""Text-generation provider adapters (Gemini, OpenRouter, offline)."""
from __future__ import annotations

import json
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Protocol

import httpx
import structlog

from ..config import GoogleProviderSettings, OpenRouterSettings
from .errors import ConfigError, NetworkError, ProviderError, RateLimited
from .types import GenerationMode, ProviderName

logger = structlog.get_logger(__name__)

LEAKED_KEY_MESSAGE = (
    "The Gemini API key has been reported as leaked and was disabled by Google. "
    "Generate a new key at https://aistudio.google.com/app/apikey and update BLUEPRINT_GOOGLE__API_KEY."
)


@dataclass(frozen=True)
class ProviderCall:
    system: str
    prompt: str
    mode: GenerationMode = GenerationMode.standard
    purpose: str = "document"
    label: str = ""
    source: str = ""


@dataclass(frozen=True)
class ProviderResponse:
    text: str
    model: str
    references: tuple[str, ...] = ()


@dataclass(frozen=True)
class ProviderDelta:
    text: str
    references: tuple[str, ...] = ()


class TextProvider(Protocol):
    name: ProviderName

    def is_configured(self) -> bool: ...

    def model_for(self, mode: GenerationMode) -> str: ...

    async def complete(self, call: ProviderCall) -> ProviderResponse: ...

    def stream(self, call: ProviderCall) -> AsyncIterator[ProviderDelta]: ...


def _error_payload(response: httpx.Response) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    if isinstance(data, list) and data:
        data = data[0]
    error = data.get("error") if isinstance(data, dict) else None
    return error if isinstance(error, dict) else {}


class _HttpProvider:
    name: ProviderName

    def __init__(self, timeout: float, http_client: httpx.AsyncClient | None) -> None:
        self._timeout = timeout
        self._http_client = http_client

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                yield client

    def _raise_for_status(self, response: httpx.Response) -> None:
        if response.status_code < 400:
            return
        error = _error_payload(response)
        message = error.get("message") or f"HTTP {response.status_code}: {response.reason_phrase}"
        status = str(error.get("status") or error.get("code") or "")
        if response.status_code == 429 or status == "RESOURCE_EXHAUSTED":
            raise RateLimited(message, provider=self.name.value)
        if response.status_code == 403 and "leaked" in message.lower():
            raise ProviderError(LEAKED_KEY_MESSAGE, provider=self.name.value, status_code=403)
        raise ProviderError(message, provider=self.name.value, status_code=response.status_code)

    async def _post_json(self, url: str, payload: dict[str, Any], headers: dict[str, str]) -> dict[str, Any]:
        start = time.perf_counter()
        try:
            async with self._client() as client:
                response = await client.post(url, json=payload, headers=headers, timeout=self._timeout)
        except httpx.TransportError as exc:
            raise NetworkError(f"{self.name.value} transport error: {exc}", provider=self.name.value) from exc
        latency_ms = int((time.perf_counter() - start) * 1000)
        logger.info("provider.call", provider=self.name.value, latency_ms=latency_ms, status_code=response.status_code)
        self._raise_for_status(response)
        try:
            data = response.json()
        except (ValueError, httpx.DecodingError) as exc:
            raise self._malformed(exc) from exc
        if not isinstance(data, dict):
            raise self._malformed(f"expected a JSON object, got {type(data).__name__}")
        return data

    def _malformed(self, detail: object) -> ProviderError:
        logger.warning("provider.malformed_response", provider=self.name.value, detail=str(detail)[:200])
        return ProviderError(f"{self.name.value} returned a malformed response", provider=self.name.value)

    async def _stream_events(
        self, url: str, payload: dict[str, Any], headers: dict[str, str], params: dict[str, str] | None = None
    ) -> AsyncIterator[dict[str, Any]]:
        try:
            async with self._client() as client:
                async with client.stream(
                    "POST", url, json=payload, headers=headers, params=params, timeout=self._timeout
                ) as response:
                    if response.status_code >= 400:
                        await response.aread()
                        self._raise_for_status(response)
                    async for line in response.aiter_lines():
                        if not line.startswith("data:"):
                            continue
                        data = line[len("data:"):].strip()
                        if not data or data == "[DONE]":
                            continue
                        try:
                            event = json.loads(data)
                        except ValueError as exc:
                            raise self._malformed(exc) from exc
                        if isinstance(event, dict):
                            yield event
        except httpx.DecodingError as exc:
            raise self._malformed(exc) from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"{self.name.value} transport error: {exc}", provider=self.name.value) from exc


class GoogleProvider(_HttpProvider):
    """Gemini ``generateContent`` REST endpoint."""

    name = ProviderName.google

    def __init__(
        self, settings: GoogleProviderSettings, timeout: float = 120.0, http_client: httpx.AsyncClient | None = None
    ) -> None:
        super().__init__(timeout, http_client)
        self._settings = settings

    def is_configured(self) -> bool:
        return bool(self._settings.api_key)

    def model_for(self, mode: GenerationMode) -> str:
        if mode is GenerationMode.deep_reasoning:
            return self._settings.thinking_model
        return self._settings.model

    def _request(self, call: ProviderCall, action: str) -> tuple[str, dict[str, Any], dict[str, str]]:
        if not self._settings.api_key:
            raise ConfigError("Gemini API key is not configured", provider=self.name.value)
        payload: dict[str, Any] = {
            "systemInstruction": {"parts": [{"text": call.system}]},
            "contents": [{"role": "user", "parts": [{"text": call.prompt}]}],
        }
        if call.mode is GenerationMode.grounded:
            payload["tools"] = [{"googleSearch": {}}]
        if call.mode is GenerationMode.deep_reasoning:
            payload["generationConfig"] = {"thinkingConfig": {"thinkingBudget": self._settings.thinking_budget}}
        url = f"{self._settings.base_url.rstrip('/')}/models/{self.model_for(call.mode)}:{action}"
        headers = {"x-goog-api-key": self._settings.api_key, "Content-Type": "application/json"}
        return url, payload, headers

    @staticmethod
    def _candidate(data: dict[str, Any]) -> dict[str, Any]:
        candidates = data.get("candidates") or []
        return candidates[0] if candidates else {}

    @staticmethod
    def _text(candidate: dict[str, Any]) -> str:
        parts = (candidate.get("content") or {}).get("parts") or []
        return "".join(part.get("text", "") for part in parts if not part.get("thought"))

    @staticmethod
    def _references(candidate: dict[str, Any]) -> tuple[str, ...]:
        chunks = (candidate.get("groundingMetadata") or {}).get("groundingChunks") or []
        uris: list[str] = []
        for chunk in chunks:
            uri = (chunk.get("web") or {}).get("uri")
            if uri and uri not in uris:
                uris.append(uri)
        return tuple(uris)

    async def complete(self, call: ProviderCall) -> ProviderResponse:
        url, payload, headers = self._request(call, "generateContent")
        data = await self._post_json(url, payload, headers)
        candidate = self._candidate(data)
        return ProviderResponse(
            text=self._text(candidate),
            model=self.model_for(call.mode),
            references=self._references(candidate),
        )

    async def stream(self, call: ProviderCall) -> AsyncIterator[ProviderDelta]:
        url, payload, headers = self._request(call, "streamGenerateContent")
        async for event in self._stream_events(url, payload, headers, params={"alt": "sse"}):
            candidate = self._candidate(event)
            yield ProviderDelta(text=self._text(candidate), references=self._references(candidate))


class OpenRouterProvider(_HttpProvider):
    """OpenRouter chat-completions endpoint."""

    name = ProviderName.openrouter

    def __init__(
        self, settings: OpenRouterSettings, timeout: float = 120.0, http_client: httpx.AsyncClient | None = None
    ) -> None:
        super().__init__(timeout, http_client)
        self._settings = settings

    def is_configured(self) -> bool:
        return bool(self._settings.api_key.strip())

    def model_for(self, mode: GenerationMode) -> str:
        return self._settings.model

    def _request(self, call: ProviderCall, stream: bool) -> tuple[str, dict[str, Any], dict[str, str]]:
        if not self.is_configured():
            raise ConfigError("OpenRouter API key is not configured", provider=self.name.value)
        payload: dict[str, Any] = {
            "model": self._settings.model,
            "messages": [
                {"role": "system", "content": call.system},
                {"role": "user", "content": call.prompt},
            ],
            "temperature": self._settings.temperature,
            "max_tokens": self._settings.max_tokens,
        }
        if stream:
            payload["stream"] = True
        headers = {
            "Authorization": f"Bearer {self._settings.api_key.strip()}",
            "Content-Type": "application/json",
        }
        return f"{self._settings.base_url.rstrip('/')}/chat/completions", payload, headers

    async def complete(self, call: ProviderCall) -> ProviderResponse:
        url, payload, headers = self._request(call, stream=False)
        data = await self._post_json(url, payload, headers)
        choices = data.get("choices") or []
        content = (choices[0].get("message") or {}).get("content") if choices else None
        if not content:
            raise ProviderError(
                "OpenRouter returned an empty response. Try a different model or check your credit balance.",
                provider=self.name.value,
            )
        return ProviderResponse(text=content, model=data.get("model") or self._settings.model)

    async def stream(self, call: ProviderCall) -> AsyncIterator[ProviderDelta]:
        url, payload, headers = self._request(call, stream=True)
        async for event in self._stream_events(url, payload, headers):
            choices = event.get("choices") or []
            if not choices:
                continue
            text = (choices[0].get("delta") or {}).get("content") or ""
            if text:
                yield ProviderDelta(text=text)


class OfflineProvider:
    """Deterministic stand-in used when no provider credentials are configured."""

    name = ProviderName.offline
    model = "offline-mock"

    def is_configured(self) -> bool:
        return True

    def model_for(self, mode: GenerationMode) -> str:
        return self.model

    def _render(self, call: ProviderCall) -> str:
        if call.purpose == "extract":
            return json.dumps(
                {
                    "name": "Mock Project",
                    "concept": "A revolutionary AI platform for developers.",
                    "problem": "Developing AI is hard and time-consuming.",
                    "audience": "Developers and Startups",
                    "features": ["AI Code Generation", "Automated Testing", "Smart Deployments"],
                    "tech": ["React", "Node.js", "Supabase"],
                    "budget": "Small ($5-25k)",
                    "timeline": "Normal (3-6m)",
                }
            )
        if call.purpose == "brainstorm":
            return json.dumps(["Feature A", "Feature B", "Feature C", "Feature D", "Feature E"])
        if call.purpose == "refine":
            return f"{call.source}\n\n**Added by AI:** simulated refinement for the request."
        label = call.label or "Document"
        return (
            f"## Mock Generated {label}\n\nThis is a simulated response.\n\n"
            f"## 1. Content\nMock content for {label}."
        )

    async def complete(self, call: ProviderCall) -> ProviderResponse:
        return ProviderResponse(text=self._render(call), model=self.model)

    async def stream(self, call: ProviderCall) -> AsyncIterator[ProviderDelta]:
        words = self._render(call).split(" ")
        for idx, word in enumerate(words):
            yield ProviderDelta(text=word if idx == len(words) - 1 else word + " ")


async def validate_openrouter_key(
    settings: OpenRouterSettings,
    api_key: str,
    model: str | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> tuple[bool, str | None]:
    """Send a minimal completion to check that an OpenRouter key and model work."""
    if not api_key.strip():
        return False, "API Key is required"
    probe_settings = settings.model_copy(update={"api_key": api_key, "model": model or settings.model, "max_tokens": 5})
    provider = OpenRouterProvider(probe_settings, timeout=30.0, http_client=http_client)
    try:
        await provider.complete(ProviderCall(system="", prompt="Test", purpose="probe"))
    except ProviderError as exc:
        if exc.status_code is None and "empty response" in str(exc):
            return True, None
        return False, str(exc)
    except (RateLimited, NetworkError) as exc:
        return False, str(exc)
    return True, None


__all__ = [
    "GoogleProvider",
    "OfflineProvider",
    "OpenRouterProvider",
    "ProviderCall",
    "ProviderDelta",
    "ProviderResponse",
    "TextProvider",
    "validate_openrouter_key",
]
