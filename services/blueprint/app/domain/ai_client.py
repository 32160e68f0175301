"""Generation client: provider routing, rate-limit backoff and failover."""
from __future__ import annotations

import asyncio
from typing import Callable

import httpx
import structlog
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..config import BlueprintSettings, get_settings
from . import hierarchy
from .errors import ConfigError, GenerationError, ProviderError, RateLimited
from .profiles import profile_for
from .progress import Sleep
from .prompts import (
    ASSIST_SYSTEM_PROMPT,
    DOCUMENT_SYSTEM_PROMPT,
    REFINE_SYSTEM_PROMPT,
    build_document_prompt,
    build_refine_prompt,
    placeholder_document,
)
from .providers import GoogleProvider, OfflineProvider, OpenRouterProvider, ProviderCall, TextProvider
from .types import DocumentKind, GenerationMode, GenerationRequest, GenerationResult, ProviderName

logger = structlog.get_logger(__name__)

# Receives the text streamed so far by the current attempt; "" starts a new attempt.
ChunkCallback = Callable[[str], None]

PLACEHOLDER_MODEL = "fallback-mode"


def build_providers(
    settings: BlueprintSettings, http_client: httpx.AsyncClient | None = None
) -> tuple[TextProvider, TextProvider]:
    """Return ``(primary, secondary)`` according to the configured provider."""
    timeout = settings.generation.request_timeout_s
    google = GoogleProvider(settings.google, timeout=timeout, http_client=http_client)
    openrouter = OpenRouterProvider(settings.openrouter, timeout=timeout, http_client=http_client)
    if settings.generation.provider == "openrouter":
        return openrouter, google
    return google, openrouter


def with_references(content: str, references: tuple[str, ...]) -> str:
    if not references:
        return content
    links = "\n".join(f"- [{uri}]({uri})" for uri in references)
    return f"{content}\n\n## References & Sources\n\n{links}"


class GenerationClient:
    """Stateless front door to the text-generation backends.

    Rate limits are retried with exponential backoff on the primary provider,
    then re-issued once to the secondary provider when it has credentials.
    Document generation degrades to a placeholder when both are exhausted;
    refinement and assistance calls raise instead.
    """

    def __init__(
        self,
        settings: BlueprintSettings | None = None,
        *,
        primary: TextProvider | None = None,
        secondary: TextProvider | None = None,
        sleep: Sleep = asyncio.sleep,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        if primary is None:
            primary, default_secondary = build_providers(self._settings, http_client)
            secondary = secondary or default_secondary
        self._primary = primary
        self._secondary = secondary
        self._offline = OfflineProvider()
        self._sleep = sleep

    @property
    def settings(self) -> BlueprintSettings:
        return self._settings

    def _route(self) -> tuple[TextProvider, TextProvider | None]:
        secondary = self._secondary if self._secondary is not None and self._secondary.is_configured() else None
        if self._primary.is_configured():
            return self._primary, secondary
        if secondary is not None:
            logger.info("generation.primary_unconfigured", primary=self._primary.name.value, using=secondary.name.value)
            return secondary, None
        if self._settings.generation.offline_fallback:
            logger.warning("generation.offline_mode", primary=self._primary.name.value)
            return self._offline, None
        raise ConfigError(
            f"No API key configured for {self._primary.name.value} and offline fallback is disabled",
            provider=self._primary.name.value,
        )

    async def generate(
        self, kind: DocumentKind, request: GenerationRequest, on_chunk: ChunkCallback | None = None
    ) -> GenerationResult:
        mode = profile_for(kind, self._settings.generation.profile_overrides)
        call = ProviderCall(
            system=DOCUMENT_SYSTEM_PROMPT,
            prompt=build_document_prompt(kind, request),
            mode=mode,
            purpose="document",
            label=hierarchy.lookup(kind).title,
        )
        logger.info("generation.start", kind=kind.value, mode=mode.value)
        result = await self._dispatch(call, on_chunk, placeholder=placeholder_document(kind))
        if mode is GenerationMode.grounded and result.references:
            result = GenerationResult(
                content=with_references(result.content, result.references),
                provider_used=result.provider_used,
                model=result.model,
                references=result.references,
                degraded=result.degraded,
            )
        return result

    async def refine(
        self, content: str, instruction: str, kind: DocumentKind, on_chunk: ChunkCallback | None = None
    ) -> GenerationResult:
        call = ProviderCall(
            system=REFINE_SYSTEM_PROMPT,
            prompt=build_refine_prompt(content, instruction, kind),
            purpose="refine",
            label=hierarchy.lookup(kind).title,
            source=content,
        )
        logger.info("generation.refine", kind=kind.value, length=len(content))
        return await self._dispatch(call, on_chunk, placeholder=None)

    async def complete_text(self, prompt: str, purpose: str) -> GenerationResult:
        call = ProviderCall(system=ASSIST_SYSTEM_PROMPT, prompt=prompt, purpose=purpose)
        return await self._dispatch(call, None, placeholder=None)

    async def _dispatch(
        self, call: ProviderCall, on_chunk: ChunkCallback | None, placeholder: str | None
    ) -> GenerationResult:
        primary, secondary = self._route()
        try:
            return await self._with_retries(primary, call, on_chunk)
        except RateLimited as exc:
            last_error: GenerationError = exc
            logger.warning("generation.rate_limit_exhausted", provider=primary.name.value, purpose=call.purpose)
            if secondary is not None:
                try:
                    result = await self._invoke(secondary, call, on_chunk)
                    logger.info("generation.failover", primary=primary.name.value, secondary=secondary.name.value)
                    return result
                except GenerationError as fallback_exc:
                    logger.warning("generation.failover_failed", provider=secondary.name.value, error=str(fallback_exc))
                    last_error = fallback_exc
            if placeholder is None:
                raise last_error
            logger.warning("generation.degraded", purpose=call.purpose, label=call.label)
            return GenerationResult(
                content=placeholder,
                provider_used=ProviderName.placeholder,
                model=PLACEHOLDER_MODEL,
                degraded=True,
            )

    async def _with_retries(
        self, provider: TextProvider, call: ProviderCall, on_chunk: ChunkCallback | None
    ) -> GenerationResult:
        tuning = self._settings.generation

        def log_retry(state: RetryCallState) -> None:
            delay_s = state.next_action.sleep if state.next_action else 0.0
            logger.warning(
                "generation.retry",
                provider=provider.name.value,
                attempt=state.attempt_number,
                retries_left=tuning.max_retries - state.attempt_number + 1,
                delay_ms=int(delay_s * 1000),
            )

        retrying = AsyncRetrying(
            retry=retry_if_exception_type(RateLimited),
            stop=stop_after_attempt(tuning.max_retries + 1),
            wait=wait_exponential(multiplier=tuning.backoff_base_ms / 1000),
            sleep=self._sleep,
            before_sleep=log_retry,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                result = await self._invoke(provider, call, on_chunk)
        return result

    async def _invoke(
        self, provider: TextProvider, call: ProviderCall, on_chunk: ChunkCallback | None
    ) -> GenerationResult:
        if on_chunk is None:
            response = await provider.complete(call)
            text, model, references = response.text, response.model, response.references
        else:
            on_chunk("")
            parts: list[str] = []
            refs: list[str] = []
            async for delta in provider.stream(call):
                if delta.text:
                    parts.append(delta.text)
                    on_chunk("".join(parts))
                refs.extend(uri for uri in delta.references if uri not in refs)
            text, model, references = "".join(parts), provider.model_for(call.mode), tuple(refs)
        if not text.strip():
            raise ProviderError(f"{provider.name.value} returned an empty response", provider=provider.name.value)
        return GenerationResult(content=text, provider_used=provider.name, model=model, references=references)


__all__ = ["ChunkCallback", "GenerationClient", "build_providers", "with_references"]
