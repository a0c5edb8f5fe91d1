from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, replace
from typing import Any

import httpx
import structlog

from .config import ArogyaConfig
from .errors import (
    BillingLimitError,
    EmptyCompletionError,
    ProviderError,
    RateLimitError,
    UpstreamUnavailableError,
)
from .formatting import clean_completion_text
from .metrics import completion_latency_seconds, completion_outcomes_total, provider_attempts_total
from .outcome import CompletionOutcome, OutcomeKind, render_outcome
from .personas import (
    DEFAULT_LANGUAGE,
    INDIAN_LANGUAGES,
    PersonaKind,
    build_system_instruction,
    language_name,
)
from .providers import ProviderSession

log = structlog.get_logger()

RATE_LIMIT_BASE_SECONDS = 5.0
RATE_LIMIT_CAP_SECONDS = 30.0


def backoff_delay(attempt: int, *, rate_limited: bool, retry_after_seconds: int | None = None) -> float:
    """
    Seconds to wait before retry `attempt` (1-based) of the same model.

    An upstream `Retry-After` raises the rate-limit wait but never past the cap.
    """
    if rate_limited:
        delay = max(RATE_LIMIT_BASE_SECONDS * (2**attempt), float(retry_after_seconds or 0))
        return min(delay, RATE_LIMIT_CAP_SECONDS)
    return float(2**attempt)


@dataclass
class _CallTrace:
    attempts: int = 0
    provider_name: str | None = None
    model: str | None = None


class CompletionClient:
    """
    Primary provider once, then each fallback model in listed order with a
    per-model retry budget. Every failure is folded into a `CompletionOutcome`;
    only task cancellation escapes.
    """

    def __init__(
        self,
        cfg: ArogyaConfig | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        primary: ProviderSession | None = None,
        fallback: ProviderSession | None = None,
        sleeper: Callable[[float], Awaitable[None]] | None = None,
        clock: Callable[[], float] | None = None,
    ):
        self.cfg = cfg or ArogyaConfig()
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=self.cfg.upstream_timeout_seconds)
        self.primary = primary or ProviderSession(
            self.cfg.primary_descriptor(),
            self.cfg.primary_api_key,
            client=self._http,
            daily_quota_marker=self.cfg.daily_quota_marker,
        )
        self.fallback = fallback or ProviderSession(
            self.cfg.fallback_descriptor(),
            self.cfg.fallback_api_key,
            client=self._http,
            daily_quota_marker=self.cfg.daily_quota_marker,
        )
        self._sleep: Callable[[float], Awaitable[None]] = sleeper or asyncio.sleep
        self._clock: Callable[[], float] = clock or time.monotonic

    async def close(self) -> None:
        if self._owns_http_client:
            await self._http.aclose()

    async def generate(
        self,
        messages: Sequence[Mapping[str, str]],
        persona: PersonaKind | str = PersonaKind.GENERAL_MEDICAL,
        language: str = DEFAULT_LANGUAGE,
        max_retries: int | None = None,
        session_context: Mapping[str, Any] | None = None,
        timeout_seconds: float | None = None,
    ) -> str:
        outcome = await self.complete(
            messages,
            persona,
            language,
            max_retries=max_retries,
            session_context=session_context,
            timeout_seconds=timeout_seconds,
        )
        return render_outcome(outcome)

    async def translate(self, text: str, target_language: str) -> str:
        if not target_language or target_language == DEFAULT_LANGUAGE:
            return text
        if target_language not in INDIAN_LANGUAGES:
            return text
        prompt = (
            f"Translate the following medical text to {language_name(target_language)} language. "
            f"Maintain medical accuracy and terminology:\n\n{text}"
        )
        outcome = await self.complete([{"role": "user", "content": prompt}], PersonaKind.GENERAL_MEDICAL, target_language)
        if not outcome.ok:
            log.warning("translation_failed", language=target_language, outcome=outcome.kind.value)
            return text
        return outcome.text or text

    async def complete(
        self,
        messages: Sequence[Mapping[str, str]],
        persona: PersonaKind | str = PersonaKind.GENERAL_MEDICAL,
        language: str = DEFAULT_LANGUAGE,
        max_retries: int | None = None,
        session_context: Mapping[str, Any] | None = None,
        timeout_seconds: float | None = None,
    ) -> CompletionOutcome:
        started = self._clock()
        trace = _CallTrace()
        deadline = self.cfg.call_timeout_seconds if timeout_seconds is None else timeout_seconds
        retries = self.cfg.default_max_retries if max_retries is None else max_retries

        try:
            system_instruction = build_system_instruction(persona, language, session_context)
            chat = [{"role": m.get("role", "user"), "content": m.get("content", "")} for m in messages]
            run = self._run(chat, system_instruction, max(1, int(retries)), trace)
            if deadline and deadline > 0:
                outcome = await asyncio.wait_for(run, timeout=deadline)
            else:
                outcome = await run
        except asyncio.TimeoutError:
            log.warning("completion_deadline_exceeded", timeout_seconds=deadline, attempts=trace.attempts)
            outcome = self._outcome(OutcomeKind.TIMED_OUT, trace)
        except Exception as e:
            log.exception("completion_unexpected_error", error=str(e), attempts=trace.attempts)
            outcome = self._outcome(OutcomeKind.EXHAUSTED, trace)

        latency = max(0.0, self._clock() - started)
        completion_outcomes_total.labels(outcome=outcome.kind.value).inc()
        completion_latency_seconds.observe(latency)
        log.info(
            "completion_finished",
            outcome=outcome.kind.value,
            provider=outcome.provider_name,
            model=outcome.model,
            attempts=outcome.attempts,
            latency_seconds=round(latency, 3),
        )
        return replace(outcome, latency_seconds=latency)

    def _outcome(self, kind: OutcomeKind, trace: _CallTrace, text: str | None = None) -> CompletionOutcome:
        return CompletionOutcome(
            kind=kind,
            text=text,
            provider_name=trace.provider_name,
            model=trace.model,
            attempts=trace.attempts,
        )

    async def _attempt(
        self,
        session: ProviderSession,
        model: str,
        messages: list[dict[str, str]],
        system_instruction: str,
        trace: _CallTrace,
    ) -> str:
        trace.attempts += 1
        trace.provider_name = session.name
        trace.model = model
        status = "success"
        try:
            return await session.send(
                model=model,
                messages=messages,
                system_instruction=system_instruction,
                temperature=self.cfg.temperature,
                max_tokens=self.cfg.max_tokens,
            )
        except BillingLimitError:
            status = "billing"
            raise
        except RateLimitError as e:
            status = "daily_quota" if e.daily_quota else "rate_limited"
            raise
        except UpstreamUnavailableError:
            status = "unavailable"
            raise
        except EmptyCompletionError:
            status = "empty"
            raise
        except ProviderError:
            status = "error"
            raise
        finally:
            provider_attempts_total.labels(provider=session.name, model=model, status=status).inc()

    async def _run(
        self,
        messages: list[dict[str, str]],
        system_instruction: str,
        retries: int,
        trace: _CallTrace,
    ) -> CompletionOutcome:
        if not self.primary.configured and not self.fallback.configured:
            log.error("completion_not_configured")
            return self._outcome(OutcomeKind.NOT_CONFIGURED, trace)

        if self.primary.configured:
            try:
                text = await self._attempt(
                    self.primary, self.cfg.primary_model, messages, system_instruction, trace
                )
            except BillingLimitError:
                log.warning("billing_limit_reached", provider=self.primary.name)
                return self._outcome(OutcomeKind.BILLING_EXHAUSTED, trace)
            except ProviderError as e:
                log.warning(
                    "primary_attempt_failed",
                    provider=self.primary.name,
                    model=self.cfg.primary_model,
                    error_type=type(e).__name__,
                    error=str(e),
                )
            else:
                return self._outcome(OutcomeKind.OK, trace, clean_completion_text(text))
        else:
            log.info("primary_provider_skipped", provider=self.primary.name, reason="missing_api_key")

        if not self.fallback.configured:
            log.error("fallback_provider_not_configured", provider=self.fallback.name)
            return self._outcome(OutcomeKind.EXHAUSTED, trace)

        models = list(self.cfg.fallback_models)
        for model_index, model in enumerate(models):
            is_last_model = model_index == len(models) - 1
            rate_limit: RateLimitError | None = None
            for attempt in range(retries):
                if attempt > 0:
                    await self._sleep(
                        backoff_delay(
                            attempt,
                            rate_limited=rate_limit is not None,
                            retry_after_seconds=rate_limit.retry_after_seconds if rate_limit else None,
                        )
                    )
                is_last_attempt = attempt == retries - 1
                try:
                    text = await self._attempt(self.fallback, model, messages, system_instruction, trace)
                except BillingLimitError:
                    log.warning("billing_limit_reached", provider=self.fallback.name, model=model)
                    return self._outcome(OutcomeKind.BILLING_EXHAUSTED, trace)
                except RateLimitError as e:
                    if e.daily_quota:
                        log.warning("daily_quota_exceeded", provider=self.fallback.name, model=model)
                        return self._outcome(OutcomeKind.DAILY_QUOTA_EXCEEDED, trace)
                    if is_last_attempt and is_last_model:
                        return self._outcome(OutcomeKind.HIGH_DEMAND, trace)
                    log.info("rate_limited", provider=self.fallback.name, model=model, attempt=attempt + 1)
                    rate_limit = e
                except EmptyCompletionError:
                    log.warning("empty_completion", provider=self.fallback.name, model=model)
                    return self._outcome(OutcomeKind.UNPROCESSABLE, trace)
                except UpstreamUnavailableError as e:
                    log.info(
                        "upstream_unavailable",
                        provider=self.fallback.name,
                        model=model,
                        status_code=e.status_code,
                        attempt=attempt + 1,
                    )
                    rate_limit = None
                except ProviderError as e:
                    log.warning(
                        "completion_attempt_failed",
                        provider=self.fallback.name,
                        model=model,
                        attempt=attempt + 1,
                        error_type=type(e).__name__,
                        error=str(e),
                    )
                    rate_limit = None
                else:
                    return self._outcome(OutcomeKind.OK, trace, clean_completion_text(text))
            log.info("fallback_model_exhausted", provider=self.fallback.name, model=model)

        return self._outcome(OutcomeKind.EXHAUSTED, trace)
