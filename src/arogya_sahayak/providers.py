from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog

from .errors import (
    AuthenticationError,
    BillingLimitError,
    ConfigurationError,
    EmptyCompletionError,
    RateLimitError,
    UpstreamConnectionError,
    UpstreamStatusError,
    UpstreamUnavailableError,
)

log = structlog.get_logger()

AUTH_SCHEMES = ("bearer", "query-key")
REQUEST_SHAPES = ("openai-chat", "gemini")


@dataclass(frozen=True)
class ProviderDescriptor:
    name: str
    endpoint: str
    auth_scheme: str = "bearer"
    request_shape: str = "openai-chat"
    is_free_tier: bool = False
    extra_headers: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.auth_scheme not in AUTH_SCHEMES:
            raise ConfigurationError(f"Unsupported auth scheme: {self.auth_scheme!r}")
        if self.request_shape not in REQUEST_SHAPES:
            raise ConfigurationError(f"Unsupported request shape: {self.request_shape!r}")


class ProviderSession:
    """
    One provider endpoint, one HTTP request per `send`.

    Retry and fallback policy live in the completion client; this class only
    shapes the request and maps the response onto a string or a typed error.
    `openai-chat` speaks the OpenAI-compatible chat completions contract
    (Groq, OpenRouter); `gemini` speaks the Gemini `generateContent` contract,
    where `endpoint` may contain a `{model}` placeholder.
    """

    def __init__(
        self,
        descriptor: ProviderDescriptor,
        api_key: str | None,
        *,
        client: httpx.AsyncClient,
        daily_quota_marker: str | None = None,
    ):
        self.descriptor = descriptor
        self.api_key = api_key
        self._client = client
        self._daily_quota_marker = daily_quota_marker

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _url(self, model: str) -> str:
        return self.descriptor.endpoint.replace("{model}", model)

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", **self.descriptor.extra_headers}
        if self.descriptor.auth_scheme == "bearer":
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _params(self) -> dict[str, str]:
        if self.descriptor.auth_scheme == "query-key":
            return {"key": self.api_key or ""}
        return {}

    def build_payload(
        self,
        *,
        model: str,
        messages: list[dict[str, str]],
        system_instruction: str | None,
        temperature: float | None,
        max_tokens: int | None,
    ) -> dict[str, Any]:
        if self.descriptor.request_shape == "gemini":
            return _gemini_payload(messages, system_instruction, temperature, max_tokens)

        chat: list[dict[str, str]] = []
        if system_instruction:
            chat.append({"role": "system", "content": system_instruction})
        chat.extend({"role": m.get("role", "user"), "content": m.get("content", "")} for m in messages)
        payload: dict[str, Any] = {"model": model, "messages": chat}
        if temperature is not None:
            payload["temperature"] = temperature
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        return payload

    def _is_daily_quota(self, body: str) -> bool:
        marker = self._daily_quota_marker
        if marker and marker.lower() in body.lower():
            return True
        if self.descriptor.is_free_tier:
            # Free-tier 429s are expected to name the daily quota; a miss means the
            # provider changed its wording and we now retry instead of stopping.
            log.warning("daily_quota_marker_missing", provider=self.name, marker=marker, body=body)
        return False

    async def send(
        self,
        *,
        model: str,
        messages: list[dict[str, str]],
        system_instruction: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        if not self.api_key:
            raise AuthenticationError(f"Missing API key for provider {self.name!r}.")

        payload = self.build_payload(
            model=model,
            messages=messages,
            system_instruction=system_instruction,
            temperature=temperature,
            max_tokens=max_tokens,
        )

        try:
            resp = await self._client.post(
                self._url(model), headers=self._headers(), params=self._params(), json=payload
            )
        except httpx.TimeoutException as e:
            raise UpstreamConnectionError("Upstream request timed out.") from e
        except httpx.HTTPError as e:
            raise UpstreamConnectionError("Upstream request failed.") from e

        status = resp.status_code
        if status == 402:
            raise BillingLimitError("Upstream reported a billing limit.")

        if status == 429:
            retry_after = resp.headers.get("retry-after")
            retry_seconds = int(retry_after) if retry_after and retry_after.isdigit() else None
            raise RateLimitError(
                retry_after_seconds=retry_seconds,
                daily_quota=self._is_daily_quota(resp.text),
            )

        if status in (502, 503):
            raise UpstreamUnavailableError(status)

        if status >= 400:
            log.warning(
                "provider_http_error",
                provider=self.name,
                model=model,
                status_code=status,
                body=resp.text,
            )
            raise UpstreamStatusError(status)

        try:
            data = resp.json()
        except ValueError as e:
            raise EmptyCompletionError("Upstream returned a non-JSON body.") from e

        if self.descriptor.request_shape == "gemini":
            text = _gemini_text(data)
        else:
            text = _openai_text(data)
        if not text:
            raise EmptyCompletionError("Missing text in upstream response.")

        log.debug(
            "provider_send_ok",
            provider=self.name,
            model=model,
            prompt_chars=sum(len(m.get("content", "")) for m in messages),
        )
        return text


def _openai_text(data: Any) -> str | None:
    if not isinstance(data, dict):
        return None
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    message = choices[0].get("message")
    if not isinstance(message, dict):
        return None
    content = message.get("content")
    return content if isinstance(content, str) and content.strip() else None


def _gemini_text(data: Any) -> str | None:
    if not isinstance(data, dict):
        return None
    candidates = data.get("candidates")
    if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
        return None
    content = candidates[0].get("content")
    if not isinstance(content, dict):
        return None
    parts = content.get("parts")
    if not isinstance(parts, list) or not parts or not isinstance(parts[0], dict):
        return None
    text = parts[0].get("text")
    return text if isinstance(text, str) and text.strip() else None


def _gemini_payload(
    messages: list[dict[str, str]],
    system_instruction: str | None,
    temperature: float | None,
    max_tokens: int | None,
) -> dict[str, Any]:
    contents: list[dict[str, Any]] = []
    for msg in messages:
        role = "model" if msg.get("role") == "assistant" else "user"
        contents.append({"role": role, "parts": [{"text": msg.get("content", "")}]})

    payload: dict[str, Any] = {"contents": contents}
    if system_instruction:
        payload["systemInstruction"] = {"parts": [{"text": system_instruction}]}

    generation_config: dict[str, Any] = {}
    if temperature is not None:
        generation_config["temperature"] = temperature
    if max_tokens is not None:
        generation_config["maxOutputTokens"] = max_tokens
    if generation_config:
        payload["generationConfig"] = generation_config
    return payload
