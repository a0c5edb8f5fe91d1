from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping, MutableMapping
from typing import Any, TypeAlias, cast

import structlog

_SENSITIVE_KEYS = {
    "authorization",
    "cookie",
    "x-api-key",
    "api_key",
    "groq_api_key",
    "openrouter_api_key",
    "server_auth_token",
    "token",
    "secret",
    "password",
}

# Provider error bodies can be large HTML pages; keep the head only.
_TRUNCATED_KEYS = ("body", "error")
MAX_FIELD_CHARS = 500

_BEARER_RE = re.compile(r"(?i)\bBearer\s+([A-Za-z0-9._-]{6,})")
_PROVIDER_KEY_RE = re.compile(r"\b(?:gsk|sk-or-v1|sk)[-_][A-Za-z0-9_-]{16,}\b")

ProcessorReturn: TypeAlias = Mapping[str, Any] | str | bytes | bytearray | tuple[Any, ...]
Processor: TypeAlias = Callable[[Any, str, MutableMapping[str, Any]], ProcessorReturn]


def _redact_str(value: str, *, secrets: list[str]) -> str:
    out = value
    for secret in secrets:
        if secret and secret in out:
            out = out.replace(secret, "[REDACTED]")
    out = _BEARER_RE.sub("Bearer [REDACTED]", out)
    return _PROVIDER_KEY_RE.sub("[REDACTED]", out)


def _is_sensitive(key: Any) -> bool:
    key_str = str(key).lower()
    return key_str in _SENSITIVE_KEYS or any(s in key_str for s in ("api_key", "token", "secret", "password"))


def _redact_obj(obj: Any, *, secrets: list[str]) -> Any:
    if isinstance(obj, str):
        return _redact_str(obj, secrets=secrets)
    if isinstance(obj, list):
        return [_redact_obj(v, secrets=secrets) for v in obj]
    if isinstance(obj, tuple):
        return tuple(_redact_obj(v, secrets=secrets) for v in obj)
    if isinstance(obj, dict):
        return {
            k: "[REDACTED]" if _is_sensitive(k) else _redact_obj(v, secrets=secrets) for k, v in obj.items()
        }
    return obj


def _make_redaction_processor(*, secrets: list[str]) -> Processor:
    secrets_norm = [s for s in secrets if isinstance(s, str) and s]

    def _processor(_logger: Any, _method_name: str, event_dict: MutableMapping[str, Any]) -> ProcessorReturn:
        return cast(dict[str, Any], _redact_obj(dict(event_dict), secrets=secrets_norm))

    return _processor


def truncate_long_fields(_logger: Any, _method_name: str, event_dict: MutableMapping[str, Any]) -> ProcessorReturn:
    for key in _TRUNCATED_KEYS:
        value = event_dict.get(key)
        if isinstance(value, str) and len(value) > MAX_FIELD_CHARS:
            event_dict[key] = value[:MAX_FIELD_CHARS] + "...[truncated]"
    return event_dict


def configure_logging(level: str = "INFO", fmt: str = "json", *, secrets: list[str] | None = None) -> None:
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=log_level)

    processors: list[Processor] = [
        cast(Processor, structlog.contextvars.merge_contextvars),
        cast(Processor, structlog.processors.add_log_level),
        cast(Processor, structlog.processors.TimeStamper(fmt="iso")),
        truncate_long_fields,
        _make_redaction_processor(secrets=secrets or []),
    ]

    if fmt == "json":
        processors.append(cast(Processor, structlog.processors.JSONRenderer()))
    else:
        processors.append(cast(Processor, structlog.dev.ConsoleRenderer()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        cache_logger_on_first_use=True,
    )
