from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, field_validator

from .outcome import CompletionOutcome, render_outcome
from .personas import DEFAULT_LANGUAGE, PersonaKind

MAX_RETRIES_LIMIT = 5


class ConversationMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class CompletionRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    messages: list[ConversationMessage]
    persona: PersonaKind = PersonaKind.GENERAL_MEDICAL
    language: str = DEFAULT_LANGUAGE
    max_retries: int | None = None
    session_context: dict[str, Any] | None = None

    @field_validator("max_retries")
    @classmethod
    def _validate_max_retries(cls, v: int | None) -> int | None:
        if v is None:
            return None
        if not (1 <= v <= MAX_RETRIES_LIMIT):
            raise ValueError(f"max_retries must be between 1 and {MAX_RETRIES_LIMIT}.")
        return v

    @field_validator("language")
    @classmethod
    def _validate_language(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("language must be non-empty.")
        return v

    def provider_messages(self) -> list[dict[str, str]]:
        return [{"role": m.role, "content": m.content} for m in self.messages]


class CompletionResponse(BaseModel):
    response: str
    outcome: str
    provider: str | None = None
    model: str | None = None
    attempts: int = 0


def make_completion_response(outcome: CompletionOutcome) -> CompletionResponse:
    return CompletionResponse(
        response=render_outcome(outcome),
        outcome=outcome.kind.value,
        provider=outcome.provider_name,
        model=outcome.model,
        attempts=outcome.attempts,
    )


class TranslateRequest(BaseModel):
    text: str
    target_language: str

    @field_validator("text")
    @classmethod
    def _validate_text(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("text must be non-empty.")
        return v


class TranslateResponse(BaseModel):
    translation: str


class APIError(BaseModel):
    message: str
    type: str = "api_error"
    param: str | None = None
    code: str | None = None


class APIErrorResponse(BaseModel):
    error: APIError


def make_error_response(
    *,
    message: str,
    type: str = "api_error",
    param: str | None = None,
    code: str | None = None,
) -> APIErrorResponse:
    return APIErrorResponse(error=APIError(message=message, type=type, param=param, code=code))
