from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class OutcomeKind(str, Enum):
    OK = "ok"
    BILLING_EXHAUSTED = "billing_exhausted"
    DAILY_QUOTA_EXCEEDED = "daily_quota_exceeded"
    HIGH_DEMAND = "high_demand"
    UNPROCESSABLE = "unprocessable"
    EXHAUSTED = "exhausted"
    TIMED_OUT = "timed_out"
    NOT_CONFIGURED = "not_configured"


BILLING_LIMIT_MESSAGE = "AI service billing limit reached. Please try again later or contact support."
DAILY_LIMIT_MESSAGE = "Daily AI usage limit reached. Please try again tomorrow."
HIGH_DEMAND_MESSAGE = "I'm currently experiencing high demand. Please try again in a few moments."
UNPROCESSABLE_MESSAGE = "I apologize, but I couldn't process your request. Please try again."
TECHNICAL_DIFFICULTIES_MESSAGE = "I'm experiencing technical difficulties. Please try again later."
NOT_CONFIGURED_MESSAGE = "AI service is not properly configured. Please check the API key configuration."

_LITERALS: dict[OutcomeKind, str] = {
    OutcomeKind.BILLING_EXHAUSTED: BILLING_LIMIT_MESSAGE,
    OutcomeKind.DAILY_QUOTA_EXCEEDED: DAILY_LIMIT_MESSAGE,
    OutcomeKind.HIGH_DEMAND: HIGH_DEMAND_MESSAGE,
    OutcomeKind.UNPROCESSABLE: UNPROCESSABLE_MESSAGE,
    OutcomeKind.EXHAUSTED: TECHNICAL_DIFFICULTIES_MESSAGE,
    OutcomeKind.TIMED_OUT: TECHNICAL_DIFFICULTIES_MESSAGE,
    OutcomeKind.NOT_CONFIGURED: NOT_CONFIGURED_MESSAGE,
}


@dataclass(frozen=True)
class CompletionOutcome:
    kind: OutcomeKind
    text: str | None = None
    provider_name: str | None = None
    model: str | None = None
    attempts: int = 0
    latency_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.OK


def render_outcome(outcome: CompletionOutcome) -> str:
    """Map an outcome to the text shown to the end user."""
    if outcome.kind is OutcomeKind.OK:
        return outcome.text or ""
    return _LITERALS[outcome.kind]
