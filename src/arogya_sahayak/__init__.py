from .client import CompletionClient
from .config import ArogyaConfig
from .formatting import clean_completion_text
from .outcome import CompletionOutcome, OutcomeKind, render_outcome
from .personas import INDIAN_LANGUAGES, PersonaKind

__all__ = [
    "ArogyaConfig",
    "CompletionClient",
    "CompletionOutcome",
    "INDIAN_LANGUAGES",
    "OutcomeKind",
    "PersonaKind",
    "clean_completion_text",
    "render_outcome",
]
