from __future__ import annotations

import json
import re
from collections.abc import Callable
from datetime import date

import structlog
from pydantic import BaseModel, ConfigDict, Field

from .cache import CacheBackend
from .client import CompletionClient
from .metrics import health_tip_cache_total
from .personas import DEFAULT_LANGUAGE, PersonaKind

log = structlog.get_logger()

TIP_TYPES = ("general", "personal")

_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


class HealthTip(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tip: str
    explanation: str
    quote: str
    steps: list[str]
    category: str
    personal_note: str | None = Field(default=None, alias="personalNote")


_PROMPTS = {
    "general": """Generate a daily health tip for today ({today}) focused on general wellness habits. Topics: hydration, sleep, posture, breathing, or basic nutrition. Include a simple daily habit anyone can follow, a brief explanation of benefits, a health-focused quote and 3 easy implementation steps.

Answer with JSON only:
{{"tip": "Daily wellness habit", "explanation": "Why this helps your health", "quote": "Health wisdom quote", "steps": ["Step 1", "Step 2", "Step 3"], "category": "daily-wellness"}}""",
    "personal": """Generate a DIFFERENT personalized health insight for today ({today}) focused on lifestyle optimization. Topics: exercise, mental health, productivity, or preventive care. Include a specific lifestyle improvement tip, the scientific reasoning, a motivational quote about personal growth and 3 actionable steps.

Answer with JSON only:
{{"tip": "Lifestyle optimization tip", "explanation": "Scientific benefits", "quote": "Personal growth quote", "steps": ["Action 1", "Action 2", "Action 3"], "category": "lifestyle", "personalNote": "Encouraging message"}}""",
}

# Served when the model could not be reached.
_UNAVAILABLE_TIPS = {
    "general": HealthTip(
        tip="Practice the 20-20-20 rule for eye health",
        explanation=(
            "Every 20 minutes, look at something 20 feet away for 20 seconds to reduce eye strain "
            "and prevent digital fatigue."
        ),
        quote="The eyes are the window to the soul, take care of them. - Anonymous",
        steps=[
            "Set a timer for every 20 minutes",
            "Look at something 20 feet away",
            "Hold your gaze for 20 seconds",
        ],
        category="eye-health",
    ),
    "personal": HealthTip(
        tip="Create a 5-minute morning mindfulness routine",
        explanation=(
            "Morning mindfulness reduces cortisol levels, improves focus, and sets a positive tone "
            "for your entire day."
        ),
        quote="Peace comes from within. Do not seek it without. - Buddha",
        steps=[
            "Wake up 5 minutes earlier",
            "Sit quietly and focus on breathing",
            "Set daily intentions",
        ],
        category="mindfulness",
        personal_note="Your mental health is just as important as your physical health!",
    ),
}

# Served when the model answered but not with a usable tip.
_UNPARSEABLE_TIPS = {
    "general": HealthTip(
        tip="Eat a rainbow of fruits and vegetables",
        explanation=(
            "Different colored produce provides various vitamins, minerals, and antioxidants "
            "essential for optimal health."
        ),
        quote="Let food be thy medicine and medicine be thy food. - Hippocrates",
        steps=[
            "Add one new colored fruit/vegetable daily",
            "Aim for 5 different colors per day",
            "Try seasonal produce for variety",
        ],
        category="nutrition",
    ),
    "personal": HealthTip(
        tip="Take micro-breaks every hour",
        explanation=(
            "Short breaks improve productivity, reduce muscle tension, and prevent mental fatigue "
            "throughout your day."
        ),
        quote="Rest when you're weary. Refresh and renew yourself. - Ralph Marston",
        steps=[
            "Set hourly reminders",
            "Stand and stretch for 2 minutes",
            "Take 3 deep breaths",
        ],
        category="productivity",
        personal_note="Small breaks create big improvements!",
    ),
}


def parse_health_tip(text: str) -> HealthTip:
    """Pull the first JSON object out of model output. Raises ValueError."""
    match = _JSON_OBJECT_RE.search(text)
    if not match:
        raise ValueError("No JSON object found in response.")
    return HealthTip.model_validate(json.loads(match.group(0)))


class HealthTipService:
    def __init__(
        self,
        client: CompletionClient,
        cache: CacheBackend[HealthTip],
        *,
        today: Callable[[], date] | None = None,
    ):
        self.client = client
        self.cache = cache
        self._today: Callable[[], date] = today or date.today

    async def daily_tip(self, tip_type: str = "general", language: str = DEFAULT_LANGUAGE) -> HealthTip:
        if tip_type not in TIP_TYPES:
            tip_type = "general"
        today = self._today().isoformat()
        cache_key = f"health-tip-{tip_type}-{language}-{today}"

        cached = self.cache.get(cache_key)
        if cached is not None:
            health_tip_cache_total.labels(result="hit").inc()
            return cached
        health_tip_cache_total.labels(result="miss").inc()

        prompt = _PROMPTS[tip_type].format(today=today)
        outcome = await self.client.complete(
            [{"role": "user", "content": prompt}], PersonaKind.GENERAL_MEDICAL, language
        )
        if not outcome.ok:
            log.warning("health_tip_unavailable", tip_type=tip_type, outcome=outcome.kind.value)
            tip = _UNAVAILABLE_TIPS[tip_type]
        else:
            try:
                tip = parse_health_tip(outcome.text or "")
            except ValueError as e:
                log.warning("health_tip_parse_failed", tip_type=tip_type, error=str(e))
                tip = _UNPARSEABLE_TIPS[tip_type]

        self.cache.set(cache_key, tip)
        return tip
