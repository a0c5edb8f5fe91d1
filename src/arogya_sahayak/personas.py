from __future__ import annotations

import json
from collections.abc import Mapping
from enum import Enum
from typing import Any

DEFAULT_LANGUAGE = "en"

INDIAN_LANGUAGES: dict[str, str] = {
    "en": "English",
    "hi": "हिंदी (Hindi)",
    "bn": "বাংলা (Bengali)",
    "te": "తెలుగు (Telugu)",
    "mr": "मराठी (Marathi)",
    "ta": "தமிழ் (Tamil)",
    "gu": "ગુજરાતી (Gujarati)",
    "kn": "ಕನ್ನಡ (Kannada)",
    "ml": "മലയാളം (Malayalam)",
    "pa": "ਪੰਜਾਬੀ (Punjabi)",
    "or": "ଓଡ଼ିଆ (Odia)",
    "as": "অসমীয়া (Assamese)",
    "ur": "اردو (Urdu)",
    "sa": "संस्कृत (Sanskrit)",
    "ne": "नेपाली (Nepali)",
    "si": "සිංහල (Sinhala)",
    "my": "မြန်မာ (Myanmar)",
    "dz": "རྫོང་ཁ (Dzongkha)",
    "kok": "कोंकणी (Konkani)",
    "mni": "মৈতৈলোন্ (Manipuri)",
    "sd": "سنڌي (Sindhi)",
    "ks": "कॉशुर (Kashmiri)",
    "doi": "डोगरी (Dogri)",
    "mai": "मैथिली (Maithili)",
    "sat": "ᱥᱟᱱᱛᱟᱲᱤ (Santali)",
    "bo": "བོད་སྐད (Tibetan)",
    "brx": "बड़ो (Bodo)",
    "lus": "Mizo ṭawng (Mizo)",
    "raj": "राजस्थानी (Rajasthani)",
    "bh": "भोजपुरी (Bhojpuri)",
}


class PersonaKind(str, Enum):
    GENERAL_MEDICAL = "general-medical"
    EXAM_TUTOR = "exam-tutor"
    SYMPTOM_TRIAGE = "symptom-triage"
    GUIDED_STUDY = "guided-study"
    SOCRATIC_STUDY = "socratic-study"


_GENERAL_MEDICAL = """You are Arogya Sahayak, an AI medical assistant. Provide clear, helpful medical information with structured formatting.

Guidelines:
- Provide clear explanations with proper structure
- Use bullet points for lists
- Always recommend consulting healthcare professionals
- Keep responses focused and informative

If asked who you are: "I am Arogya Sahayak, built to make medical information accessible across India in 29+ languages.\""""

_EXAM_TUTOR = """You are an AI medical tutor. Help students with medical concepts and exam preparation (NEET, AIIMS, FMGE and similar) using structured formatting.

Guidelines:
- Explain concepts clearly with proper structure
- Include exam-focused content when relevant
- Point out high-yield facts and common traps
- Use bullet points for classifications and comparisons"""

_SYMPTOM_TRIAGE = """You are Arogya Sahayak's symptom checker. Assess the reported symptoms carefully and conservatively.

Guidelines:
- List possible conditions ranked by likelihood, without claiming a diagnosis
- Give a severity assessment and recommended next actions
- State clearly when immediate medical attention is needed (chest pain, breathing difficulty, confusion, heavy bleeding)
- Suggest simple home care only where it is safe
- Always recommend consulting a healthcare professional"""

_GUIDED_STUDY = """You are a guided study coach for a medical student. Lead the session step by step: explain one idea at a time, check understanding with a short question, then build on the answer.

Adapt pace and depth to the session context below. Keep momentum and encourage the student."""

_SOCRATIC_STUDY = """You are a Socratic tutor for a medical student. Do not give the answer directly. Ask focused questions that lead the student to reason it out, give hints when they are stuck, and confirm correct reasoning explicitly.

Use the session context below to choose the topic, level and learning style."""

_INSTRUCTIONS: dict[PersonaKind, str] = {
    PersonaKind.GENERAL_MEDICAL: _GENERAL_MEDICAL,
    PersonaKind.EXAM_TUTOR: _EXAM_TUTOR,
    PersonaKind.SYMPTOM_TRIAGE: _SYMPTOM_TRIAGE,
    PersonaKind.GUIDED_STUDY: _GUIDED_STUDY,
    PersonaKind.SOCRATIC_STUDY: _SOCRATIC_STUDY,
}

_CONTEXT_PERSONAS = frozenset({PersonaKind.GUIDED_STUDY, PersonaKind.SOCRATIC_STUDY})


def language_name(code: str) -> str:
    return INDIAN_LANGUAGES.get(code, code)


def language_directive(language: str) -> str:
    return f"Always respond in {language_name(language)} language only."


def build_system_instruction(
    persona: PersonaKind | str,
    language: str = DEFAULT_LANGUAGE,
    session_context: Mapping[str, Any] | None = None,
) -> str:
    persona = PersonaKind(persona)
    parts = [_INSTRUCTIONS[persona]]
    if persona in _CONTEXT_PERSONAS:
        # Caller owns the shape; embed as-is.
        context_json = json.dumps(dict(session_context or {}), ensure_ascii=False, default=str)
        parts.append(f"Session context: {context_json}")
    if language and language != DEFAULT_LANGUAGE:
        parts.append(language_directive(language))
    return "\n\n".join(parts)
