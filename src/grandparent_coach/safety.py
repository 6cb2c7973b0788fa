"""Keyword screen run on the latest user message before it reaches the model.

Only the most recent user turn is inspected. A request split across several
turns is not detected.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

CRISIS_KEYWORDS: tuple[str, ...] = (
    "emergency",
    "urgent",
    "danger",
    "self-harm",
    "harm",
    "hurt",
    "injury",
    "injured",
    "hospital",
    "crisis",
    "suicide",
    "suicidal",
    "overdose",
    "poison",
    "abuse",
    "neglect",
)

MEDICAL_KEYWORDS: tuple[str, ...] = (
    "diagnosis",
    "diagnose",
    "symptom",
    "medication",
    "medicine",
    "dosage",
    "prescription",
    "doctor",
    "pediatrician",
    "medical",
    "illness",
    "disease",
    "disorder",
    "syndrome",
    "therapy",
    "treatment",
    "fever",
)

CRISIS_RESPONSE = """\
I'm not able to help with emergencies. If anyone is in immediate danger or at risk of harm, \
please contact local emergency services or a licensed professional right away. You're not alone, \
and there are people who can help immediately.

For immediate safety concerns:
• Call 911 or your local emergency number
• Call or text 988 (Suicide & Crisis Lifeline) or your local crisis hotline
• Reach out to a trusted family member or friend
• Go to your nearest emergency room

I'm here to help with everyday grandparenting challenges when it's safe to do so."""

MEDICAL_RESPONSE = """\
I can't provide medical advice or diagnoses. Please contact a licensed professional, such as \
your grandchild's pediatrician or family doctor, for anything about health, symptoms or medicine.

For medical concerns:
• Contact the child's pediatrician or family doctor
• Use a nurse advice line if one is available
• Visit an urgent care center if needed
• In an emergency, call 911

Once the medical side is taken care of, I'm happy to help with calm communication and \
everyday routines."""

_MARKUP_CHARS = re.compile(r"[<>]")


class SafetyVerdict(str, Enum):
    SAFE = "safe"
    CRISIS = "crisis"
    MEDICAL = "medical"


@dataclass(frozen=True)
class SafetyResult:
    verdict: SafetyVerdict
    response: str | None = None
    sanitized: str | None = None

    @property
    def is_safe(self) -> bool:
        return self.verdict is SafetyVerdict.SAFE


def contains_keyword(text: str, keywords: tuple[str, ...]) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in keywords)


def sanitize(text: str) -> str:
    return _MARKUP_CHARS.sub("", text).strip()


def classify(text: str) -> SafetyResult:
    # crisis wins over medical when both match
    if contains_keyword(text, CRISIS_KEYWORDS):
        return SafetyResult(SafetyVerdict.CRISIS, response=CRISIS_RESPONSE)
    if contains_keyword(text, MEDICAL_KEYWORDS):
        return SafetyResult(SafetyVerdict.MEDICAL, response=MEDICAL_RESPONSE)
    return SafetyResult(SafetyVerdict.SAFE, sanitized=sanitize(text))


def latest_user_content(messages: list[dict]) -> str | None:
    for message in reversed(messages):
        if message.get("role") == "user":
            return str(message.get("content", ""))
    return None
