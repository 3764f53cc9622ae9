from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Protocol, Sequence

from .models import Turn
from .retrieval import word_pattern

SETTING_TERMS = (
    "hospital",
    "clinic",
    "telehealth",
    "inpatient",
    "outpatient",
    "radiology",
    "pacs",
    "ehr",
    "emr",
    "epic",
    "cerner",
    "meditech",
    "oncology",
    "cardiology",
    "ed",
    "er",
    "icu",
)
USE_CASE_TERMS = (
    "imaging",
    "nlp",
    "clinical notes",
    "triage",
    "rcm",
    "revenue cycle",
    "billing",
    "coding",
    "decision support",
    "cds",
    "risk",
    "readmission",
    "scheduling",
    "claims",
    "prior auth",
    "prior authorization",
    "care coordination",
    "patient flow",
    "denials",
)
CONSTRAINT_TERMS = (
    "hipaa",
    "privacy",
    "security",
    "integration",
    "interoperability",
    "timeline",
    "budget",
    "pilots",
    "compliance",
)


@dataclass(frozen=True)
class ReadinessSignals:
    has_setting: bool = False
    has_use_case: bool = False
    has_constraint: bool = False

    def as_dict(self) -> Dict[str, bool]:
        return {
            "has_setting": self.has_setting,
            "has_use_case": self.has_use_case,
            "has_constraint": self.has_constraint,
        }


@dataclass(frozen=True)
class Readiness:
    is_ready: bool
    signals: ReadinessSignals


class ReadinessPolicy(Protocol):
    """Decides whether intent is clear enough to surface recommendations."""

    def evaluate(self, latest_message: str, history: Sequence[Turn]) -> Readiness:
        ...


class KeywordReadinessGate:
    """Ready once the recent conversation names a care setting and a use case.

    Constraints (compliance, budget, timeline) are tracked but not required.
    """

    def __init__(self, window: int = 6) -> None:
        self._window = window
        self._setting_re = word_pattern(SETTING_TERMS)
        self._use_case_re = word_pattern(USE_CASE_TERMS)
        self._constraint_re = word_pattern(CONSTRAINT_TERMS)

    def window_text(self, latest_message: str, history: Sequence[Turn]) -> str:
        recent = list(history)[-self._window :] if self._window > 0 else []
        parts = [turn.content or "" for turn in recent]
        parts.append(latest_message or "")
        return " ".join(parts).lower()

    def evaluate(self, latest_message: str, history: Sequence[Turn]) -> Readiness:
        text = self.window_text(latest_message, history)
        signals = ReadinessSignals(
            has_setting=bool(self._setting_re.search(text)),
            has_use_case=bool(self._use_case_re.search(text)),
            has_constraint=bool(self._constraint_re.search(text)),
        )
        return Readiness(is_ready=signals.has_setting and signals.has_use_case, signals=signals)
