"""
Composition decision: does the headshot show the patient alone or with a companion?

The model call is advisory. Anything it gets wrong is resolved toward the
conservative value (`single`, `low`) and the stage never fails the case. The
child-age rule is applied last, after the model, and always wins.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Mapping, Optional

from programs.headshot.profile import normalize_gender
from programs.headshot.signatures import CompositionSignature
from programs.json_extract import as_text, parse_json_object
from providers.llm import TextModel
from schemas.case_profile import CompanionProfile, CompositionDecision

logger = logging.getLogger(__name__)

_CONFIDENCE_TIERS = ("low", "medium", "high")

_AGE_RE = re.compile(
    r"(\d+(?:\.\d+)?)\s*(?:-\s*)?(years?|yrs?|y/?o|months?|mo|mths?|weeks?|wks?|days?)?",
    flags=re.IGNORECASE,
)

_UNIT_TO_YEARS = {
    "month": 1.0 / 12.0,
    "mo": 1.0 / 12.0,
    "mth": 1.0 / 12.0,
    "week": 7.0 / 365.0,
    "wk": 7.0 / 365.0,
    "day": 1.0 / 365.0,
}


def parse_age_years(age_text: Any) -> Optional[float]:
    """
    First number in the text, converted to years.

    "14" / "14 years" / "14-year-old" -> 14.0; "8 months" -> 0.67; "3 weeks",
    "10 days" likewise. Returns None when no number is present.
    """
    if isinstance(age_text, (int, float)) and not isinstance(age_text, bool):
        return float(age_text)
    m = _AGE_RE.search(str(age_text or ""))
    if not m:
        return None
    value = float(m.group(1))
    unit = (m.group(2) or "").lower().rstrip("s")
    for prefix, factor in _UNIT_TO_YEARS.items():
        if unit.startswith(prefix):
            return value * factor
    return value


def downgrade_confidence(confidence: str) -> str:
    try:
        idx = _CONFIDENCE_TIERS.index(confidence)
    except ValueError:
        return "low"
    return _CONFIDENCE_TIERS[max(0, idx - 1)]


def _parse_companion(raw: Any) -> Optional[CompanionProfile]:
    if not isinstance(raw, Mapping):
        return None
    role = as_text(raw.get("role"))
    if not role:
        return None
    return CompanionProfile(
        role=role,
        gender_presentation=normalize_gender(raw.get("gender_presentation")) or "female-presenting",
        age=as_text(raw.get("age"), default="adult"),
        notes=as_text(raw.get("notes")),
    )


def build_decision(obj: Mapping[str, Any]) -> CompositionDecision:
    """Loose model JSON -> decision, defaulting every unparseable field conservatively."""
    composition = str(obj.get("composition") or "").strip().lower()
    composition = "pair" if composition == "pair" else "single"
    confidence = str(obj.get("confidence") or "").strip().lower()
    if confidence not in _CONFIDENCE_TIERS:
        confidence = "low"

    companion = None
    if composition == "pair":
        companion = _parse_companion(obj.get("companion"))
        if companion is None:
            companion = CompanionProfile()
            confidence = downgrade_confidence(confidence)

    return CompositionDecision(
        composition=composition,
        reason=as_text(obj.get("reason")),
        evidence=as_text(obj.get("evidence")),
        confidence=confidence,
        companion=companion,
    )


def apply_age_override(decision: CompositionDecision, age_text: Any, threshold: int) -> CompositionDecision:
    age = parse_age_years(age_text)
    if age is None or age >= threshold:
        return decision
    if decision.composition == "pair" and decision.companion is not None:
        return decision.model_copy(update={"age_override": True})
    return CompositionDecision(
        composition="pair",
        reason=f"Patient age {age_text} is below {threshold}; a child is shown with an accompanying adult.",
        evidence="age",
        confidence="high",
        companion=decision.companion or CompanionProfile(),
        age_override=True,
    )


SINGLE_DEFAULT = CompositionDecision(composition="single", reason="default", confidence="low")


class CompositionDecider:
    def __init__(self, model: TextModel) -> None:
        self._model = model

    def decide(self, *, case_id: int, case_text: str) -> CompositionDecision:
        try:
            raw = self._model.predict(CompositionSignature, case_id=case_id, case_text=case_text)
            obj = parse_json_object(raw, stage="COMPOSITION")
        except Exception as e:
            # Provider outages and malformed replies alike resolve to the conservative default.
            logger.warning(
                "composition unavailable case_id=%s; using single/low err=%s: %s", case_id, type(e).__name__, e
            )
            return SINGLE_DEFAULT
        return build_decision(obj)


__all__ = [
    "CompositionDecider",
    "SINGLE_DEFAULT",
    "apply_age_override",
    "build_decision",
    "downgrade_confidence",
    "parse_age_years",
]
