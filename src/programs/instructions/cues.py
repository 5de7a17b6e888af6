"""
Patient cues: plan -> compose -> validate -> (repair) with a deterministic linter.

`validate_cues` is the only hard gate against clinical facts leaking into cues,
so it is network-free and strict. `CuePipeline` is a small state machine; a
cycle is PLAN..VALIDATE_REPAIR and at most `max_attempts` cycles run. Contract
violations (unparseable model JSON) end the current cycle. When every cycle
fails, the last output is truncated to two cues and used anyway.
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from programs.errors import ExtractionError
from programs.instructions.prompts import case_details_block, current_cues_json, describe_violations, planned_cues_json
from programs.instructions.signatures import CueComposeSignature, CuePlanSignature, CueRepairSignature
from programs.json_extract import as_text, parse_json_object
from providers.llm import TextModel
from schemas.cues import CueItem, CuePlan, CueResult, CueViolation

logger = logging.getLogger(__name__)

MAX_CUES = 2
MAX_CUE_CHARS = 220
MAX_PLAN_ITEMS = 6

REASONING_PHRASES = ("because", "i think", "it must", "so i think")

DIAGNOSTIC_TERMS = (
    "red flag",
    "red-flag",
    "diagnos",
    "cancer",
    "tumour",
    "tumor",
    "malignan",
    "sepsis",
    "stroke",
    "heart attack",
    "meningitis",
    "suicid",
    "overdose",
    "safeguarding",
    "abuse",
    "syndrome",
    "infection",
    "disease",
    "disorder",
)

_SENTENCE_BREAK_RE = re.compile(r"[.!?]+[\"')\]]*\s+(?=\S)")
_STARTS_WITH_IF_RE = re.compile(r"^If\b")
_THEN_RE = re.compile(r"\bthen\b", flags=re.IGNORECASE)
_DIGIT_RE = re.compile(r"\d")


def _contains_phrase(text: str, phrase: str) -> bool:
    return re.search(rf"\b{re.escape(phrase)}\b", text) is not None


def validate_cue(index: int, cue: str) -> List[CueViolation]:
    text = str(cue or "").strip()
    if not text:
        return [CueViolation(index=index, rule="empty")]
    out: List[CueViolation] = []
    lower = text.lower()
    if len(_SENTENCE_BREAK_RE.split(text)) > 1:
        out.append(CueViolation(index=index, rule="multi_sentence"))
    if not _STARTS_WITH_IF_RE.match(text):
        out.append(CueViolation(index=index, rule="bad_start", detail="must start with \"If\""))
    if not _THEN_RE.search(text):
        out.append(CueViolation(index=index, rule="missing_then"))
    if _DIGIT_RE.search(text):
        out.append(CueViolation(index=index, rule="digits"))
    for phrase in REASONING_PHRASES:
        if _contains_phrase(lower, phrase):
            out.append(CueViolation(index=index, rule="reasoning", detail=phrase))
            break
    for term in DIAGNOSTIC_TERMS:
        if term in lower:
            out.append(CueViolation(index=index, rule="diagnostic", detail=term))
            break
    if len(text) > MAX_CUE_CHARS:
        out.append(CueViolation(index=index, rule="too_long", detail=f"{len(text)} chars"))
    return out


def validate_cues(cues: Sequence[str]) -> List[CueViolation]:
    """Empty list means the cue set is acceptable (including an empty set)."""
    violations: List[CueViolation] = []
    if len(cues) > MAX_CUES:
        violations.append(CueViolation(index=-1, rule="too_many", detail=f"{len(cues)} cues"))
    for i, cue in enumerate(cues):
        violations.extend(validate_cue(i, cue))
    return violations


def _selected_values(raw: Any) -> List[Any]:
    # A lone index (1 or "1") is a one-item selection; any other non-list is ignored.
    if isinstance(raw, bool):
        return []
    if isinstance(raw, (int, str)):
        return [raw]
    if isinstance(raw, list):
        return raw
    return []


def parse_plan(raw: str) -> CuePlan:
    obj = parse_json_object(raw, stage="CUE_PLAN")
    items_raw = obj.get("items")
    if not isinstance(items_raw, list):
        raise ExtractionError("CUE_PLAN_BAD_ITEMS: \"items\" must be a list")
    items: List[CueItem] = []
    for it in items_raw[:MAX_PLAN_ITEMS]:
        if not isinstance(it, Mapping):
            continue
        domain = as_text(it.get("domain"))
        if not domain:
            continue
        items.append(CueItem(domain=domain, trigger=as_text(it.get("trigger")), utterance=as_text(it.get("utterance"))))
    if not items:
        raise ExtractionError("CUE_PLAN_EMPTY")

    selected: List[int] = []
    for v in _selected_values(obj.get("selected")):
        try:
            idx = int(v)
        except (TypeError, ValueError):
            continue
        if 0 <= idx < len(items) and idx not in selected:
            selected.append(idx)
    if not selected:
        selected = [0]
    return CuePlan(items=items, selected=selected[:MAX_CUES])


def parse_cues(raw: str, *, stage: str) -> List[str]:
    obj = parse_json_object(raw, stage=stage)
    cues = obj.get("cues")
    if isinstance(cues, str):
        cues = [cues]
    if not isinstance(cues, list):
        raise ExtractionError(f"{stage}_BAD_CUES: \"cues\" must be a list")
    return [c for c in (as_text(x) for x in cues) if c]


class CueState(str, Enum):
    PLAN = "plan"
    COMPOSE = "compose"
    VALIDATE = "validate"
    REPAIR = "repair"
    VALIDATE_REPAIR = "validate_repair"
    RETRY = "retry"
    ACCEPT = "accept"
    EXHAUSTED = "exhausted"


_TERMINAL = {CueState.ACCEPT, CueState.EXHAUSTED}

_TRANSITIONS: Dict[Tuple[CueState, str], CueState] = {
    (CueState.PLAN, "planned"): CueState.COMPOSE,
    (CueState.COMPOSE, "composed"): CueState.VALIDATE,
    (CueState.VALIDATE, "valid"): CueState.ACCEPT,
    (CueState.VALIDATE, "invalid"): CueState.REPAIR,
    (CueState.REPAIR, "repaired"): CueState.VALIDATE_REPAIR,
    (CueState.VALIDATE_REPAIR, "valid"): CueState.ACCEPT,
    (CueState.RETRY, "again"): CueState.PLAN,
}

# Any cycle-ending failure, from any non-terminal state.
for _state in (CueState.PLAN, CueState.COMPOSE, CueState.REPAIR, CueState.VALIDATE_REPAIR):
    _TRANSITIONS[(_state, "retry")] = CueState.RETRY
    _TRANSITIONS[(_state, "exhausted")] = CueState.EXHAUSTED


class CuePipeline:
    def __init__(self, model: TextModel, *, max_attempts: int = 3) -> None:
        self._model = model
        self._max_attempts = max(1, int(max_attempts))

    def run(self, case_id: int, case_fields: Mapping[str, str]) -> CueResult:
        state = CueState.PLAN
        cycles = 0
        plan: Optional[CuePlan] = None
        cues: List[str] = []
        violations: List[CueViolation] = []

        def give_up() -> str:
            return "retry" if cycles < self._max_attempts else "exhausted"

        while state not in _TERMINAL:
            event: str
            try:
                if state is CueState.PLAN:
                    cycles += 1
                    details = case_details_block(case_fields)
                    plan = parse_plan(self._model.predict(CuePlanSignature, case_id=case_id, case_details=details))
                    event = "planned"
                elif state is CueState.COMPOSE:
                    planned = planned_cues_json(plan.selected_items if plan else [])
                    raw = self._model.predict(CueComposeSignature, case_id=case_id, planned_cues_json=planned)
                    cues = parse_cues(raw, stage="CUE_COMPOSE")
                    event = "composed"
                elif state is CueState.VALIDATE:
                    violations = validate_cues(cues)
                    event = "invalid" if violations else "valid"
                elif state is CueState.REPAIR:
                    raw = self._model.predict(
                        CueRepairSignature,
                        case_id=case_id,
                        current_cues_json=current_cues_json(cues),
                        problems=describe_violations(violations),
                    )
                    cues = parse_cues(raw, stage="CUE_REPAIR")
                    event = "repaired"
                elif state is CueState.VALIDATE_REPAIR:
                    violations = validate_cues(cues)
                    event = give_up() if violations else "valid"
                elif state is CueState.RETRY:
                    logger.info(
                        "cue cycle failed case_id=%s cycle=%s/%s rules=%s",
                        case_id,
                        cycles,
                        self._max_attempts,
                        sorted({v.rule for v in violations}),
                    )
                    event = "again"
                else:  # pragma: no cover
                    raise RuntimeError(f"unhandled state {state}")
            except ExtractionError as e:
                logger.warning("cue contract violation case_id=%s state=%s err=%s", case_id, state.value, e)
                violations = [CueViolation(index=-1, rule="contract", detail=str(e)[:160])]
                event = give_up()

            state = _TRANSITIONS[(state, event)]

        if state is CueState.ACCEPT:
            return CueResult(cues=cues, attempts=cycles, valid=True, violations=[])

        truncated = cues[:MAX_CUES]
        logger.warning(
            "cue cycles exhausted case_id=%s using %s unvalidated cue(s) rules=%s",
            case_id,
            len(truncated),
            sorted({v.rule for v in violations}),
        )
        return CueResult(cues=truncated, attempts=cycles, valid=False, violations=violations)


__all__ = [
    "CuePipeline",
    "CueState",
    "DIAGNOSTIC_TERMS",
    "MAX_CUES",
    "MAX_CUE_CHARS",
    "REASONING_PHRASES",
    "parse_cues",
    "parse_plan",
    "validate_cue",
    "validate_cues",
]
