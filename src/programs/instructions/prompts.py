"""
Prompts for roleplay-instruction generation.

The main prompt asks only for `instructions` + `opening_line`; cues come from
the separate plan/compose/repair cycle so they can be linted deterministically.
"""

from __future__ import annotations

import json
from typing import Mapping, Sequence

from programs.case_text import INSTRUCTION_FIELDS
from programs.prompt_library import bullets, compose, json_contract, section
from schemas.cues import CueItem, CueViolation

INSTRUCTION_KEYS = {"instructions": "...", "opening_line": "..."}

INSTRUCTION_RULES = [
    "Write in UK English, in second person, present tense, starting exactly with \"You are\".",
    "Make it clear this is a video or telephone consultation.",
    "Include the name and specific age of the person speaking; if they are calling about or attending "
    "with someone else, include that person's name and specific age too.",
    "If the case has several speaking roles (e.g. patient plus parent or partner), say there are multiple "
    "voices, name each speaker, and state who leads the history and when the other one speaks.",
    "The roleplayer will see the full case details: do NOT restate facts already in the case (symptoms, "
    "timeline, findings, medications, history, ideas/concerns/expectations).",
    "Write only what guides the roleplay: tone, emotional state, communication style, level of health "
    "anxiety, how cooperative or challenging they are, what escalates them and what reassures them.",
]

CARRY_OVER_RULE = (
    "The existing Instructions field WILL be overwritten by your new \"instructions\" output and the "
    "roleplayer will NOT see it afterwards. Carry over ANY roleplay-relevant detail from it, integrated "
    "naturally."
)

OPENING_LINE_RULES = [
    "One sentence, first person, the patient's first spoken words.",
    "Natural and conversational, matching the speaker's age, confidence, education and personality.",
    "Avoid formal or clinical wording unless the case clearly suggests the patient speaks that way.",
    "It must not reveal any plans or worries.",
]

CUE_RULES = [
    "At most 2 cues. Each cue is exactly ONE sentence that starts with \"If\" and contains \"then\".",
    "A cue is a neutral observation the patient might offer, never a disclosure.",
    "No red-flag symptoms, diagnoses or labels, exact timeframes or numbers, risks, safeguarding details or causes.",
    "No interpretation or reasoning (never \"because\", \"I think\", \"it must\", \"so I think\").",
    "A cue opens a door without stepping through it. It prompts the clinician to ask the next question.",
    "Cues only apply if the clinician has not already explored that area.",
]

PLAN_KEYS = {
    "items": [{"domain": "area not yet explored", "trigger": "when the clinician has not asked about ...", "utterance": "neutral thing the patient might say"}],
    "selected": [0, 1],
}

COMPOSE_KEYS = {"cues": ["If ..., then ..."]}


CASE_ID_INPUT = "case_id: deterministic key for this case. Never output it."


def case_details_block(case_fields: Mapping[str, str]) -> str:
    parts = ["CASE DETAILS (fields may contain several snippets separated by ---):"]
    for name in INSTRUCTION_FIELDS:
        label = name
        if name == "Instructions":
            label = "Instructions field (WILL BE OVERWRITTEN; carry over roleplay-relevant content)"
        parts.append(f"{label}:\n{str(case_fields.get(name) or '').strip()}")
    return "\n\n".join(parts)


def planned_cues_json(items: Sequence[CueItem]) -> str:
    return json.dumps([i.model_dump() for i in items], ensure_ascii=False, indent=2)


def current_cues_json(cues: Sequence[str]) -> str:
    return json.dumps(list(cues), ensure_ascii=False, indent=2)


def _describe(v: CueViolation) -> str:
    text = f"{v.rule} ({v.detail})" if v.detail else v.rule
    return f"cue {v.index}: {text}" if v.index >= 0 else text


def describe_violations(violations: Sequence[CueViolation]) -> str:
    return "\n".join(f"- {_describe(v)}" for v in violations)


def build_instructions_prompt() -> str:
    return compose(
        section(
            title="ROLE AND GOAL:",
            body="Read the case details and write the roleplay brief for a simulated patient consultation.",
        ),
        bullets("INSTRUCTIONS (the \"instructions\" key):", INSTRUCTION_RULES),
        section(title="CRITICAL CLARIFICATION (DO NOT IGNORE):", body=CARRY_OVER_RULE),
        bullets("OPENING LINE (the \"opening_line\" key):", OPENING_LINE_RULES),
        "Treat every case as independent; do not carry over information from previous cases.",
        bullets("INPUTS:", [CASE_ID_INPUT, "case_details: the case fields, one labelled block each."]),
        json_contract(INSTRUCTION_KEYS),
    )


def build_cue_plan_prompt() -> str:
    return compose(
        section(
            title="ROLE AND GOAL:",
            body=(
                "Plan patient cues. List 4 to 6 areas the clinician might fail to explore for this case, "
                "each with a trigger condition and a neutral thing the patient could say. Then select at most "
                "2 of them (by 0-based index) that matter most for this case."
            ),
        ),
        bullets("CUE RULES:", CUE_RULES),
        bullets("INPUTS:", [CASE_ID_INPUT, "case_details: the case fields, one labelled block each."]),
        json_contract(PLAN_KEYS),
    )


def build_cue_compose_prompt() -> str:
    return compose(
        section(
            title="ROLE AND GOAL:",
            body="Turn each planned cue into one natural sentence the patient could say.",
        ),
        bullets("CUE RULES:", CUE_RULES),
        bullets("INPUTS:", [CASE_ID_INPUT, "planned_cues_json: the selected plan items (domain, trigger, utterance)."]),
        json_contract(COMPOSE_KEYS),
    )


def build_cue_repair_prompt() -> str:
    return compose(
        section(
            title="ROLE AND GOAL:",
            body=(
                "The current cues break the rules. Rewrite them so every rule holds. Returning fewer cues, "
                "or none, is acceptable."
            ),
        ),
        bullets("CUE RULES:", CUE_RULES),
        bullets(
            "INPUTS:",
            [
                CASE_ID_INPUT,
                "current_cues_json: the cues as last written.",
                "problems: one line per rule the cues break.",
            ],
        ),
        json_contract(COMPOSE_KEYS),
    )


__all__ = [
    "build_cue_compose_prompt",
    "build_cue_plan_prompt",
    "build_cue_repair_prompt",
    "build_instructions_prompt",
    "case_details_block",
    "current_cues_json",
    "describe_violations",
    "planned_cues_json",
]
