from __future__ import annotations

import dspy

from programs.instructions.prompts import (
    build_cue_compose_prompt,
    build_cue_plan_prompt,
    build_cue_repair_prompt,
    build_instructions_prompt,
)


class InstructionsSignature(dspy.Signature):
    """
    Roleplay brief + opening line.

    Prompt text lives in `programs.instructions.prompts`.
    """

    case_id: int = dspy.InputField(desc="Deterministic key for the case; never echoed")
    case_details: str = dspy.InputField(desc="Labelled case fields (Name, Age, ..., Instructions)")
    instructions_json: str = dspy.OutputField(desc="JSON string only. Object with `instructions` and `opening_line`.")


class CuePlanSignature(dspy.Signature):
    """Cue planning."""

    case_id: int = dspy.InputField(desc="Deterministic key for the case; never echoed")
    case_details: str = dspy.InputField(desc="Labelled case fields (Name, Age, ..., Instructions)")
    cue_plan_json: str = dspy.OutputField(desc="JSON string only. Object with `items` and `selected`.")


class CueComposeSignature(dspy.Signature):
    """Cue composition."""

    case_id: int = dspy.InputField(desc="Deterministic key for the case; never echoed")
    planned_cues_json: str = dspy.InputField(desc="JSON array of selected plan items")
    cues_json: str = dspy.OutputField(desc="JSON string only. Object with a `cues` array.")


class CueRepairSignature(dspy.Signature):
    """Cue repair."""

    case_id: int = dspy.InputField(desc="Deterministic key for the case; never echoed")
    current_cues_json: str = dspy.InputField(desc="JSON array of the cues that failed the linter")
    problems: str = dspy.InputField(desc="One line per violated rule")
    cues_json: str = dspy.OutputField(desc="JSON string only. Object with a `cues` array.")


__all__ = ["CueComposeSignature", "CuePlanSignature", "CueRepairSignature", "InstructionsSignature"]

# Docstrings double as the task instructions; keep them in the prompts module.
InstructionsSignature.__doc__ = build_instructions_prompt()
CuePlanSignature.__doc__ = build_cue_plan_prompt()
CueComposeSignature.__doc__ = build_cue_compose_prompt()
CueRepairSignature.__doc__ = build_cue_repair_prompt()
