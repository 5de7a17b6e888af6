from __future__ import annotations

import dspy

from programs.headshot.prompts import build_composition_prompt, build_profile_prompt


class ProfileSignature(dspy.Signature):
    """
    Visual profile extraction.

    Prompt text lives in `programs.headshot.prompts`.
    """

    case_id: int = dspy.InputField(desc="Deterministic key for the case; never echoed")
    case_text: str = dspy.InputField(desc="Aggregated case record text")
    profile_json: str = dspy.OutputField(desc="JSON string only. One object with exactly the profile keys.")


class CompositionSignature(dspy.Signature):
    """
    Single vs. pair decision.

    Prompt text lives in `programs.headshot.prompts`.
    """

    case_id: int = dspy.InputField(desc="Deterministic key for the case; never echoed")
    case_text: str = dspy.InputField(desc="Aggregated case record text")
    composition_json: str = dspy.OutputField(desc="JSON string only. One object with composition/reason/evidence/confidence/companion.")


__all__ = ["CompositionSignature", "ProfileSignature"]

ProfileSignature.__doc__ = build_profile_prompt()
CompositionSignature.__doc__ = build_composition_prompt()
