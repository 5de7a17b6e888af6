from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict, Field


class CueItem(BaseModel):
    """One candidate follow-up domain from the planning call."""

    model_config = ConfigDict(frozen=True)

    domain: str
    trigger: str = Field(default="", description="When the cue applies (area the clinician has not explored).")
    utterance: str = Field(default="", description="Neutral thing the patient might say.")


class CuePlan(BaseModel):
    model_config = ConfigDict(frozen=True)

    items: List[CueItem] = Field(default_factory=list)
    selected: List[int] = Field(default_factory=list)

    @property
    def selected_items(self) -> List[CueItem]:
        return [self.items[i] for i in self.selected if 0 <= i < len(self.items)]


class CueViolation(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: int = Field(..., description="Cue index, or -1 for set-level rules.")
    rule: str
    detail: str = ""


class CueResult(BaseModel):
    cues: List[str] = Field(default_factory=list)
    attempts: int = 0
    valid: bool = False
    violations: List[CueViolation] = Field(default_factory=list)

    @property
    def paragraph(self) -> str:
        return " ".join(c.strip() for c in self.cues if c.strip())


__all__ = ["CueItem", "CuePlan", "CueResult", "CueViolation"]
