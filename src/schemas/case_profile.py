from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from programs.variety import SENTINEL

GenderPresentation = Literal["female-presenting", "male-presenting"]
Build = Literal["slim", "average", "stocky"]
Socioeconomic = Literal["affluent", "average", "struggling", "homeless", "unknown"]
GlamLevel = Literal["low", "medium", "high"]
Retouching = Literal["none", "light"]
SkinTone = Literal["very fair", "fair", "light", "medium", "olive", "tan", "brown", "dark brown", "deep", "unspecified"]
HairTexture = Literal["straight", "wavy", "curly", "coily", "unspecified"]
Composition = Literal["single", "pair"]
Confidence = Literal["low", "medium", "high"]

NOT_SPECIFIED = "not specified"


class VisualProfile(BaseModel):
    """
    Validated appearance profile for one case.

    Free-text fields are taken as the model wrote them; enum fields have already
    been normalized; `clothing_color` and `background` are system-owned and are
    never the sentinel once a profile exists.
    """

    model_config = ConfigDict(frozen=True)

    age: str = NOT_SPECIFIED
    gender_presentation: GenderPresentation
    build: Build
    skin_tone: SkinTone = "unspecified"
    hair_texture: HairTexture = "unspecified"
    hair: str = NOT_SPECIFIED
    eyes: str = NOT_SPECIFIED
    facial_features: str = NOT_SPECIFIED
    clothing_type: str = NOT_SPECIFIED
    clothing_color: str
    background: str
    socioeconomic: Socioeconomic = "unknown"
    glam_level: GlamLevel = "low"
    retouching: Retouching = "none"
    origin: str = NOT_SPECIFIED
    style_context: str = NOT_SPECIFIED
    notes: str = ""

    @model_validator(mode="after")
    def _system_fields_resolved(self) -> "VisualProfile":
        for name in ("clothing_color", "background"):
            value = str(getattr(self, name) or "").strip().lower()
            if not value or value == SENTINEL:
                raise ValueError(f"{name} must be resolved before building a profile")
        return self


class CompanionProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: str = "parent or guardian"
    gender_presentation: GenderPresentation = "female-presenting"
    age: str = "adult"
    notes: str = ""


class CompositionDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    composition: Composition = "single"
    reason: str = ""
    evidence: str = ""
    confidence: Confidence = "low"
    companion: Optional[CompanionProfile] = None
    age_override: bool = Field(default=False, description="True when the child-age rule forced a pair.")

    @property
    def person_count(self) -> int:
        return 2 if self.composition == "pair" else 1

    @model_validator(mode="after")
    def _pair_has_companion(self) -> "CompositionDecision":
        if self.composition == "pair" and self.companion is None:
            raise ValueError("pair composition requires a companion")
        return self


__all__ = [
    "CompanionProfile",
    "CompositionDecision",
    "NOT_SPECIFIED",
    "VisualProfile",
]
