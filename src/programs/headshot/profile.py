"""
Profile extraction: one structured-extraction call, then validation.

Validation is split into three steps so each is testable on its own:
  1. `parse_json_object` + required-key check (contract violations raise)
  2. enum normalization (substring mapping into closed sets; whole words for gender)
  3. system override of `clothing_color` / `background`

Only gender presentation and build are hard-gated: they drive image
constraints that cannot be repaired after generation, so an unmappable value
fails the case instead of defaulting.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from programs.errors import BadEnumError, MissingKeyError
from programs.headshot.prompts import PROFILE_KEYS
from programs.headshot.signatures import ProfileSignature
from programs.json_extract import as_text, parse_json_object
from programs.variety import SystemAttributes
from providers.llm import TextModel
from schemas.case_profile import NOT_SPECIFIED, VisualProfile

logger = logging.getLogger(__name__)

REQUIRED_PROFILE_KEYS: Tuple[str, ...] = tuple(PROFILE_KEYS.keys())

# Matched as whole words, so "human" or "manager" never reads as "man".
_GENDER_NEEDLES: Sequence[Tuple[str, str]] = (
    ("female", "female-presenting"),
    ("woman", "female-presenting"),
    ("women", "female-presenting"),
    ("girl", "female-presenting"),
    ("feminine", "female-presenting"),
    ("lady", "female-presenting"),
    ("male", "male-presenting"),
    ("man", "male-presenting"),
    ("men", "male-presenting"),
    ("boy", "male-presenting"),
    ("masculine", "male-presenting"),
    ("gentleman", "male-presenting"),
)

_BUILD_NEEDLES: Sequence[Tuple[str, str]] = (
    ("slim", "slim"),
    ("slender", "slim"),
    ("thin", "slim"),
    ("petite", "slim"),
    ("lean", "slim"),
    ("underweight", "slim"),
    ("stocky", "stocky"),
    ("heavy", "stocky"),
    ("overweight", "stocky"),
    ("obese", "stocky"),
    ("large", "stocky"),
    ("broad", "stocky"),
    ("plus", "stocky"),
    ("average", "average"),
    ("medium", "average"),
    ("normal", "average"),
    ("moderate", "average"),
    ("healthy", "average"),
)

_SOCIOECONOMIC_NEEDLES: Sequence[Tuple[str, str]] = (
    ("homeless", "homeless"),
    ("rough sleep", "homeless"),
    ("no fixed abode", "homeless"),
    ("struggl", "struggling"),
    ("low income", "struggling"),
    ("low-income", "struggling"),
    ("poor", "struggling"),
    ("deprived", "struggling"),
    ("affluent", "affluent"),
    ("wealthy", "affluent"),
    ("well-off", "affluent"),
    ("well off", "affluent"),
    ("rich", "affluent"),
    ("average", "average"),
    ("middle", "average"),
    ("comfortable", "average"),
)

_GLAM_NEEDLES: Sequence[Tuple[str, str]] = (("high", "high"), ("medium", "medium"), ("moderate", "medium"), ("low", "low"))

_RETOUCH_NEEDLES: Sequence[Tuple[str, str]] = (("none", "none"), ("no ", "none"), ("light", "light"), ("subtle", "light"), ("minimal", "light"))

_SKIN_TONE_NEEDLES: Sequence[Tuple[str, str]] = (
    ("unspecified", "unspecified"),
    ("not specified", "unspecified"),
    ("very fair", "very fair"),
    ("pale", "very fair"),
    ("dark brown", "dark brown"),
    ("deep", "deep"),
    ("very dark", "deep"),
    ("fair", "fair"),
    ("olive", "olive"),
    ("tan", "tan"),
    ("light", "light"),
    ("medium", "medium"),
    ("brown", "brown"),
)

_HAIR_TEXTURE_NEEDLES: Sequence[Tuple[str, str]] = (
    ("unspecified", "unspecified"),
    ("not specified", "unspecified"),
    ("coil", "coily"),
    ("kink", "coily"),
    ("afro", "coily"),
    ("curl", "curly"),
    ("wav", "wavy"),
    ("straight", "straight"),
)


def _map_substring(raw: Any, needles: Sequence[Tuple[str, str]]) -> Optional[str]:
    hay = f" {str(raw or '').strip().lower()} "
    if not hay.strip():
        return None
    for needle, value in needles:
        if needle in hay:
            return value
    return None


def _map_word(raw: Any, needles: Sequence[Tuple[str, str]]) -> Optional[str]:
    hay = str(raw or "").strip().lower()
    if not hay:
        return None
    for needle, value in needles:
        if re.search(rf"\b{re.escape(needle)}s?\b", hay):
            return value
    return None


def normalize_gender(raw: Any) -> Optional[str]:
    return _map_word(raw, _GENDER_NEEDLES)


def normalize_build(raw: Any) -> Optional[str]:
    return _map_substring(raw, _BUILD_NEEDLES)


def normalize_socioeconomic(raw: Any) -> str:
    return _map_substring(raw, _SOCIOECONOMIC_NEEDLES) or "unknown"


def normalize_glam_level(raw: Any) -> str:
    return _map_substring(raw, _GLAM_NEEDLES) or "low"


def normalize_retouching(raw: Any) -> str:
    return _map_substring(raw, _RETOUCH_NEEDLES) or "none"


def normalize_skin_tone(raw: Any) -> str:
    return _map_substring(raw, _SKIN_TONE_NEEDLES) or "unspecified"


def normalize_hair_texture(raw: Any) -> str:
    return _map_substring(raw, _HAIR_TEXTURE_NEEDLES) or "unspecified"


def check_required_keys(obj: Mapping[str, Any], required: Sequence[str] = REQUIRED_PROFILE_KEYS) -> None:
    missing = [k for k in required if k not in obj]
    if missing:
        raise MissingKeyError("PROFILE", missing)


def normalize_profile_fields(obj: Mapping[str, Any]) -> Dict[str, Any]:
    """Closed-set mapping for every enum-like field; raises only for gender/build."""
    gender = normalize_gender(obj.get("gender_presentation"))
    if gender is None:
        raise BadEnumError("gender_presentation", obj.get("gender_presentation"))
    build = normalize_build(obj.get("build"))
    if build is None:
        raise BadEnumError("build", obj.get("build"))

    return {
        "age": as_text(obj.get("age"), default=NOT_SPECIFIED),
        "gender_presentation": gender,
        "build": build,
        "skin_tone": normalize_skin_tone(obj.get("skin_tone")),
        "hair_texture": normalize_hair_texture(obj.get("hair_texture")),
        "hair": as_text(obj.get("hair"), default=NOT_SPECIFIED),
        "eyes": as_text(obj.get("eyes"), default=NOT_SPECIFIED),
        "facial_features": as_text(obj.get("facial_features"), default=NOT_SPECIFIED),
        "clothing_type": as_text(obj.get("clothing_type"), default=NOT_SPECIFIED),
        "socioeconomic": normalize_socioeconomic(obj.get("socioeconomic")),
        "glam_level": normalize_glam_level(obj.get("glam_level")),
        "retouching": normalize_retouching(obj.get("retouching")),
        "origin": as_text(obj.get("origin"), default=NOT_SPECIFIED),
        "style_context": as_text(obj.get("style_context"), default=NOT_SPECIFIED),
        "notes": as_text(obj.get("notes")),
    }


def build_profile(obj: Mapping[str, Any], system: SystemAttributes) -> VisualProfile:
    check_required_keys(obj)
    fields = normalize_profile_fields(obj)
    model_color = obj.get("clothing_color")
    model_background = obj.get("background")
    # System-owned: whatever the model returned is replaced.
    fields["clothing_color"] = system.clothing_color
    fields["background"] = system.background
    if model_color != fields["clothing_color"] or model_background != fields["background"]:
        logger.debug(
            "profile system override clothing_color=%r->%r background=%r->%r",
            model_color,
            fields["clothing_color"],
            model_background,
            fields["background"],
        )
    return VisualProfile(**fields)


class ProfileExtractor:
    def __init__(self, model: TextModel) -> None:
        self._model = model

    def extract(self, *, case_id: int, case_text: str, system: SystemAttributes) -> VisualProfile:
        raw = self._model.predict(ProfileSignature, case_id=case_id, case_text=case_text)
        obj = parse_json_object(raw, stage="PROFILE")
        return build_profile(obj, system)


__all__ = [
    "ProfileExtractor",
    "REQUIRED_PROFILE_KEYS",
    "build_profile",
    "check_required_keys",
    "normalize_build",
    "normalize_gender",
    "normalize_glam_level",
    "normalize_hair_texture",
    "normalize_profile_fields",
    "normalize_retouching",
    "normalize_skin_tone",
    "normalize_socioeconomic",
]
