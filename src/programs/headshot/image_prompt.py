"""
Render a validated profile + composition decision into one image prompt.

Pure: no network, no randomness beyond what is already resolved into the
profile and the system attributes. Block order is fixed; the final string is
whitespace-collapsed because the image model gains nothing from layout.
"""

from __future__ import annotations

from typing import List, Optional

from programs.prompt_library import collapse_whitespace
from programs.variety import SystemAttributes
from schemas.case_profile import NOT_SPECIFIED, CompositionDecision, VisualProfile

_UNSPECIFIED = {"", "unspecified", NOT_SPECIFIED, "unknown", "none", "n/a"}


def _is_unspecified(value: str) -> bool:
    return str(value or "").strip().lower() in _UNSPECIFIED


def _gender_word(gender_presentation: str) -> str:
    return "woman" if gender_presentation == "female-presenting" else "man"


def framing_block(profile: VisualProfile, decision: CompositionDecision) -> str:
    subject = "Two people, both facing the camera." if decision.person_count == 2 else "Single person, centered framing, facing the camera."
    return (
        "Photorealistic headshot photo. "
        f"{subject} "
        f"Plain, seamless {profile.background} background. "
        f"The background must be very light ({profile.background}), never medium or dark, "
        "and nothing yellow or red. "
        "Studio side lighting like you would get in a photo shoot. "
        "Photorealistic DSLR, 80mm lens full-frame equivalent. "
        "No text, no watermark, no logo, no names."
    )


def gender_block(profile: VisualProfile, decision: CompositionDecision) -> str:
    who = "The patient" if decision.person_count == 2 else "The person"
    return f"{who} MUST clearly be a {profile.gender_presentation} {_gender_word(profile.gender_presentation)}."


def style_block(profile: VisualProfile) -> str:
    if profile.glam_level == "high":
        style = "Well groomed and styled, as the person would look on a good day."
    elif profile.glam_level == "medium":
        style = "Neatly groomed, everyday appearance."
    else:
        style = "Natural, everyday appearance with minimal grooming and no visible makeup styling."
    if profile.retouching == "light":
        retouch = "Only very light retouching; keep natural skin texture."
    else:
        retouch = "No retouching, no beauty filter; natural skin texture, pores and imperfections visible."
    return f"{style} {retouch}"


def cultural_block(profile: VisualProfile, origin_guidance: Optional[str] = None) -> str:
    parts: List[str] = []
    if origin_guidance:
        parts.append(f"Origin guidance: {origin_guidance.strip()}")
    elif _is_unspecified(profile.origin):
        parts.append("Origin/ethnicity is not specified: do not guess it from the name or any other detail.")
    else:
        parts.append(f"Origin as stated: {profile.origin}. Depict this respectfully and without caricature.")
    if _is_unspecified(profile.style_context):
        parts.append("No cultural or religious dress is specified: do not guess or add any.")
    else:
        parts.append(f"Cultural/religious dress or grooming as stated: {profile.style_context}.")
    return " ".join(parts)


def composition_block(decision: CompositionDecision) -> str:
    if decision.person_count == 1:
        return "Exactly ONE person in the image: the patient. Nobody else, no partial figures, no reflections."
    companion = decision.companion
    if companion is None:
        return "Exactly TWO people in the image: the patient and one accompanying adult."
    companion_desc = f"{companion.role} ({companion.gender_presentation} {_gender_word(companion.gender_presentation)}, {companion.age})"
    if companion.notes:
        companion_desc += f", {companion.notes}"
    return (
        "Exactly TWO people in the image: the patient in front, and their "
        f"{companion_desc} slightly behind and beside them. "
        "Both faces fully visible. No other people."
    )


def attribute_listing(profile: VisualProfile) -> str:
    rows = [
        ("Age", profile.age),
        ("Gender presentation", profile.gender_presentation),
        ("Build", profile.build),
        ("Skin tone", profile.skin_tone),
        ("Hair texture", profile.hair_texture),
        ("Hair", profile.hair),
        ("Eyes", profile.eyes),
        ("Facial features", profile.facial_features),
        ("Clothing", f"{profile.clothing_color} {profile.clothing_type}" if not _is_unspecified(profile.clothing_type) else f"{profile.clothing_color} everyday top"),
        ("Circumstances", profile.socioeconomic),
        ("Notes", profile.notes),
    ]
    return "Patient attributes: " + "; ".join(f"{k}: {v}" for k, v in rows if not _is_unspecified(v)) + "."


def compose_image_prompt(
    profile: VisualProfile,
    decision: CompositionDecision,
    *,
    attrs: SystemAttributes,
    origin_guidance: Optional[str] = None,
) -> str:
    tags = ", ".join(attrs.variation_tags)
    blocks = [
        framing_block(profile, decision),
        gender_block(profile, decision),
        style_block(profile),
        cultural_block(profile, origin_guidance),
        composition_block(decision),
        attribute_listing(profile),
        f"Expression and pose: {tags}.",
    ]
    return collapse_whitespace(" ".join(b for b in blocks if b))


__all__ = [
    "attribute_listing",
    "compose_image_prompt",
    "composition_block",
    "cultural_block",
    "framing_block",
    "gender_block",
    "style_block",
]
