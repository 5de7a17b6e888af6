"""
Deterministic variety for attributes the model must not choose.

Left to itself the model collapses onto the same defaults (grey background,
navy top) for every case. Instead we hash (case id, case text) into a seed and
pick from fixed palettes, so re-runs of the same case are reproducible while
different cases spread across the palette.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Dict, FrozenSet, Sequence, TypeVar

T = TypeVar("T")

SENTINEL = "auto"

BACKGROUND_PALETTE: Sequence[str] = (
    "very light grey",
    "off-white",
    "very pale blue",
    "pale blue-grey",
    "soft white",
    "very light warm grey",
)

CLOTHING_COLOR_PALETTE: Sequence[str] = (
    "navy",
    "charcoal",
    "forest green",
    "burgundy",
    "teal",
    "mustard",
    "olive",
    "denim blue",
    "plum",
    "rust",
    "black",
    "cream",
    "heather grey",
    "white",
    "camel",
    "dusty pink",
)

EXPRESSION_PALETTE: Sequence[str] = (
    "gentle closed-mouth smile",
    "soft relaxed smile",
    "warm slight smile",
    "calm friendly expression",
)

HEAD_ANGLE_PALETTE: Sequence[str] = (
    "facing the camera straight on",
    "facing the camera with a very slight turn to the left",
    "facing the camera with a very slight turn to the right",
)

BACKGROUND_OFFSET = 0
CLOTHING_OFFSET = 7
EXPRESSION_OFFSET = 13
HEAD_ANGLE_OFFSET = 29

CLASH_FALLBACK_COLOR = "navy"

# Clothing colours that disappear into a given background.
_BLENDS_WITH: Dict[str, FrozenSet[str]] = {
    "very light grey": frozenset({"heather grey", "white"}),
    "off-white": frozenset({"white", "cream"}),
    "very pale blue": frozenset({"white"}),
    "pale blue-grey": frozenset({"heather grey", "denim blue"}),
    "soft white": frozenset({"white", "cream"}),
    "very light warm grey": frozenset({"heather grey", "cream", "camel"}),
}


def variety_seed(case_id: int, case_text: str) -> int:
    digest = hashlib.sha256(f"{case_id}|{case_text}".encode("utf-8")).hexdigest()
    return int(digest[:8], 16)


def pick(palette: Sequence[T], seed: int, offset: int = 0) -> T:
    if not palette:
        raise ValueError("palette must not be empty")
    return palette[(int(seed) + int(offset)) % len(palette)]


def resolve_clothing_clash(clothing_color: str, background: str) -> str:
    if clothing_color in _BLENDS_WITH.get(background, frozenset()):
        return CLASH_FALLBACK_COLOR
    return clothing_color


@dataclass(frozen=True)
class SystemAttributes:
    background: str
    clothing_color: str
    expression: str
    head_angle: str

    @property
    def variation_tags(self) -> list[str]:
        return [self.expression, self.head_angle]


def resolve_system_attributes(case_id: int, case_text: str) -> SystemAttributes:
    seed = variety_seed(case_id, case_text)
    background = pick(BACKGROUND_PALETTE, seed, BACKGROUND_OFFSET)
    clothing = resolve_clothing_clash(pick(CLOTHING_COLOR_PALETTE, seed, CLOTHING_OFFSET), background)
    return SystemAttributes(
        background=background,
        clothing_color=clothing,
        expression=pick(EXPRESSION_PALETTE, seed, EXPRESSION_OFFSET),
        head_angle=pick(HEAD_ANGLE_PALETTE, seed, HEAD_ANGLE_OFFSET),
    )


__all__ = [
    "BACKGROUND_PALETTE",
    "CLASH_FALLBACK_COLOR",
    "CLOTHING_COLOR_PALETTE",
    "SENTINEL",
    "SystemAttributes",
    "pick",
    "resolve_clothing_clash",
    "resolve_system_attributes",
    "variety_seed",
]
