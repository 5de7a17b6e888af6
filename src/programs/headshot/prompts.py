"""
Extraction prompts for the headshot pipeline (profile + composition).
"""

from __future__ import annotations

from programs.prompt_library import bullets, compose, json_contract, section
from programs.variety import SENTINEL

PROFILE_KEYS = {
    "age": "number of years if stated, else \"not specified\"",
    "gender_presentation": "female-presenting | male-presenting",
    "build": "slim | average | stocky",
    "skin_tone": "very fair | fair | light | medium | olive | tan | brown | dark brown | deep | unspecified",
    "hair_texture": "straight | wavy | curly | coily | unspecified",
    "hair": "colour, length and style",
    "eyes": "eye colour / glasses",
    "facial_features": "stated facial features only",
    "clothing_type": "what they would plausibly wear (garment type only, no colour)",
    "clothing_color": SENTINEL,
    "background": SENTINEL,
    "socioeconomic": "affluent | average | struggling | homeless | unknown",
    "glam_level": "low | medium | high",
    "retouching": "none | light",
    "origin": "country / nationality / ethnicity ONLY if explicitly stated, else \"not specified\"",
    "style_context": "cultural or religious dress/grooming ONLY if explicitly stated, else \"not specified\"",
    "notes": "anything else visible (scars, mobility aids, tiredness), or \"\"",
}

COMPOSITION_KEYS = {
    "composition": "single | pair",
    "reason": "one short sentence",
    "evidence": "short quote or field name from the case",
    "confidence": "low | medium | high",
    "companion": {
        "role": "e.g. mother, father, carer",
        "gender_presentation": "female-presenting | male-presenting",
        "age": "adult age or range",
        "notes": "",
    },
}

PROFILE_RULES = [
    "Use only facts stated in the case text. Where a detail is missing write \"not specified\".",
    "Do NOT guess country, nationality or ethnicity from the name.",
    "Do NOT include the person's name or any medical diagnosis unless it is a visible appearance trait.",
    f"Set clothing_color and background to exactly \"{SENTINEL}\". The system chooses them.",
    "gender_presentation and build are mandatory and must be one of the listed values.",
    "glam_level: how groomed/styled the person would look day to day (low for most patients).",
    "retouching: \"none\" unless the person is clearly image-conscious; never more than \"light\".",
    "socioeconomic: infer only from stated housing, work or money circumstances; otherwise \"unknown\".",
]

TASK_INPUTS = [
    "case_id: deterministic key for this case. Never output it.",
    "case_text: every field of the case record, several records separated by ---.",
]

COMPOSITION_RULES = [
    "Decide whether the portrait must show one person (the patient) or the patient plus a companion.",
    "Choose \"pair\" only when the case is a child or dependent who would attend with an adult, "
    "or the case explicitly centres on two people present together.",
    "If composition is \"single\", set companion to null.",
    "confidence reflects how directly the case text supports the decision.",
]


def build_profile_prompt() -> str:
    return compose(
        section(
            title="ROLE AND GOAL:",
            body="You extract a structured visual profile of a patient for a photorealistic headshot.",
        ),
        bullets("HARD RULES:", PROFILE_RULES),
        bullets("INPUTS:", TASK_INPUTS),
        json_contract(PROFILE_KEYS),
    )


def build_composition_prompt() -> str:
    return compose(
        section(
            title="ROLE AND GOAL:",
            body="You decide who must appear in a patient headshot for a clinical roleplay case.",
        ),
        bullets("HARD RULES:", COMPOSITION_RULES),
        bullets("INPUTS:", TASK_INPUTS),
        json_contract(COMPOSITION_KEYS),
    )


__all__ = ["COMPOSITION_KEYS", "PROFILE_KEYS", "build_composition_prompt", "build_profile_prompt"]
