import json

import pytest

from conftest import ScriptedTextModel, profile_json, profile_payload
from programs.errors import BadEnumError, JsonParseError, MissingKeyError
from programs.headshot.profile import (
    ProfileExtractor,
    build_profile,
    normalize_build,
    normalize_gender,
    normalize_hair_texture,
    normalize_skin_tone,
    normalize_socioeconomic,
)
from programs.variety import SENTINEL, resolve_system_attributes

ATTRS = resolve_system_attributes(7, "Name: Sam")


def test_gender_female_checked_before_male():
    assert normalize_gender("Female") == "female-presenting"
    assert normalize_gender("a woman in her 40s") == "female-presenting"
    assert normalize_gender("male-presenting") == "male-presenting"
    assert normalize_gender("boy") == "male-presenting"
    assert normalize_gender("non-binary") is None
    assert normalize_gender("") is None


def test_gender_matches_whole_words_only():
    assert normalize_gender("human") is None
    assert normalize_gender("a human being, manager by trade") is None
    assert normalize_gender("a manly-presenting woman") == "female-presenting"
    assert normalize_gender("Men") == "male-presenting"
    assert normalize_gender("human male") == "male-presenting"


def test_build_mapping():
    assert normalize_build("Slim") == "slim"
    assert normalize_build("overweight") == "stocky"
    assert normalize_build("normal build") == "average"
    assert normalize_build("athletic") is None


def test_soft_enums_default_instead_of_failing():
    assert normalize_socioeconomic("homeless, previously affluent") == "homeless"
    assert normalize_socioeconomic("who knows") == "unknown"
    assert normalize_skin_tone("") == "unspecified"
    assert normalize_hair_texture("afro") == "coily"


def test_system_fields_overwrite_model_values():
    profile = build_profile(profile_payload(clothing_color="hot pink", background="black"), ATTRS)
    assert profile.clothing_color == ATTRS.clothing_color
    assert profile.background == ATTRS.background
    assert SENTINEL not in (profile.clothing_color, profile.background)


def test_missing_build_key_is_a_missing_key_error():
    payload = profile_payload()
    del payload["build"]
    with pytest.raises(MissingKeyError) as info:
        build_profile(payload, ATTRS)
    assert info.value.keys == ["build"]


@pytest.mark.parametrize("field,value", [("gender_presentation", "unclear"), ("build", "athletic")])
def test_unmappable_hard_enums_fail(field, value):
    with pytest.raises(BadEnumError) as info:
        build_profile(profile_payload(**{field: value}), ATTRS)
    assert info.value.field == field


def test_unmappable_soft_enums_default():
    profile = build_profile(
        profile_payload(socioeconomic="?", glam_level="?", retouching="?", skin_tone="?", hair_texture="?"), ATTRS
    )
    assert (profile.socioeconomic, profile.glam_level, profile.retouching) == ("unknown", "low", "none")
    assert (profile.skin_tone, profile.hair_texture) == ("unspecified", "unspecified")


def test_extractor_parses_reply_wrapped_in_prose():
    model = ScriptedTextModel([f"Here you go:\n{profile_json(gender_presentation='man', build='thin')}\nThanks"])
    profile = ProfileExtractor(model).extract(case_id=7, case_text="Name: Sam", system=ATTRS)
    assert profile.gender_presentation == "male-presenting"
    assert profile.build == "slim"
    assert model.calls == [("ProfileSignature", {"case_id": 7, "case_text": "Name: Sam"})]


def test_extractor_unparseable_reply():
    model = ScriptedTextModel(["I cannot help with that."])
    with pytest.raises(JsonParseError):
        ProfileExtractor(model).extract(case_id=7, case_text="Name: Sam", system=ATTRS)


def test_prompt_asks_for_sentinel_values():
    model = ScriptedTextModel([profile_json()])
    ProfileExtractor(model).extract(case_id=1, case_text="x", system=ATTRS)
    contract = model.prompts[0]
    assert json.dumps("auto") in contract
