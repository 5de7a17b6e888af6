from programs.variety import (
    BACKGROUND_PALETTE,
    CLASH_FALLBACK_COLOR,
    CLOTHING_COLOR_PALETTE,
    SENTINEL,
    pick,
    resolve_clothing_clash,
    resolve_system_attributes,
    variety_seed,
)


def test_seed_is_stable_for_same_case():
    assert variety_seed(12, "Name: Jo") == variety_seed(12, "Name: Jo")
    assert variety_seed(12, "Name: Jo") != variety_seed(13, "Name: Jo")


def test_pick_wraps_and_offsets():
    palette = ["a", "b", "c"]
    assert pick(palette, 4) == "b"
    assert pick(palette, 4, offset=1) == "c"


def test_system_attributes_are_deterministic_and_never_sentinel():
    for case_id in range(1, 40):
        text = f"Name: Case {case_id}\nAge: {20 + case_id}"
        a = resolve_system_attributes(case_id, text)
        b = resolve_system_attributes(case_id, text)
        assert a == b
        assert a.background in BACKGROUND_PALETTE
        assert a.clothing_color in CLOTHING_COLOR_PALETTE
        assert SENTINEL not in (a.background, a.clothing_color)


def test_clothing_that_blends_into_background_is_replaced():
    assert resolve_clothing_clash("white", "off-white") == CLASH_FALLBACK_COLOR
    assert resolve_clothing_clash("burgundy", "off-white") == "burgundy"
