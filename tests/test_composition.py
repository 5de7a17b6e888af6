import pytest

from conftest import ScriptedTextModel
from programs.headshot.composition import (
    SINGLE_DEFAULT,
    CompositionDecider,
    apply_age_override,
    build_decision,
    parse_age_years,
)
from schemas.case_profile import CompositionDecision


@pytest.mark.parametrize(
    "text,expected",
    [
        ("14", 14.0),
        ("14 years old", 14.0),
        ("a 9-year-old boy", 9.0),
        ("6 months", 0.5),
        ("not specified", None),
        ("", None),
    ],
)
def test_parse_age_years(text, expected):
    got = parse_age_years(text)
    if expected is None:
        assert got is None
    else:
        assert got == pytest.approx(expected)


def test_parse_age_weeks_and_days_are_fractions_of_a_year():
    assert parse_age_years("3 weeks") < 0.1
    assert parse_age_years("10 days") < 0.1


def test_unparseable_reply_defaults_to_single_low():
    decision = CompositionDecider(ScriptedTextModel(["no json"])).decide(case_id=1, case_text="x")
    assert decision.composition == "single"
    assert decision.confidence == "low"
    assert decision.companion is None


class ServiceUnavailable(Exception):
    status_code = 503


def test_provider_error_defaults_to_single_low():
    def reply(_prompt):
        raise ServiceUnavailable("upstream 503")

    model = ScriptedTextModel(reply_fn=reply)
    decision = CompositionDecider(model).decide(case_id=1, case_text="x")
    assert decision == SINGLE_DEFAULT
    assert [name for name, _ in model.calls] == ["CompositionSignature"]


def test_unknown_enum_values_resolve_conservatively():
    decision = build_decision({"composition": "group", "confidence": "certain"})
    assert (decision.composition, decision.confidence) == ("single", "low")


def test_pair_without_companion_synthesizes_one_and_downgrades_confidence():
    decision = build_decision({"composition": "pair", "confidence": "high", "companion": None})
    assert decision.composition == "pair"
    assert decision.companion is not None
    assert decision.companion.role == "parent or guardian"
    assert decision.companion.age == "adult"
    assert decision.confidence == "medium"


def test_pair_with_companion_kept():
    decision = build_decision(
        {
            "composition": "pair",
            "confidence": "medium",
            "companion": {"role": "father", "gender_presentation": "male", "age": "40s"},
        }
    )
    assert decision.companion.role == "father"
    assert decision.companion.gender_presentation == "male-presenting"
    assert decision.confidence == "medium"


def test_age_below_threshold_forces_pair_whatever_the_model_said():
    single = CompositionDecision(composition="single", confidence="high")
    forced = apply_age_override(single, "9 years", 16)
    assert forced.composition == "pair"
    assert forced.companion is not None
    assert forced.age_override is True


def test_age_at_or_above_threshold_leaves_decision():
    single = CompositionDecision(composition="single", confidence="high")
    assert apply_age_override(single, "16", 16) is single
    assert apply_age_override(single, "not specified", 16) is single
