import pytest

from conftest import FakeImageGenerator, ScriptedTextModel
from programs.headshot.verification import (
    VerificationTarget,
    VerifiedGenerationLoop,
    VisionVerifier,
    is_affirmative,
)

SINGLE = VerificationTarget(expected_count=1, gender_presentation="female-presenting", clothing_color="teal")
CHILD_PAIR = VerificationTarget(
    expected_count=2, gender_presentation="male-presenting", clothing_color="rust", child_with_adult=True
)


def _vision(answers):
    """answers: {kind: [per-attempt answers]} where kind is count/gender/clothing/child."""
    queues = {k: list(v) for k, v in answers.items()}

    def answer(question):
        q = question.lower()
        if "child together" in q:
            kind = "child"
        elif "exactly" in q:
            kind = "count"
        elif "presenting as" in q:
            kind = "gender"
        else:
            kind = "clothing"
        queue = queues.get(kind)
        return queue.pop(0) if queue else "yes"

    return answer


def _loop(vision, sleeps=None, max_attempts=3):
    gen = FakeImageGenerator()
    model = ScriptedTextModel(vision=vision)
    loop = VerifiedGenerationLoop(
        generator=gen,
        verifier=VisionVerifier(model),
        max_attempts=max_attempts,
        post_generation_delay=0.4,
        sleep=(sleeps.append if sleeps is not None else (lambda _s: None)),
    )
    return loop, gen, model


@pytest.mark.parametrize(
    "answer,expected",
    [("Yes", True), ("yes.", True), ('"Yes"', True), ("**YES**", True), ("No", False), ("maybe", False), ("", False)],
)
def test_only_yes_is_affirmative(answer, expected):
    assert is_affirmative(answer) is expected


def test_accepts_first_attempt_when_all_checks_pass():
    sleeps = []
    loop, gen, model = _loop(_vision({}), sleeps)
    result = loop.run("prompt", SINGLE)
    assert result.accepted
    assert result.attempts == 1
    assert (result.count_ok, result.gender_ok, result.clothing_ok) == (True, True, True)
    assert result.child_adult_ok is None
    assert len(model.questions) == 3
    assert sleeps == [0.4]


def test_gender_fails_twice_then_passes_on_third_attempt():
    loop, gen, _ = _loop(_vision({"gender": ["no", "no", "yes"]}))
    result = loop.run("prompt", SINGLE)
    assert result.accepted
    assert result.attempts == 3
    assert result.gender_ok is True
    assert len(gen.prompts) == 3
    assert result.checks_payload()["genderOk"] is True


def test_count_failure_skips_remaining_checks():
    loop, _, model = _loop(_vision({"count": ["no", "yes"]}))
    result = loop.run("prompt", SINGLE)
    assert result.attempts == 2
    # 1 question on the failed attempt, 3 on the accepted one.
    assert len(model.questions) == 4


def test_exhaustion_returns_last_image_with_failure_flags():
    loop, gen, _ = _loop(_vision({"clothing": ["no", "no", "no"]}))
    result = loop.run("prompt", SINGLE)
    assert not result.accepted
    assert result.attempts == 3
    assert result.image_b64
    assert result.failed_checks == ["clothing"]
    assert len(gen.prompts) == 3


def test_no_mixing_across_attempts():
    # Gender passes only on attempt 1, clothing only on attempt 2: never both together.
    loop, _, _ = _loop(_vision({"gender": ["yes", "no", "no"], "clothing": ["no", "yes", "no"]}))
    result = loop.run("prompt", SINGLE)
    assert not result.accepted
    assert result.attempts == 3


def test_child_adult_check_runs_for_child_pairs():
    loop, _, model = _loop(_vision({"child": ["no", "yes"]}))
    result = loop.run("prompt", CHILD_PAIR)
    assert result.accepted
    assert result.attempts == 2
    assert result.child_adult_ok is True
    assert any("exactly 2 people" in q for q in model.questions)


def test_count_failure_on_child_pair_scores_child_check_false():
    loop, _, _ = _loop(_vision({"count": ["no"]}), max_attempts=1)
    result = loop.run("prompt", CHILD_PAIR)
    assert result.attempts == 1
    assert result.child_adult_ok is False
    assert result.failed_checks == ["count", "gender", "clothing", "child_adult"]
