"""
Verified generation: generate an image, check it with closed yes/no vision
questions, retry within a fixed attempt budget.

The loop is an explicit state machine. Each state handler returns an event
and `_TRANSITIONS` maps (state, event) to the next state, including the
short-circuit on a failed person count and the exhaustion path.

Acceptance needs every applicable check to pass on the same attempt. When the
budget runs out, the last image is returned anyway with its failing flags.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Tuple

from providers.image_generation import ImageGenerator
from providers.llm import TextModel
from schemas.generation import GenerationAttemptResult

logger = logging.getLogger(__name__)

_ANSWER_STRIP = " \t\r\n\"'`*_>"


def is_affirmative(answer: str) -> bool:
    """True only for answers that start with "yes"; anything else is a no."""
    return str(answer or "").strip(_ANSWER_STRIP).lower().startswith("yes")


class VisionVerifier:
    def __init__(self, model: TextModel) -> None:
        self._model = model

    def ask(self, image_b64: str, question: str) -> bool:
        answer = self._model.ask_about_image(image_b64, question)
        ok = is_affirmative(answer)
        logger.debug("vision question=%r answer=%r ok=%s", question, str(answer)[:80], ok)
        return ok


def _closed(question: str) -> str:
    return f"{question} Answer with only one word: yes or no."


def count_question(expected: int) -> str:
    if expected == 1:
        return _closed("Does this image show exactly one person and nobody else?")
    return _closed(f"Does this image show exactly {expected} people, with both faces visible?")


def gender_question(gender_presentation: str, *, pair: bool = False) -> str:
    word = "woman or girl" if gender_presentation == "female-presenting" else "man or boy"
    who = "the person in the front (the main subject)" if pair else "the person"
    return _closed(f"Is {who} in this image clearly presenting as a {word}?")


def clothing_question(clothing_color: str, *, pair: bool = False) -> str:
    who = "the person in the front (the main subject)" if pair else "the person"
    return _closed(f"Is {who} wearing a top that is mainly {clothing_color} in colour?")


def child_adult_question() -> str:
    return _closed("Does this image show one child together with one adult?")


@dataclass(frozen=True)
class VerificationTarget:
    """What the generated image must show."""

    expected_count: int
    gender_presentation: str
    clothing_color: str
    child_with_adult: bool = False


class LoopState(str, Enum):
    GENERATE = "generate"
    CHECK_COUNT = "check_count"
    CHECK_GENDER = "check_gender"
    CHECK_CLOTHING = "check_clothing"
    CHECK_CHILD_ADULT = "check_child_adult"
    RETRY = "retry"
    ACCEPT = "accept"
    EXHAUSTED = "exhausted"


_TERMINAL = {LoopState.ACCEPT, LoopState.EXHAUSTED}

_TRANSITIONS: Dict[Tuple[LoopState, str], LoopState] = {
    (LoopState.GENERATE, "generated"): LoopState.CHECK_COUNT,
    (LoopState.CHECK_COUNT, "pass"): LoopState.CHECK_GENDER,
    (LoopState.CHECK_COUNT, "retry"): LoopState.RETRY,
    (LoopState.CHECK_COUNT, "exhausted"): LoopState.EXHAUSTED,
    (LoopState.CHECK_GENDER, "next"): LoopState.CHECK_CLOTHING,
    (LoopState.CHECK_CLOTHING, "child_adult"): LoopState.CHECK_CHILD_ADULT,
    (LoopState.CHECK_CLOTHING, "accept"): LoopState.ACCEPT,
    (LoopState.CHECK_CLOTHING, "retry"): LoopState.RETRY,
    (LoopState.CHECK_CLOTHING, "exhausted"): LoopState.EXHAUSTED,
    (LoopState.CHECK_CHILD_ADULT, "accept"): LoopState.ACCEPT,
    (LoopState.CHECK_CHILD_ADULT, "retry"): LoopState.RETRY,
    (LoopState.CHECK_CHILD_ADULT, "exhausted"): LoopState.EXHAUSTED,
    (LoopState.RETRY, "again"): LoopState.GENERATE,
}


@dataclass
class _Attempt:
    image_b64: str = ""
    count_ok: bool = False
    gender_ok: bool = False
    clothing_ok: bool = False
    child_adult_ok: Optional[bool] = None


class VerifiedGenerationLoop:
    def __init__(
        self,
        *,
        generator: ImageGenerator,
        verifier: VisionVerifier,
        max_attempts: int = 3,
        post_generation_delay: float = 0.4,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._generator = generator
        self._verifier = verifier
        self._max_attempts = max(1, int(max_attempts))
        self._delay = max(0.0, float(post_generation_delay))
        self._sleep = sleep

    def run(self, prompt: str, target: VerificationTarget, *, case_id: Optional[int] = None) -> GenerationAttemptResult:
        attempts = 0
        current = _Attempt()
        state = LoopState.GENERATE
        pair = target.expected_count > 1

        def verdict(all_ok: bool) -> str:
            if all_ok:
                return "accept"
            return "retry" if attempts < self._max_attempts else "exhausted"

        while state not in _TERMINAL:
            if state is LoopState.GENERATE:
                attempts += 1
                current = _Attempt(image_b64=self._generator.generate(prompt))
                if self._delay:
                    self._sleep(self._delay)
                event = "generated"
            elif state is LoopState.CHECK_COUNT:
                current.count_ok = self._verifier.ask(current.image_b64, count_question(target.expected_count))
                if current.count_ok:
                    event = "pass"
                else:
                    # Remaining checks are skipped and scored false.
                    if target.child_with_adult:
                        current.child_adult_ok = False
                    event = verdict(False)
            elif state is LoopState.CHECK_GENDER:
                current.gender_ok = self._verifier.ask(
                    current.image_b64, gender_question(target.gender_presentation, pair=pair)
                )
                event = "next"
            elif state is LoopState.CHECK_CLOTHING:
                current.clothing_ok = self._verifier.ask(
                    current.image_b64, clothing_question(target.clothing_color, pair=pair)
                )
                if target.child_with_adult:
                    event = "child_adult"
                else:
                    event = verdict(current.gender_ok and current.clothing_ok)
            elif state is LoopState.CHECK_CHILD_ADULT:
                current.child_adult_ok = self._verifier.ask(current.image_b64, child_adult_question())
                event = verdict(current.gender_ok and current.clothing_ok and current.child_adult_ok)
            elif state is LoopState.RETRY:
                logger.info(
                    "verification failed case_id=%s attempt=%s/%s count=%s gender=%s clothing=%s child_adult=%s",
                    case_id,
                    attempts,
                    self._max_attempts,
                    current.count_ok,
                    current.gender_ok,
                    current.clothing_ok,
                    current.child_adult_ok,
                )
                event = "again"
            else:  # pragma: no cover
                raise RuntimeError(f"unhandled state {state}")

            try:
                state = _TRANSITIONS[(state, event)]
            except KeyError:  # pragma: no cover
                raise RuntimeError(f"no transition from {state} on {event!r}") from None

        result = GenerationAttemptResult(
            image_b64=current.image_b64,
            attempts=attempts,
            count_ok=current.count_ok,
            gender_ok=current.gender_ok,
            clothing_ok=current.clothing_ok,
            child_adult_ok=current.child_adult_ok,
            accepted=state is LoopState.ACCEPT,
        )
        if not result.accepted:
            logger.warning(
                "verification exhausted case_id=%s attempts=%s failed=%s", case_id, attempts, result.failed_checks
            )
        return result


__all__ = [
    "LoopState",
    "VerificationTarget",
    "VerifiedGenerationLoop",
    "VisionVerifier",
    "child_adult_question",
    "clothing_question",
    "count_question",
    "gender_question",
    "is_affirmative",
]
