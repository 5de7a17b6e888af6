"""
Text + vision model access through DSPy.

Every text task is a `dspy.Signature` (instructions in its docstring, one
`*_json` output field) run by `JsonTaskProgram`, a thin `dspy.Predict`
wrapper. Pipelines depend on the small `TextModel` surface below (signature +
inputs in, raw output text out; image + question in, text out) so tests can
inject scripted fakes. The raw text is parsed by the caller.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional, Protocol, Type

import dspy

from programs.errors import ConfigError
from programs.settings import Settings
from providers.retry import with_retry

logger = logging.getLogger(__name__)


class TextModel(Protocol):
    model_name: str

    def predict(self, signature: Type[dspy.Signature], **inputs: Any) -> str: ...

    def ask_about_image(self, image_b64: str, question: str) -> str: ...


def _prefixed_model(provider: str, model: str) -> str:
    p = str(provider or "").strip().lower()
    m = str(model or "").strip()
    if not p or m.startswith(f"{p}/"):
        return m
    return f"{p}/{m}"


def _first_text(outputs: Any) -> str:
    """`dspy.LM.__call__` returns a list of strings (or dicts with `text` on newer versions)."""
    if isinstance(outputs, str):
        return outputs.strip()
    if not isinstance(outputs, list) or not outputs:
        return ""
    first = outputs[0]
    if isinstance(first, dict):
        return str(first.get("text") or "").strip()
    return str(first or "").strip()


def output_field_name(signature: Type[dspy.Signature]) -> str:
    """The single `*_json` output field of a task signature."""
    fields = list(signature.output_fields)
    if len(fields) != 1:
        raise ValueError(f"{signature.__name__} must declare exactly one output field")
    return fields[0]


class JsonTaskProgram(dspy.Module):
    """
    Thin DSPy wrapper for one JSON-producing task.
    """

    def __init__(self, signature: Type[dspy.Signature]) -> None:
        super().__init__()
        self.output_field = output_field_name(signature)
        self.prog = dspy.Predict(signature)

    def forward(self, **inputs: Any):  # type: ignore[override]
        return self.prog(**inputs)


class DspyTextModel:
    def __init__(
        self,
        *,
        model: str,
        provider: str = "openai",
        temperature: float = 0.4,
        max_tokens: int = 4000,
        timeout: float = 60.0,
        tries: int = 3,
        base_delay: float = 0.8,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.model_name = str(model or "").strip()
        self._lm = dspy.LM(
            model=_prefixed_model(provider, self.model_name),
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
            num_retries=0,
            cache=False,
        )
        self._tries = tries
        self._base_delay = base_delay
        self._sleep = sleep

    def _retry(self, fn: Callable[[], Any], label: str) -> Any:
        return with_retry(fn, tries=self._tries, base_delay=self._base_delay, sleep=self._sleep, label=label)

    def _call(self, **kwargs: Any) -> str:
        return _first_text(self._retry(lambda: self._lm(**kwargs), f"lm:{self.model_name}"))

    def predict(self, signature: Type[dspy.Signature], **inputs: Any) -> str:
        program = JsonTaskProgram(signature)

        def _run() -> Any:
            with dspy.context(lm=self._lm):
                return program(**inputs)

        pred = self._retry(_run, f"lm:{self.model_name}:{signature.__name__}")
        return str(getattr(pred, program.output_field, "") or "").strip()

    def ask_about_image(self, image_b64: str, question: str) -> str:
        messages: List[Dict[str, Any]] = [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": question},
                    {"type": "image_url", "image_url": {"url": f"data:image/png;base64,{image_b64}"}},
                ],
            }
        ]
        return self._call(messages=messages)


def make_text_model(settings: Settings, *, model: str, sleep: Optional[Callable[[float], None]] = None) -> DspyTextModel:
    """
    Build a text model for one pipeline stage.

    Credentials are resolved by LiteLLM from the provider's usual env var; we only
    check they exist so a misconfigured deploy fails before the batch loop starts.
    """
    provider = settings.dspy_provider
    if provider == "openai" and not settings.openai_api_key:
        raise ConfigError("Missing env var: OPENAI_API_KEY")
    return DspyTextModel(
        model=model,
        provider=provider,
        temperature=settings.temperature,
        max_tokens=settings.max_tokens,
        timeout=settings.llm_timeout_sec,
        tries=settings.retry_tries,
        base_delay=settings.retry_base_delay_sec,
        sleep=sleep or time.sleep,
    )


__all__ = ["DspyTextModel", "JsonTaskProgram", "TextModel", "make_text_model", "output_field_name"]
