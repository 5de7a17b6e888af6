from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional, Protocol

from openai import OpenAI

from programs.errors import ConfigError, NoImagePayloadError
from programs.settings import Settings
from providers.retry import with_retry

logger = logging.getLogger(__name__)

# 1x1 light-grey PNG; enough for the storage and zip paths to exercise real bytes.
_MOCK_PNG_B64 = (
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mP8z8BQDwAEhQGAhKmMIQAAAABJRU5ErkJggg=="
)


class ImageGenerator(Protocol):
    model_name: str

    def generate(self, prompt: str) -> str: ...


class OpenAIImageGenerator:
    """
    Prompt in, base64 PNG out.

    The SDK's own retries are disabled so `with_retry` is the only retry layer.
    A success response without `b64_json` is a distinct, non-retried failure.
    """

    def __init__(
        self,
        *,
        client: Any,
        model: str = "gpt-image-1",
        size: str = "1024x1024",
        quality: str = "medium",
        tries: int = 3,
        base_delay: float = 0.8,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._client = client
        self.model_name = model
        self._size = size
        self._quality = quality
        self._tries = tries
        self._base_delay = base_delay
        self._sleep = sleep

    def generate(self, prompt: str) -> str:
        started = time.time()
        resp = with_retry(
            lambda: self._client.images.generate(
                model=self.model_name,
                prompt=prompt,
                size=self._size,
                quality=self._quality,
                n=1,
            ),
            tries=self._tries,
            base_delay=self._base_delay,
            sleep=self._sleep,
            label=f"images:{self.model_name}",
        )
        data = getattr(resp, "data", None) or []
        first = data[0] if data else None
        b64 = getattr(first, "b64_json", None) if first is not None else None
        if not b64:
            raise NoImagePayloadError()
        logger.info("image generated model=%s ms=%s", self.model_name, int((time.time() - started) * 1000))
        return str(b64)


class MockImageGenerator:
    """No-network provider for local/dev runs (`IMAGE_PROVIDER=mock`)."""

    def __init__(self) -> None:
        self.model_name = "mock"
        self.prompts: list[str] = []

    def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return _MOCK_PNG_B64


def make_image_generator(settings: Settings, *, sleep: Optional[Callable[[float], None]] = None) -> ImageGenerator:
    provider = (settings.image_provider or "openai").strip().lower()
    if provider == "mock":
        return MockImageGenerator()
    if provider != "openai":
        raise ConfigError(f"IMAGE_PROVIDER '{settings.image_provider}' not implemented. Use 'openai' or 'mock'.")
    if not settings.openai_api_key:
        raise ConfigError("Missing env var: OPENAI_API_KEY")
    client = OpenAI(api_key=settings.openai_api_key, max_retries=0)
    return OpenAIImageGenerator(
        client=client,
        model=settings.image_model,
        size=settings.image_size,
        quality=settings.image_quality,
        tries=settings.retry_tries,
        base_delay=settings.retry_base_delay_sec,
        sleep=sleep or time.sleep,
    )


__all__ = ["ImageGenerator", "MockImageGenerator", "OpenAIImageGenerator", "make_image_generator"]
