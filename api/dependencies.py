"""
FastAPI dependencies.

Everything a route needs from the outside world (settings, record source,
blob store, model providers, sleep) comes through here so tests can swap it
with `app.dependency_overrides`.
"""

from __future__ import annotations

import time
from functools import lru_cache
from typing import Callable

from fastapi import Depends

from api.supabase_client import SupabaseBlobStore, SupabaseRecordSource, get_supabase_client
from programs.case_text import RecordSource
from programs.settings import Settings
from programs.storage import BlobStore, RetryingBlobStore
from providers.image_generation import ImageGenerator, make_image_generator
from providers.llm import TextModel, make_text_model

SleepFn = Callable[[float], None]


@lru_cache(maxsize=1)
def _settings_from_env() -> Settings:
    return Settings.from_env()


def get_settings() -> Settings:
    return _settings_from_env()


def get_sleep() -> SleepFn:
    return time.sleep


def get_record_source(settings: Settings = Depends(get_settings)) -> RecordSource:
    return SupabaseRecordSource(get_supabase_client(settings))


def get_blob_store(settings: Settings = Depends(get_settings), sleep: SleepFn = Depends(get_sleep)) -> BlobStore:
    inner = SupabaseBlobStore(get_supabase_client(settings), settings.blob_bucket)
    return RetryingBlobStore(inner, tries=settings.retry_tries, base_delay=settings.retry_base_delay_sec, sleep=sleep)


class ProviderFactory:
    """
    Builds model providers on demand.

    Routes only ask for providers once they know the run is not a dry run, so
    a dry run works without provider credentials.
    """

    def __init__(self, settings: Settings, *, sleep: SleepFn = time.sleep) -> None:
        self._settings = settings
        self._sleep = sleep

    def text_model(self, model: str) -> TextModel:
        return make_text_model(self._settings, model=model, sleep=self._sleep)

    def image_generator(self) -> ImageGenerator:
        return make_image_generator(self._settings, sleep=self._sleep)


def get_provider_factory(settings: Settings = Depends(get_settings), sleep: SleepFn = Depends(get_sleep)) -> ProviderFactory:
    return ProviderFactory(settings, sleep=sleep)


__all__ = [
    "ProviderFactory",
    "SleepFn",
    "get_blob_store",
    "get_provider_factory",
    "get_record_source",
    "get_settings",
    "get_sleep",
]
