"""
Blob store surface used by the pipelines, plus the artifact path layout.

Writes follow check-then-act: `exists` is asked first unless overwrite is
requested. This is not atomic; two concurrent runs over the same case can both
write.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Optional, Protocol, Tuple

from providers.retry import with_retry

logger = logging.getLogger(__name__)

AVATAR_PREFIX = "case-avatars"
PROFILE_PREFIX = "case-profiles"
INSTRUCTIONS_PREFIX = "case-instructions"


class BlobStore(Protocol):
    def exists(self, path: str) -> bool: ...

    def put(self, path: str, data: bytes, *, content_type: str) -> str: ...

    def public_url(self, path: str) -> str: ...

    def download(self, path: str) -> bytes: ...


def pad3(n: int) -> str:
    return f"{int(n):03d}"


def pad4(n: int) -> str:
    return f"{int(n):04d}"


def avatar_path(case_id: int) -> str:
    return f"{AVATAR_PREFIX}/{pad3(case_id)}.png"


def profile_path(case_id: int) -> str:
    return f"{PROFILE_PREFIX}/{pad3(case_id)}.json"


def bundle_path(start: int, end: int) -> str:
    return f"{INSTRUCTIONS_PREFIX}/batch-{pad4(start)}-{pad4(end)}.json"


def json_bytes(payload: Any) -> bytes:
    return json.dumps(payload, ensure_ascii=False, indent=2).encode("utf-8")


class RetryingBlobStore:
    """Wraps every store call in `with_retry`."""

    def __init__(
        self,
        inner: BlobStore,
        *,
        tries: int = 3,
        base_delay: float = 0.8,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._inner = inner
        self._tries = tries
        self._base_delay = base_delay
        self._sleep = sleep

    def _retry(self, fn: Callable[[], Any], label: str) -> Any:
        return with_retry(fn, tries=self._tries, base_delay=self._base_delay, sleep=self._sleep, label=label)

    def exists(self, path: str) -> bool:
        return bool(self._retry(lambda: self._inner.exists(path), f"blob.exists:{path}"))

    def put(self, path: str, data: bytes, *, content_type: str) -> str:
        return self._retry(lambda: self._inner.put(path, data, content_type=content_type), f"blob.put:{path}")

    def public_url(self, path: str) -> str:
        return self._inner.public_url(path)

    def download(self, path: str) -> bytes:
        return self._retry(lambda: self._inner.download(path), f"blob.download:{path}")


def upload_if_absent(
    store: BlobStore,
    path: str,
    data: bytes,
    *,
    content_type: str,
    overwrite: bool = False,
) -> Tuple[str, bool]:
    """Return (url, uploaded). An existing object is left alone unless `overwrite`."""
    if not overwrite and store.exists(path):
        logger.info("blob exists, skipping upload path=%s", path)
        return store.public_url(path), False
    return store.put(path, data, content_type=content_type), True


def existing_url(store: BlobStore, path: str) -> Optional[str]:
    return store.public_url(path) if store.exists(path) else None


__all__ = [
    "AVATAR_PREFIX",
    "BlobStore",
    "INSTRUCTIONS_PREFIX",
    "PROFILE_PREFIX",
    "RetryingBlobStore",
    "avatar_path",
    "bundle_path",
    "existing_url",
    "json_bytes",
    "pad3",
    "pad4",
    "profile_path",
    "upload_if_absent",
]
