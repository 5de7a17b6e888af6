"""
Zip export of generated avatars (`case-avatars/NNN.png`) for a case range.
"""

from __future__ import annotations

import io
import logging
import zipfile
from typing import List, Tuple

from programs.storage import BlobStore, avatar_path, pad3

logger = logging.getLogger(__name__)


def build_avatar_zip(store: BlobStore, start: int, end: int) -> Tuple[bytes, List[int]]:
    """Return (zip bytes, case ids included). Cases without an avatar are skipped."""
    included: List[int] = []
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, mode="w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as zf:
        for case_id in range(int(start), int(end) + 1):
            path = avatar_path(case_id)
            if not store.exists(path):
                continue
            zf.writestr(f"{pad3(case_id)}.png", store.download(path))
            included.append(case_id)
    logger.info("avatar zip built start=%s end=%s files=%s", start, end, len(included))
    return buf.getvalue(), included


__all__ = ["build_avatar_zip"]
