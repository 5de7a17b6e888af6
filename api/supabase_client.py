"""
Supabase adapters for the case record source and the artifact bucket.

Case tables are read with one `select * limit N` per case; the bucket is a
Supabase Storage bucket. The client is created once per process (warm
serverless invocations reuse it).
"""

from __future__ import annotations

import logging
import posixpath
from typing import Any, Dict, List, Optional

from supabase import Client, create_client

from programs.errors import ConfigError
from programs.settings import Settings

logger = logging.getLogger(__name__)

_client: Optional[Client] = None


def get_supabase_client(settings: Settings) -> Client:
    """Get or create the Supabase client (singleton)."""
    global _client

    if _client is not None:
        return _client
    if not settings.supabase_url or not settings.supabase_key:
        raise ConfigError("Missing env vars: SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY")
    _client = create_client(settings.supabase_url, settings.supabase_key)
    return _client


class SupabaseRecordSource:
    def __init__(self, client: Client) -> None:
        self._client = client

    def fetch_records(self, table: str, *, max_records: int) -> List[Dict[str, Any]]:
        resp = self._client.table(table).select("*").limit(int(max_records)).execute()
        data = getattr(resp, "data", None) or []
        return [r for r in data if isinstance(r, dict)]


class SupabaseBlobStore:
    """Path-keyed objects in one Storage bucket."""

    def __init__(self, client: Client, bucket: str) -> None:
        self._client = client
        self._bucket = bucket

    def _files(self) -> Any:
        return self._client.storage.from_(self._bucket)

    def exists(self, path: str) -> bool:
        folder, name = posixpath.split(path)
        entries = self._files().list(folder, {"search": name, "limit": 100}) or []
        return any(isinstance(e, dict) and e.get("name") == name for e in entries)

    def put(self, path: str, data: bytes, *, content_type: str) -> str:
        self._files().upload(path, data, file_options={"content-type": content_type, "upsert": "true"})
        logger.info("uploaded bucket=%s path=%s bytes=%s", self._bucket, path, len(data))
        return self.public_url(path)

    def public_url(self, path: str) -> str:
        return str(self._files().get_public_url(path)).rstrip("?")

    def download(self, path: str) -> bytes:
        return self._files().download(path)


__all__ = ["SupabaseBlobStore", "SupabaseRecordSource", "get_supabase_client"]
