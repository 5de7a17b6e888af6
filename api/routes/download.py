from __future__ import annotations

import anyio
from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from api.auth import require_run_secret
from api.dependencies import get_blob_store, get_settings
from api.models import DownloadQuery
from programs.export import build_avatar_zip
from programs.settings import Settings
from programs.storage import BlobStore

router = APIRouter(prefix="/api/download", tags=["download"], dependencies=[Depends(require_run_secret)])


@router.get("")
async def download(
    request: Request,
    settings: Settings = Depends(get_settings),
    store: BlobStore = Depends(get_blob_store),
) -> Response:
    """Zip of `case-avatars/NNN.png` for `startFrom..endAt`; missing avatars are skipped."""
    query = DownloadQuery.model_validate(dict(request.query_params))
    end_at = query.end_at if query.end_at is not None else settings.max_case_id
    data, included = await anyio.to_thread.run_sync(lambda: build_avatar_zip(store, query.start_from, end_at))
    return Response(
        content=data,
        media_type="application/zip",
        headers={
            "Content-Disposition": 'attachment; filename="case-avatars.zip"',
            "X-Case-Count": str(len(included)),
        },
    )
