from __future__ import annotations

import hmac

from fastapi import Depends, Request

from api.dependencies import get_settings
from programs.errors import AuthError
from programs.settings import Settings

RUN_SECRET_HEADER = "x-run-secret"


def check_run_secret(provided: str, expected: str) -> None:
    """An unset RUN_SECRET rejects every request rather than opening the endpoint."""
    if not expected or not provided or not hmac.compare_digest(provided.encode(), expected.encode()):
        raise AuthError()


async def require_run_secret(request: Request, settings: Settings = Depends(get_settings)) -> None:
    check_run_secret(request.headers.get(RUN_SECRET_HEADER, ""), settings.run_secret)
