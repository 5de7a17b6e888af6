from __future__ import annotations

import logging
import os
import sys
import time
import uuid
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.status import HTTP_422_UNPROCESSABLE_ENTITY, HTTP_500_INTERNAL_SERVER_ERROR


def _repo_root() -> Path:
    # `api/main.py` lives at `<repo>/api/main.py`
    return Path(__file__).resolve().parents[1]


def _ensure_src_on_path() -> None:
    src = _repo_root() / "src"
    if not src.is_dir():
        return
    s = str(src)
    if s not in sys.path:
        sys.path.insert(0, s)


_ensure_src_on_path()

from api.http_logging import install_http_logging  # noqa: E402
from api.routes import download, health, instructions, process  # noqa: E402
from api.utils import error_body  # noqa: E402
from programs.errors import CasePipelineError  # noqa: E402

logger = logging.getLogger("api")


def _configure_logging() -> None:
    level = (os.getenv("LOG_LEVEL") or "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def _request_id(prefix: str) -> str:
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"


def create_app() -> FastAPI:
    # Load `.env` + `.env.local` when present (local dev convenience).
    load_dotenv(_repo_root() / ".env", override=False)
    load_dotenv(_repo_root() / ".env.local", override=False)
    _configure_logging()

    app = FastAPI(title=health.SERVICE_NAME, version="0.1.0")

    @app.exception_handler(CasePipelineError)
    async def _pipeline_error_handler(request: Request, exc: CasePipelineError) -> JSONResponse:
        # Only reached for failures outside the per-case loop (auth, config, setup).
        logger.warning("invocation failed path=%s status=%s err=%s", request.url.path, exc.status, exc)
        return JSONResponse(status_code=exc.status, content=error_body(str(exc), exc.status, code=exc.code))

    @app.exception_handler(RequestValidationError)
    async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        request_id = _request_id("val")
        logger.info("422 validation_error requestId=%s path=%s errors=%s", request_id, request.url.path, exc.errors())
        return JSONResponse(
            status_code=HTTP_422_UNPROCESSABLE_ENTITY,
            content=error_body("validation_error", HTTP_422_UNPROCESSABLE_ENTITY, requestId=request_id, details=exc.errors()),
        )

    @app.exception_handler(ValidationError)
    async def _query_validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
        request_id = _request_id("val")
        logger.info("422 invalid query requestId=%s path=%s", request_id, request.url.path)
        details = exc.errors(include_url=False, include_context=False)
        return JSONResponse(
            status_code=HTTP_422_UNPROCESSABLE_ENTITY,
            content=error_body("Invalid query parameters.", HTTP_422_UNPROCESSABLE_ENTITY, requestId=request_id, details=details),
        )

    @app.exception_handler(Exception)
    async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        request_id = _request_id("err")
        logger.exception("500 internal_error requestId=%s path=%s", request_id, request.url.path)
        return JSONResponse(
            status_code=HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body(str(exc) or "Unknown error", HTTP_500_INTERNAL_SERVER_ERROR, requestId=request_id),
        )

    app.include_router(health.router)
    app.include_router(process.router)
    app.include_router(instructions.router)
    app.include_router(download.router)
    install_http_logging(app)
    return app
