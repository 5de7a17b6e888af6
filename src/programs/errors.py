from __future__ import annotations

from typing import Any, Dict, Iterable, Optional


class CasePipelineError(Exception):
    """Base error. `status` is mirrored onto HTTP responses at the invocation level."""

    status: int = 500
    code: str = "CASE_PIPELINE_ERROR"

    def __init__(self, message: str, *, status: Optional[int] = None, code: Optional[str] = None) -> None:
        super().__init__(message)
        if status is not None:
            self.status = int(status)
        if code:
            self.code = code


class AuthError(CasePipelineError):
    status = 401
    code = "AUTH_FAILED_RUN_SECRET"

    def __init__(self, message: str = "AUTH_FAILED_RUN_SECRET") -> None:
        super().__init__(message)


class ConfigError(CasePipelineError):
    code = "CONFIG_MISSING"


class UpstreamReadError(CasePipelineError):
    code = "RECORD_READ_FAILED"

    def __init__(self, table: str, message: str, *, status: Optional[int] = None) -> None:
        super().__init__(f'RECORD_READ_FAILED table="{table}" msg="{message}"', status=status or 500)
        self.table = table


class ExtractionError(CasePipelineError):
    code = "EXTRACTION_FAILED"


class JsonParseError(ExtractionError):
    code = "JSON_PARSE_FAILED"

    def __init__(self, stage: str, raw: str) -> None:
        snippet = str(raw or "")[:240]
        super().__init__(f"{stage}_JSON_PARSE_FAILED: {snippet}")
        self.stage = stage
        self.raw = raw


class MissingKeyError(ExtractionError):
    code = "MISSING_KEY"

    def __init__(self, stage: str, keys: Iterable[str]) -> None:
        self.keys = sorted(set(keys))
        super().__init__(f"{stage}_MISSING_KEYS: {', '.join(self.keys)}")
        self.stage = stage


class BadEnumError(ExtractionError):
    code = "BAD_ENUM"

    def __init__(self, field: str, raw: Any) -> None:
        super().__init__(f'BAD_ENUM field="{field}" value="{str(raw)[:80]}"')
        self.field = field
        self.raw = raw


class NoImagePayloadError(CasePipelineError):
    code = "NO_IMAGE_PAYLOAD"

    def __init__(self, message: str = "No b64_json returned from images API.") -> None:
        super().__init__(message)


def error_detail(exc: BaseException) -> Dict[str, Any]:
    """Render an exception as the `error` payload of a per-case record."""
    status = getattr(exc, "status", None) or getattr(exc, "status_code", None)
    try:
        status = int(status) if status is not None else 500
    except (TypeError, ValueError):
        status = 500
    out: Dict[str, Any] = {"status": status, "message": str(exc) or type(exc).__name__}
    code = getattr(exc, "code", None)
    if isinstance(code, str) and code:
        out["code"] = code
    return out


__all__ = [
    "AuthError",
    "BadEnumError",
    "CasePipelineError",
    "ConfigError",
    "ExtractionError",
    "JsonParseError",
    "MissingKeyError",
    "NoImagePayloadError",
    "UpstreamReadError",
    "error_detail",
]
