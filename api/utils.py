from __future__ import annotations

from typing import Any, Dict, Optional

from starlette.requests import Request

from api.models import BatchQuery
from programs.batch import BatchResult


def parse_batch_query(request: Request) -> BatchQuery:
    # Query string only; POST bodies are ignored so schedulers can use either verb.
    return BatchQuery.model_validate(dict(request.query_params))


def batch_response(result: BatchResult, *, model: Any, include_bundles: bool = False) -> Dict[str, Any]:
    if result.debug_item is not None:
        return {"ok": True, "debug": True, "item": result.debug_item, "model": model}
    out: Dict[str, Any] = {
        "ok": True,
        **result.params.echo(),
        "model": model,
        "processedCount": result.processed_count,
        "processed": [r.to_json() for r in result.processed],
    }
    if include_bundles:
        out["bundles"] = [b.model_dump(exclude_none=True) for b in result.bundles]
    return out


def error_body(message: str, status: int, *, code: Optional[str] = None, **extra: Any) -> Dict[str, Any]:
    out: Dict[str, Any] = {"ok": False, "error": message, "status": status}
    if code:
        out["code"] = code
    out.update(extra)
    return out
