"""
Batch driver shared by the headshot and instructions endpoints.

Walks `start_from..end_at` in order, one case at a time, stopping once `limit`
cases have been attempted. Every per-case exception becomes an `error` record;
the loop itself never aborts on a case. Optional bundling groups bundle items
into fixed-size groups that are handed to a sink; the last partial group is
always flushed.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol

from programs.errors import error_detail
from programs.storage import pad4
from schemas.batch import BundleRef, ProcessedRecord

logger = logging.getLogger(__name__)

MIN_BUNDLE_SIZE = 1
MAX_BUNDLE_SIZE = 50


def clamp_bundle_size(n: int) -> int:
    return max(MIN_BUNDLE_SIZE, min(MAX_BUNDLE_SIZE, int(n)))


@dataclass(frozen=True)
class BatchParams:
    start_from: int = 1
    end_at: int = 355
    limit: int = 10
    dry_run: bool = False
    overwrite: bool = False
    debug: bool = False
    bundle_size: Optional[int] = None

    def echo(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "startFrom": self.start_from,
            "endAt": self.end_at,
            "limit": self.limit,
            "dryRun": self.dry_run,
            "overwrite": self.overwrite,
        }
        if self.bundle_size is not None:
            out["bundleSize"] = self.bundle_size
        return out


@dataclass
class CaseOutcome:
    """What one per-case pipeline run hands back to the driver."""

    record: ProcessedRecord
    bundle_item: Optional[Dict[str, Any]] = None
    debug_item: Optional[Dict[str, Any]] = None

    def item_for_bundle(self) -> Dict[str, Any]:
        return self.bundle_item if self.bundle_item is not None else self.record.to_json()


class BundleSink(Protocol):
    def __call__(self, start: int, end: int, items: List[Dict[str, Any]], *, dry_run: bool, overwrite: bool) -> BundleRef: ...


@dataclass
class BatchResult:
    params: BatchParams
    processed: List[ProcessedRecord] = field(default_factory=list)
    bundles: List[BundleRef] = field(default_factory=list)
    debug_item: Optional[Dict[str, Any]] = None

    @property
    def processed_count(self) -> int:
        return len(self.processed)


class BatchDriver:
    def __init__(
        self,
        process_case: Callable[[int, BatchParams], CaseOutcome],
        *,
        bundle_sink: Optional[BundleSink] = None,
        throttle_sec: float = 0.25,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._process_case = process_case
        self._bundle_sink = bundle_sink
        self._throttle = max(0.0, float(throttle_sec))
        self._sleep = sleep

    def run(self, params: BatchParams) -> BatchResult:
        result = BatchResult(params=params)
        bundle_size = clamp_bundle_size(params.bundle_size or MAX_BUNDLE_SIZE)
        pending: List[Dict[str, Any]] = []
        pending_start: Optional[int] = None

        def flush() -> None:
            nonlocal pending, pending_start
            if self._bundle_sink is None or pending_start is None or not pending:
                return
            end = int(pending[-1].get("caseId", pending_start))
            ref = self._bundle_sink(pending_start, end, pending, dry_run=params.dry_run, overwrite=params.overwrite)
            logger.info("bundle flushed range=%s status=%s count=%s", ref.range, ref.status, ref.count)
            result.bundles.append(ref)
            pending = []
            pending_start = None

        case_id = params.start_from
        while case_id <= params.end_at and len(result.processed) < params.limit:
            try:
                outcome = self._process_case(case_id, params)
            except Exception as e:
                logger.exception("case failed case_id=%s", case_id)
                outcome = CaseOutcome(record=ProcessedRecord(case_id=case_id, status="error", error=error_detail(e)))

            result.processed.append(outcome.record)

            if params.debug and outcome.record.status == "done":
                result.debug_item = outcome.debug_item or outcome.item_for_bundle()
                return result

            if self._bundle_sink is not None:
                if pending_start is None:
                    pending_start = case_id
                pending.append(outcome.item_for_bundle())
                if len(pending) >= bundle_size:
                    flush()

            if outcome.record.status == "done" and self._throttle:
                self._sleep(self._throttle)
            case_id += 1

        flush()
        return result


def bundle_range(start: int, end: int) -> str:
    return f"{pad4(start)}-{pad4(end)}"


__all__ = [
    "BatchDriver",
    "BatchParams",
    "BatchResult",
    "BundleSink",
    "CaseOutcome",
    "MAX_BUNDLE_SIZE",
    "bundle_range",
    "clamp_bundle_size",
]
