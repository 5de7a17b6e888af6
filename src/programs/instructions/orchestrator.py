"""
Roleplay-instruction pipeline for one case, plus the bundle sink.

Main extraction (`instructions`, `opening_line`) is a single strict call: a
malformed reply fails the case. Cues come from `CuePipeline`, which never
fails the case on its own.
"""

from __future__ import annotations

import logging
import re
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

from programs.batch import BatchParams, CaseOutcome, bundle_range
from programs.case_text import INSTRUCTION_FIELDS, RecordSource, aggregate_fields, fetch_case_records
from programs.errors import ConfigError, ExtractionError
from programs.instructions.cues import CuePipeline
from programs.instructions.prompts import case_details_block
from programs.instructions.signatures import InstructionsSignature
from programs.json_extract import as_text, parse_json_object
from programs.settings import Settings
from programs.storage import BlobStore, bundle_path, json_bytes, upload_if_absent
from providers.llm import TextModel
from schemas.batch import BundleRef, ProcessedRecord

logger = logging.getLogger(__name__)

_YOU_ARE_RE = re.compile(r"^you are\b", flags=re.IGNORECASE)


def extract_main_instructions(raw: str) -> Dict[str, str]:
    obj = parse_json_object(raw, stage="INSTRUCTION")
    instructions = as_text(obj.get("instructions"))
    opening_line = as_text(obj.get("opening_line"))
    if not _YOU_ARE_RE.match(instructions):
        raise ExtractionError(
            'INSTRUCTION_BAD_START: "instructions" must start with "You are..."',
            code="INSTRUCTION_BAD_START",
        )
    return {"instructions": instructions, "opening_line": opening_line}


class InstructionsPipeline:
    def __init__(
        self,
        *,
        settings: Settings,
        records: RecordSource,
        text_model: Optional[TextModel] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._settings = settings
        self._records = records
        self._model = text_model
        self._sleep = sleep

    @property
    def model_name(self) -> str:
        if self._model is not None:
            return self._model.model_name
        return self._settings.instructions_text_model

    def process_case(self, case_id: int, params: BatchParams) -> CaseOutcome:
        s = self._settings
        table = s.case_table(case_id)
        records = fetch_case_records(
            self._records,
            table,
            max_records=s.max_records_per_case,
            tries=s.retry_tries,
            base_delay=s.retry_base_delay_sec,
            sleep=self._sleep,
        )
        base = {"tableName": table, "recordCount": len(records)}
        if not records:
            return CaseOutcome(record=ProcessedRecord(case_id=case_id, status="no-record", **base))

        fields = aggregate_fields(records, INSTRUCTION_FIELDS)
        if not any(v.strip() for v in fields.values()):
            return CaseOutcome(record=ProcessedRecord(case_id=case_id, status="no-text", **base))

        if params.dry_run:
            return CaseOutcome(record=ProcessedRecord(case_id=case_id, status="dryrun-ok", **base))

        if self._model is None:
            raise ConfigError("Instructions generation needs a text model configured.")

        main = extract_main_instructions(
            self._model.predict(InstructionsSignature, case_id=case_id, case_details=case_details_block(fields))
        )
        cue_result = CuePipeline(self._model, max_attempts=s.cue_max_attempts).run(case_id, fields)
        output = {**main, "patient_cues": cue_result.paragraph}

        logger.info(
            "instructions done case_id=%s cues=%s cue_attempts=%s cues_valid=%s",
            case_id,
            len(cue_result.cues),
            cue_result.attempts,
            cue_result.valid,
        )
        record = ProcessedRecord(case_id=case_id, status="done", cuesValid=cue_result.valid, **base)
        item: Dict[str, Any] = {
            "caseId": case_id,
            **base,
            "input": fields,
            "output": output,
            "cueCheck": {
                "attempts": cue_result.attempts,
                "valid": cue_result.valid,
                "violations": [v.model_dump() for v in cue_result.violations],
            },
        }
        return CaseOutcome(record=record, bundle_item=item, debug_item=item)


class BlobBundleSink:
    """Serializes a bundle of case items and uploads it (or records a dry-run skip)."""

    def __init__(self, store: BlobStore, *, model_name: str) -> None:
        self._store = store
        self._model_name = model_name

    def __call__(
        self, start: int, end: int, items: List[Dict[str, Any]], *, dry_run: bool, overwrite: bool
    ) -> BundleRef:
        rng = bundle_range(start, end)
        if dry_run:
            return BundleRef(range=rng, status="dryrun-skip-upload", count=len(items))
        bundle: Mapping[str, Any] = {
            "createdAt": datetime.now(timezone.utc).isoformat(),
            "model": self._model_name,
            "range": {"start": start, "end": end},
            "count": len(items),
            "items": items,
        }
        url, _ = upload_if_absent(
            self._store, bundle_path(start, end), json_bytes(bundle), content_type="application/json", overwrite=overwrite
        )
        return BundleRef(range=rng, status="uploaded", count=len(items), url=url)


__all__ = ["BlobBundleSink", "InstructionsPipeline", "extract_main_instructions"]
