"""
Case record aggregation.

A case lives in its own table (`Case 12`) and may be spread over several
records. We read at most `max_records` of them (one page, no further
pagination) and fold every field value into a single text blob for prompting.
An empty blob is a valid result meaning "no usable input".
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence

from programs.errors import UpstreamReadError
from providers.retry import extract_status, with_retry

logger = logging.getLogger(__name__)

RECORD_SEPARATOR = "\n\n---\n\n"

CASE_FIELDS: Sequence[str] = (
    "Name",
    "Age",
    "PMHx Record",
    "DHx",
    "Medical Notes",
    "Medical Notes Content",
    "Notes Photo",
    "Results",
    "Results Content",
    "Instructions",
    "Opening Sentence",
    "Divulge Freely",
    "Divulge Asked",
    "PMHx RP",
    "Social History",
    "Family History",
    "ICE",
    "Reaction",
)

INSTRUCTION_FIELDS: Sequence[str] = (
    "Name",
    "Age",
    "Opening Sentence",
    "Divulge Freely",
    "Divulge Asked",
    "PMHx RP",
    "Social History",
    "Family History",
    "ICE",
    "Reaction",
    "Instructions",
)

# Column name variants seen across case tables.
FIELD_ALIASES: Mapping[str, Sequence[str]] = {"Instructions": ("Instruction",)}

# Datastore bookkeeping columns that never carry case content.
_IGNORED_FIELDS = {"id", "created_at", "updated_at"}


class RecordSource(Protocol):
    def fetch_records(self, table: str, *, max_records: int) -> List[Dict[str, Any]]: ...


def normalize_field_value(v: Any) -> str:
    if v is None:
        return ""
    if isinstance(v, str):
        return v.strip()
    if isinstance(v, (list, dict)) and not v:
        return ""
    try:
        return json.dumps(v, ensure_ascii=False)
    except (TypeError, ValueError):
        return str(v)


def join_unique(values: Iterable[str], *, separator: str = RECORD_SEPARATOR) -> str:
    """De-duplicate exact repeats, keep first-seen order, drop blanks."""
    out: List[str] = []
    seen = set()
    for v in values:
        s = str(v or "").strip()
        if not s or s in seen:
            continue
        seen.add(s)
        out.append(s)
    return separator.join(out)


def _field_value(fields: Mapping[str, Any], name: str) -> Any:
    v = fields.get(name)
    if v is None or v == "":
        for alias in FIELD_ALIASES.get(name, ()):
            if fields.get(alias) not in (None, ""):
                return fields.get(alias)
    return v


def record_to_text(fields: Mapping[str, Any], known_fields: Sequence[str] = CASE_FIELDS) -> str:
    """Known fields first (in order), then any extra columns present on the record."""
    lines: List[str] = []
    consumed = set()
    for name in known_fields:
        consumed.add(name)
        consumed.update(FIELD_ALIASES.get(name, ()))
        value = normalize_field_value(_field_value(fields, name))
        if value:
            lines.append(f"{name}: {value}")
    for name, raw in fields.items():
        if name in consumed or str(name).lower() in _IGNORED_FIELDS:
            continue
        value = normalize_field_value(raw)
        if value:
            lines.append(f"{name}: {value}")
    return "\n".join(lines)


def aggregate_case_text(records: Iterable[Mapping[str, Any]], known_fields: Sequence[str] = CASE_FIELDS) -> str:
    return join_unique(record_to_text(r, known_fields) for r in records if isinstance(r, Mapping))


def aggregate_fields(records: Iterable[Mapping[str, Any]], fields: Sequence[str] = INSTRUCTION_FIELDS) -> Dict[str, str]:
    """Per-field view: every field joined across records (used by the instructions prompt)."""
    buckets: Dict[str, List[str]] = {name: [] for name in fields}
    for r in records:
        if not isinstance(r, Mapping):
            continue
        for name in fields:
            buckets[name].append(normalize_field_value(_field_value(r, name)))
    return {name: join_unique(values) for name, values in buckets.items()}


def fetch_case_records(
    source: RecordSource,
    table: str,
    *,
    max_records: int = 100,
    tries: int = 3,
    base_delay: float = 0.8,
    sleep: Optional[Callable[[float], None]] = None,
) -> List[Dict[str, Any]]:
    try:
        records = with_retry(
            lambda: source.fetch_records(table, max_records=max_records),
            tries=tries,
            base_delay=base_delay,
            sleep=sleep or time.sleep,
            label=f"records:{table}",
        )
    except UpstreamReadError:
        raise
    except Exception as e:
        raise UpstreamReadError(table, str(e) or type(e).__name__, status=extract_status(e)) from e
    out = [dict(r) for r in (records or []) if isinstance(r, Mapping)]
    if len(out) >= max_records:
        logger.warning("record cap reached table=%s cap=%s; extra records are not read", table, max_records)
    return out


__all__ = [
    "CASE_FIELDS",
    "INSTRUCTION_FIELDS",
    "RECORD_SEPARATOR",
    "RecordSource",
    "aggregate_case_text",
    "aggregate_fields",
    "fetch_case_records",
    "join_unique",
    "normalize_field_value",
    "record_to_text",
]
