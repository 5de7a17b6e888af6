"""
Process-wide configuration.

Everything environment-derived is read once into `Settings` and passed into the
pipelines, providers and adapters by constructor. Component logic never reads
`os.environ` directly, so tests can build a `Settings` by hand.

Env vars (defaults in brackets):
  - RUN_SECRET                      shared secret for the `x-run-secret` header
  - MAX_CASE_ID [355]               default upper bound for batch ranges
  - CASE_TABLE_TEMPLATE [Case {case_id}]
  - CASE_MAX_RECORDS [100]          per-case record cap (no pagination past this)
  - CASE_BLOB_BUCKET [case-assets]
  - DSPY_PROVIDER [openai]
  - HEADSHOT_TEXT_MODEL / HEADSHOT_VISION_MODEL / INSTRUCTIONS_TEXT_MODEL
  - DSPY_TEMPERATURE [0.4], DSPY_MAX_TOKENS [4000], DSPY_LLM_TIMEOUT_SEC [60]
  - IMAGE_PROVIDER [openai], IMAGE_MODEL [gpt-image-1], IMAGE_SIZE, IMAGE_QUALITY
  - CHILD_AGE_THRESHOLD [16]
  - VERIFY_MAX_ATTEMPTS [3, at most 3], CUE_MAX_ATTEMPTS [3]
  - RETRY_TRIES [3], RETRY_BASE_DELAY_SEC [0.8]
  - POST_GENERATION_DELAY_SEC [0.4], CASE_THROTTLE_SEC [0.25]
  - HEADSHOT_SCAN_PAIR [1], HEADSHOT_SCAN_ORIGIN [1], CASE_ORIGIN_OVERRIDES_PATH
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional

logger = logging.getLogger(__name__)

# Generate-and-verify never runs more than this many image generations per case.
MAX_VERIFY_ATTEMPTS = 3


def _env_str(env: Mapping[str, str], name: str, default: str = "") -> str:
    v = str(env.get(name) or "").strip()
    return v or default


def _env_bool(env: Mapping[str, str], name: str, default: bool = False) -> bool:
    v = str(env.get(name) or "").strip().lower()
    if not v:
        return default
    return v in {"1", "true", "yes", "y", "on"}


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = str(env.get(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = str(env.get(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def load_origin_overrides(path: str) -> Dict[int, str]:
    """
    Load the manually curated case id -> origin guidance table.

    The file is a JSON object keyed by case id (string or int). Unreadable files
    are logged and treated as empty; the table only ever adds prompt guidance.
    """
    if not path:
        return {}
    p = Path(path)
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("origin overrides unreadable path=%s err=%s", path, e)
        return {}
    if not isinstance(raw, dict):
        return {}
    out: Dict[int, str] = {}
    for k, v in raw.items():
        try:
            case_id = int(k)
        except (TypeError, ValueError):
            continue
        text = str(v or "").strip()
        if text:
            out[case_id] = text
    return out


@dataclass(frozen=True)
class Settings:
    run_secret: str = ""
    max_case_id: int = 355

    supabase_url: str = ""
    supabase_key: str = ""
    blob_bucket: str = "case-assets"
    case_table_template: str = "Case {case_id}"
    max_records_per_case: int = 100

    dspy_provider: str = "openai"
    headshot_text_model: str = "gpt-4.1-mini"
    headshot_vision_model: str = "gpt-4.1-mini"
    instructions_text_model: str = "gpt-4.1"
    temperature: float = 0.4
    max_tokens: int = 4000
    llm_timeout_sec: float = 60.0

    image_provider: str = "openai"
    image_model: str = "gpt-image-1"
    image_size: str = "1024x1024"
    image_quality: str = "medium"
    openai_api_key: str = ""

    child_age_threshold: int = 16
    verify_max_attempts: int = 3
    cue_max_attempts: int = 3

    retry_tries: int = 3
    retry_base_delay_sec: float = 0.8
    post_generation_delay_sec: float = 0.4
    case_throttle_sec: float = 0.25

    scan_pair: bool = True
    scan_origin: bool = True
    origin_overrides: Mapping[int, str] = field(default_factory=dict)

    def case_table(self, case_id: int) -> str:
        return self.case_table_template.format(case_id=case_id)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        e = os.environ if env is None else env
        return cls(
            run_secret=_env_str(e, "RUN_SECRET"),
            max_case_id=_env_int(e, "MAX_CASE_ID", 355),
            supabase_url=_env_str(e, "SUPABASE_URL") or _env_str(e, "NEXT_PUBLIC_SUPABASE_URL"),
            supabase_key=_env_str(e, "SUPABASE_SERVICE_ROLE_KEY"),
            blob_bucket=_env_str(e, "CASE_BLOB_BUCKET", "case-assets"),
            case_table_template=_env_str(e, "CASE_TABLE_TEMPLATE", "Case {case_id}"),
            max_records_per_case=max(1, _env_int(e, "CASE_MAX_RECORDS", 100)),
            dspy_provider=_env_str(e, "DSPY_PROVIDER", "openai").lower(),
            headshot_text_model=_env_str(e, "HEADSHOT_TEXT_MODEL", "gpt-4.1-mini"),
            headshot_vision_model=_env_str(e, "HEADSHOT_VISION_MODEL", "gpt-4.1-mini"),
            instructions_text_model=_env_str(e, "INSTRUCTIONS_TEXT_MODEL", "gpt-4.1"),
            temperature=_env_float(e, "DSPY_TEMPERATURE", 0.4),
            max_tokens=_env_int(e, "DSPY_MAX_TOKENS", 4000),
            llm_timeout_sec=_env_float(e, "DSPY_LLM_TIMEOUT_SEC", 60.0),
            image_provider=_env_str(e, "IMAGE_PROVIDER", "openai").lower(),
            image_model=_env_str(e, "IMAGE_MODEL", "gpt-image-1"),
            image_size=_env_str(e, "IMAGE_SIZE", "1024x1024"),
            image_quality=_env_str(e, "IMAGE_QUALITY", "medium"),
            openai_api_key=_env_str(e, "OPENAI_API_KEY"),
            child_age_threshold=_env_int(e, "CHILD_AGE_THRESHOLD", 16),
            verify_max_attempts=min(MAX_VERIFY_ATTEMPTS, max(1, _env_int(e, "VERIFY_MAX_ATTEMPTS", 3))),
            cue_max_attempts=max(1, _env_int(e, "CUE_MAX_ATTEMPTS", 3)),
            retry_tries=max(1, _env_int(e, "RETRY_TRIES", 3)),
            retry_base_delay_sec=max(0.0, _env_float(e, "RETRY_BASE_DELAY_SEC", 0.8)),
            post_generation_delay_sec=max(0.0, _env_float(e, "POST_GENERATION_DELAY_SEC", 0.4)),
            case_throttle_sec=max(0.0, _env_float(e, "CASE_THROTTLE_SEC", 0.25)),
            scan_pair=_env_bool(e, "HEADSHOT_SCAN_PAIR", True),
            scan_origin=_env_bool(e, "HEADSHOT_SCAN_ORIGIN", True),
            origin_overrides=load_origin_overrides(_env_str(e, "CASE_ORIGIN_OVERRIDES_PATH")),
        )


__all__ = ["MAX_VERIFY_ATTEMPTS", "Settings", "load_origin_overrides"]
