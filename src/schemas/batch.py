from __future__ import annotations

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

CaseStatus = Literal["done", "no-record", "no-text", "dryrun-ok", "skipped-exists", "error"]


class ProcessedRecord(BaseModel):
    """
    One row of batch output. Status-specific payload (URLs, checks, error) rides
    along as extra fields so each pipeline can add what it needs.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    case_id: int = Field(..., alias="caseId")
    status: CaseStatus
    error: Optional[Dict[str, Any]] = None

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class BundleRef(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    range: str
    status: Literal["uploaded", "dryrun-skip-upload"]
    count: int = 0
    url: Optional[str] = None


__all__ = ["BundleRef", "CaseStatus", "ProcessedRecord"]
