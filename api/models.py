from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from programs.batch import MAX_BUNDLE_SIZE, BatchParams, clamp_bundle_size

DEFAULT_PROCESS_LIMIT = 10
DEFAULT_BUNDLE_SIZE = 10


def _flag(v: Any) -> bool:
    if isinstance(v, bool):
        return v
    return str(v or "").strip().lower() in {"1", "true", "yes", "on"}


class BatchQuery(BaseModel):
    """Query parameters shared by the batch endpoints (`?startFrom=1&limit=5&dryRun=1`)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    start_from: int = Field(default=1, alias="startFrom", ge=1)
    limit: Optional[int] = Field(default=None, ge=0, description="Max cases attempted in this invocation.")
    end_at: Optional[int] = Field(default=None, alias="endAt", ge=1, description="Defaults to MAX_CASE_ID.")
    dry_run: bool = Field(default=False, alias="dryRun")
    overwrite: bool = False
    debug: bool = False
    bundle_size: Optional[int] = Field(default=None, alias="bundleSize")

    @field_validator("dry_run", "overwrite", "debug", mode="before")
    @classmethod
    def _parse_flag(cls, v: Any) -> bool:
        return _flag(v)

    @field_validator("limit", "end_at", "bundle_size", mode="before")
    @classmethod
    def _blank_is_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def headshot_params(self, *, max_case_id: int) -> BatchParams:
        return BatchParams(
            start_from=self.start_from,
            end_at=self.end_at if self.end_at is not None else max_case_id,
            limit=self.limit if self.limit is not None else DEFAULT_PROCESS_LIMIT,
            dry_run=self.dry_run,
            overwrite=self.overwrite,
            debug=self.debug,
        )

    def instructions_params(self, *, max_case_id: int) -> BatchParams:
        bundle_size = clamp_bundle_size(self.bundle_size if self.bundle_size is not None else DEFAULT_BUNDLE_SIZE)
        return BatchParams(
            start_from=self.start_from,
            end_at=self.end_at if self.end_at is not None else max_case_id,
            limit=max(1, self.limit if self.limit is not None else bundle_size),
            dry_run=self.dry_run,
            overwrite=self.overwrite,
            debug=self.debug,
            bundle_size=bundle_size,
        )


class DownloadQuery(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    start_from: int = Field(default=1, alias="startFrom", ge=1)
    end_at: Optional[int] = Field(default=None, alias="endAt", ge=1)

    @field_validator("end_at", mode="before")
    @classmethod
    def _blank_is_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


__all__ = ["BatchQuery", "DEFAULT_BUNDLE_SIZE", "DEFAULT_PROCESS_LIMIT", "DownloadQuery", "MAX_BUNDLE_SIZE"]
