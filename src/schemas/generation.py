from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class GenerationAttemptResult(BaseModel):
    """
    Outcome of one verified-generation run.

    `image_b64` is always the last generated image, accepted or not. The check
    flags describe that same attempt; `child_adult_ok` is None when the scene
    is not a child + adult pair.
    """

    model_config = ConfigDict(populate_by_name=True)

    image_b64: str = Field(..., alias="imageB64", repr=False)
    attempts: int
    count_ok: bool = Field(..., alias="countOk")
    gender_ok: bool = Field(..., alias="genderOk")
    clothing_ok: bool = Field(..., alias="clothingOk")
    child_adult_ok: Optional[bool] = Field(default=None, alias="childAdultOk")
    accepted: bool

    @property
    def failed_checks(self) -> List[str]:
        failed = []
        if not self.count_ok:
            failed.append("count")
        if not self.gender_ok:
            failed.append("gender")
        if not self.clothing_ok:
            failed.append("clothing")
        if self.child_adult_ok is False:
            failed.append("child_adult")
        return failed

    def checks_payload(self) -> dict:
        out = self.model_dump(by_alias=True, exclude={"image_b64"})
        out["failedChecks"] = self.failed_checks
        return out


__all__ = ["GenerationAttemptResult"]
