"""
Headshot pipeline for one case.

Stages: records -> case text -> (dry run / existing-avatar short-circuits) ->
profile -> composition (+ age override) -> image prompt -> verified
generation -> avatar + profile document upload.

Per-case failures are raised; the batch driver turns them into error records.
"""

from __future__ import annotations

import base64
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional

from programs.batch import BatchParams, CaseOutcome
from programs.case_text import CASE_FIELDS, RecordSource, aggregate_case_text, aggregate_fields, fetch_case_records
from programs.errors import ConfigError
from programs.headshot.composition import SINGLE_DEFAULT, CompositionDecider, apply_age_override, parse_age_years
from programs.headshot.image_prompt import compose_image_prompt
from programs.headshot.profile import ProfileExtractor
from programs.headshot.verification import VerificationTarget, VerifiedGenerationLoop, VisionVerifier
from programs.settings import Settings
from programs.storage import BlobStore, avatar_path, existing_url, json_bytes, profile_path, upload_if_absent
from programs.variety import resolve_system_attributes
from providers.image_generation import ImageGenerator
from providers.llm import TextModel
from schemas.batch import ProcessedRecord
from schemas.case_profile import NOT_SPECIFIED

logger = logging.getLogger(__name__)

PREVIEW_CHARS = 280


@dataclass(frozen=True)
class PipelineOptions:
    """Optional stages. Off means the stage is skipped, not forked."""

    scan_pair: bool = True
    scan_origin: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> "PipelineOptions":
        return cls(scan_pair=settings.scan_pair, scan_origin=settings.scan_origin)


class HeadshotPipeline:
    def __init__(
        self,
        *,
        settings: Settings,
        records: RecordSource,
        store: BlobStore,
        text_model: Optional[TextModel] = None,
        vision_model: Optional[TextModel] = None,
        image_generator: Optional[ImageGenerator] = None,
        options: Optional[PipelineOptions] = None,
        origin_overrides: Optional[Mapping[int, str]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._settings = settings
        self._records = records
        self._store = store
        self._text_model = text_model
        self._vision_model = vision_model
        self._image_generator = image_generator
        self._options = options or PipelineOptions.from_settings(settings)
        self._origin_overrides = dict(settings.origin_overrides if origin_overrides is None else origin_overrides)
        self._sleep = sleep

    @property
    def model_info(self) -> Dict[str, Optional[str]]:
        return {
            "text": getattr(self._text_model, "model_name", None),
            "vision": getattr(self._vision_model, "model_name", None),
            "image": getattr(self._image_generator, "model_name", None),
        }

    def _require_models(self) -> None:
        if self._text_model is None or self._vision_model is None or self._image_generator is None:
            raise ConfigError("Headshot generation needs text, vision and image providers configured.")

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
        if not records:
            return CaseOutcome(record=ProcessedRecord(case_id=case_id, status="no-record", tableName=table))

        case_text = aggregate_case_text(records, CASE_FIELDS)
        base = {"tableName": table, "recordCount": len(records)}
        if not case_text:
            return CaseOutcome(record=ProcessedRecord(case_id=case_id, status="no-text", **base))

        if params.dry_run:
            return CaseOutcome(
                record=ProcessedRecord(
                    case_id=case_id,
                    status="dryrun-ok",
                    textChars=len(case_text),
                    textPreview=case_text[:PREVIEW_CHARS],
                    **base,
                )
            )

        avatar = avatar_path(case_id)
        profile_doc = profile_path(case_id)
        if not params.overwrite and self._store.exists(avatar):
            return CaseOutcome(
                record=ProcessedRecord(
                    case_id=case_id,
                    status="skipped-exists",
                    avatarUrl=self._store.public_url(avatar),
                    profileUrl=existing_url(self._store, profile_doc),
                    **base,
                )
            )

        self._require_models()
        attrs = resolve_system_attributes(case_id, case_text)
        profile = ProfileExtractor(self._text_model).extract(case_id=case_id, case_text=case_text, system=attrs)
        if not self._options.scan_origin:
            profile = profile.model_copy(update={"origin": NOT_SPECIFIED, "style_context": NOT_SPECIFIED})

        if self._options.scan_pair:
            decision = CompositionDecider(self._text_model).decide(case_id=case_id, case_text=case_text)
        else:
            decision = SINGLE_DEFAULT
        age_text = profile.age
        if parse_age_years(age_text) is None:
            age_text = aggregate_fields(records, ("Age",)).get("Age", "")
        decision = apply_age_override(decision, age_text, s.child_age_threshold)

        origin_guidance = self._origin_overrides.get(case_id)
        prompt = compose_image_prompt(profile, decision, attrs=attrs, origin_guidance=origin_guidance)

        loop = VerifiedGenerationLoop(
            generator=self._image_generator,
            verifier=VisionVerifier(self._vision_model),
            max_attempts=s.verify_max_attempts,
            post_generation_delay=s.post_generation_delay_sec,
            sleep=self._sleep,
        )
        target = VerificationTarget(
            expected_count=decision.person_count,
            gender_presentation=profile.gender_presentation,
            clothing_color=profile.clothing_color,
            child_with_adult=decision.age_override,
        )
        generation = loop.run(prompt, target, case_id=case_id)
        checks = generation.checks_payload()

        avatar_url, _ = upload_if_absent(
            self._store,
            avatar,
            base64.b64decode(generation.image_b64),
            content_type="image/png",
            overwrite=params.overwrite,
        )
        document: Dict[str, Any] = {
            "caseId": case_id,
            "createdAt": datetime.now(timezone.utc).isoformat(),
            "profile": profile.model_dump(),
            "composition": decision.model_dump(),
            "systemAttributes": {
                "background": attrs.background,
                "clothingColor": attrs.clothing_color,
                "variationTags": attrs.variation_tags,
            },
            "checks": checks,
            "prompt": prompt,
            "models": self.model_info,
            "avatarUrl": avatar_url,
        }
        profile_url, _ = upload_if_absent(
            self._store, profile_doc, json_bytes(document), content_type="application/json", overwrite=params.overwrite
        )
        logger.info(
            "headshot done case_id=%s attempts=%s accepted=%s composition=%s",
            case_id,
            generation.attempts,
            generation.accepted,
            decision.composition,
        )

        record = ProcessedRecord(
            case_id=case_id,
            status="done",
            avatarUrl=avatar_url,
            profileUrl=profile_url,
            composition=decision.composition,
            checks=checks,
            **base,
        )
        debug_item = {**document, "caseText": case_text} if params.debug else None
        return CaseOutcome(record=record, debug_item=debug_item)


__all__ = ["HeadshotPipeline", "PipelineOptions"]
