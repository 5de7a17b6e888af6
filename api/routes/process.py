from __future__ import annotations

from typing import Any, Dict

import anyio
from fastapi import APIRouter, Depends, Request

from api.auth import require_run_secret
from api.dependencies import ProviderFactory, SleepFn, get_blob_store, get_provider_factory, get_record_source, get_settings, get_sleep
from api.utils import batch_response, parse_batch_query
from programs.batch import BatchDriver
from programs.case_text import RecordSource
from programs.headshot.orchestrator import HeadshotPipeline
from programs.settings import Settings
from programs.storage import BlobStore

router = APIRouter(prefix="/api/process", tags=["process"], dependencies=[Depends(require_run_secret)])


@router.api_route("", methods=["GET", "POST"])
async def process(
    request: Request,
    settings: Settings = Depends(get_settings),
    records: RecordSource = Depends(get_record_source),
    store: BlobStore = Depends(get_blob_store),
    providers: ProviderFactory = Depends(get_provider_factory),
    sleep: SleepFn = Depends(get_sleep),
) -> Dict[str, Any]:
    """
    Headshot batch: profile -> composition -> verified image generation -> upload.

    `?startFrom=1&limit=10&endAt=355&dryRun=0&overwrite=0&debug=0`
    """
    params = parse_batch_query(request).headshot_params(max_case_id=settings.max_case_id)

    models: Dict[str, Any] = {}
    if not params.dry_run:
        models = {
            "text_model": providers.text_model(settings.headshot_text_model),
            "vision_model": providers.text_model(settings.headshot_vision_model),
            "image_generator": providers.image_generator(),
        }
    pipeline = HeadshotPipeline(settings=settings, records=records, store=store, sleep=sleep, **models)
    driver = BatchDriver(pipeline.process_case, throttle_sec=settings.case_throttle_sec, sleep=sleep)

    result = await anyio.to_thread.run_sync(lambda: driver.run(params))
    return batch_response(result, model=pipeline.model_info)
