from __future__ import annotations

from typing import Any, Dict, Optional

import anyio
from fastapi import APIRouter, Depends, Request

from api.auth import require_run_secret
from api.dependencies import ProviderFactory, SleepFn, get_blob_store, get_provider_factory, get_record_source, get_settings, get_sleep
from api.utils import batch_response, parse_batch_query
from programs.batch import BatchDriver
from programs.case_text import RecordSource
from programs.instructions.orchestrator import BlobBundleSink, InstructionsPipeline
from programs.settings import Settings
from programs.storage import BlobStore
from providers.llm import TextModel

router = APIRouter(prefix="/api/instructions", tags=["instructions"], dependencies=[Depends(require_run_secret)])


@router.api_route("", methods=["GET", "POST"])
async def instructions(
    request: Request,
    settings: Settings = Depends(get_settings),
    records: RecordSource = Depends(get_record_source),
    store: BlobStore = Depends(get_blob_store),
    providers: ProviderFactory = Depends(get_provider_factory),
    sleep: SleepFn = Depends(get_sleep),
) -> Dict[str, Any]:
    """
    Roleplay-instruction batch, uploaded in bundles of `bundleSize` cases.

    `?startFrom=1&bundleSize=10&limit=10&dryRun=0&overwrite=0&debug=0`
    """
    params = parse_batch_query(request).instructions_params(max_case_id=settings.max_case_id)

    model: Optional[TextModel] = None
    if not params.dry_run:
        model = providers.text_model(settings.instructions_text_model)
    pipeline = InstructionsPipeline(settings=settings, records=records, text_model=model, sleep=sleep)
    driver = BatchDriver(
        pipeline.process_case,
        bundle_sink=BlobBundleSink(store, model_name=pipeline.model_name),
        throttle_sec=settings.case_throttle_sec,
        sleep=sleep,
    )

    result = await anyio.to_thread.run_sync(lambda: driver.run(params))
    return batch_response(result, model=pipeline.model_name, include_bundles=True)
