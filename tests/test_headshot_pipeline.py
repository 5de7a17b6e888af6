import base64
import json

import pytest

from conftest import FakeBlobStore, FakeImageGenerator, FakeRecordSource, ScriptedTextModel, profile_json, profile_payload
from programs.batch import BatchDriver, BatchParams
from programs.headshot.orchestrator import HeadshotPipeline, PipelineOptions

SINGLE = json.dumps({"composition": "single", "reason": "adult alone", "evidence": "", "confidence": "high"})
CASE = {"Name": "Ana Silva", "Age": "42", "Medical Notes": "Attends alone with back pain."}


def _text_model(profile=None, composition=SINGLE):
    profile = profile if profile is not None else profile_json()

    def reply(prompt):
        if "[CompositionSignature]" in prompt:
            if isinstance(composition, Exception):
                raise composition
            return composition
        return profile

    return ScriptedTextModel(reply_fn=reply)


def _pipeline(settings, *, tables=None, store=None, text=None, vision=None, image=None, options=None, overrides=None):
    return HeadshotPipeline(
        settings=settings,
        records=FakeRecordSource(tables if tables is not None else {"Case 1": [CASE]}),
        store=store if store is not None else FakeBlobStore(),
        text_model=text,
        vision_model=vision,
        image_generator=image,
        options=options,
        origin_overrides=overrides,
        sleep=lambda _s: None,
    )


def _full(settings, **kw):
    kw.setdefault("text", _text_model())
    kw.setdefault("vision", ScriptedTextModel())
    kw.setdefault("image", FakeImageGenerator())
    return _pipeline(settings, **kw)


def test_missing_table_is_no_record(settings):
    outcome = _full(settings, tables={}).process_case(1, BatchParams())
    assert outcome.record.to_json() == {"caseId": 1, "status": "no-record", "tableName": "Case 1"}


def test_blank_records_are_no_text_without_model_calls(settings):
    text = _text_model()
    store = FakeBlobStore()
    pipeline = _full(settings, tables={"Case 1": [{"Name": " ", "Age": None}]}, text=text, store=store)
    outcome = pipeline.process_case(1, BatchParams())
    assert outcome.record.status == "no-text"
    assert text.prompts == []
    assert store.puts == []


def test_dry_run_reads_only(settings):
    store = FakeBlobStore()
    pipeline = _pipeline(settings, store=store)
    outcome = pipeline.process_case(1, BatchParams(dry_run=True))
    data = outcome.record.to_json()
    assert data["status"] == "dryrun-ok"
    assert data["recordCount"] == 1
    assert data["textPreview"].startswith("Name: Ana Silva")
    assert data["textChars"] == len("Name: Ana Silva\nAge: 42\nMedical Notes: Attends alone with back pain.")
    assert store.puts == []


def test_existing_avatar_is_skipped_without_model_calls(settings):
    store = FakeBlobStore({"case-avatars/001.png": b"old"})
    text = _text_model()
    outcome = _full(settings, store=store, text=text).process_case(1, BatchParams())
    data = outcome.record.to_json()
    assert data["status"] == "skipped-exists"
    assert data["avatarUrl"] == "https://blob.test/case-avatars/001.png"
    assert "profileUrl" not in data
    assert text.prompts == []
    assert store.puts == []


def test_done_uploads_avatar_and_profile_document(settings):
    store = FakeBlobStore()
    outcome = _full(settings, store=store).process_case(1, BatchParams())
    data = outcome.record.to_json()
    assert data["status"] == "done"
    assert data["composition"] == "single"
    assert data["checks"]["attempts"] == 1
    assert store.puts == ["case-avatars/001.png", "case-profiles/001.json"]
    assert store.objects["case-avatars/001.png"] == b"png-1"
    assert store.content_types["case-avatars/001.png"] == "image/png"

    doc = store.json("case-profiles/001.json")
    assert doc["caseId"] == 1
    assert doc["avatarUrl"] == data["avatarUrl"]
    assert doc["profile"]["gender_presentation"] == "female-presenting"
    assert doc["profile"]["clothing_color"] == doc["systemAttributes"]["clothingColor"]
    assert doc["profile"]["background"] == doc["systemAttributes"]["background"]
    assert doc["models"] == {"text": "fake-text", "vision": "fake-text", "image": "fake-image"}
    assert outcome.debug_item is None


def test_overwrite_regenerates_existing_avatar(settings):
    store = FakeBlobStore({"case-avatars/001.png": b"old"})
    outcome = _full(settings, store=store).process_case(1, BatchParams(overwrite=True))
    assert outcome.record.status == "done"
    assert store.objects["case-avatars/001.png"] == b"png-1"


def test_child_age_forces_pair_with_child_adult_check(settings):
    store = FakeBlobStore()
    vision = ScriptedTextModel()
    text = _text_model(profile=profile_json(age="9"))
    outcome = _full(settings, store=store, text=text, vision=vision).process_case(1, BatchParams())
    data = outcome.record.to_json()
    assert data["composition"] == "pair"
    assert data["checks"]["childAdultOk"] is True
    doc = store.json("case-profiles/001.json")
    assert doc["composition"]["age_override"] is True
    assert "Exactly TWO people" in doc["prompt"]
    assert any("child together" in q for q in vision.questions)


def test_age_falls_back_to_age_field(settings):
    store = FakeBlobStore()
    text = _text_model(profile=profile_json(age="not specified"))
    tables = {"Case 1": [{**CASE, "Age": "7 years"}]}
    outcome = _full(settings, store=store, text=text, tables=tables).process_case(1, BatchParams())
    assert outcome.record.to_json()["composition"] == "pair"


def test_pair_scan_disabled_skips_composition_call(settings):
    text = _text_model()
    options = PipelineOptions(scan_pair=False, scan_origin=True)
    _full(settings, text=text, options=options).process_case(1, BatchParams())
    assert len(text.prompts) == 1


def test_origin_scan_disabled_blanks_origin(settings):
    store = FakeBlobStore()
    text = _text_model(profile=profile_json(origin="Portuguese"))
    options = PipelineOptions(scan_pair=True, scan_origin=False)
    _full(settings, store=store, text=text, options=options).process_case(1, BatchParams())
    doc = store.json("case-profiles/001.json")
    assert doc["profile"]["origin"] == "not specified"
    assert "Portuguese" not in doc["prompt"]


def test_origin_override_reaches_prompt(settings):
    store = FakeBlobStore()
    _full(settings, store=store, overrides={1: "Brazilian heritage"}).process_case(1, BatchParams())
    assert "Origin guidance: Brazilian heritage" in store.json("case-profiles/001.json")["prompt"]


def test_debug_item_carries_case_text(settings):
    outcome = _full(settings).process_case(1, BatchParams(debug=True))
    assert outcome.debug_item["caseText"].startswith("Name: Ana Silva")
    assert outcome.debug_item["caseId"] == 1


def test_missing_models_is_a_config_error(settings):
    from programs.errors import ConfigError

    with pytest.raises(ConfigError):
        _pipeline(settings).process_case(1, BatchParams())


def test_missing_profile_key_fails_case_but_not_batch(settings):
    broken = profile_payload()
    del broken["build"]
    text = _text_model(profile=json.dumps(broken))
    tables = {"Case 1": [CASE], "Case 2": [CASE]}
    pipeline = _full(settings, text=text, tables=tables)
    result = BatchDriver(pipeline.process_case, throttle_sec=0).run(BatchParams(start_from=1, end_at=2, limit=2))
    assert [r.status for r in result.processed] == ["error", "error"]
    err = result.processed[0].to_json()["error"]
    assert err["code"] == "MISSING_KEY"
    assert "build" in err["message"]


def test_unverified_image_is_still_uploaded_with_flags(settings):
    store = FakeBlobStore()
    vision = ScriptedTextModel(vision=lambda q: "no" if "wearing" in q else "yes")
    outcome = _full(settings, store=store, vision=vision).process_case(1, BatchParams())
    checks = outcome.record.to_json()["checks"]
    assert checks["accepted"] is False
    assert checks["attempts"] == settings.verify_max_attempts
    assert checks["failedChecks"] == ["clothing"]
    assert base64.b64encode(store.objects["case-avatars/001.png"]).decode()


class ProviderUnavailable(Exception):
    status_code = 503


def test_composition_provider_error_falls_back_to_single(settings):
    store = FakeBlobStore()
    text = _text_model(composition=ProviderUnavailable("service unavailable"))
    outcome = _full(settings, store=store, text=text).process_case(1, BatchParams())
    data = outcome.record.to_json()
    assert data["status"] == "done"
    assert data["composition"] == "single"
    assert store.json("case-profiles/001.json")["composition"]["confidence"] == "low"


def test_composition_provider_error_still_applies_child_age_rule(settings):
    text = _text_model(profile=profile_json(age="6"), composition=ProviderUnavailable("service unavailable"))
    outcome = _full(settings, text=text).process_case(1, BatchParams())
    data = outcome.record.to_json()
    assert data["status"] == "done"
    assert data["composition"] == "pair"
