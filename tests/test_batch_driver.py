from programs.batch import BatchDriver, BatchParams, CaseOutcome, clamp_bundle_size
from schemas.batch import BundleRef, ProcessedRecord


def _done(case_id, params):
    return CaseOutcome(
        record=ProcessedRecord(case_id=case_id, status="done"),
        bundle_item={"caseId": case_id, "output": f"item-{case_id}"},
        debug_item={"caseId": case_id, "debug": True},
    )


class RecordingSink:
    def __init__(self):
        self.calls = []

    def __call__(self, start, end, items, *, dry_run, overwrite):
        self.calls.append((start, end, [i["caseId"] for i in items], dry_run, overwrite))
        status = "dryrun-skip-upload" if dry_run else "uploaded"
        return BundleRef(range=f"{start:04d}-{end:04d}", status=status, count=len(items))


def test_clamp_bundle_size():
    assert clamp_bundle_size(0) == 1
    assert clamp_bundle_size(7) == 7
    assert clamp_bundle_size(500) == 50


def test_limit_caps_cases_attempted():
    seen = []

    def process(case_id, params):
        seen.append(case_id)
        return _done(case_id, params)

    result = BatchDriver(process, throttle_sec=0).run(BatchParams(start_from=3, end_at=20, limit=4))
    assert seen == [3, 4, 5, 6]
    assert result.processed_count == 4


def test_range_end_stops_before_limit():
    result = BatchDriver(_done, throttle_sec=0).run(BatchParams(start_from=9, end_at=10, limit=10))
    assert [r.case_id for r in result.processed] == [9, 10]


def test_case_exception_becomes_error_record_and_batch_continues():
    def process(case_id, params):
        if case_id == 2:
            raise RuntimeError("boom")
        return _done(case_id, params)

    result = BatchDriver(process, throttle_sec=0).run(BatchParams(start_from=1, end_at=3, limit=3))
    statuses = [r.status for r in result.processed]
    assert statuses == ["done", "error", "done"]
    err = result.processed[1].to_json()["error"]
    assert err == {"status": 500, "message": "boom"}


def test_debug_returns_first_done_case():
    def process(case_id, params):
        if case_id == 1:
            return CaseOutcome(record=ProcessedRecord(case_id=1, status="no-record"))
        return _done(case_id, params)

    result = BatchDriver(process, throttle_sec=0).run(BatchParams(start_from=1, end_at=10, limit=10, debug=True))
    assert result.debug_item == {"caseId": 2, "debug": True}
    assert result.processed_count == 2


def test_bundles_flush_at_threshold_and_at_end():
    sink = RecordingSink()
    params = BatchParams(start_from=1, end_at=5, limit=5, bundle_size=2)
    result = BatchDriver(_done, bundle_sink=sink, throttle_sec=0).run(params)
    assert [c[:3] for c in sink.calls] == [(1, 2, [1, 2]), (3, 4, [3, 4]), (5, 5, [5])]
    assert [b.range for b in result.bundles] == ["0001-0002", "0003-0004", "0005-0005"]


def test_non_done_cases_are_bundled_as_records():
    sink = RecordingSink()

    def process(case_id, params):
        return CaseOutcome(record=ProcessedRecord(case_id=case_id, status="dryrun-ok"))

    params = BatchParams(start_from=4, end_at=5, limit=5, dry_run=True, bundle_size=10)
    result = BatchDriver(process, bundle_sink=sink, throttle_sec=0).run(params)
    assert sink.calls == [(4, 5, [4, 5], True, False)]
    assert result.bundles[0].status == "dryrun-skip-upload"


def test_throttle_only_after_done_cases(sleeps, fake_sleep):
    def process(case_id, params):
        if case_id % 2:
            return CaseOutcome(record=ProcessedRecord(case_id=case_id, status="skipped-exists"))
        return _done(case_id, params)

    BatchDriver(process, throttle_sec=0.25, sleep=fake_sleep).run(BatchParams(start_from=1, end_at=4, limit=4))
    assert sleeps == [0.25, 0.25]


def test_echo_uses_wire_names():
    echo = BatchParams(start_from=2, end_at=9, limit=3, dry_run=True, bundle_size=5).echo()
    assert echo == {"startFrom": 2, "endAt": 9, "limit": 3, "dryRun": True, "overwrite": False, "bundleSize": 5}
