import pytest

from providers.retry import extract_status, is_retryable_status, linear_backoff, with_retry


class StatusError(Exception):
    def __init__(self, status):
        super().__init__(f"status {status}")
        self.status_code = status


class _Resp:
    status_code = 503


class ResponseError(Exception):
    response = _Resp()


def test_extract_status_reads_attributes_and_response():
    assert extract_status(StatusError(429)) == 429
    assert extract_status(ResponseError()) == 503
    assert extract_status(ValueError("x")) is None


def test_retryable_statuses():
    assert is_retryable_status(429)
    assert is_retryable_status(500)
    assert is_retryable_status(503)
    assert not is_retryable_status(400)
    assert not is_retryable_status(404)
    assert not is_retryable_status(None)


def test_retries_rate_limit_with_linear_backoff_then_succeeds():
    sleeps = []
    calls = {"n": 0}

    def flaky():
        calls["n"] += 1
        if calls["n"] < 3:
            raise StatusError(429)
        return "ok"

    assert with_retry(flaky, tries=3, base_delay=0.8, sleep=sleeps.append) == "ok"
    assert calls["n"] == 3
    assert sleeps == pytest.approx([0.8, 1.6])


def test_non_retryable_error_propagates_immediately():
    sleeps = []
    calls = {"n": 0}

    def bad_request():
        calls["n"] += 1
        raise StatusError(400)

    with pytest.raises(StatusError):
        with_retry(bad_request, tries=3, sleep=sleeps.append)
    assert calls["n"] == 1
    assert sleeps == []


def test_last_error_is_reraised_unchanged_after_exhaustion():
    errors = [StatusError(500), StatusError(502), StatusError(503)]
    seen = []

    def always_fails():
        e = errors[len(seen)]
        seen.append(e)
        raise e

    with pytest.raises(StatusError) as info:
        with_retry(always_fails, tries=3, base_delay=0, sleep=lambda _s: None)
    assert info.value is errors[-1]


def test_linear_backoff_scales_with_attempt():
    delay = linear_backoff(0.5)
    assert [delay(i) for i in (1, 2, 3)] == [0.5, 1.0, 1.5]
