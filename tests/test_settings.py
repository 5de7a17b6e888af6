import json

from programs.settings import MAX_VERIFY_ATTEMPTS, Settings, load_origin_overrides


def test_defaults_from_empty_env():
    s = Settings.from_env({})
    assert s.max_case_id == 355
    assert s.child_age_threshold == 16
    assert s.max_records_per_case == 100
    assert s.case_table(12) == "Case 12"
    assert s.scan_pair and s.scan_origin


def test_env_overrides_and_bad_numbers_fall_back():
    s = Settings.from_env(
        {
            "MAX_CASE_ID": "40",
            "VERIFY_MAX_ATTEMPTS": "0",
            "RETRY_BASE_DELAY_SEC": "oops",
            "HEADSHOT_SCAN_PAIR": "0",
            "CASE_TABLE_TEMPLATE": "cases_{case_id}",
        }
    )
    assert s.max_case_id == 40
    assert s.verify_max_attempts == 1
    assert s.retry_base_delay_sec == 0.8
    assert not s.scan_pair
    assert s.case_table(3) == "cases_3"


def test_verify_attempts_are_capped():
    assert Settings.from_env({"VERIFY_MAX_ATTEMPTS": "50"}).verify_max_attempts == MAX_VERIFY_ATTEMPTS == 3
    assert Settings.from_env({"VERIFY_MAX_ATTEMPTS": "2"}).verify_max_attempts == 2


def test_origin_overrides_file(tmp_path):
    path = tmp_path / "origins.json"
    path.write_text(json.dumps({"12": "Ghanaian heritage", "x": "ignored", "13": " "}), encoding="utf-8")
    assert load_origin_overrides(str(path)) == {12: "Ghanaian heritage"}
    assert load_origin_overrides(str(tmp_path / "missing.json")) == {}
    assert load_origin_overrides("") == {}
