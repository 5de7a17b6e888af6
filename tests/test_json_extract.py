import pytest

from programs.errors import JsonParseError
from programs.json_extract import as_text, extract_json_object, parse_json_object


def test_extracts_first_balanced_object_from_prose_and_fences():
    raw = 'Sure! ```json\n{"a": {"b": "}"}, "c": 1}\n``` hope that helps {"ignored": true}'
    assert extract_json_object(raw) == '{"a": {"b": "}"}, "c": 1}'


def test_escaped_quotes_inside_strings():
    assert parse_json_object('{"q": "say \\"hi\\" {"}') == {"q": 'say "hi" {'}


def test_no_braces_raises_with_stage():
    with pytest.raises(JsonParseError) as info:
        extract_json_object("no json here", stage="PROFILE")
    assert str(info.value).startswith("PROFILE_JSON_PARSE_FAILED")


def test_invalid_json_raises():
    with pytest.raises(JsonParseError):
        parse_json_object("{'single': 'quotes'}")


def test_as_text():
    assert as_text(None, default="x") == "x"
    assert as_text(["a", "", "b"]) == "a, b"
    assert as_text(3) == "3"
