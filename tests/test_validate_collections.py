from __future__ import annotations

import json
from pathlib import Path

from gemini_mock.tools.validate_collections import CollectionValidator, extract_requests, main

TEST_EVENT = {"listen": "test", "script": {"exec": ["pm.test('ok', function () {", "  pm.response.to.have.status(200);", "});"]}}


def _request(name: str, url: object = "{{base_url}}/{{api_version}}/models?key={{GEMINI_API_KEY}}", **extra: object) -> dict:
    item = {"name": name, "request": {"method": "GET", "url": url}, "event": [TEST_EVENT]}
    item["request"].update(extra)
    return item


def _collection(*items: dict) -> dict:
    return {"info": {"name": "Text Generation", "description": "Gemini text requests"}, "item": list(items)}


def _write(tmp_path: Path, name: str, data: object) -> Path:
    path = tmp_path / name
    path.write_text(json.dumps(data) if not isinstance(data, str) else data, encoding="utf-8")
    return path


def test_clean_collection_has_no_findings(tmp_path: Path) -> None:
    v = CollectionValidator()
    v.validate_file(_write(tmp_path, "ok.json", _collection(_request("List models"))))
    assert v.errors == []
    assert v.warnings == []
    assert v.print_results() is True


def test_invalid_json_is_an_error(tmp_path: Path) -> None:
    v = CollectionValidator()
    v.validate_file(_write(tmp_path, "bad.json", "{oops"))
    assert len(v.errors) == 1
    assert "Invalid JSON" in v.errors[0]
    assert v.print_results() is False


def test_missing_required_fields() -> None:
    v = CollectionValidator()
    v.validate_collection({"info": {"name": "x"}}, "c.json")
    assert "c.json: Missing required fields: item" in v.errors
    assert "c.json: 'item' must be an array" in v.errors
    assert "c.json: Missing recommended info fields: description" in v.warnings


def test_request_level_checks() -> None:
    folder = {
        "name": "Folder",
        "item": [
            {"name": "No method", "request": {"url": "{{base_url}}/x"}, "event": [TEST_EVENT]},
            _request("Relative url", url="models/list"),
            _request("Url object", url={"host": ["{{base_url}}"]}),
            _request("Bad body", body={"mode": "raw", "raw": "{not json"}),
            _request("Templated body", body={"mode": "raw", "raw": '{"n": {{count}}}'}),
        ],
    }
    v = CollectionValidator()
    v.validate_collection(_collection(folder), "c.json")
    assert "c.json[0].item[0]: Request missing method" in v.errors
    assert "c.json[0].item[2]: URL object missing 'raw' field" in v.errors
    assert "c.json[0].item[1]: URL should use environment variables or be absolute" in v.warnings
    assert "c.json[0].item[3]: Request body appears to be malformed JSON" in v.warnings
    assert not any("item[4]" in w for w in v.warnings)


def test_duplicates_missing_tests_and_variables() -> None:
    untested = {"name": "Plain", "request": {"method": "POST", "url": "https://example.com"}}
    no_pm = _request("No pm")
    no_pm["event"] = [{"listen": "test", "script": {"exec": ["console.log(1);"]}}]
    v = CollectionValidator()
    v.validate_collection({"info": {"name": "n", "description": "d"}, "item": [untested, untested, no_pm]}, "c.json")
    assert "c.json: Duplicate request names found: Plain" in v.warnings
    assert "c.json: 2 requests without test scripts" in v.warnings
    assert "c.json:No pm: Test script doesn't contain pm.test calls" in v.warnings
    assert v.errors == []


def test_missing_common_variables() -> None:
    v = CollectionValidator()
    v.validate_collection(_collection(_request("Abs", url="https://example.com/v1beta/models")), "c.json")
    assert (
        "c.json: Missing common variables: {{GEMINI_API_KEY}}, {{base_url}}, {{api_version}}" in v.warnings
    )


def test_empty_collection_warns() -> None:
    v = CollectionValidator()
    v.validate_collection(_collection(), "c.json")
    assert "c.json: Collection contains no requests" in v.warnings


def test_extract_requests_walks_folders() -> None:
    tree = _collection({"name": "F", "item": [_request("a"), {"name": "G", "item": [_request("b")]}]}, _request("c"))
    assert [r["name"] for r in extract_requests(tree)] == ["a", "b", "c"]


def test_main_exit_codes(tmp_path: Path) -> None:
    assert main([str(tmp_path / "missing")]) == 1
    assert main([str(tmp_path)]) == 1
    _write(tmp_path, "ok.json", _collection(_request("List models")))
    assert main([str(tmp_path)]) == 0
    _write(tmp_path, "broken.json", {"info": {}})
    assert main([str(tmp_path)]) == 1


def test_non_object_item_is_an_error() -> None:
    v = CollectionValidator()
    v.validate_collection({"info": {"name": "n", "description": "d"}, "item": ["oops"]}, "c.json")
    assert "c.json[0]: Item must be an object" in v.errors
    assert "c.json: Collection contains no requests" in v.warnings
    assert v.print_results() is False


def test_string_body_is_an_error() -> None:
    v = CollectionValidator()
    v.validate_collection(_collection(_request("Text body", body="raw text")), "c.json")
    assert v.errors == ["c.json[0]: Request body must be an object"]


def test_malformed_events_and_requests_are_tolerated() -> None:
    item = _request("Odd events")
    item["event"] = ["not an event", {"listen": "test", "script": "pm.test"}]
    folder = {"name": "F", "item": [item, {"name": "Numeric", "request": 42}, 7]}
    v = CollectionValidator()
    v.validate_collection(_collection(folder), "c.json")
    assert "c.json[0].item[1]: Request must be an object or URL string" in v.errors
    assert "c.json[0].item[2]: Item must be an object" in v.errors
    assert [r["name"] for r in extract_requests(folder)] == ["Odd events", "Numeric"]


def test_main_reports_bad_shapes(tmp_path: Path) -> None:
    _write(tmp_path, "odd.json", {"info": {"name": "n", "description": "d"}, "item": ["oops"]})
    assert main([str(tmp_path)]) == 1
