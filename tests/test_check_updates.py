from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import httpx
import pytest

from gemini_mock.tools.check_updates import ApiUpdateChecker, UpdateCheckError, main

NOW = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)

PRO = {"name": "models/gemini-1.5-pro", "displayName": "Gemini 1.5 Pro", "description": "Mid-size"}
FLASH = {"name": "models/gemini-1.5-flash", "displayName": "Gemini 1.5 Flash", "description": "Fast"}


def _transport(models: list[dict[str, Any]], candidate: dict[str, Any] | None = None, v1: bool = False):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        path = request.url.path
        if path == "/v1beta/models":
            return httpx.Response(200, json={"models": models})
        if path.endswith(":generateContent"):
            return httpx.Response(200, json={"candidates": [candidate or {"content": {}, "finishReason": "STOP"}]})
        if path == "/v1/models" and v1:
            return httpx.Response(200, json={"models": models})
        return httpx.Response(404, json={"error": {"code": 404, "message": "nope", "status": "NOT_FOUND"}})

    return httpx.MockTransport(handler), seen


def _checker(tmp_path: Path, transport: httpx.MockTransport, state: dict[str, Any] | None = None) -> ApiUpdateChecker:
    state_path = tmp_path / "state.json"
    if state is not None:
        state_path.write_text(json.dumps(state), encoding="utf-8")
    return ApiUpdateChecker(
        "k",
        base_url="http://mock",
        state_path=state_path,
        client=httpx.Client(transport=transport),
        now=lambda: NOW,
    )


def test_first_run_reports_new_models_and_saves_state(tmp_path: Path) -> None:
    transport, seen = _transport([PRO, FLASH])
    checker = _checker(tmp_path, transport)
    report = checker.check_for_updates()

    assert report["changes"][0]["type"] == "new_models"
    assert report["changes"][0]["count"] == 2
    assert [r["type"] for r in report["recommendations"]] == ["update_models"]
    assert checker.has_significant_changes()
    assert all(req.url.params["key"] == "k" for req in seen)
    sample = next(req for req in seen if req.method == "POST")
    assert json.loads(sample.content)["generationConfig"]["maxOutputTokens"] == 10

    saved = json.loads((tmp_path / "state.json").read_text(encoding="utf-8"))
    assert [m["name"] for m in saved["models"]] == [PRO["name"], FLASH["name"]]
    assert saved["lastUpdate"] == NOW.isoformat()


def test_unchanged_models_report_nothing(tmp_path: Path) -> None:
    transport, _ = _transport([PRO])
    state = {"models": [PRO], "lastUpdate": (NOW - timedelta(days=2)).isoformat(), "version": "1.0.0"}
    checker = _checker(tmp_path, transport, state)
    report = checker.check_for_updates()
    assert report["changes"] == []
    assert report["recommendations"] == []
    assert not checker.has_significant_changes()
    assert checker.summary()["summary"] == "Found 0 changes and 0 recommendations"


def test_deprecated_and_changed_models(tmp_path: Path) -> None:
    changed_pro = dict(PRO, description="Updated")
    transport, _ = _transport([changed_pro])
    state = {"models": [PRO, FLASH], "lastUpdate": "2026-08-01T00:00:00Z", "version": "1.0.0"}
    checker = _checker(tmp_path, transport, state)
    report = checker.check_for_updates()

    types = [c["type"] for c in report["changes"]]
    assert types == ["deprecated_models", "model_changes"]
    assert report["changes"][0]["details"] == [FLASH["name"]]
    priorities = {r["type"]: r["priority"] for r in report["recommendations"]}
    assert priorities == {"deprecated_models": "high", "maintenance": "medium"}
    assert checker.summary()["highPriorityRecommendations"] == 1


def test_new_candidate_fields_and_stable_version(tmp_path: Path) -> None:
    candidate = {"content": {}, "finishReason": "STOP", "citationMetadata": {}, "avgLogprobs": -0.1}
    transport, _ = _transport([PRO], candidate=candidate, v1=True)
    checker = _checker(tmp_path, transport, {"models": [PRO], "lastUpdate": None, "version": "1.0.0"})
    report = checker.check_for_updates()
    assert report["parameterChanges"] == [{"type": "new_response_fields", "fields": ["avgLogprobs", "citationMetadata"]}]
    assert {"type": "new_api_version", "version": "v1", "status": "stable_version_available"} in report["changes"]
    assert [r["type"] for r in report["recommendations"]] == ["parameter_updates"]


def test_api_error_is_raised(tmp_path: Path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": {"code": 400, "message": "API key not valid", "status": "INVALID_ARGUMENT"}})

    checker = _checker(tmp_path, httpx.MockTransport(handler))
    with pytest.raises(UpdateCheckError, match="API key not valid"):
        checker.check_for_updates()
    assert not (tmp_path / "state.json").exists()


def test_corrupt_state_file(tmp_path: Path) -> None:
    state_path = tmp_path / "state.json"
    state_path.write_text("{half a state", encoding="utf-8")
    transport, _ = _transport([PRO])
    with pytest.raises(UpdateCheckError, match="Corrupt state file"):
        ApiUpdateChecker("k", base_url="http://mock", state_path=state_path, client=httpx.Client(transport=transport))


def test_main_reports_corrupt_state(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    state_path = tmp_path / "state.json"
    state_path.write_text("not json", encoding="utf-8")
    monkeypatch.setenv("GEMINI_API_KEY", "k")
    assert main(["--state", str(state_path), "--base-url", "http://127.0.0.1:9"]) == 1
