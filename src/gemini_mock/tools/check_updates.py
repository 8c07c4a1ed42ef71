"""Poll the Gemini API for model and response-shape changes.

Compares the live model listing with the state saved by the previous run,
sends a sample generateContent call for unknown candidate fields and reports
recommendations for the Postman workspace. Exit code 0 means changes were
found (the CI workflow continues), 1 means nothing to do or a failure.
"""
from __future__ import annotations
import argparse
import json
import logging
import os
import sys
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import httpx

from gemini_mock.common.logging_setup import setup_logging

LOGGER = logging.getLogger("gemini_mock.tools.check_updates")

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com"
DEFAULT_STATE_PATH = ".workspace-state.json"
SAMPLE_MODEL = "gemini-1.5-pro"
KNOWN_CANDIDATE_FIELDS = {"content", "finishReason", "index", "safetyRatings"}
MAINTENANCE_DAYS = 30

SAMPLE_REQUEST = {
    "contents": [{"parts": [{"text": "Hello"}]}],
    "generationConfig": {"temperature": 0.1, "maxOutputTokens": 10},
}


class UpdateCheckError(Exception):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class ApiUpdateChecker:
    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        state_path: str | Path = DEFAULT_STATE_PATH,
        client: httpx.Client | None = None,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.state_path = Path(state_path)
        self._now = now
        self.current_state = self.load_state()
        self._owns_client = client is None
        self.client = client or httpx.Client(timeout=30.0)
        self.report: dict[str, Any] = {
            "timestamp": self._now().isoformat(),
            "changes": [],
            "newModels": [],
            "deprecatedModels": [],
            "parameterChanges": [],
            "recommendations": [],
        }

    def __enter__(self) -> "ApiUpdateChecker":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        if self._owns_client:
            self.client.close()

    def load_state(self) -> dict[str, Any]:
        if self.state_path.exists():
            try:
                return json.loads(self.state_path.read_text(encoding="utf-8"))
            except ValueError as e:
                raise UpdateCheckError(f"Corrupt state file {self.state_path}: {e}") from e
        return {"models": [], "lastUpdate": None, "version": "1.0.0"}

    def save_state(self, state: dict[str, Any]) -> None:
        self.state_path.write_text(json.dumps(state, indent=2), encoding="utf-8")

    def _request(self, method: str, endpoint: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        r = self.client.request(method, f"{self.base_url}{endpoint}", params={"key": self.api_key}, json=payload)
        try:
            return r.json()
        except ValueError as e:
            raise UpdateCheckError(f"Failed to parse response from {endpoint}: {e}") from e

    def check_for_updates(self) -> dict[str, Any]:
        LOGGER.info("Checking Gemini API for updates...")
        models_response = self._request("GET", "/v1beta/models")
        if "error" in models_response:
            message = (models_response.get("error") or {}).get("message", "unknown error")
            raise UpdateCheckError(f"API Error: {message}")

        current_models = models_response.get("models") or []
        self.analyze_model_changes(current_models)
        self.check_parameter_changes()
        self.check_version_changes()
        self.generate_recommendations()

        self.save_state({
            "models": current_models,
            "lastUpdate": self._now().isoformat(),
            "version": self.current_state.get("version", "1.0.0"),
        })
        return self.report

    def analyze_model_changes(self, current_models: list[dict[str, Any]]) -> None:
        previous = {m["name"]: m for m in self.current_state.get("models") or []}
        current = {m["name"]: m for m in current_models}

        new_models = [m for name, m in current.items() if name not in previous]
        deprecated = [m for name, m in previous.items() if name not in current]
        changed = [
            name for name, m in current.items()
            if name in previous and json.dumps(m, sort_keys=True) != json.dumps(previous[name], sort_keys=True)
        ]

        if new_models:
            self.report["newModels"] = new_models
            self.report["changes"].append({
                "type": "new_models",
                "count": len(new_models),
                "details": [
                    {"name": m["name"], "displayName": m.get("displayName"), "description": m.get("description")}
                    for m in new_models
                ],
            })
        if deprecated:
            self.report["deprecatedModels"] = deprecated
            self.report["changes"].append({
                "type": "deprecated_models",
                "count": len(deprecated),
                "details": [m["name"] for m in deprecated],
            })
        if changed:
            self.report["changes"].append({"type": "model_changes", "count": len(changed), "details": changed})

    def check_parameter_changes(self) -> None:
        """Look for candidate fields the workspace tests do not know about yet."""
        try:
            response = self._request("POST", f"/v1beta/models/{SAMPLE_MODEL}:generateContent", SAMPLE_REQUEST)
        except (httpx.HTTPError, UpdateCheckError) as e:
            LOGGER.warning("Could not check parameter changes: %s", e)
            return
        candidates = response.get("candidates") or []
        if not candidates:
            return
        new_fields = sorted(set(candidates[0]) - KNOWN_CANDIDATE_FIELDS)
        if new_fields:
            self.report["parameterChanges"].append({"type": "new_response_fields", "fields": new_fields})

    def check_version_changes(self) -> None:
        try:
            response = self._request("GET", "/v1/models")
        except (httpx.HTTPError, UpdateCheckError) as e:
            LOGGER.debug("Stable API version not reachable: %s", e)
            return
        if "error" not in response:
            self.report["changes"].append({
                "type": "new_api_version",
                "version": "v1",
                "status": "stable_version_available",
            })

    def generate_recommendations(self) -> None:
        recommendations = []
        if self.report["newModels"]:
            recommendations.append({
                "type": "update_models",
                "priority": "medium",
                "description": "New models are available. Consider updating your collections to include these models.",
                "action": "Add new model options to environment variables",
            })
        if self.report["deprecatedModels"]:
            recommendations.append({
                "type": "deprecated_models",
                "priority": "high",
                "description": "Some models have been deprecated. Update your collections to use supported models.",
                "action": "Replace deprecated model references in collections",
            })
        if self.report["parameterChanges"]:
            recommendations.append({
                "type": "parameter_updates",
                "priority": "low",
                "description": "New response fields or parameters are available.",
                "action": "Update test scripts to validate new fields",
            })
        last_update = self.current_state.get("lastUpdate")
        if last_update:
            age = self._now() - _parse_timestamp(last_update)
            if age.total_seconds() > MAINTENANCE_DAYS * 86400:
                recommendations.append({
                    "type": "maintenance",
                    "priority": "medium",
                    "description": f"Workspace has not been updated in over {MAINTENANCE_DAYS} days.",
                    "action": "Review and refresh all collections and documentation",
                })
        self.report["recommendations"] = recommendations

    def has_significant_changes(self) -> bool:
        return bool(self.report["changes"]) or any(
            r["priority"] == "high" for r in self.report["recommendations"]
        )

    def summary(self) -> dict[str, Any]:
        changes = len(self.report["changes"])
        recommendations = self.report["recommendations"]
        return {
            "hasUpdates": self.has_significant_changes(),
            "changeCount": changes,
            "highPriorityRecommendations": sum(1 for r in recommendations if r["priority"] == "high"),
            "summary": f"Found {changes} changes and {len(recommendations)} recommendations",
        }


def main(argv: list[str] | None = None) -> int:
    setup_logging()
    ap = argparse.ArgumentParser(description="Check the Gemini API for changes")
    ap.add_argument("--base-url", default=os.getenv("GEMINI_BASE_URL", DEFAULT_BASE_URL))
    ap.add_argument("--state", default=DEFAULT_STATE_PATH, help="Path of the saved workspace state")
    args = ap.parse_args(argv)

    api_key = os.getenv("GEMINI_API_KEY")
    if not api_key:
        LOGGER.error("GEMINI_API_KEY environment variable is required")
        return 1

    try:
        with ApiUpdateChecker(api_key, base_url=args.base_url, state_path=args.state) as checker:
            report = checker.check_for_updates()
    except (httpx.HTTPError, UpdateCheckError, OSError) as e:
        LOGGER.error("Update check failed: %s", e)
        return 1

    LOGGER.info("%s", checker.summary()["summary"])
    if checker.has_significant_changes():
        print(json.dumps(report, indent=2))
        return 0
    return 1

if __name__ == "__main__":
    sys.exit(main())
