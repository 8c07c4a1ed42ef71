"""Apply an API update report to the Postman workspace.

Reads the JSON report printed by ``gemini-mock-check-updates`` and rewrites
collection and environment files to match: variables for new models,
deprecated model references swapped for the default model, test scripts
extended for new response fields and request examples brought up to the
current generationConfig defaults. A CHANGELOG entry records the run.
"""
from __future__ import annotations
import argparse
import json
import logging
import re
import sys
from collections.abc import Callable, Iterator
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from gemini_mock.common.logging_setup import setup_logging

LOGGER = logging.getLogger("gemini_mock.tools.update_workspace")

DEFAULT_REPORT_PATH = "update-report.json"
REPLACEMENT_MODEL = "gemini-1.5-pro"
MAX_TEMPERATURE = 2.0
CHANGELOG_HEADER = "# Changelog\n\nAll notable changes to this workspace will be documented in this file.\n\n"
CHANGELOG_VERSION_RE = re.compile(r"^## \[(\d+(?:\.\d+)*)\]", re.MULTILINE)
GENERATED_MARKER = "// Auto-generated validations for new API features"


class WorkspaceUpdateError(Exception):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def empty_report() -> dict[str, Any]:
    return {"changes": [], "newModels": [], "deprecatedModels": [], "parameterChanges": []}


def load_report(path: str | Path) -> dict[str, Any]:
    """Read an update report; a missing file means there is nothing to apply."""
    path = Path(path)
    if not path.exists():
        LOGGER.info("No update report at %s; applying defaults only", path)
        return empty_report()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except ValueError as e:
        raise WorkspaceUpdateError(f"Corrupt update report {path}: {e}") from e
    if not isinstance(data, dict):
        raise WorkspaceUpdateError(f"Update report {path} must be a JSON object")
    report = empty_report()
    for key in report:
        if isinstance(data.get(key), list):
            report[key] = data[key]
    return report


def bump_patch(version: str) -> str:
    parts = (str(version).split(".") + ["0", "0"])[:3]
    try:
        major, minor, patch = (int(p or 0) for p in parts)
    except ValueError as e:
        raise WorkspaceUpdateError(f"Unsupported version string: {version!r}") from e
    return f"{major}.{minor}.{patch + 1}"


def short_model_name(name: str) -> str:
    return name.split("/")[-1]


def model_variable(name: str) -> str:
    return f"{short_model_name(name).replace('-', '_')}_model"


def walk_items(items: Any) -> Iterator[dict[str, Any]]:
    """Yield every item of a collection tree, folders included."""
    if not isinstance(items, list):
        return
    for item in items:
        if not isinstance(item, dict):
            continue
        yield item
        yield from walk_items(item.get("item"))


def _read_object(path: Path) -> dict[str, Any]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise WorkspaceUpdateError(f"{path.name} must contain a JSON object")
    return data


def _write_object(path: Path, data: dict[str, Any]) -> None:
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


class WorkspaceUpdater:
    def __init__(self, report: dict[str, Any], now: Callable[[], datetime] = _utcnow) -> None:
        self.report = {**empty_report(), **report}
        self._now = now

    @property
    def new_models(self) -> list[dict[str, Any]]:
        return [m for m in self.report["newModels"] if isinstance(m, dict) and m.get("name")]

    @property
    def deprecated_names(self) -> list[str]:
        return [
            short_model_name(m["name"])
            for m in self.report["deprecatedModels"]
            if isinstance(m, dict) and m.get("name")
        ]

    @property
    def new_response_fields(self) -> list[str]:
        fields: list[str] = []
        for change in self.report["parameterChanges"]:
            if isinstance(change, dict) and change.get("type") == "new_response_fields":
                fields.extend(f for f in change.get("fields") or [] if f not in fields)
        return fields

    def should_update_api_version(self) -> bool:
        return any(
            isinstance(c, dict) and c.get("type") == "new_api_version" and c.get("version") == "v1"
            for c in self.report["changes"]
        )

    # Collections

    def update_collection(self, path: str | Path) -> bool:
        """Rewrite one collection file; returns True when it was changed."""
        path = Path(path)
        collection = _read_object(path)
        updated = False
        if self.new_models:
            updated = self.add_new_models(collection) or updated
        if self.deprecated_names:
            updated = self.replace_deprecated_models(collection) or updated
        updated = self.update_test_scripts(collection) or updated
        updated = self.update_request_examples(collection) or updated

        if not updated:
            LOGGER.info("No changes needed: %s", path.name)
            return False
        info = collection.get("info")
        if not isinstance(info, dict):
            info = collection["info"] = {}
        info["version"] = bump_patch(info.get("version") or "1.0.0")
        info["updatedAt"] = self._now().isoformat()
        _write_object(path, collection)
        LOGGER.info("Updated collection: %s (version %s)", path.name, info["version"])
        return True

    def add_new_models(self, collection: dict[str, Any]) -> bool:
        variables = collection.get("variable")
        if not isinstance(variables, list):
            return False
        existing = {v.get("key") for v in variables if isinstance(v, dict)}
        updated = False
        for model in self.new_models:
            key = model_variable(model["name"])
            if key in existing:
                continue
            name = short_model_name(model["name"])
            variables.append({
                "key": key,
                "value": name,
                "type": "string",
                "description": f"Model: {model.get('displayName') or name}",
            })
            existing.add(key)
            updated = True
        return updated

    def replace_deprecated_models(self, collection: dict[str, Any]) -> bool:
        deprecated = self.deprecated_names
        updated = False

        variables = collection.get("variable")
        if isinstance(variables, list):
            removed = [v for v in variables if self._is_deprecated_variable(v, deprecated)]
            for v in removed:
                LOGGER.info("Removing deprecated model variable: %s", v.get("key"))
            if removed:
                collection["variable"] = [v for v in variables if not self._is_deprecated_variable(v, deprecated)]
                updated = True

        for item in walk_items(collection.get("item")):
            request = item.get("request")
            if isinstance(request, str):
                url, holder = request, None
            elif isinstance(request, dict):
                url = request.get("url")
                holder = request
                if isinstance(url, dict):
                    holder, url = url, url.get("raw")
            else:
                continue
            if not isinstance(url, str):
                continue
            new_url = url
            for name in deprecated:
                if name != REPLACEMENT_MODEL and name in new_url:
                    new_url = new_url.replace(name, REPLACEMENT_MODEL, 1)
            if new_url == url:
                continue
            if holder is None:
                item["request"] = new_url
            elif holder is request:
                holder["url"] = new_url
            else:
                holder["raw"] = new_url
            LOGGER.info("Updated deprecated model in request: %s", item.get("name"))
            updated = True
        return updated

    @staticmethod
    def _is_deprecated_variable(variable: Any, deprecated: list[str]) -> bool:
        if not isinstance(variable, dict):
            return False
        value = variable.get("value")
        return isinstance(value, str) and any(name in value for name in deprecated)

    def field_validation(self, field: str) -> list[str]:
        return [
            f"pm.test('New field {field} exists', function () {{",
            "    const response = pm.response.json();",
            f"    if (response.candidates && response.candidates[0] && response.candidates[0].{field}) {{",
            f"        pm.expect(response.candidates[0].{field}).to.exist;",
            "    }",
            "});",
        ]

    def update_test_scripts(self, collection: dict[str, Any]) -> bool:
        fields = self.new_response_fields
        if not fields:
            return False
        updated = False
        for item in walk_items(collection.get("item")):
            events = item.get("event")
            if not isinstance(events, list):
                continue
            for event in events:
                if not isinstance(event, dict) or event.get("listen") != "test":
                    continue
                script = event.get("script")
                if not isinstance(script, dict) or not script.get("exec"):
                    continue
                lines = script["exec"] if isinstance(script["exec"], list) else [script["exec"]]
                # Fields already validated by an earlier run are not repeated.
                missing = [f for f in fields if self.field_validation(f)[0] not in lines]
                if not missing:
                    continue
                lines = [*lines, "", GENERATED_MARKER]
                for field in missing:
                    lines.extend(self.field_validation(field))
                script["exec"] = lines
                updated = True
        return updated

    def update_request_examples(self, collection: dict[str, Any]) -> bool:
        updated = False
        for item in walk_items(collection.get("item")):
            request = item.get("request")
            body = request.get("body") if isinstance(request, dict) else None
            if not isinstance(body, dict) or not isinstance(body.get("raw"), str):
                continue
            try:
                parsed = json.loads(body["raw"])
            except ValueError:
                # Templated or non-JSON bodies are left as written.
                continue
            config = parsed.get("generationConfig") if isinstance(parsed, dict) else None
            if not isinstance(config, dict):
                continue
            before = json.dumps(config, sort_keys=True)
            self.update_generation_config(config)
            if json.dumps(config, sort_keys=True) != before:
                body["raw"] = json.dumps(parsed, indent=2)
                updated = True
        return updated

    @staticmethod
    def update_generation_config(config: dict[str, Any]) -> None:
        if not config.get("stopSequences"):
            config["stopSequences"] = []
        if not config.get("candidateCount"):
            config["candidateCount"] = 1
        temperature = config.get("temperature")
        if isinstance(temperature, (int, float)) and temperature > MAX_TEMPERATURE:
            config["temperature"] = MAX_TEMPERATURE
            LOGGER.info("Clamped temperature to maximum value of %s", MAX_TEMPERATURE)

    # Environments

    def update_environment(self, path: str | Path) -> bool:
        path = Path(path)
        environment = _read_object(path)
        values = environment.setdefault("values", [])
        if not isinstance(values, list):
            raise WorkspaceUpdateError(f"{path.name}: 'values' must be an array")
        updated = False

        existing = {v.get("key") for v in values if isinstance(v, dict)}
        for model in self.new_models:
            key = model_variable(model["name"])
            if key in existing:
                continue
            name = short_model_name(model["name"])
            values.append({
                "key": key,
                "value": name,
                "description": f"New model: {model.get('displayName') or name}",
                "type": "default",
                "enabled": True,
            })
            existing.add(key)
            updated = True

        deprecated = self.deprecated_names
        if deprecated:
            kept = [v for v in values if not self._is_deprecated_variable(v, deprecated)]
            if len(kept) != len(values):
                LOGGER.info("Removing %s deprecated model values from %s", len(values) - len(kept), path.name)
                environment["values"] = values = kept
                updated = True

        if self.should_update_api_version():
            for v in values:
                if isinstance(v, dict) and v.get("key") == "api_version" and v.get("value") != "v1":
                    v["value"] = "v1"
                    updated = True

        if updated:
            _write_object(path, environment)
            LOGGER.info("Updated environment: %s", path.name)
        else:
            LOGGER.info("No changes needed: %s", path.name)
        return updated

    # Changelog

    def changelog_entry(self, version: str) -> str:
        lines = [f"## [{version}] - {self._now().date().isoformat()}"]
        if self.new_models:
            lines += ["", "### Added"]
            lines += [f"- Support for {m.get('displayName') or m['name']}" for m in self.new_models]
        deprecated = [m for m in self.report["deprecatedModels"] if isinstance(m, dict) and m.get("name")]
        if deprecated:
            lines += ["", "### Removed"]
            lines += [f"- Deprecated model {m['name']}" for m in deprecated]
        if self.report["parameterChanges"]:
            lines += ["", "### Changed", "- Updated test scripts with new API validations"]
        lines += [
            "",
            "### Maintenance",
            "- Automated workspace update via GitHub Actions",
            "- Refreshed documentation and examples",
        ]
        return "\n".join(lines) + "\n"

    def update_changelog(self, path: str | Path) -> str:
        """Insert a new entry above the most recent one; returns the entry's version."""
        path = Path(path)
        text = path.read_text(encoding="utf-8") if path.exists() else CHANGELOG_HEADER
        previous = CHANGELOG_VERSION_RE.search(text)
        version = bump_patch(previous.group(1) if previous else "1.0.0")
        entry = self.changelog_entry(version) + "\n"
        index = previous.start() if previous else len(text)
        if index == len(text) and text and not text.endswith("\n"):
            entry = "\n" + entry
        path.write_text(text[:index] + entry + text[index:], encoding="utf-8")
        LOGGER.info("Updated %s with version %s", path.name, version)
        return version

    def run(self, collections_dir: str | Path, environments_dir: str | Path, changelog: str | Path) -> int:
        """Update every JSON file in both directories; returns the number of failures."""
        LOGGER.info("Starting workspace update...")
        failures = 0
        for label, directory, update in (
            ("collections", Path(collections_dir), self.update_collection),
            ("environments", Path(environments_dir), self.update_environment),
        ):
            if not directory.is_dir():
                LOGGER.error("%s directory not found: %s", label.capitalize(), directory)
                failures += 1
                continue
            LOGGER.info("Updating %s...", label)
            for path in sorted(directory.glob("*.json")):
                try:
                    update(path)
                except (OSError, ValueError, WorkspaceUpdateError) as e:
                    LOGGER.error("Error updating %s: %s", path, e)
                    failures += 1
        self.update_changelog(changelog)
        if failures:
            LOGGER.error("Workspace update finished with %s failures", failures)
        else:
            LOGGER.info("Workspace update completed successfully")
        return failures


def main(argv: list[str] | None = None) -> int:
    setup_logging()
    ap = argparse.ArgumentParser(description="Apply an API update report to the Postman workspace")
    ap.add_argument("--report", default=DEFAULT_REPORT_PATH, help="Report JSON printed by gemini-mock-check-updates")
    ap.add_argument("--collections", default="collections", help="Directory of collection JSON files")
    ap.add_argument("--environments", default="environments", help="Directory of environment JSON files")
    ap.add_argument("--changelog", default="CHANGELOG.md")
    args = ap.parse_args(argv)

    try:
        report = load_report(args.report)
        failures = WorkspaceUpdater(report).run(args.collections, args.environments, args.changelog)
    except (OSError, WorkspaceUpdateError) as e:
        LOGGER.error("Workspace update failed: %s", e)
        return 1
    return 0 if failures == 0 else 1

if __name__ == "__main__":
    sys.exit(main())
