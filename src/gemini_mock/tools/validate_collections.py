"""Validate Postman collections for correctness and completeness.

Errors make the run fail; warnings are reported only.
"""
from __future__ import annotations
import argparse
import json
import logging
import re
import sys
from collections import Counter
from pathlib import Path
from typing import Any

from gemini_mock.common.logging_setup import setup_logging

LOGGER = logging.getLogger("gemini_mock.tools.validate")

VARIABLE_RE = re.compile(r"{{([^}]+)}}")
COMMON_VARIABLES = ("{{GEMINI_API_KEY}}", "{{base_url}}", "{{api_version}}")


class CollectionValidator:
    def __init__(self) -> None:
        self.errors: list[str] = []
        self.warnings: list[str] = []

    def validate_file(self, path: str | Path) -> None:
        LOGGER.info("Validating collection: %s", path)
        try:
            collection = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            self.errors.append(f"{path}: Invalid JSON - {e}")
            return
        self.validate_collection(collection, str(path))

    def validate_collection(self, collection: Any, name: str) -> None:
        if not isinstance(collection, dict):
            self.errors.append(f"{name}: Collection must be a JSON object")
            return
        self._validate_schema(collection, name)
        self._validate_structure(collection, name)
        self._validate_requests(collection, name)
        self._validate_variables(collection, name)
        self._validate_tests(collection, name)

    def _validate_schema(self, collection: dict[str, Any], name: str) -> None:
        missing = [field for field in ("info", "item") if collection.get(field) in (None, "")]
        if missing:
            self.errors.append(f"{name}: Missing required fields: {', '.join(missing)}")
        info = collection.get("info")
        if isinstance(info, dict):
            missing_info = [field for field in ("name", "description") if not info.get(field)]
            if missing_info:
                self.warnings.append(f"{name}: Missing recommended info fields: {', '.join(missing_info)}")

    def _validate_structure(self, collection: dict[str, Any], name: str) -> None:
        items = collection.get("item")
        if not isinstance(items, list):
            self.errors.append(f"{name}: 'item' must be an array")
            return
        for index, item in enumerate(items):
            self._validate_item(item, f"{name}[{index}]")

    def _validate_item(self, item: Any, where: str) -> None:
        if not isinstance(item, dict):
            self.errors.append(f"{where}: Item must be an object")
            return
        if not item.get("name"):
            self.warnings.append(f"{where}: Item missing name")
        if item.get("request"):
            self._validate_request(item["request"], where)
        children = item.get("item")
        if isinstance(children, list):
            for index, child in enumerate(children):
                self._validate_item(child, f"{where}.item[{index}]")

    def _validate_request(self, request: Any, where: str) -> None:
        # Postman allows a bare URL string as the whole request.
        if isinstance(request, str):
            request = {"method": "GET", "url": request}
        if not isinstance(request, dict):
            self.errors.append(f"{where}: Request must be an object or URL string")
            return
        if not request.get("method"):
            self.errors.append(f"{where}: Request missing method")
        url = request.get("url")
        if not url:
            self.errors.append(f"{where}: Request missing URL")
        elif isinstance(url, str):
            if "{{" not in url and not url.startswith("http"):
                self.warnings.append(f"{where}: URL should use environment variables or be absolute")
        elif isinstance(url, dict) and not url.get("raw"):
            self.errors.append(f"{where}: URL object missing 'raw' field")

        body = request.get("body") or {}
        if not isinstance(body, dict):
            self.errors.append(f"{where}: Request body must be an object")
            return
        raw = body.get("raw")
        if body.get("mode") == "raw" and isinstance(raw, str) and raw:
            try:
                json.loads(raw)
            except json.JSONDecodeError:
                # Templated bodies are not JSON until variables are substituted.
                if "{{" not in raw:
                    self.warnings.append(f"{where}: Request body appears to be malformed JSON")

    def _validate_requests(self, collection: dict[str, Any], name: str) -> None:
        requests = extract_requests(collection)
        if not requests:
            self.warnings.append(f"{name}: Collection contains no requests")
        counts = Counter(r["name"] for r in requests if isinstance(r.get("name"), str) and r["name"])
        duplicates = [request_name for request_name, count in counts.items() if count > 1]
        if duplicates:
            self.warnings.append(f"{name}: Duplicate request names found: {', '.join(duplicates)}")

    def _validate_variables(self, collection: dict[str, Any], name: str) -> None:
        content = json.dumps(collection)
        found = sorted({match.group(0) for match in VARIABLE_RE.finditer(content)})
        LOGGER.info("%s: Found %s environment variables: %s", name, len(found), found)
        missing = [var for var in COMMON_VARIABLES if var not in content]
        if missing:
            self.warnings.append(f"{name}: Missing common variables: {', '.join(missing)}")

    def _validate_tests(self, collection: dict[str, Any], name: str) -> None:
        requests = extract_requests(collection)
        untested = [r for r in requests if not any(e.get("listen") == "test" for e in _events(r))]
        if untested:
            self.warnings.append(f"{name}: {len(untested)} requests without test scripts")
        for request in requests:
            for event in _events(request):
                if event.get("listen") != "test":
                    continue
                script = event.get("script")
                lines = script.get("exec") if isinstance(script, dict) else None
                if not lines:
                    continue
                text = "\n".join(map(str, lines)) if isinstance(lines, list) else str(lines)
                if "pm.test" not in text:
                    self.warnings.append(f"{name}:{request.get('name')}: Test script doesn't contain pm.test calls")

    def print_results(self) -> bool:
        """Log the accumulated findings; return True when there are no errors."""
        LOGGER.info("=== Validation Results ===")
        for error in self.errors:
            LOGGER.error("%s", error)
        for warning in self.warnings:
            LOGGER.warning("%s", warning)
        if not self.errors and not self.warnings:
            LOGGER.info("All collections are valid!")
        LOGGER.info("Summary: %s errors, %s warnings", len(self.errors), len(self.warnings))
        return not self.errors


def _events(request: dict[str, Any]) -> list[dict[str, Any]]:
    events = request.get("event")
    if not isinstance(events, list):
        return []
    return [event for event in events if isinstance(event, dict)]


def extract_requests(node: Any) -> list[dict[str, Any]]:
    """Flatten a collection or folder into its request items; malformed nodes are skipped."""
    requests: list[dict[str, Any]] = []
    if not isinstance(node, dict):
        return requests
    if node.get("request"):
        requests.append(node)
    children = node.get("item")
    if isinstance(children, list):
        for child in children:
            requests.extend(extract_requests(child))
    return requests


def main(argv: list[str] | None = None) -> int:
    setup_logging()
    ap = argparse.ArgumentParser(description="Validate Postman collections")
    ap.add_argument("directory", nargs="?", default="collections", help="Directory of collection JSON files")
    args = ap.parse_args(argv)

    directory = Path(args.directory)
    if not directory.is_dir():
        LOGGER.error("Collections directory not found: %s", directory)
        return 1
    files = sorted(directory.glob("*.json"))
    if not files:
        LOGGER.error("No JSON files found in collections directory")
        return 1

    validator = CollectionValidator()
    for path in files:
        validator.validate_file(path)
    return 0 if validator.print_results() else 1

if __name__ == "__main__":
    sys.exit(main())
