"""Runtime settings and static configuration files."""
from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

MODEL_CATALOG_PATH = Path(__file__).with_name("models.yaml")


def _getenv_int(key: str, default: int) -> int:
    try:
        return int(os.getenv(key, str(default)))
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    host: str = "127.0.0.1"
    port: int = 3000
    rate_limit_per_minute: int = 60
    latency_min_ms: int = 500
    latency_max_ms: int = 1500
    stream_word_delay_ms: int = 100
    invalid_api_key: str = "invalid_key_12345"
    default_model_version: str = "gemini-1.5-pro-001"
    log_level: str = "INFO"


def get_settings() -> Settings:
    return Settings(
        host=os.getenv("MOCK_SERVER_HOST", "127.0.0.1"),
        port=_getenv_int("MOCK_SERVER_PORT", 3000),
        rate_limit_per_minute=_getenv_int("MOCK_RATE_LIMIT_PER_MINUTE", 60),
        latency_min_ms=_getenv_int("MOCK_LATENCY_MIN_MS", 500),
        latency_max_ms=_getenv_int("MOCK_LATENCY_MAX_MS", 1500),
        stream_word_delay_ms=_getenv_int("MOCK_STREAM_WORD_DELAY_MS", 100),
        invalid_api_key=os.getenv("MOCK_INVALID_API_KEY", "invalid_key_12345"),
        default_model_version=os.getenv("MOCK_DEFAULT_MODEL_VERSION", "gemini-1.5-pro-001"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )


def load_cfg(path: str | Path) -> dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_model_catalog(path: str | Path | None = None) -> list[dict[str, Any]]:
    """
    Load the static model listing served by GET /v1beta/models.

    Args:
        path: YAML file with a top-level ``models`` list. Defaults to the
            catalog shipped with the package.
    """
    cfg = load_cfg(path or MODEL_CATALOG_PATH)
    return list(cfg.get("models", []) or [])
