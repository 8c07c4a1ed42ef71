"""Run the mock server with uvicorn."""
from __future__ import annotations
import argparse
import logging

import uvicorn

from gemini_mock.common.config import get_settings
from gemini_mock.common.logging_setup import setup_logging
from gemini_mock.serve.fastapi_app import app

LOGGER = logging.getLogger("gemini_mock.serve.server")

def main() -> None:
    settings = get_settings()
    ap = argparse.ArgumentParser(description="Run the Gemini mock server")
    ap.add_argument("--host", default=settings.host)
    ap.add_argument("--port", type=int, default=settings.port)
    ap.add_argument("--log-level", default=settings.log_level)
    args = ap.parse_args()

    setup_logging(args.log_level)
    LOGGER.info("Gemini Mock Server running on port %s", args.port)
    LOGGER.info("Health check: http://localhost:%s/health", args.port)
    LOGGER.info("API base URL: http://localhost:%s/v1beta", args.port)
    LOGGER.info("Set the Postman base_url variable to http://localhost:%s", args.port)
    LOGGER.info("Use any API key except '%s'", settings.invalid_api_key)
    uvicorn.run(app, host=args.host, port=args.port, log_config=None)

if __name__ == "__main__":
    main()
