"""FastAPI mock of the Gemini generateContent API.

Endpoints:
- GET /health
- GET /v1beta/models
- POST /v1beta/models/{model}:generateContent
- POST /v1beta/models/{model}:streamGenerateContent
  (the ``/{model}/generateContent`` slash forms are accepted too)
"""
from __future__ import annotations
import json
import logging
from datetime import datetime, timezone
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from gemini_mock.common.config import Settings, get_settings, load_model_catalog
from gemini_mock.common.errors import (
    ApiError,
    InternalError,
    InvalidArgument,
    NotFound,
    ResourceExhausted,
    error_response,
)
from gemini_mock.common.logging_setup import setup_logging
from gemini_mock.common.schema import GenerateContentResponse
from gemini_mock.engine.core import MockResponseEngine
from gemini_mock.engine.responses import RandomSource
from gemini_mock.engine.validation import validate_request
from gemini_mock.serve.gates import RequestCounter, SlidingWindowRateLimiter, check_api_key, extract_api_key

LOGGER = logging.getLogger("gemini_mock.serve.app")

API_PREFIX = "/v1beta"
SERVER_NAME = "Gemini Mock Server"


async def _read_payload(request: Request) -> Any:
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InvalidArgument(f"Invalid JSON payload received: {e}") from e


def create_app(
    settings: Settings | None = None,
    rng: RandomSource | None = None,
    sleep: Callable[[float], Awaitable[object]] | None = None,
    clock: Callable[[], float] | None = None,
) -> FastAPI:
    """
    Build the mock server application.

    Args:
        settings: Runtime settings; read from the environment when omitted.
        rng: Random source for latency and response selection.
        sleep: Awaitable sleep used for simulated latency.
        clock: Monotonic clock used by the rate limiter.
    """
    settings = settings or get_settings()
    engine_kwargs: dict[str, Any] = {"rng": rng}
    if sleep is not None:
        engine_kwargs["sleep"] = sleep
    engine = MockResponseEngine(settings, **engine_kwargs)
    limiter_kwargs: dict[str, Any] = {}
    if clock is not None:
        limiter_kwargs["clock"] = clock
    limiter = SlidingWindowRateLimiter(settings.rate_limit_per_minute, 60.0, **limiter_kwargs)

    app = FastAPI(title=SERVER_NAME, version="0.1.0")
    app.state.settings = settings
    app.state.engine = engine
    app.state.counter = RequestCounter()
    app.state.limiter = limiter

    @app.middleware("http")
    async def _gate_api(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        if not request.url.path.startswith(API_PREFIX):
            return await call_next(request)
        client = request.client.host if request.client else "unknown"
        allowed, remaining = limiter.hit(client)
        headers = {
            "X-RateLimit-Limit": str(limiter.limit),
            "X-RateLimit-Remaining": str(remaining),
        }
        if not allowed:
            LOGGER.warning("Rate limit exceeded for %s", client)
            err = ResourceExhausted("Rate limit exceeded. Please try again later.")
            return error_response(err, headers=headers)
        try:
            check_api_key(extract_api_key(request), settings.invalid_api_key)
        except ApiError as err:
            LOGGER.warning("Rejected %s %s: %s", request.method, request.url.path, err.message)
            return error_response(err, headers=headers)
        response = await call_next(request)
        response.headers.update(headers)
        return response

    @app.middleware("http")
    async def _count_requests(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        n = app.state.counter.increment()
        LOGGER.info("%s %s - Request #%s", request.method, request.url.path, n)
        return await call_next(request)

    @app.exception_handler(ApiError)
    async def _api_error(request: Request, exc: ApiError) -> JSONResponse:
        return error_response(exc)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code in (404, 405):
            return error_response(NotFound(f"Endpoint not found: {request.method} {request.url.path}"))
        status = "INVALID_ARGUMENT" if 400 <= exc.status_code < 500 else "INTERNAL"
        return error_response(ApiError(str(exc.detail), code=exc.status_code, status=status), headers=exc.headers)

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        LOGGER.error("Server error on %s %s: %s", request.method, request.url.path, exc)
        return error_response(InternalError("Internal server error"))

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {
            "status": "healthy",
            "server": SERVER_NAME,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "requests_served": app.state.counter.value,
        }

    @app.get(f"{API_PREFIX}/models")
    def list_models() -> dict[str, Any]:
        return {"models": load_model_catalog()}

    async def _prepare(request: Request, model: str) -> GenerateContentResponse:
        request_model = validate_request(await _read_payload(request))
        await engine.simulate_latency()
        return engine.build_response(request_model, model)

    @app.post(API_PREFIX + "/models/{model}:generateContent")
    @app.post(API_PREFIX + "/models/{model}/generateContent")
    async def generate_content(model: str, request: Request) -> JSONResponse:
        response = await _prepare(request, model)
        return JSONResponse(response.to_wire())

    @app.post(API_PREFIX + "/models/{model}:streamGenerateContent")
    @app.post(API_PREFIX + "/models/{model}/streamGenerateContent")
    async def stream_generate_content(model: str, request: Request) -> StreamingResponse:
        response = await _prepare(request, model)
        return StreamingResponse(engine.stream(response), media_type="application/json")

    return app


setup_logging(get_settings().log_level)
app = create_app()
