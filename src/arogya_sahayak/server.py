from __future__ import annotations

import os
import time
from contextlib import asynccontextmanager

from .api_models import (
    CompletionRequest,
    CompletionResponse,
    TranslateRequest,
    TranslateResponse,
    make_completion_response,
    make_error_response,
)
from .cache import TTLCache
from .client import CompletionClient
from .config import ArogyaConfig
from .errors import ConfigurationError
from .http_security import install_middlewares
from .logging import configure_logging
from .metrics import maybe_start_metrics, server_errors_total, server_request_latency_seconds, server_requests_total
from .tips import HealthTip, HealthTipService


def create_app(
    cfg: ArogyaConfig | None = None,
    client: CompletionClient | None = None,
    tips: HealthTipService | None = None,
):
    try:
        from fastapi import FastAPI
        from fastapi.exceptions import RequestValidationError
        from fastapi.responses import JSONResponse
    except ImportError as e:  # pragma: no cover
        raise RuntimeError('Install the "server" extra: pip install -e ".[server]"') from e

    cfg = cfg or ArogyaConfig()
    configure_logging(level=cfg.log_level, fmt=cfg.log_format, secrets=cfg.secrets())
    client = client or CompletionClient(cfg)
    tips = tips or HealthTipService(client, TTLCache(cfg.health_tip_cache_ttl_seconds))

    def _request_id(request) -> str | None:
        return getattr(getattr(request, "state", None), "request_id", None)

    def _observe(path: str, status_code: int, started_at: float) -> None:
        server_requests_total.labels(path=path, status=str(status_code)).inc()
        server_request_latency_seconds.labels(path=path).observe(max(0.0, time.monotonic() - started_at))

    def _invalid_request(request, message: str) -> JSONResponse:
        server_errors_total.labels(type="invalid_request_error").inc()
        return JSONResponse(
            status_code=400,
            content=make_error_response(
                message=message,
                type="invalid_request_error",
                code=_request_id(request),
            ).model_dump(),
        )

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        maybe_start_metrics(enable=cfg.enable_metrics, bind=cfg.metrics_bind, port=cfg.metrics_port)
        try:
            yield
        finally:
            await client.close()

    app = FastAPI(
        title="arogya-sahayak",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs" if cfg.enable_api_docs else None,
        redoc_url="/redoc" if cfg.enable_api_docs else None,
        openapi_url="/openapi.json" if cfg.enable_api_docs else None,
    )
    install_middlewares(app, cfg=cfg)

    @app.exception_handler(RequestValidationError)
    async def _validation_error_handler(request, exc: RequestValidationError):
        errors = exc.errors()
        message = errors[0].get("msg", "Invalid request.") if errors else "Invalid request."
        return _invalid_request(request, message)

    @app.exception_handler(ConfigurationError)
    async def _config_error_handler(request, exc: ConfigurationError):
        return _invalid_request(request, str(exc))

    @app.get("/healthz")
    async def healthz() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/v1/completions", response_model=CompletionResponse)
    async def completions(req: CompletionRequest):
        started_at = time.monotonic()
        if len(req.messages) > cfg.max_messages:
            raise ConfigurationError("Too many messages.")
        total_chars = sum(len(m.content) for m in req.messages)
        if total_chars > cfg.max_total_message_chars:
            raise ConfigurationError("Message content too large.")

        outcome = await client.complete(
            req.provider_messages(),
            req.persona,
            req.language,
            max_retries=req.max_retries,
            session_context=req.session_context,
        )
        _observe("/v1/completions", 200, started_at)
        return make_completion_response(outcome)

    @app.post("/v1/translate", response_model=TranslateResponse)
    async def translate(req: TranslateRequest):
        started_at = time.monotonic()
        if len(req.text) > cfg.max_total_message_chars:
            raise ConfigurationError("Text too large.")
        translation = await client.translate(req.text, req.target_language)
        _observe("/v1/translate", 200, started_at)
        return TranslateResponse(translation=translation)

    @app.get("/v1/health-tips")
    async def health_tips(type: str = "general", language: str = "en"):
        started_at = time.monotonic()
        tip: HealthTip = await tips.daily_tip(type, language)
        _observe("/v1/health-tips", 200, started_at)
        return tip.model_dump(by_alias=True, exclude_none=True)

    return app


def main() -> None:  # pragma: no cover
    try:
        import uvicorn
    except ImportError as e:
        raise RuntimeError('Install the "server" extra: pip install -e ".[server]"') from e

    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))
    uvicorn.run("arogya_sahayak.server:create_app", host=host, port=port, factory=True)


if __name__ == "__main__":  # pragma: no cover
    main()
