from __future__ import annotations

from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from kuber.config import AppSettings, load_settings
from kuber.llm.envelope import CRITICAL_ERROR_ENVELOPE, ResponseEnvelope, recover_envelope
from kuber.llm.providers.gemini import GeminiProvider
from kuber.llm.types import ChatProvider, ChatRequest
from kuber.telemetry.logging import configure_logging, get_logger
from kuber.telemetry.tracing import configure_tracing, get_tracer, shutdown_tracing

logger = get_logger(__name__)
tracer = get_tracer(__name__)
router = APIRouter()


def _critical_error() -> JSONResponse:
    return JSONResponse(CRITICAL_ERROR_ENVELOPE.model_dump(), status_code=500)


@router.post("/api/chat", response_model=ResponseEnvelope)
async def chat_endpoint(request: Request, body: ChatRequest) -> ResponseEnvelope | JSONResponse:
    provider: ChatProvider | None = getattr(request.app.state, "provider", None)
    if provider is None:
        logger.error("chat.provider.missing")
        return _critical_error()
    try:
        with tracer.start_as_current_span("chat.generate") as span:
            span.set_attribute("chat.history_len", len(body.history))
            raw = await provider.generate(body.history, body.message)
    except Exception as exc:
        logger.error("chat.generate.failed", provider=provider.name, error=str(exc))
        return _critical_error()
    return recover_envelope(raw)


@router.get("/health")
async def health(request: Request) -> dict[str, object]:
    provider = getattr(request.app.state, "provider", None)
    return {"status": "ok", "provider": provider.name if provider else None}


async def _validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
    logger.warning("chat.request.invalid", errors=exc.errors())
    return _critical_error()


def build_provider(settings: AppSettings) -> ChatProvider | None:
    if not settings.llm.gemini_api_key:
        logger.warning("chat.provider.unconfigured", reason="GEMINI_API_KEY missing")
        return None
    return GeminiProvider(
        settings.llm.gemini_api_key,
        model=settings.llm.gemini_model,
        base_url=settings.llm.gemini_base_url,
        temperature=settings.llm.temperature,
        timeout=settings.llm.timeout_seconds,
    )


def create_app(settings: AppSettings | None = None, provider: ChatProvider | None = None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.telemetry.log_level, settings.telemetry.json_logs)
    configure_tracing("kuber-chat-backend", settings.telemetry.otlp_endpoint)

    app = FastAPI(title="Kuber Chat Backend")
    app.state.provider = provider if provider is not None else build_provider(settings)
    app.include_router(router)
    app.add_exception_handler(RequestValidationError, _validation_error)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.ui.origin],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("shutdown")
    async def shutdown_event() -> None:
        closer = getattr(app.state.provider, "aclose", None)
        if closer is not None:
            await closer()
        shutdown_tracing()

    return app


def run(host: str = "0.0.0.0", port: int = 8000) -> None:
    import uvicorn

    uvicorn.run(create_app(), host=host, port=port)


__all__ = ["create_app", "build_provider", "run"]
