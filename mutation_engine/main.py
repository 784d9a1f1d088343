"""
Adaptive Mutation Engine API: editing, file-intent and responsive endpoints
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from config import settings, get_redis_client, validate_required_config
from logging_config import logger
from routers import adaptive_chat, responsive

VERSION = "1.0.0"

limiter = Limiter(key_func=get_remote_address)


def _provider_key_configured() -> bool:
    if settings.LLM_PROVIDER == "openrouter":
        return bool(settings.OPENROUTER_API_KEY)
    return bool(settings.ANTHROPIC_API_KEY)


def _dependency_checks() -> Dict[str, Dict[str, Any]]:
    """Provider key and Redis status; only the provider is critical"""
    configured = _provider_key_configured()
    checks = {
        "llm_provider": {
            "provider": settings.LLM_PROVIDER,
            "configured": configured,
            "status": "ok" if configured else "missing",
        }
    }

    redis_client = get_redis_client()
    if redis_client is None:
        checks["redis"] = {"status": "disabled"}
    else:
        try:
            redis_client.ping()
            checks["redis"] = {"status": "ok"}
        except Exception as e:
            checks["redis"] = {"status": "error", "error": str(e)}
    return checks


@asynccontextmanager
async def lifespan(app: FastAPI):
    validate_required_config()

    if settings.SENTRY_DSN:
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            environment=settings.SENTRY_ENVIRONMENT,
            traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
            integrations=[FastApiIntegration()],
        )
        logger.info("Sentry initialized")

    if get_redis_client() is None:
        logger.warning("Redis not available, conversations kept in memory")
    if not _provider_key_configured():
        logger.error(f"API key for provider '{settings.LLM_PROVIDER}' not configured!")

    logger.info(
        "Adaptive Mutation Engine started",
        environment=settings.ENVIRONMENT,
        llm_provider=settings.LLM_PROVIDER,
        default_model=settings.DEFAULT_MODEL,
        intent_model=settings.INTENT_MODEL,
    )
    yield
    logger.info("Shutting down Adaptive Mutation Engine")


app = FastAPI(
    title="Adaptive Mutation Engine",
    description="Natural-language editing of HTML/CSS/JS pages through an adaptive LLM pipeline",
    version=VERSION,
    lifespan=lifespan
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Wildcard origins cannot be combined with credentials
_open_cors = settings.ENVIRONMENT == "development" or settings.DEBUG
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if _open_cors else [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()],
    allow_credentials=not _open_cors,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(adaptive_chat.router, prefix="/api", tags=["Adaptive Editing"])
app.include_router(responsive.router, prefix="/api", tags=["Responsive"])


@app.get("/")
async def root():
    return {
        "service": "Adaptive Mutation Engine",
        "version": VERSION,
        "status": "running",
        "llm_provider": settings.LLM_PROVIDER,
    }


@app.get("/health")
async def health_check():
    checks = _dependency_checks()
    return {
        "status": "healthy" if checks["llm_provider"]["status"] == "ok" else "degraded",
        "version": VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": checks,
    }


@app.get("/readiness")
async def readiness_check():
    """503 until a provider key is configured"""
    checks = _dependency_checks()
    if checks["llm_provider"]["status"] == "ok":
        return {"status": "ready"}
    return JSONResponse(status_code=503, content={"status": "not_ready", "checks": checks})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception", error=str(exc), path=request.url.path, exc_info=True)
    if settings.SENTRY_DSN:
        sentry_sdk.capture_exception(exc)

    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": str(exc) if settings.DEBUG else None
        }
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8001, reload=_open_cors)
