"""
LaTeX Test Generator - FastAPI application that asks Gemini for new variants of a math test.

Provides:
- Test generation (rate limiting → key rotation → retry → LaTeX normalization)
- Preview sanitization for in-browser LaTeX rendering
- Recent request log for debugging
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
import os

# Import lib modules
import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from api.generate import router as generate_router
from lib.config import Settings
from lib.database import close_db, init_db
from lib.errors import GenerationError, OriginNotAllowedError, UpstreamTransientError
from lib.generator import GenerationService
from lib.key_rotator import KeyRotator
from lib.logger import RequestLogger
from lib.providers import ProviderRouter
from lib.rate_limiter import PostgresWindow, RateLimiter
from lib.retry import RetryPolicy

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

SERVICE_NAME = "latex-test-generator"
VERSION = "1.0.0"


def build_generation_service(settings: Settings) -> GenerationService:
    """Wire the limiter, key pool, providers and retry policy from settings."""
    return GenerationService(
        rate_limiter=RateLimiter(
            max_requests=settings.max_requests_per_interval,
            interval_ms=settings.request_interval_ms,
        ),
        key_rotator=KeyRotator(settings.api_keys),
        router=ProviderRouter(model=settings.model, timeout=settings.request_timeout_s),
        policy=RetryPolicy(
            max_attempts=settings.max_retries,
            base_delay_ms=settings.retry_base_delay_ms,
        ),
        request_logger=RequestLogger(),
    )


def create_app(
    settings: Optional[Settings] = None,
    service: Optional[GenerationService] = None,
) -> FastAPI:
    """Build the FastAPI app. Tests pass their own settings and service."""
    settings = settings or Settings.from_env()
    service = service or build_generation_service(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Connect the shared rate-limit store when configured."""
        print("[Startup] Preparing generation service...")
        if not settings.api_keys:
            print("[Startup] Warning: no API keys set. Gemini requests will fail until you add one.")

        pool = await init_db(settings.rate_limit_database_url)
        if pool is not None:
            service.rate_limiter.shared = PostgresWindow(
                pool,
                max_requests=settings.max_requests_per_interval,
                interval_ms=settings.request_interval_ms,
            )
        print(
            f"[Startup] Ready! ({len(settings.api_keys)} key(s), "
            f"{service.rate_limiter.backend} rate limiting, "
            f"worst-case backoff {service.worst_case_backoff_ms()}ms)"
        )

        yield

        print("[Shutdown] Cleaning up...")
        await service.router.close_all()
        await close_db()

    app = FastAPI(
        title="LaTeX Test Generator",
        description="Generates new variants of LaTeX math tests with Gemini",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.generation_service = service

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins if settings.origin_check_enabled else ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Added after CORS so it runs first and also rejects disallowed preflights
    @app.middleware("http")
    async def enforce_allowed_origins(request: Request, call_next):
        if not settings.is_origin_allowed(request.headers.get("origin")):
            error = OriginNotAllowedError()
            return JSONResponse(status_code=error.status_code, content={"error": error.message})
        return await call_next(request)

    @app.exception_handler(GenerationError)
    async def handle_generation_error(request: Request, exc: GenerationError):
        content = {"error": exc.message}
        if exc.code:
            content["code"] = exc.code
        headers = None
        if isinstance(exc, UpstreamTransientError):
            headers = {"Retry-After": str(exc.retry_after_seconds)}
        return JSONResponse(status_code=exc.status_code, content=content, headers=headers)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        details = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        return JSONResponse(
            status_code=400,
            content={"error": f"Invalid request: {details}", "code": "invalid_request"},
        )

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "ok",
            "service": SERVICE_NAME,
            "version": VERSION,
        }

    @app.get("/logs")
    async def get_logs(limit: int = Query(default=100, ge=1, le=1000)):
        """Recent generation requests, most recent first."""
        return {"logs": service.request_logger.get_logs(limit)}

    app.include_router(generate_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.port)
