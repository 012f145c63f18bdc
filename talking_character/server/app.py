"""
FastAPI Application - Main server setup.

This module creates and configures the gateway application: CORS,
the per-client request ceiling, the body-size cap, security headers
and the uniform {"error": "..."} failure bodies.
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from .. import __version__
from ..config import Settings, load_config
from ..errors import PayloadTooLargeError, RateLimitError, TalkingCharacterError
from .rate_limit import SlidingWindowRateLimiter
from .routes import router
from .vendors import VendorClients

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Too many requests. Please wait a minute before asking another question."
BODY_TOO_LARGE_MESSAGE = "Request body too large"
INVALID_BODY_MESSAGE = "Invalid request body"
INTERNAL_ERROR_MESSAGE = "Internal server error"

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
}


def error_response(status_code: int, message: str, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


def client_key(request: Request) -> str:
    """Address used to count requests against the rate limit."""
    return request.client.host if request.client else "unknown"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    - Startup: print the banner (vendor clients are created lazily)
    - Shutdown: close the vendor HTTP clients
    """
    settings: Settings = app.state.settings

    print("🚀 Starting Talking Character gateway...")
    print(f"   Character: {settings.character.name}")
    print(f"   Chat model: {settings.chat.model}")
    print(f"   Rate limit: {settings.server.rate_limit_requests} requests / "
          f"{settings.server.rate_limit_window:.0f}s per client")
    if not settings.chat.api_key:
        print("   ⚠️ OPENAI_API_KEY is not set")
    print()

    yield

    print("\n👋 Shutting down server...")
    await app.state.vendors.close()


def _install_guards(app: FastAPI, settings: Settings):
    """Body-size cap, rate limit and security headers."""
    limiter: SlidingWindowRateLimiter = app.state.rate_limiter
    max_body = settings.server.max_body_bytes

    @app.middleware("http")
    async def guard(request: Request, call_next):
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit():
            body_size = int(content_length)
        elif "transfer-encoding" in request.headers:
            # Chunked upload: count what actually arrives (body() is replayed downstream)
            body_size = len(await request.body())
        else:
            body_size = 0

        if body_size > max_body:
            logger.warning(f"Rejected {body_size}-byte body from {client_key(request)}")
            response = error_response(PayloadTooLargeError.status_code, BODY_TOO_LARGE_MESSAGE)
            response.headers.update(SECURITY_HEADERS)
            return response

        status = None
        if request.url.path.startswith("/api/") and request.method != "OPTIONS":
            status = limiter.hit(client_key(request))
            if not status.allowed:
                logger.warning(f"⏳ Rate limit hit for {client_key(request)}")
                response = error_response(RateLimitError.status_code, RATE_LIMIT_MESSAGE, status.headers)
                response.headers.update(SECURITY_HEADERS)
                return response

        response = await call_next(request)
        if status is not None:
            response.headers.update(status.headers)
        response.headers.update(SECURITY_HEADERS)
        return response


def _install_error_handlers(app: FastAPI):
    @app.exception_handler(TalkingCharacterError)
    async def handle_app_error(request: Request, exc: TalkingCharacterError):
        if exc.status_code >= 500:
            logger.error(f"❌ {request.url.path}: {exc.message} ({exc.status_code})")
        else:
            logger.warning(f"{request.url.path}: {exc.message} ({exc.status_code})")
        return error_response(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def handle_invalid_body(request: Request, exc: RequestValidationError):
        logger.warning(f"{request.url.path}: invalid body {exc.errors()}")
        return error_response(400, INVALID_BODY_MESSAGE)

    @app.exception_handler(httpx.HTTPError)
    async def handle_transport_error(request: Request, exc: httpx.HTTPError):
        logger.error(f"❌ Vendor request failed on {request.url.path}: {exc!r}")
        return error_response(500, INTERNAL_ERROR_MESSAGE)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception(f"❌ Unhandled error on {request.url.path}")
        return error_response(500, INTERNAL_ERROR_MESSAGE)


def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Frozen settings (loaded from config.yaml and .env if omitted)
        transport: Optional httpx transport for every vendor client

    Returns:
        Configured FastAPI instance
    """
    settings = settings or load_config()
    server = settings.server

    app = FastAPI(
        title=f"{settings.character.name} - Talking Character Gateway",
        description="Relays chat, speech and avatar requests to the AI vendors",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.vendors = VendorClients(settings, transport=transport)
    app.state.rate_limiter = SlidingWindowRateLimiter(
        max_requests=server.rate_limit_requests,
        window_seconds=server.rate_limit_window,
    )

    _install_guards(app, settings)
    _install_error_handlers(app)

    # CORS is added last so it wraps the guard and preflights are answered first
    if server.allow_all_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origin_regex=".*",
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    else:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(server.allowed_origins),
            allow_origin_regex=server.allowed_origin_regex or None,
            allow_credentials=True,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["*"],
            expose_headers=["RateLimit-Limit", "RateLimit-Remaining", "RateLimit-Reset"],
        )

    app.include_router(router, prefix="/api")

    if server.static_dir:
        static_path = Path(server.static_dir)
        if static_path.exists():
            app.mount("/", StaticFiles(directory=str(static_path), html=True), name="frontend")
        else:
            logger.warning(f"Static directory not found: {static_path}")

    return app


# Create app instance for uvicorn
app = create_app()
