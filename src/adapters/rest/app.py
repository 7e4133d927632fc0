"""
FastAPI application: REST adapter for the agentic product search service.

Usage:
    python run_api.py

Or directly:
    uvicorn adapters.rest.app:app --host 0.0.0.0 --port 8000 --reload
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Ensure src/ is on sys.path when invoked via uvicorn directly
_src_dir = Path(__file__).resolve().parent.parent.parent
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

from infrastructure.config import Settings
from infrastructure.auth.identity import AUTH_REQUIRED_MESSAGE
from factory import ServiceFactory
from adapters.rest.dependencies import set_factory
from adapters.rest.routers import conversations, rate_limit, search
from domain.exceptions import (
    AuthenticationError,
    ConversationNotFoundError,
    InvalidRequestError,
    RateLimitedError,
)

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


def create_app(
    factory: Optional[ServiceFactory] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """Build the API. Tests pass a pre-wired factory; production reads the env."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initialize ServiceFactory on startup."""
        active = factory or ServiceFactory(
            settings or Settings.from_env(project_root=_src_dir.parent)
        )
        await active.initialize()
        set_factory(active)
        yield
        # No teardown needed: aiosqlite connections are per-operation

    app = FastAPI(
        title="Agentic Product Search",
        version=VERSION,
        description="LLM-driven product search streamed as server-sent events.",
        lifespan=lifespan,
    )

    origins = (factory.config if factory else settings or Settings.from_env()).cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_error_handlers(app)

    app.include_router(search.router)
    app.include_router(conversations.router)
    app.include_router(rate_limit.router)

    @app.get("/health", tags=["health"])
    async def health():
        return {"status": "ok", "version": VERSION}

    return app


def _register_error_handlers(app: FastAPI) -> None:
    """Map domain errors raised before streaming starts to JSON responses."""

    @app.exception_handler(AuthenticationError)
    async def _auth_required(request: Request, exc: AuthenticationError):
        return JSONResponse(status_code=401, content={
            "error": "Authentication required",
            "code": "auth_required",
            "message": AUTH_REQUIRED_MESSAGE,
        })

    @app.exception_handler(RateLimitedError)
    async def _rate_limited(request: Request, exc: RateLimitedError):
        decision = exc.decision
        return JSONResponse(status_code=429, content={
            "error": "Rate limit exceeded",
            "code": "rate_limited",
            "message": str(exc),
            "reason": decision.reason,
            "remaining": decision.remaining,
            "limit": decision.limit,
            "used": decision.used,
            "reset_at": decision.reset_at,
        })

    @app.exception_handler(InvalidRequestError)
    async def _invalid_request(request: Request, exc: InvalidRequestError):
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={
            "error": "Invalid request",
            "message": "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in exc.errors()
            ),
        })

    @app.exception_handler(ConversationNotFoundError)
    async def _not_found(request: Request, exc: ConversationNotFoundError):
        return JSONResponse(status_code=404, content={"error": str(exc)})

    @app.exception_handler(Exception)
    async def _internal_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})


app = create_app()
