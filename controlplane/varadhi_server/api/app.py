"""
FastAPI application factory for the Varadhi admin API.

This module creates the FastAPI app with:
- ServerContext lifecycle management
- CORS configuration
- Domain error -> HTTP status mapping
- Admin routes under /v1
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .._version import __version__
from ..config import ServerConfig
from ..context import ServerContext
from ..errors import ErrorKind, VaradhiError
from .routes import router
from .settings import Settings

ERROR_STATUS = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.DUPLICATE: 409,
    ErrorKind.INVALID_OPERATION: 409,
    ErrorKind.INVALID_RESOURCE: 400,
    ErrorKind.META_STORE: 500,
}


def status_for(error: VaradhiError) -> int:
    """HTTP status for a domain error; unknown kinds are server errors."""
    return ERROR_STATUS.get(error.kind, 500)


async def varadhi_error_handler(request: Request, exc: VaradhiError) -> JSONResponse:
    return JSONResponse(status_code=status_for(exc), content={"reason": exc.message})


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"reason": exc.detail},
        headers=getattr(exc, "headers", None),
    )


def create_app(
    context: ServerContext | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        context: Component graph to serve; built from environment if omitted
        settings: HTTP settings; loaded from environment if omitted
    """
    settings = settings or Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Manage ServerContext lifecycle."""
        server_context = context or ServerContext(ServerConfig.from_env())
        await server_context.start()
        app.state.context = server_context
        app.state.settings = settings

        yield

        server_context.bring_out_of_rotation()
        await server_context.stop()

    app = FastAPI(
        title="Varadhi Control Plane",
        description="Administrative API for orgs, teams, projects, topics and IAM policies.",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(VaradhiError, varadhi_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)

    app.include_router(router, prefix="/v1")

    # Health endpoint at root
    @app.get("/health")
    async def health():
        return {"status": "healthy", "service": "varadhi-controlplane"}

    return app
