"""Workshop Core: Main FastAPI Application.

Admin approval of customer appointments and the hand-off of approved
appointments to the shop floor as work orders.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api import api_router
from .core import close_db, get_settings, init_db
from .schemas import ErrorResponse
from .services import build_collaborators

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    logger.info(f"Starting {settings.app_name} v{settings.app_version} ({settings.environment})")

    # Startup - skip init_db in production (tables are managed by migrations)
    if settings.environment != "production":
        await init_db()

    app.state.collaborators = build_collaborators(settings)
    yield
    # Shutdown
    await close_db()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    ## Workshop Core API

    Appointment approval and work-order fulfillment for the shop.

    ### Key Features

    - **Approval Queue**: Pending appointments, paginated, soonest first.
    - **Safe Decisions**: Each appointment is decided exactly once, even when two admins click at the same time.
    - **Work Orders**: Approved appointments become work orders, held automatically when parts are short.
    - **Alerts & Stats**: Urgent, overdue, and upcoming signals plus approval analytics.

    ### Authentication

    Requests arrive through the gateway, which sets `X-User-Id` and
    `X-User-Role`. Every route below requires the `admin` or `owner` role.
    """,
    openapi_url=f"{settings.api_prefix}/openapi.json",
    docs_url=f"{settings.api_prefix}/docs",
    redoc_url=f"{settings.api_prefix}/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    max_age=86400,
)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unhandled exception on {request.method} {request.url.path}")

    message = "An unexpected error occurred"
    if settings.debug or settings.environment != "production":
        message = f"{message}: {str(exc)[:200]}"

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="internal_error",
            message=message,
            details=[],
        ).model_dump(),
    )


# Health check endpoint
@app.get("/health", tags=["health"])
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": settings.app_version}


# Include API routes
app.include_router(api_router, prefix=settings.api_prefix)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "workshop_core.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
