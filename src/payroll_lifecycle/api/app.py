"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from payroll_lifecycle import __version__
from payroll_lifecycle.api.routes import (
    approvals_router,
    health_router,
    paystubs_router,
    periods_router,
    records_router,
)
from payroll_lifecycle.config import configure_logging
from payroll_lifecycle.database import dispose_db, init_db
from payroll_lifecycle.errors import ErrorKind, PayrollError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    configure_logging()
    init_db()
    logger.info("Payroll lifecycle API started")
    yield
    await dispose_db()


def _error_response(status_code: int, message: str, code: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, "code": code},
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Payroll Lifecycle API",
        description="Payroll periods, department approvals and paystub export",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(PayrollError)
    async def payroll_error_handler(request: Request, exc: PayrollError) -> JSONResponse:
        """Render domain errors in the response envelope."""
        if exc.http_status >= 500:
            logger.error("Payroll operation failed: %s", exc.message, extra=exc.context)
        else:
            logger.warning(
                "Payroll request rejected: %s",
                exc.message,
                extra={"code": exc.kind.value, "path": request.url.path},
            )
        return _error_response(exc.http_status, exc.message, exc.kind.value)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle malformed request bodies and parameters."""
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(p) for p in first.get("loc", ()))
        message = f"{location}: {first.get('msg', 'invalid request')}" if location else "Invalid request"
        return _error_response(
            status.HTTP_422_UNPROCESSABLE_ENTITY, message, ErrorKind.VALIDATION.value
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error", extra={"path": request.url.path})
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "An unexpected error occurred",
            ErrorKind.INTERNAL.value,
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(periods_router, prefix="/api/v1")
    app.include_router(records_router, prefix="/api/v1")
    app.include_router(approvals_router, prefix="/api/v1")
    app.include_router(paystubs_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
