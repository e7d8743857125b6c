"""
Table Banking API Application Factory
"""

from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .auth import LendingSystem, get_lending_system
from .groups import router as groups_router
from .loans import router as loans_router
from .payments import router as payments_router
from .notifications import router as notifications_router
from ..errors import (
    AuthorizationError, IllegalTransitionError, LendingError, PartialFailureError,
    ReferentialError, ValidationError
)
from ..logging_config import get_logger


logger = get_logger("table_banking.api")

# Most specific first; anything else derived from LendingError is a 400
ERROR_STATUS_CODES = (
    (ValidationError, 400),
    (AuthorizationError, 403),
    (ReferentialError, 404),
    (IllegalTransitionError, 409),
    (PartialFailureError, 500),
)


def status_code_for(error: LendingError) -> int:
    for error_type, code in ERROR_STATUS_CODES:
        if isinstance(error, error_type):
            return code
    return 400


def create_app(system: Optional[LendingSystem] = None) -> FastAPI:
    """
    Create and configure the FastAPI application

    Args:
        system: Lending system to serve; the process-wide one is built
            lazily from configuration when omitted
    """
    app = FastAPI(
        title="Table Banking Loan API",
        description="Group lending: loan requests, approvals, repayment schedules and payments",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc"
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if system is not None:
        app.dependency_overrides[get_lending_system] = lambda: system

    @app.exception_handler(LendingError)
    async def lending_error_handler(request: Request, exc: LendingError):
        code = status_code_for(exc)
        if code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=code,
            content={"error": type(exc).__name__, "detail": exc.message, "details": exc.details}
        )

    # Include routers
    app.include_router(groups_router, prefix="/groups", tags=["Groups"])
    app.include_router(loans_router, prefix="/loans", tags=["Loans"])
    app.include_router(payments_router, prefix="/payments", tags=["Payments"])
    app.include_router(notifications_router, prefix="/notifications", tags=["Notifications"])

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "table_banking_api",
            "version": "1.0.0"
        }

    return app
