"""
Bank Ledger API Application Factory
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .accounts import router as accounts_router
from .auth import BankingSystem
from .users import router as users_router
from ..config import get_config
from ..errors import BankError, ErrorKind
from ..logging_config import get_logger, setup_logging
from ..storage import StorageError


logger = get_logger("bank_ledger.api")

STATUS_BY_KIND = {
    ErrorKind.UNAUTHENTICATED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.VALIDATION_FAILED: 422,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.INVALID_STATE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.RESOURCE_EXHAUSTED: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def create_app(system: Optional[BankingSystem] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Without ``system`` the banking system is built from configuration on
    startup. Either way it is closed on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        banking_system = system
        if banking_system is None:
            config = get_config()
            setup_logging(config.log_level, config.log_format, config.log_file)
            banking_system = BankingSystem(config)
        app.state.banking_system = banking_system
        logger.info("Banking system started")
        try:
            yield
        finally:
            banking_system.close()
            logger.info("Banking system stopped")

    app = FastAPI(
        title="Bank Ledger API",
        description="Account creation, funding and transaction history",
        version="1.0.0",
        lifespan=lifespan
    )

    @app.exception_handler(BankError)
    async def handle_bank_error(request: Request, exc: BankError):
        if exc.kind in (ErrorKind.INTERNAL, ErrorKind.RESOURCE_EXHAUSTED):
            logger.error(f"{exc.kind.value}: {exc.message}", exc_info=exc)
        return JSONResponse(status_code=STATUS_BY_KIND[exc.kind], content=exc.to_dict())

    @app.exception_handler(StorageError)
    async def handle_storage_error(request: Request, exc: StorageError):
        logger.error("Unexpected storage failure", exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": ErrorKind.INTERNAL.value, "message": "Internal server error"}
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        messages = []
        for error in exc.errors():
            location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
            messages.append(f"{location}: {error.get('msg')}" if location else error.get("msg", ""))
        return JSONResponse(
            status_code=422,
            content={"error": ErrorKind.VALIDATION_FAILED.value, "message": "; ".join(messages)}
        )

    app.include_router(users_router, prefix="/auth", tags=["Auth"])
    app.include_router(accounts_router, prefix="/accounts", tags=["Accounts"])

    @app.get("/health")
    def health_check():
        """Health check endpoint"""
        return {"status": "healthy", "service": "bank_ledger_api", "version": "1.0.0"}

    return app


app = create_app()
