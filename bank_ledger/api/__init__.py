"""
Bank Ledger API Application Factory
"""

import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from .. import __description__, __version__
from ..config import LedgerConfig, get_config
from ..errors import LedgerError
from ..logging_config import setup_logging
from ..storage import StorageInterface, create_storage
from .accounts import router as accounts_router
from .dependencies import LedgerSystem


logger = logging.getLogger(__name__)


def create_app(
    config: Optional[LedgerConfig] = None,
    storage: Optional[StorageInterface] = None
) -> FastAPI:
    """
    Create and configure the FastAPI application

    Args:
        config: Settings to use, the global configuration when omitted
        storage: Storage backend to use, built from config.database_url when omitted
    """
    config = config or get_config()
    setup_logging(config.log_level, fmt=config.log_format)

    if storage is None:
        storage = create_storage(config.database_url)

    app = FastAPI(
        title=__description__,
        description="Per-user budget accounts with embedded transactions",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )
    app.state.system = LedgerSystem(storage, config)

    # Only loopback origins may call the API from a browser
    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=config.cors_origin_regex,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.debug("Rejected request body for %s: %s", request.url.path, exc.errors())
        return JSONResponse(status_code=400, content={"error": "Missing parameters"})

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        logger.info("Closing storage")
        app.state.system.close()

    # Include routers
    app.include_router(accounts_router, prefix=f"{config.api_prefix}/accounts", tags=["Accounts"])

    # Server info endpoint, answered with and without the trailing slash
    async def get_server_info():
        """Get server infos"""
        return f"{__description__} v{__version__}"

    app.get(f"{config.api_prefix}/", response_class=PlainTextResponse)(get_server_info)
    if config.api_prefix:
        app.get(config.api_prefix, response_class=PlainTextResponse,
                include_in_schema=False)(get_server_info)

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "bank_ledger_api",
            "version": __version__
        }

    logger.info("API initialized with prefix %s", config.api_prefix)
    return app


def run_server(host: str = "0.0.0.0", port: int = 5000, debug: bool = False):
    """Run the FastAPI server"""
    uvicorn.run(
        "bank_ledger.api:create_app",
        factory=True,
        host=host,
        port=port,
        reload=debug,
        log_level="info"
    )
