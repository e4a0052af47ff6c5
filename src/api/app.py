"""Storefront FastAPI application.

Usage:
    python src/main.py
    uvicorn api.app:app --app-dir src --port 5000
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.auth import GatewayHeaderIdentityProvider, IdentityProvider
from api.routes import (
    admin_router,
    health_router,
    me_router,
    order_router,
    product_router,
)
from db.database import close_pool
from utils.config import Settings, load_settings
from utils.errors import InternalError, StorefrontError
from utils.logger import get_logger

_logger = get_logger(__name__)


def _first_error(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    err = errors[0]
    where = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
    return f"{where}: {err.get('msg')}" if where else str(err.get("msg"))


def register_exception_handlers(app: FastAPI) -> None:
    """Every failure leaves as {"error": message}."""

    @app.exception_handler(StorefrontError)
    async def storefront_error(request: Request, exc: StorefrontError):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": _first_error(exc)})

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        _logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(status_code=500, content={"error": InternalError().message})


@asynccontextmanager
async def lifespan(app: FastAPI):
    # the pool opens lazily on the first query
    yield
    await close_pool()


def create_app(
    settings: Optional[Settings] = None,
    identity_provider: Optional[IdentityProvider] = None,
) -> FastAPI:
    settings = settings or load_settings()
    app = FastAPI(
        title="Storefront API",
        description="Catalog, cash-on-delivery checkout and order administration",
        lifespan=lifespan,
    )
    app.state.identity_provider = identity_provider or GatewayHeaderIdentityProvider()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.client_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
    register_exception_handlers(app)

    app.include_router(product_router)
    app.include_router(order_router)
    app.include_router(me_router)
    app.include_router(admin_router)
    app.include_router(health_router)
    return app


app = create_app()
