"""Application factory for the ShopTrack API.

``create_app`` wires configuration, database start-up, middleware, error
handlers and the API routers together. Nothing is created at import time so
tests can build an app against their own database.
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import settings
from .core.errors import http_exception_handler, unhandled_exception_handler, validation_exception_handler
from .middlewares import RequestIdMiddleware


def create_app(*, init_database: bool = True) -> FastAPI:
    app = FastAPI(title=settings.APP_NAME)

    # ---------- DB init/migrations ----------
    # ``create_all`` covers brand-new databases, ``run_migrations`` upgrades
    # files written by earlier versions.
    if init_database:
        from .db.migrate import init_db
        from .db.session import engine

        init_db(engine)

    # ---------- Middleware ----------
    if settings.ALLOWED_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.ALLOWED_ORIGINS,
            allow_methods=["*"],
            allow_headers=["*"],
            expose_headers=["X-Request-ID", "X-Response-Time"],
        )
    app.add_middleware(RequestIdMiddleware)

    # ---------- Exception handling ----------
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # ---------- Routers ----------
    from .routers import expenses, partners, products, reports, transactions

    app.include_router(products.router)
    app.include_router(partners.router)
    app.include_router(transactions.router)
    app.include_router(expenses.router)
    app.include_router(reports.router)

    @app.get("/health", tags=["service"])
    async def health() -> dict[str, bool]:
        return {"ok": True}

    return app


__all__ = ["create_app"]
