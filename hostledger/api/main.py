"""FastAPI application factory."""
from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from hostledger import __version__
from hostledger.api.routers import admin, auth, bookings, listings, subscriptions, wallet
from hostledger.core.database import init_database
from hostledger.core.logging import setup_logging
from hostledger.core.observability import configure_observability
from hostledger.core.rate_limiter import setup_rate_limiting
from hostledger.core.settings import get_settings
from hostledger import tasks  # noqa: F401 - ensure tasks registered


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging()
    init_database()

    app = FastAPI(title=settings.app_name, version=__version__)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    setup_rate_limiting(app)
    configure_observability(app)

    app.include_router(auth.router)
    app.include_router(subscriptions.router)
    app.include_router(listings.router)
    app.include_router(listings.drafts_router)
    app.include_router(bookings.router)
    app.include_router(wallet.router)
    app.include_router(admin.router)

    @app.get("/healthz", tags=["monitoring"])
    def healthcheck() -> dict[str, str]:  # pragma: no cover - simple endpoint
        return {"status": "ok"}

    return app


__all__ = ["create_app"]
