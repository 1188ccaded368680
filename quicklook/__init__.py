"""Application factory for the quicklook inventory ledger.

Wires configuration, the database tables, middlewares, routers and the error
envelope handlers into one FastAPI instance.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from .core.errors import register_exception_handlers
from .core.settings import settings
from .db.session import Base, engine
from .deps.ledger import get_ledger
from .middlewares import install_middlewares

# Importing the models registers them with the metadata.
from .models import inventory as _inventory  # noqa: F401


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Only close a store that was actually built during this run.
    if get_ledger.cache_info().currsize:
        aclose = getattr(get_ledger().store, "aclose", None)
        if aclose is not None:
            await aclose()


def create_app() -> FastAPI:
    if settings.STORE_BACKEND == "sql":
        Base.metadata.create_all(bind=engine)

    app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)
    install_middlewares(app, settings.ALLOWED_ORIGINS)
    register_exception_handlers(app)

    from .routers import api_auth, api_records

    app.include_router(api_auth.router)
    app.include_router(api_records.router)
    return app


app = create_app()

__all__ = ["app", "create_app"]
