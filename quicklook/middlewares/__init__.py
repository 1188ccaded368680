"""HTTP middlewares for the ledger API."""

from __future__ import annotations

from typing import Sequence

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .request_id import RequestIdMiddleware, principal_ctx_var, request_id_ctx_var
from .security_headers import SecurityHeadersMiddleware


def install_middlewares(app: FastAPI, allowed_origins: Sequence[str] = ()) -> None:
    """Add the ledger's middleware stack; CORS only when origins are configured.

    Starlette runs the last added middleware first, so request ids are bound
    before the security headers are written.
    """

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIdMiddleware)
    if allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(allowed_origins),
            allow_methods=["*"],
            allow_headers=["*"],
        )


__all__ = [
    "RequestIdMiddleware",
    "SecurityHeadersMiddleware",
    "install_middlewares",
    "principal_ctx_var",
    "request_id_ctx_var",
]
