"""Middleware registration."""

from fastapi import FastAPI

from dancehub.config import Settings
from dancehub.middleware.error_handler import setup_error_handlers
from dancehub.middleware.logging import setup_logging
from dancehub.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Configure logging, register error handlers, and add request-id propagation."""
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(RequestIdMiddleware)
