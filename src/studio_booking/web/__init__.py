"""Web API for studio-booking."""

from .app import create_app

__all__ = ["create_app"]
