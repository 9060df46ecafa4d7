"""HTTP and WebSocket observer API."""

from docgate.api.app import create_app

__all__ = ["create_app"]
