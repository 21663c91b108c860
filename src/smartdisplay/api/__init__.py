"""HTTP and WebSocket surface"""

from .app import init_app

__all__ = ["init_app"]
