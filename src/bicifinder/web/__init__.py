"""HTTP API for bicifinder."""

from .main import create_app

__all__ = ["create_app"]
