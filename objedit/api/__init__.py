"""FastAPI application exposing the objects persistence protocol."""

from objedit.api.app import create_app

__all__ = ["create_app"]
