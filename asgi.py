"""
asgi.py -- Application assembly for Conduit.

Run with:  uvicorn asgi:app --reload

The process server imports `app` from here rather than from api.main so the
deployment entry point stays stable if the API package is reorganized.
"""

from api.main import app

__all__ = ["app"]
