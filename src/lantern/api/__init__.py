"""Lantern HTTP API (FastAPI)."""

from lantern.api.app import create_app

__all__ = ["create_app"]
