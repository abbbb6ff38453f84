"""API module for the health reminder service."""

from src.api.app import app

__all__ = ["app"]
