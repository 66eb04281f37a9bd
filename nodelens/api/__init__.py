"""REST API: webhook receiver, manual trigger and health check."""

from nodelens.api.app import create_app

__all__ = ["create_app"]
