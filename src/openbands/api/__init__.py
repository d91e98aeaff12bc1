"""REST API."""

from openbands.api.app import create_app

__all__ = ["create_app"]
