"""API router modules for the schema reconciler host."""

from __future__ import annotations

from api.routers import health

__all__ = ["health"]
