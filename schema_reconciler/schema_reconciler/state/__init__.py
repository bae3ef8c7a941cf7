"""Database engines and connection scoping."""

from schema_reconciler.state.database import build_ssl_context, catalog_connection, get_engine
from schema_reconciler.state.sqlite_adapter import get_local_engine

__all__ = ["build_ssl_context", "catalog_connection", "get_engine", "get_local_engine"]
