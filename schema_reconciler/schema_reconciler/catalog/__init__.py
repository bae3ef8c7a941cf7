"""Live catalog inspection."""

from schema_reconciler.catalog.inspector import CatalogInspector
from schema_reconciler.catalog.types import TypeInfo, classify_type, kinds_compatible

__all__ = ["CatalogInspector", "TypeInfo", "classify_type", "kinds_compatible"]
