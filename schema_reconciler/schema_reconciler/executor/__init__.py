"""DDL rendering and plan execution."""

from schema_reconciler.executor.ddl import DDLRenderer
from schema_reconciler.executor.duplicates import is_duplicate_object_error
from schema_reconciler.executor.plan_executor import PlanExecutor

__all__ = ["DDLRenderer", "PlanExecutor", "is_duplicate_object_error"]
