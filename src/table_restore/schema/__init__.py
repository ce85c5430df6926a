"""Table identity, schema descriptors, and column-family reconciliation.

Usage:
    from table_restore.schema import TableName, TableSchema, ColumnFamily
    from table_restore.schema import diff_families, diff_and_apply
"""

from table_restore.schema.models import (
    ColumnFamily,
    SchemaChange,
    TableName,
    TableSchema,
)
from table_restore.schema.reconciler import apply_change, diff_and_apply, diff_families

__all__ = [
    "TableName",
    "ColumnFamily",
    "TableSchema",
    "SchemaChange",
    "diff_families",
    "apply_change",
    "diff_and_apply",
]
