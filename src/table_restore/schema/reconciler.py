"""Column-family reconciliation using set operations.

Compares the family set of a live table against the family set stored in a
backup image and applies the difference through the admin client.

``diff_families()`` and ``apply_change()`` are pure logic -- no I/O.
``diff_and_apply()`` issues the ``modify_table`` RPC and blocks until the
table is available again.

Families are matched by name.  A family present on both sides is left
untouched even when its attributes differ: attribute-only drift is not
reconciled.

Usage:
    from table_restore.schema.reconciler import diff_and_apply

    live = await admin.get_table_schema(target)
    changed = await diff_and_apply(live, backup_schema.with_table(target), admin)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from table_restore.availability import wait_table_available
from table_restore.config.models import (
    DEFAULT_POLL_INTERVAL_MS,
    DEFAULT_TABLE_AVAILABILITY_TIMEOUT_MS,
)
from table_restore.errors import wrap_transport
from table_restore.schema.models import SchemaChange, TableSchema

if TYPE_CHECKING:
    from table_restore.collaborators.base import AdminClient

logger = logging.getLogger(__name__)


def diff_families(live: TableSchema, backup: TableSchema) -> SchemaChange:
    """Compute the families to add to and remove from ``live``.

    - Added: families in *backup* whose name is absent from *live*
    - Removed: family names in *live* absent from *backup*

    Args:
        live: Descriptor of the table currently in the cluster.
        backup: Descriptor stored in the backup image.

    Returns:
        ``SchemaChange``; applying it to *live* yields exactly the family
        names of *backup*.

    Examples:
        >>> from table_restore.schema.models import ColumnFamily, TableName
        >>> t = TableName(qualifier="t1")
        >>> live = TableSchema(table=t, families=(ColumnFamily(name="a"),))
        >>> backup = TableSchema(table=t, families=(ColumnFamily(name="b"),))
        >>> change = diff_families(live, backup)
        >>> [f.name for f in change.added], change.removed
        (['b'], ('a',))
    """
    live_names: set[str] = set(live.family_names)
    backup_names: set[str] = set(backup.family_names)

    added = tuple(f for f in backup.families if f.name not in live_names)
    removed = tuple(name for name in live.family_names if name not in backup_names)

    return SchemaChange(added=added, removed=removed)


def apply_change(live: TableSchema, change: SchemaChange) -> TableSchema:
    """Return a new schema with ``change`` applied to ``live``.

    Kept families retain their order; added families are appended.
    """
    removed: set[str] = set(change.removed)
    kept = tuple(f for f in live.families if f.name not in removed)
    return live.with_families(kept + change.added)


async def diff_and_apply(
    live: TableSchema,
    backup: TableSchema,
    admin: AdminClient,
    timeout_ms: int = DEFAULT_TABLE_AVAILABILITY_TIMEOUT_MS,
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
) -> bool:
    """Reconcile the live table's families with the backup's.

    Args:
        live: Live descriptor of the target table.
        backup: Backup descriptor, already bound to the target table name.
        admin: Admin client used for ``modify_table``.
        timeout_ms: Bound for the post-modify availability wait.
        poll_interval_ms: Interval between availability checks.

    Returns:
        True if the table was modified, False if no RPC was needed.

    Raises:
        TransportError: If ``modify_table`` fails.
        TableAvailabilityTimeout: If the table does not come back in time.
    """
    change = diff_families(live, backup)
    if not change.has_changes:
        return False

    new_schema = apply_change(live, change)
    with wrap_transport(f"modify table {live.table}"):
        await admin.modify_table(new_schema)
    await wait_table_available(
        admin,
        live.table,
        timeout_ms=timeout_ms,
        interval_ms=poll_interval_ms,
    )
    logger.info(f"Changed {live.table}: {change.format_report()}")
    return True
