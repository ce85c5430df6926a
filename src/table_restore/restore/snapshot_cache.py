"""Session-scoped cache of schemas read from snapshot manifests.

One ``SnapshotCache`` serves one restore session.  Entries are keyed by
backup id and table name, and are never invalidated.  Lookups and inserts
happen under one ``asyncio.Lock`` so concurrent restores of the same table
from the same image read its manifest once.
"""

import asyncio
from collections.abc import Awaitable, Callable

from table_restore.schema.models import TableName, TableSchema


class SnapshotCache:
    """(backup id, table name) -> schema resolved from the snapshot manifest.

    Example:
        cache = SnapshotCache()
        schema = await cache.get_or_load(
            backup_id, table, lambda: manifest.schema_for(root, backup_id, table)
        )
        assert (backup_id, table) in cache
    """

    def __init__(self) -> None:
        self._schemas: dict[tuple[str, TableName], TableSchema | None] = {}
        self._lock = asyncio.Lock()

    async def get_or_load(
        self,
        backup_id: str,
        table: TableName,
        loader: Callable[[], Awaitable[TableSchema | None]],
    ) -> TableSchema | None:
        """Return the cached schema, calling ``loader`` on first use.

        A None result is cached too: the manifest holds no descriptor.
        Exceptions from ``loader`` propagate and nothing is cached.
        """
        key = (backup_id, table)
        async with self._lock:
            if key not in self._schemas:
                self._schemas[key] = await loader()
            return self._schemas[key]

    def __contains__(self, key: object) -> bool:
        return key in self._schemas

    def __len__(self) -> int:
        return len(self._schemas)
