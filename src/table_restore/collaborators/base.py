"""Collaborator protocol definitions.

Defines the Protocols the restore orchestration consumes.  The cluster
admin client, distributed filesystem, data-file reader, manifest reader,
bulk-load executor and WAL replay service all live outside this library;
callers pass in objects that satisfy these Protocols.

All methods are ``async def`` -- the library is async-first.

Usage:
    from table_restore.collaborators.base import AdminClient

    async def ensure(admin: AdminClient, schema: TableSchema) -> None:
        if not await admin.table_exists(schema.table):
            await admin.create_table(schema)
"""

from typing import Any, Protocol

from pydantic import BaseModel

from table_restore.schema.models import TableName, TableSchema


class FileStatus(BaseModel):
    """Entry returned by ``FileSystemClient.list_status()``."""

    path: str
    is_dir: bool = False

    @property
    def name(self) -> str:
        """Last path component."""
        return self.path.rstrip("/").rsplit("/", 1)[-1]


class AdminClient(Protocol):
    """Cluster administrative RPC client.

    Any method may raise a transport or administrative failure; the restore
    code wraps those as ``TransportError``.
    """

    async def table_exists(self, table: TableName) -> bool:
        """Return True if the table exists in the cluster."""
        ...

    async def get_table_schema(self, table: TableName) -> TableSchema:
        """Return the live descriptor of an existing table."""
        ...

    async def create_table(
        self,
        schema: TableSchema,
        split_keys: list[bytes] | None = None,
    ) -> None:
        """Create a table, pre-split at ``split_keys`` when given.

        Example:
            await admin.create_table(schema, [b"g", b"p"])
        """
        ...

    async def modify_table(self, schema: TableSchema) -> None:
        """Replace the descriptor of an existing table."""
        ...

    async def disable_table(self, table: TableName) -> None:
        """Disable a table (required before truncation)."""
        ...

    async def truncate_table(self, table: TableName, preserve_splits: bool) -> None:
        """Drop all data of a disabled table and re-enable it."""
        ...

    async def is_table_available(
        self,
        table: TableName,
        split_keys: list[bytes] | None = None,
    ) -> bool:
        """Return True once every region (optionally at ``split_keys``) is online."""
        ...


class FileSystemClient(Protocol):
    """Filesystem client addressing paths across possibly distinct authorities.

    Paths are URI strings (``hdfs://nn:8020/backup/...``) or bare paths on
    the cluster's default filesystem.
    """

    async def exists(self, path: str) -> bool:
        """Return True if the path exists."""
        ...

    async def get_status(self, path: str) -> FileStatus:
        """Return the status of a single path."""
        ...

    async def list_status(self, path: str) -> list[FileStatus]:
        """List the direct children of a directory."""
        ...

    async def delete(self, path: str, recursive: bool = False) -> bool:
        """Delete a path; returns True if something was removed."""
        ...

    async def copy(self, src: str, dst: str) -> None:
        """Recursively copy ``src`` to ``dst``."""
        ...


class DataFileReader(Protocol):
    """Reader for the engine's physical data files (first/last row keys only)."""

    async def open(self, path: str) -> Any:
        """Open a data file and return an opaque handle."""
        ...

    async def first_row_key(self, handle: Any) -> bytes:
        """Return the smallest row key stored in the file."""
        ...

    async def last_row_key(self, handle: Any) -> bytes:
        """Return the largest row key stored in the file."""
        ...

    async def close(self, handle: Any) -> None:
        """Release the handle."""
        ...


class ManifestReader(Protocol):
    """Resolves a backup id and table name to the table's stored descriptor."""

    async def schema_for(
        self,
        backup_root: str,
        backup_id: str,
        table: TableName,
    ) -> TableSchema | None:
        """Return the descriptor saved in the backup image, or None."""
        ...


class BulkLoader(Protocol):
    """Bulk-load executor moving placed data files into live regions."""

    async def load(self, region_dir: str, table: TableName) -> None:
        """Load one region directory into ``table``.  Idempotent per call."""
        ...

    def infer_split_keys(self, weighted_keys: dict[bytes, int]) -> list[bytes]:
        """Derive ordered split keys from a first/last key weight map."""
        ...


class ReplayService(Protocol):
    """Replays archived write-ahead logs into target tables."""

    async def replay(
        self,
        log_dirs: list[str],
        source_tables: list[TableName],
        target_tables: list[TableName],
        bulk_load_mode: bool = False,
    ) -> None:
        """Replay every log directory, mapping source tables to target tables."""
        ...
