"""Restore request and schema-resolution models.

Callers describe a restore with ``BackupImage`` and ``RestoreRequest``;
the orchestrator reports how a table's backup image resolved with
``SchemaResolution``.

Usage:
    from table_restore.restore.models import BackupImage, RestoreRequest
    from table_restore.schema.models import TableName

    request = RestoreRequest(
        source_table=TableName.parse("sales:orders"),
        target_table=TableName.parse("sales:orders_restored"),
        backup_image=BackupImage(root_path="hdfs://nn1:8020/backup", backup_id="backup_1396650096738"),
    )
"""

from enum import Enum

from pydantic import BaseModel

from table_restore.schema.models import TableName, TableSchema


class BackupImage(BaseModel):
    """Location of a backup image."""

    root_path: str                          # backup root, e.g. hdfs://nn1:8020/backup
    backup_id: str                          # full backup id
    incremental_backup_id: str | None = None  # last incremental image to take the schema from


class RestoreRequest(BaseModel):
    """One table restore.  Created per invocation, never persisted."""

    source_table: TableName
    target_table: TableName | None = None   # defaults to source_table
    truncate_if_exists: bool = False
    backup_image: BackupImage
    is_incremental: bool = False

    @property
    def effective_target(self) -> TableName:
        """Target table, falling back to the source table."""
        return self.target_table or self.source_table


class ResolutionKind(Enum):
    """What a backup image holds for one table."""

    SCHEMA_ONLY = "schema_only"              # descriptor, no data: empty table
    SCHEMA_AND_ARCHIVE = "schema_and_archive"
    ARCHIVE_ONLY = "archive_only"            # data, descriptor lost
    NOT_FOUND = "not_found"


class SchemaResolution(BaseModel):
    """Outcome of resolving a table against a backup image."""

    kind: ResolutionKind
    table_schema: TableSchema | None = None
    archive_path: str | None = None

    @classmethod
    def of(cls, schema: TableSchema | None, archive_path: str | None) -> "SchemaResolution":
        """Classify a resolved schema/archive pair."""
        if schema is not None and archive_path is not None:
            kind = ResolutionKind.SCHEMA_AND_ARCHIVE
        elif schema is not None:
            kind = ResolutionKind.SCHEMA_ONLY
        elif archive_path is not None:
            kind = ResolutionKind.ARCHIVE_ONLY
        else:
            kind = ResolutionKind.NOT_FOUND
        return cls(kind=kind, table_schema=schema, archive_path=archive_path)
