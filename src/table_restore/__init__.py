"""table-restore: Async restore of region-partitioned tables from backup images.

Restores a table captured in a backup image into a live cluster: resolves
the schema to apply, creates or reconciles the target table pre-split at
boundaries inferred from archived data files, stages archives that share
the cluster's filesystem, and drives bulk loading and WAL replay through
caller-provided collaborators.

Usage:
    from table_restore import RestoreOrchestrator, RestoreRequest, BackupImage
    from table_restore import TableName, TableSchema, ColumnFamily
    from table_restore import load_restore_config, RestoreSettings
"""

__version__ = "0.1.0"

# Schema
from table_restore.schema.models import ColumnFamily, SchemaChange, TableName, TableSchema
from table_restore.schema.reconciler import diff_and_apply, diff_families

# Collaborators
from table_restore.collaborators.base import (
    AdminClient,
    BulkLoader,
    DataFileReader,
    FileSystemClient,
    ManifestReader,
    ReplayService,
)
from table_restore.collaborators.local_fs import LocalFileSystem

# Config
from table_restore.config.loader import load_restore_config
from table_restore.config.models import RestoreConfig, RestoreSettings

# Availability
from table_restore.availability import AvailabilityPoller, PollState, wait_table_available

# Restore
from table_restore.restore.models import BackupImage, RestoreRequest
from table_restore.restore.orchestrator import RestoreOrchestrator
from table_restore.restore.snapshot_cache import SnapshotCache

# Errors
from table_restore.errors import (
    ArchiveNotFoundError,
    ConfigurationError,
    InconsistentArchiveError,
    RestoreError,
    RestoreFailedError,
    TableAvailabilityTimeout,
    TransportError,
)

__all__ = [
    # Schema
    "TableName",
    "ColumnFamily",
    "TableSchema",
    "SchemaChange",
    "diff_families",
    "diff_and_apply",
    # Collaborators
    "AdminClient",
    "FileSystemClient",
    "DataFileReader",
    "ManifestReader",
    "BulkLoader",
    "ReplayService",
    "LocalFileSystem",
    # Config
    "load_restore_config",
    "RestoreConfig",
    "RestoreSettings",
    # Availability
    "AvailabilityPoller",
    "PollState",
    "wait_table_available",
    # Restore
    "RestoreOrchestrator",
    "RestoreRequest",
    "BackupImage",
    "SnapshotCache",
    # Errors
    "RestoreError",
    "ConfigurationError",
    "ArchiveNotFoundError",
    "InconsistentArchiveError",
    "TableAvailabilityTimeout",
    "TransportError",
    "RestoreFailedError",
]
