"""Collaborator protocols package.

Provides the Protocols for the external systems the restore drives (cluster
admin, filesystem, data-file reader, manifest reader, bulk loader, WAL
replay) and ``LocalFileSystem``, a local-disk ``FileSystemClient``.

Usage:
    from table_restore.collaborators import AdminClient, LocalFileSystem
"""

from table_restore.collaborators.base import (
    AdminClient,
    BulkLoader,
    DataFileReader,
    FileStatus,
    FileSystemClient,
    ManifestReader,
    ReplayService,
)
from table_restore.collaborators.local_fs import LocalFileSystem

__all__ = [
    "AdminClient",
    "BulkLoader",
    "DataFileReader",
    "FileStatus",
    "FileSystemClient",
    "ManifestReader",
    "ReplayService",
    "LocalFileSystem",
]
