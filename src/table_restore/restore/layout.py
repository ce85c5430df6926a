"""Backup image directory layout.

A full backup image of one table lives under::

    <root>/<backup_id>/<namespace>/<qualifier>/
        .hbase-snapshot/<snapshot>/          descriptor + data manifest
        archive/data/<namespace>/<qualifier>/
            <region>/<family>/<data file>    archived data files

Paths are plain strings so URIs of any filesystem (``hdfs://``, ``s3a://``,
``file://``) pass through untouched.
"""

from table_restore.schema.models import TableName

HFILE_ARCHIVE_DIR = "archive"
BASE_NAMESPACE_DIR = "data"
SNAPSHOT_DIR_NAME = ".hbase-snapshot"


def join_path(base: str, *parts: str) -> str:
    """Join path components with single slashes, preserving a URI prefix.

    Example:
        >>> join_path("hdfs://nn:8020/backup/", "b1", "default")
        'hdfs://nn:8020/backup/b1/default'
        >>> join_path("file:///", "tmp")
        'file:///tmp'
    """
    path = base
    for part in parts:
        part = part.strip("/")
        if not part:
            continue
        path = f"{path}{part}" if path.endswith("/") else f"{path}/{part}"
    return path


def table_backup_path(root: str, backup_id: str, table: TableName) -> str:
    """Directory holding everything a backup image stores for one table."""
    return join_path(root, backup_id, table.namespace, table.qualifier)


def table_archive_path(root: str, backup_id: str, table: TableName) -> str:
    """Directory holding the table's region archives."""
    return join_path(
        table_backup_path(root, backup_id, table),
        HFILE_ARCHIVE_DIR,
        BASE_NAMESPACE_DIR,
        table.namespace,
        table.qualifier,
    )


def table_snapshot_path(root: str, backup_id: str, table: TableName) -> str:
    """Directory holding the table's snapshot manifest."""
    return join_path(table_backup_path(root, backup_id, table), SNAPSHOT_DIR_NAME)
