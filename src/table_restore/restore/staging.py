"""Local duplication guard for bulk loading.

Bulk loading moves data files into the live table's storage.  When the
backup image sits on the same filesystem as the target cluster, loading in
place would consume the backup's own files, so the archive is first copied
into a scratch staging path.

Usage:
    from table_restore.restore.staging import stage_if_local

    effective = await stage_if_local(fs, archive_path, settings.staging_path, settings.default_fs)
"""

import logging
from urllib.parse import urlsplit

from table_restore.collaborators.base import FileSystemClient
from table_restore.errors import wrap_transport

logger = logging.getLogger(__name__)


def filesystem_authority(path: str, default_fs: str) -> str:
    """Return ``scheme://netloc`` of the filesystem serving ``path``.

    Paths without a scheme are served by ``default_fs``.

    Examples:
        >>> filesystem_authority("hdfs://NN1:8020/backup", "hdfs://nn2:8020")
        'hdfs://nn1:8020'
        >>> filesystem_authority("/backup", "hdfs://nn2:8020")
        'hdfs://nn2:8020'
    """
    parts = urlsplit(path)
    if not parts.scheme:
        parts = urlsplit(default_fs)
    return f"{parts.scheme.lower()}://{parts.netloc.lower()}"


def is_same_filesystem(archive_path: str, default_fs: str) -> bool:
    """True if the archive is served by the target cluster's filesystem."""
    return filesystem_authority(archive_path, default_fs) == filesystem_authority(
        default_fs, default_fs
    )


async def stage_if_local(
    fs: FileSystemClient,
    archive_path: str,
    staging_path: str,
    default_fs: str,
) -> str:
    """Copy the archive to ``staging_path`` if it shares the target's filesystem.

    A stale staging path is deleted first.  Failure to delete is logged and
    the copy is still attempted.

    Args:
        fs: Filesystem client able to address both paths.
        archive_path: Table archive directory in the backup image.
        staging_path: Scratch directory reserved for this restore session.
        default_fs: Filesystem URI of the target cluster.

    Returns:
        ``staging_path`` if the archive was copied, else ``archive_path``.

    Raises:
        TransportError: If the copy fails.
    """
    if not is_same_filesystem(archive_path, default_fs):
        return archive_path

    logger.debug(
        f"Cluster holds the backup image: {filesystem_authority(archive_path, default_fs)}; "
        f"local cluster node: {filesystem_authority(default_fs, default_fs)}"
    )
    logger.debug(f"File {archive_path} on local cluster, back it up before restore")

    try:
        if await fs.exists(staging_path):
            await fs.delete(staging_path, recursive=True)
    except Exception as e:
        logger.warning(
            f"Failed to delete path: {staging_path}, need to check whether "
            f"restore target filesystem is healthy: {e}"
        )

    with wrap_transport(f"copy {archive_path} to {staging_path}"):
        await fs.copy(archive_path, staging_path)
    logger.debug(f"Copied to temporary path on local cluster: {staging_path}")
    return staging_path
