"""Local-disk filesystem client.

Provides ``LocalFileSystem``, an implementation of the ``FileSystemClient``
protocol over the local disk.  Accepts ``file://`` URIs and bare paths;
children returned by ``list_status()`` keep the form of the parent path.

Used by the diagnostic CLI to inspect backup images copied to local disk,
and by tests.

Usage:
    from table_restore.collaborators.local_fs import LocalFileSystem

    fs = LocalFileSystem()
    for status in await fs.list_status("file:///backups/b1/default/t1"):
        print(status.name, status.is_dir)
"""

import asyncio
import shutil
from pathlib import Path
from urllib.parse import urlsplit

from table_restore.collaborators.base import FileStatus


def _to_local(path: str) -> Path:
    """Map a ``file://`` URI or bare path to a local ``Path``."""
    parts = urlsplit(path)
    if parts.scheme in ("", "file"):
        return Path(parts.path if parts.scheme else path)
    raise ValueError(f"Not a local path: {path}")


class LocalFileSystem:
    """Local-disk implementation of the ``FileSystemClient`` protocol."""

    async def exists(self, path: str) -> bool:
        return _to_local(path).exists()

    async def get_status(self, path: str) -> FileStatus:
        local = _to_local(path)
        if not local.exists():
            raise FileNotFoundError(f"Path not found: {path}")
        return FileStatus(path=path, is_dir=local.is_dir())

    async def list_status(self, path: str) -> list[FileStatus]:
        local = _to_local(path)
        if not local.is_dir():
            raise FileNotFoundError(f"Directory not found: {path}")
        base = path if path.endswith("/") else f"{path}/"
        return [
            FileStatus(path=f"{base}{child.name}", is_dir=child.is_dir())
            for child in sorted(local.iterdir())
        ]

    async def delete(self, path: str, recursive: bool = False) -> bool:
        local = _to_local(path)
        if not local.exists():
            return False
        if local.is_dir():
            if not recursive and any(local.iterdir()):
                raise OSError(f"Directory not empty: {path}")
            await asyncio.to_thread(shutil.rmtree, local)
        else:
            local.unlink()
        return True

    async def copy(self, src: str, dst: str) -> None:
        src_local = _to_local(src)
        dst_local = _to_local(dst)
        dst_local.parent.mkdir(parents=True, exist_ok=True)
        if src_local.is_dir():
            await asyncio.to_thread(shutil.copytree, src_local, dst_local)
        else:
            await asyncio.to_thread(shutil.copy2, src_local, dst_local)
