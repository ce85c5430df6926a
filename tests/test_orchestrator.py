"""Tests for full and incremental restore orchestration.

Backup images are laid out on local disk (``tmp_path``) and read through
``LocalFileSystem``; the admin client, manifest reader and replay service
are AsyncMocks.  Unless a test exercises staging, the backup root is a
``file://`` URI and the target cluster an ``hdfs://`` one so archives are
loaded in place.
"""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from table_restore.collaborators.local_fs import LocalFileSystem
from table_restore.config.models import RestoreSettings
from table_restore.errors import (
    ArchiveNotFoundError,
    ConfigurationError,
    RestoreFailedError,
    TableAvailabilityTimeout,
)
from table_restore.restore import layout
from table_restore.restore.boundaries import split_points_from_weights
from table_restore.restore.models import BackupImage, ResolutionKind, RestoreRequest
from table_restore.restore.orchestrator import RestoreOrchestrator
from table_restore.schema.models import ColumnFamily, TableName, TableSchema

T1 = TableName(qualifier="t1")
T1_RESTORED = TableName(namespace="ns", qualifier="t1_restored")
T2 = TableName(qualifier="t2")
BACKUP_ID = "backup_1396650096738"
INCR_ID = "backup_1396650200000"


def _schema(table: TableName, *families: str) -> TableSchema:
    return TableSchema(table=table, families=tuple(ColumnFamily(name=f) for f in families))


class RecordingBulkLoader:
    """BulkLoader that records loads and derives split keys by cumulative sum."""

    def __init__(self, fail_on_load: Exception | None = None) -> None:
        self.loads: list[tuple[str, TableName]] = []
        self.weights: list[dict[bytes, int]] = []
        self.fail_on_load = fail_on_load

    async def load(self, region_dir: str, table: TableName) -> None:
        if self.fail_on_load is not None:
            raise self.fail_on_load
        self.loads.append((region_dir, table))

    def infer_split_keys(self, weighted_keys: dict[bytes, int]) -> list[bytes]:
        self.weights.append(weighted_keys)
        return split_points_from_weights(weighted_keys)


class KeyFileReader:
    """DataFileReader over test files containing ``first\\nlast``."""

    async def open(self, path: str) -> list[bytes]:
        local = path.removeprefix("file://")
        return Path(local).read_bytes().split(b"\n", 1)

    async def first_row_key(self, handle: list[bytes]) -> bytes:
        return handle[0]

    async def last_row_key(self, handle: list[bytes]) -> bytes:
        return handle[1]

    async def close(self, handle: list[bytes]) -> None:
        pass


def _write_image(
    root: Path,
    table: TableName = T1,
    regions: dict[str, tuple[bytes, bytes]] | None = None,
    snapshot: bool = True,
    backup_id: str = BACKUP_ID,
) -> None:
    """Lay out a full backup image; *regions* maps region name to the key range of its one file."""
    if snapshot:
        Path(layout.table_snapshot_path(str(root), backup_id, table)).mkdir(parents=True)
    if regions is None:
        return
    archive = Path(layout.table_archive_path(str(root), backup_id, table))
    archive.mkdir(parents=True, exist_ok=True)
    for region, (first, last) in regions.items():
        family_dir = archive / region / "cf"
        family_dir.mkdir(parents=True)
        (family_dir / "f1").write_bytes(first + b"\n" + last)


def _make_mock_admin(exists: bool = False, live: TableSchema | None = None) -> AsyncMock:
    admin = AsyncMock()
    admin.table_exists = AsyncMock(return_value=exists)
    admin.is_table_available = AsyncMock(return_value=True)
    admin.get_table_schema = AsyncMock(return_value=live)
    return admin


def _make_mock_manifest(schema: TableSchema | None) -> AsyncMock:
    manifest = AsyncMock()
    manifest.schema_for = AsyncMock(return_value=schema)
    return manifest


def _make_orchestrator(
    backup_root: str,
    admin: AsyncMock,
    manifest: AsyncMock,
    bulk_loader: RecordingBulkLoader | None = None,
    replay: AsyncMock | None = None,
    **settings,
) -> RestoreOrchestrator:
    settings.setdefault("default_fs", "hdfs://nn1:8020")
    settings.setdefault("table_availability_timeout_ms", 1000)
    settings.setdefault("poll_interval_ms", 10)
    return RestoreOrchestrator(
        admin,
        LocalFileSystem(),
        KeyFileReader(),
        manifest,
        bulk_loader or RecordingBulkLoader(),
        replay or AsyncMock(),
        backup_root=backup_root,
        settings=RestoreSettings(**settings),
    )


def _request(
    backup_root: str,
    target: TableName | None = None,
    truncate: bool = False,
    incremental_id: str | None = None,
    is_incremental: bool = False,
) -> RestoreRequest:
    return RestoreRequest(
        source_table=T1,
        target_table=target,
        truncate_if_exists=truncate,
        backup_image=BackupImage(
            root_path=backup_root, backup_id=BACKUP_ID, incremental_backup_id=incremental_id
        ),
        is_incremental=is_incremental,
    )


# ------------------------------------------------------------------
# Full restore
# ------------------------------------------------------------------


class TestFullRestore:
    """full_restore() creates the target and bulk loads every region."""

    async def test_single_region_into_new_table(self, tmp_path: Path) -> None:
        root = f"file://{tmp_path}"
        _write_image(tmp_path, regions={"r1": (b"a", b"m")})
        admin = _make_mock_admin()
        loader = RecordingBulkLoader()
        orchestrator = _make_orchestrator(root, admin, _make_mock_manifest(_schema(T1, "cf")), loader)

        await orchestrator.full_restore(_request(root))

        assert loader.weights == [{b"a": 1, b"m": -1}]
        admin.create_table.assert_awaited_once_with(_schema(T1, "cf"), [])
        admin.is_table_available.assert_awaited_with(T1, [])
        archive = layout.table_archive_path(root, BACKUP_ID, T1)
        assert loader.loads == [(f"{archive}/r1", T1)]

    async def test_table_pre_split_across_regions(self, tmp_path: Path) -> None:
        root = f"file://{tmp_path}"
        _write_image(tmp_path, regions={"r1": (b"a", b"f"), "r2": (b"g", b"p"), "r3": (b"q", b"z")})
        admin = _make_mock_admin()
        loader = RecordingBulkLoader()
        orchestrator = _make_orchestrator(root, admin, _make_mock_manifest(_schema(T1, "cf")), loader)

        await orchestrator.full_restore(_request(root))

        admin.create_table.assert_awaited_once_with(_schema(T1, "cf"), [b"g", b"q"])
        assert [table for _, table in loader.loads] == [T1, T1, T1]

    async def test_schema_without_archive_creates_empty_table(self, tmp_path: Path) -> None:
        root = f"file://{tmp_path}"
        _write_image(tmp_path)
        admin = _make_mock_admin()
        loader = RecordingBulkLoader()
        orchestrator = _make_orchestrator(root, admin, _make_mock_manifest(_schema(T1, "cf")), loader)

        await orchestrator.full_restore(_request(root))

        admin.create_table.assert_awaited_once_with(_schema(T1, "cf"), None)
        admin.is_table_available.assert_awaited_with(T1, None)
        assert loader.loads == []
        assert loader.weights == []

    async def test_empty_archive_creates_table_without_splits(self, tmp_path: Path) -> None:
        """An archive directory holding no regions loads nothing."""
        root = f"file://{tmp_path}"
        _write_image(tmp_path, regions={})
        admin = _make_mock_admin()
        loader = RecordingBulkLoader()
        orchestrator = _make_orchestrator(root, admin, _make_mock_manifest(_schema(T1, "cf")), loader)

        await orchestrator.full_restore(_request(root))

        admin.create_table.assert_awaited_once_with(_schema(T1, "cf"), None)
        admin.is_table_available.assert_awaited_with(T1, None)
        assert loader.weights == []
        assert loader.loads == []

    async def test_archive_without_schema_creates_bare_table(self, tmp_path: Path) -> None:
        root = f"file://{tmp_path}"
        _write_image(tmp_path, regions={"r1": (b"a", b"m")})
        admin = _make_mock_admin()
        loader = RecordingBulkLoader()
        orchestrator = _make_orchestrator(root, admin, _make_mock_manifest(None), loader)

        await orchestrator.full_restore(_request(root))

        admin.create_table.assert_awaited_once_with(TableSchema(table=T1), [])
        assert len(loader.loads) == 1

    async def test_renamed_target(self, tmp_path: Path) -> None:
        root = f"file://{tmp_path}"
        _write_image(tmp_path, regions={"r1": (b"a", b"m")})
        admin = _make_mock_admin()
        loader = RecordingBulkLoader()
        manifest = _make_mock_manifest(_schema(T1, "cf"))
        orchestrator = _make_orchestrator(root, admin, manifest, loader)

        await orchestrator.full_restore(_request(root, target=T1_RESTORED))

        # Backup is read under the source name, data lands in the target
        manifest.schema_for.assert_awaited_once_with(root, BACKUP_ID, T1)
        admin.create_table.assert_awaited_once_with(_schema(T1_RESTORED, "cf"), [])
        assert loader.loads[0][1] == T1_RESTORED

    async def test_backup_root_mismatch(self, tmp_path: Path) -> None:
        admin = _make_mock_admin()
        orchestrator = _make_orchestrator(f"file://{tmp_path}", admin, _make_mock_manifest(None))

        with pytest.raises(ConfigurationError, match="does not belong"):
            await orchestrator.full_restore(_request("hdfs://other:8020/backup"))
        assert admin.mock_calls == []


class TestFullRestoreExistingTable:
    """Existing targets are reconciled and optionally truncated."""

    async def test_truncate_preserves_splits(self, tmp_path: Path) -> None:
        root = f"file://{tmp_path}"
        _write_image(tmp_path, regions={"r1": (b"a", b"m")})
        admin = _make_mock_admin(exists=True, live=_schema(T1, "cf"))
        loader = RecordingBulkLoader()
        orchestrator = _make_orchestrator(root, admin, _make_mock_manifest(_schema(T1, "cf")), loader)

        await orchestrator.full_restore(_request(root, truncate=True))

        admin.disable_table.assert_awaited_once_with(T1)
        admin.truncate_table.assert_awaited_once_with(T1, preserve_splits=True)
        admin.modify_table.assert_not_awaited()
        admin.create_table.assert_not_awaited()
        assert loader.weights == []
        assert len(loader.loads) == 1

    async def test_existing_table_reconciled(self, tmp_path: Path) -> None:
        root = f"file://{tmp_path}"
        _write_image(tmp_path, regions={"r1": (b"a", b"m")})
        admin = _make_mock_admin(exists=True, live=_schema(T1, "old"))
        orchestrator = _make_orchestrator(root, admin, _make_mock_manifest(_schema(T1, "cf")))

        await orchestrator.full_restore(_request(root))

        admin.modify_table.assert_awaited_once()
        assert admin.modify_table.await_args.args[0].family_names == ["cf"]
        admin.truncate_table.assert_not_awaited()
        admin.create_table.assert_not_awaited()


class TestFullRestoreFailures:
    """Error classification of full restores."""

    async def test_missing_snapshot_dir(self, tmp_path: Path) -> None:
        root = f"file://{tmp_path}"
        _write_image(tmp_path, regions={"r1": (b"a", b"m")}, snapshot=False)
        admin = _make_mock_admin()
        orchestrator = _make_orchestrator(root, admin, _make_mock_manifest(_schema(T1, "cf")))

        with pytest.raises(ArchiveNotFoundError, match="snapshot directory"):
            await orchestrator.full_restore(_request(root))
        assert admin.mock_calls == []

    async def test_nothing_in_image(self, tmp_path: Path) -> None:
        root = f"file://{tmp_path}"
        _write_image(tmp_path)
        admin = _make_mock_admin()
        orchestrator = _make_orchestrator(root, admin, _make_mock_manifest(None))

        with pytest.raises(ArchiveNotFoundError, match="neither"):
            await orchestrator.full_restore(_request(root))
        admin.create_table.assert_not_awaited()

    async def test_manifest_describes_other_table(self, tmp_path: Path) -> None:
        root = f"file://{tmp_path}"
        _write_image(tmp_path, regions={"r1": (b"a", b"m")})
        orchestrator = _make_orchestrator(
            root, _make_mock_admin(), _make_mock_manifest(_schema(T2, "cf"))
        )

        with pytest.raises(ArchiveNotFoundError, match="Couldn't find table descriptor"):
            await orchestrator.full_restore(_request(root))

    async def test_bulk_load_failure_is_restore_failed(self, tmp_path: Path) -> None:
        root = f"file://{tmp_path}"
        _write_image(tmp_path, regions={"r1": (b"a", b"m")})
        loader = RecordingBulkLoader(fail_on_load=OSError("region server gone"))
        orchestrator = _make_orchestrator(
            root, _make_mock_admin(), _make_mock_manifest(_schema(T1, "cf")), loader
        )

        with pytest.raises(RestoreFailedError, match="region server gone") as exc_info:
            await orchestrator.full_restore(_request(root))
        assert isinstance(exc_info.value.__cause__, OSError)

    async def test_create_timeout_not_wrapped(self, tmp_path: Path) -> None:
        root = f"file://{tmp_path}"
        _write_image(tmp_path, regions={"r1": (b"a", b"m")})
        admin = _make_mock_admin()
        admin.is_table_available = AsyncMock(return_value=False)
        loader = RecordingBulkLoader()
        orchestrator = _make_orchestrator(
            root, admin, _make_mock_manifest(_schema(T1, "cf")), loader,
            table_availability_timeout_ms=50,
        )

        with pytest.raises(TableAvailabilityTimeout):
            await orchestrator.full_restore(_request(root))
        assert loader.loads == []


class TestStaging:
    """Archives on the target's filesystem are copied before loading."""

    async def test_same_filesystem_loads_from_staging(self, tmp_path: Path) -> None:
        backup = tmp_path / "backup"
        root = str(backup)
        _write_image(backup, regions={"r1": (b"a", b"m")})
        loader = RecordingBulkLoader()
        orchestrator = _make_orchestrator(
            root, _make_mock_admin(), _make_mock_manifest(_schema(T1, "cf")), loader,
            default_fs="file:///",
            staging_dir=str(tmp_path / "scratch"),
        )

        await orchestrator.full_restore(_request(root))

        staging_path = orchestrator.settings.staging_path
        assert loader.loads == [(f"{staging_path}/r1", T1)]
        assert (tmp_path / "scratch" / "restore" / "r1" / "cf" / "f1").exists()
        # The backup image is untouched
        archive = Path(layout.table_archive_path(root, BACKUP_ID, T1))
        assert (archive / "r1" / "cf" / "f1").exists()


# ------------------------------------------------------------------
# Schema resolution
# ------------------------------------------------------------------


class TestResolveSchema:
    """resolve_schema() prefers the incremental image and caches snapshots."""

    async def test_incremental_descriptor_preferred(self, tmp_path: Path) -> None:
        root = f"file://{tmp_path}"
        # No snapshot dir: the incremental descriptor makes it unnecessary
        _write_image(tmp_path, regions={"r1": (b"a", b"m")}, snapshot=False)
        manifest = _make_mock_manifest(_schema(T1, "cf", "cf2"))
        orchestrator = _make_orchestrator(root, _make_mock_admin(), manifest)
        image = BackupImage(root_path=root, backup_id=BACKUP_ID, incremental_backup_id=INCR_ID)

        resolution = await orchestrator.resolve_schema(T1, image)

        assert resolution.kind is ResolutionKind.SCHEMA_AND_ARCHIVE
        assert resolution.table_schema.family_names == ["cf", "cf2"]
        manifest.schema_for.assert_awaited_once_with(root, INCR_ID, T1)

    async def test_falls_back_to_snapshot(self, tmp_path: Path) -> None:
        root = f"file://{tmp_path}"
        _write_image(tmp_path)
        manifest = AsyncMock()
        manifest.schema_for = AsyncMock(side_effect=[None, _schema(T1, "cf")])
        orchestrator = _make_orchestrator(root, _make_mock_admin(), manifest)
        image = BackupImage(root_path=root, backup_id=BACKUP_ID, incremental_backup_id=INCR_ID)

        resolution = await orchestrator.resolve_schema(T1, image)

        assert resolution.kind is ResolutionKind.SCHEMA_ONLY
        assert resolution.archive_path is None
        assert [c.args[1] for c in manifest.schema_for.await_args_list] == [INCR_ID, BACKUP_ID]

    async def test_snapshot_manifest_read_once_per_session(self, tmp_path: Path) -> None:
        root = f"file://{tmp_path}"
        _write_image(tmp_path, regions={"r1": (b"a", b"m")})
        manifest = _make_mock_manifest(_schema(T1, "cf"))
        admin = _make_mock_admin(exists=True, live=_schema(T1, "cf"))
        loader = RecordingBulkLoader()
        orchestrator = _make_orchestrator(root, admin, manifest, loader)

        await orchestrator.full_restore(_request(root))
        await orchestrator.full_restore(_request(root))

        manifest.schema_for.assert_awaited_once()
        assert (BACKUP_ID, T1) in orchestrator.snapshot_cache
        assert len(loader.loads) == 2

    async def test_snapshot_schemas_kept_per_backup(self, tmp_path: Path) -> None:
        """Reading the same table from two images in one session yields each image's schema."""
        root = f"file://{tmp_path}"
        _write_image(tmp_path, backup_id="b1")
        _write_image(tmp_path, backup_id="b2")
        schemas = {"b1": _schema(T1, "cf_old"), "b2": _schema(T1, "cf_new")}

        async def _schema_for(backup_root: str, backup_id: str, table: TableName) -> TableSchema:
            return schemas[backup_id]

        manifest = AsyncMock()
        manifest.schema_for = AsyncMock(side_effect=_schema_for)
        orchestrator = _make_orchestrator(root, _make_mock_admin(), manifest)

        first = await orchestrator.resolve_schema(T1, BackupImage(root_path=root, backup_id="b1"))
        second = await orchestrator.resolve_schema(T1, BackupImage(root_path=root, backup_id="b2"))

        assert first.table_schema.family_names == ["cf_old"]
        assert second.table_schema.family_names == ["cf_new"]
        assert manifest.schema_for.await_count == 2
        assert ("b1", T1) in orchestrator.snapshot_cache
        assert ("b2", T1) in orchestrator.snapshot_cache


# ------------------------------------------------------------------
# Incremental restore
# ------------------------------------------------------------------


class TestIncrementalRestore:
    """incremental_restore() reconciles families and replays logs in one batch."""

    async def test_reconciles_and_replays(self) -> None:
        admin = _make_mock_admin(exists=True)
        admin.get_table_schema = AsyncMock(side_effect=[_schema(T1, "cf"), _schema(T2, "cf")])
        manifest = AsyncMock()
        manifest.schema_for = AsyncMock(side_effect=[_schema(T1, "cf", "cf2"), _schema(T2, "cf")])
        replay = AsyncMock()
        orchestrator = _make_orchestrator("hdfs://nn1:8020/backup", admin, manifest, replay=replay)

        await orchestrator.incremental_restore(
            [T1, T2], [T1, T2], ["hdfs://nn1:8020/wal/1", "hdfs://nn1:8020/wal/2"], INCR_ID
        )

        admin.modify_table.assert_awaited_once()
        assert admin.modify_table.await_args.args[0].family_names == ["cf", "cf2"]
        replay.replay.assert_awaited_once_with(
            ["hdfs://nn1:8020/wal/1", "hdfs://nn1:8020/wal/2"],
            [T1, T2],
            [T1, T2],
            bulk_load_mode=False,
        )

    async def test_length_mismatch_makes_no_calls(self) -> None:
        admin = _make_mock_admin(exists=True)
        replay = AsyncMock()
        orchestrator = _make_orchestrator(
            "hdfs://nn1:8020/backup", admin, _make_mock_manifest(None), replay=replay
        )

        with pytest.raises(ConfigurationError, match="does not match"):
            await orchestrator.incremental_restore([T1, T2], [T1], ["wal"], INCR_ID)
        assert admin.mock_calls == []
        replay.replay.assert_not_awaited()

    async def test_missing_target_table(self) -> None:
        admin = _make_mock_admin(exists=False)
        replay = AsyncMock()
        orchestrator = _make_orchestrator(
            "hdfs://nn1:8020/backup", admin, _make_mock_manifest(_schema(T1, "cf")), replay=replay
        )

        with pytest.raises(ConfigurationError, match="Create the table first"):
            await orchestrator.incremental_restore([T1], [T1_RESTORED], ["wal"], INCR_ID)
        admin.modify_table.assert_not_awaited()
        replay.replay.assert_not_awaited()

    async def test_missing_incremental_descriptor(self) -> None:
        replay = AsyncMock()
        orchestrator = _make_orchestrator(
            "hdfs://nn1:8020/backup",
            _make_mock_admin(exists=True, live=_schema(T1, "cf")),
            _make_mock_manifest(None),
            replay=replay,
        )

        with pytest.raises(ArchiveNotFoundError, match=INCR_ID):
            await orchestrator.incremental_restore([T1], [T1], ["wal"], INCR_ID)
        replay.replay.assert_not_awaited()


class TestRestoreDispatch:
    """restore() routes by request kind."""

    async def test_incremental_request(self) -> None:
        root = "hdfs://nn1:8020/backup"
        replay = AsyncMock()
        orchestrator = _make_orchestrator(
            root,
            _make_mock_admin(exists=True, live=_schema(T1, "cf")),
            _make_mock_manifest(_schema(T1, "cf")),
            replay=replay,
        )

        await orchestrator.restore(
            _request(root, incremental_id=INCR_ID, is_incremental=True), log_dirs=["wal"]
        )

        replay.replay.assert_awaited_once_with(["wal"], [T1], [T1], bulk_load_mode=False)

    async def test_incremental_request_backup_root_mismatch(self) -> None:
        admin = _make_mock_admin(exists=True, live=_schema(T1, "cf"))
        manifest = _make_mock_manifest(_schema(T1, "cf"))
        replay = AsyncMock()
        orchestrator = _make_orchestrator("hdfs://nn1:8020/backup", admin, manifest, replay=replay)

        with pytest.raises(ConfigurationError, match="does not belong"):
            await orchestrator.restore(
                _request("hdfs://other:8020/backup", incremental_id=INCR_ID, is_incremental=True),
                log_dirs=["wal"],
            )
        assert admin.mock_calls == []
        manifest.schema_for.assert_not_awaited()
        replay.replay.assert_not_awaited()

    async def test_incremental_request_needs_incremental_id(self) -> None:
        orchestrator = _make_orchestrator(
            "hdfs://nn1:8020/backup", _make_mock_admin(), _make_mock_manifest(None)
        )

        with pytest.raises(ConfigurationError, match="incremental backup id"):
            await orchestrator.restore(_request("hdfs://nn1:8020/backup", is_incremental=True))

    async def test_full_request(self, tmp_path: Path) -> None:
        root = f"file://{tmp_path}"
        _write_image(tmp_path, regions={"r1": (b"a", b"m")})
        admin = _make_mock_admin()
        loader = RecordingBulkLoader()
        orchestrator = _make_orchestrator(root, admin, _make_mock_manifest(_schema(T1, "cf")), loader)

        await orchestrator.restore(_request(root))

        admin.create_table.assert_awaited_once()
        assert len(loader.loads) == 1
