"""Full and incremental table restore from backup images.

``RestoreOrchestrator`` drives a restore session against one backup root:

Full restore:
    1. Resolve the table's schema (incremental image descriptor, else the
       full-backup snapshot manifest through the session's ``SnapshotCache``)
       and its data archive.
    2. Schema but no archive: the table was empty.  Create it without split
       keys and stop.
    3. Create the target table pre-split at boundaries inferred from the
       archived data files, or truncate/reconcile an existing one.
    4. Stage the archive to scratch space if it shares the target's
       filesystem, then bulk load every region directory.

Incremental restore:
    1. Check argument lengths and that every target table exists.
    2. Reconcile each target's column families with the incremental image.
    3. Replay all WAL directories in one batched call.

Any failure once data loading has begun raises ``RestoreFailedError``.
The target table may be partially populated and the caller must rerun the
whole table restore; there is no resume.

Usage:
    from table_restore.restore import RestoreOrchestrator, RestoreRequest, BackupImage

    orchestrator = RestoreOrchestrator(
        admin, fs, reader, manifest, bulk_loader, replay,
        backup_root="hdfs://nn1:8020/backup",
        settings=config.settings_for("prod"),
    )
    await orchestrator.full_restore(
        RestoreRequest(
            source_table=TableName.parse("sales:orders"),
            backup_image=BackupImage(root_path="hdfs://nn1:8020/backup", backup_id="backup_1"),
        )
    )
"""

import logging
from collections.abc import Sequence

from table_restore.availability import wait_table_available
from table_restore.collaborators.base import (
    AdminClient,
    BulkLoader,
    DataFileReader,
    FileSystemClient,
    ManifestReader,
    ReplayService,
)
from table_restore.config.models import RestoreSettings
from table_restore.errors import (
    ArchiveNotFoundError,
    ConfigurationError,
    RestoreFailedError,
    wrap_transport,
)
from table_restore.restore import layout
from table_restore.restore.boundaries import infer_boundaries
from table_restore.restore.models import (
    BackupImage,
    ResolutionKind,
    RestoreRequest,
    SchemaResolution,
)
from table_restore.restore.snapshot_cache import SnapshotCache
from table_restore.restore.staging import stage_if_local
from table_restore.schema.models import TableName, TableSchema
from table_restore.schema.reconciler import diff_and_apply

logger = logging.getLogger(__name__)


class RestoreOrchestrator:
    """Restores tables from the backup images under one backup root.

    One instance serves one restore session: it owns the session's
    ``SnapshotCache`` and scratch staging path.  Concurrent sessions must use
    distinct ``settings.staging_dir`` values.

    Args:
        admin: Cluster admin client.
        fs: Filesystem client addressing both the backup and the cluster.
        reader: Data-file reader for boundary inference.
        manifest: Backup manifest reader.
        bulk_loader: Bulk-load executor.
        replay: WAL replay service for incremental restores.
        backup_root: Root path of the backup images.
        settings: Session settings (target filesystem, staging, timeouts).
        snapshot_cache: Cache to share across orchestrators; a fresh one is
            created when omitted.
    """

    def __init__(
        self,
        admin: AdminClient,
        fs: FileSystemClient,
        reader: DataFileReader,
        manifest: ManifestReader,
        bulk_loader: BulkLoader,
        replay: ReplayService,
        backup_root: str,
        settings: RestoreSettings | None = None,
        snapshot_cache: SnapshotCache | None = None,
    ) -> None:
        self.admin = admin
        self.fs = fs
        self.reader = reader
        self.manifest = manifest
        self.bulk_loader = bulk_loader
        self.replay = replay
        self.backup_root = backup_root
        self.settings = settings or RestoreSettings()
        self.snapshot_cache = snapshot_cache if snapshot_cache is not None else SnapshotCache()

    def _check_image(self, image: BackupImage) -> None:
        """Reject images outside this session's backup root."""
        if image.root_path != self.backup_root:
            raise ConfigurationError(
                f"Backup image root {image.root_path} does not belong to this "
                f"restore session ({self.backup_root})"
            )

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def restore(
        self,
        request: RestoreRequest,
        log_dirs: Sequence[str] = (),
    ) -> None:
        """Run a full or incremental restore depending on ``request.is_incremental``.

        Raises:
            ConfigurationError: If the request points at another backup root,
                or an incremental request lacks an incremental backup id.
        """
        self._check_image(request.backup_image)

        if not request.is_incremental:
            await self.full_restore(request)
            return

        incremental_id = request.backup_image.incremental_backup_id
        if incremental_id is None:
            raise ConfigurationError(
                f"Incremental restore of {request.source_table} requires an incremental backup id"
            )
        await self.incremental_restore(
            [request.source_table],
            [request.effective_target],
            log_dirs,
            incremental_id,
        )

    async def full_restore(self, request: RestoreRequest) -> None:
        """Restore one table from a full backup image.

        Raises:
            ConfigurationError: If the request points at another backup root.
            ArchiveNotFoundError: If the image has no snapshot directory, or
                neither a schema nor a data archive for the table.
            TableAvailabilityTimeout: If a created table does not come online.
            TransportError: If an admin call fails before loading starts.
            RestoreFailedError: If staging or bulk loading fails.
        """
        image = request.backup_image
        self._check_image(image)

        source = request.source_table
        target = request.effective_target

        resolution = await self.resolve_schema(source, image)

        if resolution.kind is ResolutionKind.NOT_FOUND:
            raise ArchiveNotFoundError(
                f"Cannot restore table {source}: backup {image.backup_id} holds "
                f"neither a table descriptor nor a data archive"
            )

        if resolution.kind is ResolutionKind.SCHEMA_ONLY:
            logger.debug(
                f"Found table descriptor but no archive dir for table {source}, "
                f"will only create table"
            )
            await self.check_and_create_table(
                resolution.table_schema.with_table(target),
                None,
                request.truncate_if_exists,
            )
            return

        if resolution.table_schema is None:
            schema = TableSchema(table=target)
        else:
            schema = resolution.table_schema.with_table(target)

        region_dirs = await self.region_dirs(resolution.archive_path)

        # Create with all regions known so the table is pre-split in fine grain
        await self.check_and_create_table(schema, region_dirs, request.truncate_if_exists)

        try:
            await self._bulk_load(resolution.archive_path, region_dirs, target)
        except Exception as e:
            raise RestoreFailedError(
                f"Cannot restore table {source} into {target}: {e}"
            ) from e

    async def incremental_restore(
        self,
        source_tables: Sequence[TableName],
        target_tables: Sequence[TableName],
        log_dirs: Sequence[str],
        incremental_backup_id: str,
    ) -> None:
        """Bring previously restored tables up to an incremental backup.

        Args:
            source_tables: Tables as named in the backup.
            target_tables: Tables to restore into, pairwise with ``source_tables``.
            log_dirs: WAL directories of the incremental images.
            incremental_backup_id: Image the schemas are taken from.

        Raises:
            ConfigurationError: If the table lists differ in length or a
                target table does not exist.
            ArchiveNotFoundError: If the image has no descriptor for a table.
            TransportError: If an admin call or the replay fails.
        """
        if len(source_tables) != len(target_tables):
            raise ConfigurationError(
                "Number of source tables and target tables does not match: "
                f"{len(source_tables)} != {len(target_tables)}"
            )

        # Incremental images never create tables: a full restore runs first
        for target in target_tables:
            with wrap_transport(f"check existence of table {target}"):
                exists = await self.admin.table_exists(target)
            if not exists:
                raise ConfigurationError(
                    f"Table {target} does not exist. Create the table first, "
                    f"e.g. by restoring a full backup."
                )

        for source, target in zip(source_tables, target_tables):
            with wrap_transport(f"read descriptor of {source} in {incremental_backup_id}"):
                backup_schema = await self.manifest.schema_for(
                    self.backup_root, incremental_backup_id, source
                )
            if backup_schema is None:
                raise ArchiveNotFoundError(
                    f"No table descriptor for {source} in backup {incremental_backup_id}"
                )
            logger.debug(f"Found descriptor {backup_schema} through {incremental_backup_id}")

            with wrap_transport(f"read descriptor of table {target}"):
                live_schema = await self.admin.get_table_schema(target)
            await diff_and_apply(
                live_schema,
                backup_schema.with_table(target),
                self.admin,
                timeout_ms=self.settings.table_availability_timeout_ms,
                poll_interval_ms=self.settings.poll_interval_ms,
            )

        with wrap_transport("replay write-ahead logs"):
            await self.replay.replay(
                list(log_dirs),
                list(source_tables),
                list(target_tables),
                bulk_load_mode=False,
            )

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    async def resolve_schema(self, table: TableName, image: BackupImage) -> SchemaResolution:
        """Resolve the descriptor and data archive a backup image holds for ``table``.

        Raises:
            ArchiveNotFoundError: If the snapshot directory is needed but
                missing, or the manifest describes another table.
        """
        schema: TableSchema | None = None
        if image.incremental_backup_id is not None:
            with wrap_transport(f"read descriptor of {table} in {image.incremental_backup_id}"):
                schema = await self.manifest.schema_for(
                    self.backup_root, image.incremental_backup_id, table
                )
            if schema is not None:
                logger.debug(
                    f"Retrieved descriptor: {schema} thru {image.incremental_backup_id}"
                )

        if schema is None:
            schema = await self._snapshot_schema(table, image)

        archive_path = await self.table_archive_path(table, image.backup_id)
        return SchemaResolution.of(schema, archive_path)

    async def _snapshot_schema(self, table: TableName, image: BackupImage) -> TableSchema | None:
        """Read the table's descriptor from the full backup's snapshot manifest."""
        snapshot_path = layout.table_snapshot_path(self.backup_root, image.backup_id, table)
        with wrap_transport(f"check snapshot directory {snapshot_path}"):
            exists = await self.fs.exists(snapshot_path)
        if not exists:
            raise ArchiveNotFoundError(
                f"Table snapshot directory: {snapshot_path} does not exist."
            )

        async def _load() -> TableSchema | None:
            with wrap_transport(f"read snapshot manifest {snapshot_path}"):
                schema = await self.manifest.schema_for(
                    self.backup_root, image.backup_id, table
                )
            if schema is not None and schema.table != table:
                logger.error(
                    f"Couldn't find table descriptor for table {table} under "
                    f"{snapshot_path}, manifest describes {schema.table}"
                )
                raise ArchiveNotFoundError(
                    f"Couldn't find table descriptor for table {table} under {snapshot_path}"
                )
            return schema

        schema = await self.snapshot_cache.get_or_load(image.backup_id, table, _load)
        if schema is None:
            logger.debug("Found no table descriptor in the snapshot dir, previous schema would be lost")
        return schema

    async def table_archive_path(self, table: TableName, backup_id: str) -> str | None:
        """Return the table's archive directory, or None for an empty table."""
        path = layout.table_archive_path(self.backup_root, backup_id, table)
        with wrap_transport(f"check archive directory {path}"):
            if not await self.fs.exists(path) or not (await self.fs.get_status(path)).is_dir:
                logger.debug(f"Folder tableArchivePath: {path} does not exist")
                return None
        return path

    async def region_dirs(self, archive_path: str) -> list[str]:
        """List the region archive directories under a table archive."""
        with wrap_transport(f"list archive directory {archive_path}"):
            children = await self.fs.list_status(archive_path)
        region_dirs = []
        for child in children:
            if not child.is_dir:
                logger.warning(f"Skipping non-directory {child.path} in table archive")
                continue
            region_dirs.append(child.path)
        return region_dirs

    # ------------------------------------------------------------------
    # Table preparation and loading
    # ------------------------------------------------------------------

    async def check_and_create_table(
        self,
        schema: TableSchema,
        region_dirs: Sequence[str] | None,
        truncate_if_exists: bool,
    ) -> None:
        """Prepare the target table for bulk loading.

        - Table exists: reconcile its families with ``schema`` (when the
          backup kept a descriptor), then truncate it preserving region
          splits if requested.
        - Table missing: create it pre-split at boundaries inferred from
          ``region_dirs`` (no split keys when there are none) and wait until
          it is available.
        """
        target = schema.table
        timeout_ms = self.settings.table_availability_timeout_ms
        interval_ms = self.settings.poll_interval_ms

        with wrap_transport(f"check existence of table {target}"):
            exists = await self.admin.table_exists(target)

        if exists:
            if schema.families:
                with wrap_transport(f"read descriptor of table {target}"):
                    live_schema = await self.admin.get_table_schema(target)
                await diff_and_apply(
                    live_schema,
                    schema,
                    self.admin,
                    timeout_ms=timeout_ms,
                    poll_interval_ms=interval_ms,
                )

            if truncate_if_exists:
                logger.info(f"Truncating existing target table '{target}', preserving region splits")
                with wrap_transport(f"truncate table {target}"):
                    await self.admin.disable_table(target)
                    await self.admin.truncate_table(target, preserve_splits=True)
                await wait_table_available(
                    self.admin, target, timeout_ms=timeout_ms, interval_ms=interval_ms
                )
            else:
                logger.info(f"Using existing target table '{target}'")
            return

        logger.info(f"Creating target table '{target}'")
        split_keys: list[bytes] | None = None
        if region_dirs:
            split_keys = await infer_boundaries(
                self.fs,
                self.reader,
                self.bulk_loader,
                region_dirs,
                self.settings.ignore_dirs,
            )

        with wrap_transport(f"create table {target}"):
            await self.admin.create_table(schema, split_keys)
        await wait_table_available(
            self.admin, target, split_keys, timeout_ms=timeout_ms, interval_ms=interval_ms
        )

    async def _bulk_load(
        self,
        archive_path: str,
        region_dirs: list[str],
        target: TableName,
    ) -> None:
        """Stage the archive if needed and bulk load each region directory."""
        load_path = await stage_if_local(
            self.fs, archive_path, self.settings.staging_path, self.settings.default_fs
        )
        if load_path == archive_path:
            logger.debug(f"Table archive path for bulk load using existing path: {archive_path}")
        else:
            region_dirs = await self.region_dirs(load_path)
            logger.debug(f"Table archive path for bulk load using temp path: {load_path}")

        for region_dir in region_dirs:
            logger.debug(f"Restoring data files from directory {region_dir}")
            await self.bulk_loader.load(region_dir, target)
