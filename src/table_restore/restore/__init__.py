"""Restore orchestration: schema resolution, boundary inference, staging, loading.

Usage:
    from table_restore.restore import RestoreOrchestrator, RestoreRequest, BackupImage
    from table_restore.restore import collect_weighted_keys, stage_if_local
"""

from table_restore.restore.boundaries import (
    collect_weighted_keys,
    infer_boundaries,
    split_points_from_weights,
)
from table_restore.restore.models import (
    BackupImage,
    ResolutionKind,
    RestoreRequest,
    SchemaResolution,
)
from table_restore.restore.orchestrator import RestoreOrchestrator
from table_restore.restore.snapshot_cache import SnapshotCache
from table_restore.restore.staging import filesystem_authority, stage_if_local

__all__ = [
    "RestoreOrchestrator",
    "BackupImage",
    "RestoreRequest",
    "ResolutionKind",
    "SchemaResolution",
    "SnapshotCache",
    "collect_weighted_keys",
    "infer_boundaries",
    "split_points_from_weights",
    "filesystem_authority",
    "stage_if_local",
]
