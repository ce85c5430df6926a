"""Pydantic models for restore configuration."""

from pydantic import BaseModel, Field

DEFAULT_TABLE_AVAILABILITY_TIMEOUT_MS = 180000
DEFAULT_POLL_INTERVAL_MS = 100
RECOVERED_EDITS_DIR = "recovered.edits"


# ============================================================================
# Configuration Models
# ============================================================================


class ClusterProfile(BaseModel):
    """Target cluster profile from restore.toml."""

    default_fs: str  # e.g. hdfs://nn1:8020
    description: str = ""


class RestoreSettings(BaseModel):
    """Settings for one restore session against one cluster.

    Example:
        >>> settings = RestoreSettings(default_fs="hdfs://nn1:8020")
        >>> settings.staging_path
        'hdfs://nn1:8020/tmp/hbase-staging/restore'
    """

    default_fs: str = "file:///"
    staging_dir: str = "/tmp/hbase-staging"
    table_availability_timeout_ms: int = Field(
        default=DEFAULT_TABLE_AVAILABILITY_TIMEOUT_MS, gt=0
    )
    poll_interval_ms: int = Field(default=DEFAULT_POLL_INTERVAL_MS, gt=0)
    ignore_dirs: list[str] = Field(default_factory=lambda: [RECOVERED_EDITS_DIR])

    @property
    def staging_path(self) -> str:
        """Scratch path archives are copied to before bulk load.

        Relative to the default filesystem unless ``staging_dir`` is a URI.
        """
        staging = self.staging_dir.rstrip("/")
        if "://" not in staging:
            fs_root = self.default_fs if self.default_fs.endswith("/") else f"{self.default_fs}/"
            staging = f"{fs_root}{staging.lstrip('/')}"
        return f"{staging}/restore"


class RestoreConfig(BaseModel):
    """Complete restore configuration from restore.toml."""

    clusters: dict[str, ClusterProfile] = Field(default_factory=dict)
    staging_dir: str = "/tmp/hbase-staging"
    table_availability_timeout_ms: int = Field(
        default=DEFAULT_TABLE_AVAILABILITY_TIMEOUT_MS, gt=0
    )
    poll_interval_ms: int = Field(default=DEFAULT_POLL_INTERVAL_MS, gt=0)
    ignore_dirs: list[str] = Field(default_factory=lambda: [RECOVERED_EDITS_DIR])

    def settings_for(self, cluster: str) -> RestoreSettings:
        """Build session settings for a configured cluster.

        Raises:
            KeyError: If the cluster is not configured.
        """
        if cluster not in self.clusters:
            raise KeyError(
                f"Cluster '{cluster}' not found in restore.toml.\n"
                f"Available clusters: {', '.join(self.clusters.keys())}"
            )
        return RestoreSettings(
            default_fs=self.clusters[cluster].default_fs,
            staging_dir=self.staging_dir,
            table_availability_timeout_ms=self.table_availability_timeout_ms,
            poll_interval_ms=self.poll_interval_ms,
            ignore_dirs=list(self.ignore_dirs),
        )
