"""Restore configuration loader.

Reads ``restore.toml`` from the current working directory (or an explicit
path) and returns a validated ``RestoreConfig``.
"""

import tomllib
from pathlib import Path

from table_restore.config.models import ClusterProfile, RestoreConfig


def load_restore_config(config_path: Path | None = None) -> RestoreConfig:
    """Load restore configuration from TOML file.

    Args:
        config_path: Path to restore.toml (default: ./restore.toml)

    Returns:
        RestoreConfig with all cluster profiles

    Raises:
        FileNotFoundError: If config file doesn't exist
        pydantic.ValidationError: If a setting has an invalid value
    """
    if config_path is None:
        config_path = Path.cwd() / "restore.toml"

    if not config_path.exists():
        raise FileNotFoundError(
            f"Restore config not found: {config_path}\n"
            f"Create restore.toml with a [clusters.<name>] section per cluster."
        )

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    # Parse cluster profiles
    clusters = {}
    for name, profile_data in data.get("clusters", {}).items():
        clusters[name] = ClusterProfile(**profile_data)

    # Parse restore settings; unset keys fall back to model defaults
    restore_settings = data.get("restore", {})

    return RestoreConfig(clusters=clusters, **restore_settings)
