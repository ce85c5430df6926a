"""Configuration management: cluster profiles, TOML loading, and settings models.

Usage:
    >>> from table_restore.config import load_restore_config, RestoreSettings
"""

from table_restore.config.loader import load_restore_config
from table_restore.config.models import ClusterProfile, RestoreConfig, RestoreSettings

__all__ = ["load_restore_config", "ClusterProfile", "RestoreConfig", "RestoreSettings"]
