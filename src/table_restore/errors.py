"""Restore error taxonomy.

Every failure surfaced by the restore library derives from ``RestoreError``
so callers can catch the whole family, while the subclasses let them tell
apart conditions that deserve different advice:

- ``ConfigurationError``: bad arguments or cluster state (never retried).
- ``ArchiveNotFoundError``: the backup image lacks what the restore needs.
- ``InconsistentArchiveError``: the backup image is corrupt or half-written.
- ``TableAvailabilityTimeout``: the cluster did not converge in time; a
  retry may succeed.
- ``TransportError``: an admin or filesystem collaborator failed.
- ``RestoreFailedError``: data loading failed part-way.  The target table
  may be partially populated and the whole table restore must be rerun.

Usage:
    from table_restore.errors import RestoreError, wrap_transport

    with wrap_transport("create table ns:t1"):
        await admin.create_table(schema, split_keys)
"""

from collections.abc import Iterator
from contextlib import contextmanager


class RestoreError(Exception):
    """Base class for restore failures."""

    pass


class ConfigurationError(RestoreError):
    """Raised for mismatched arguments or a missing target table."""

    pass


class ArchiveNotFoundError(RestoreError):
    """Raised when a snapshot directory, schema or data archive is missing."""

    pass


class InconsistentArchiveError(RestoreError):
    """Raised when an archived family directory holds no usable data files."""

    pass


class TableAvailabilityTimeout(RestoreError, TimeoutError):
    """Raised when a table does not become available within the wait bound.

    The cluster may still converge; retrying the restore is reasonable.
    """

    def __init__(self, table: str, timeout_ms: int) -> None:
        self.table = table
        self.timeout_ms = timeout_ms
        super().__init__(
            f"Time out {timeout_ms}ms expired, table {table} is still not available"
        )


class TransportError(RestoreError):
    """Raised when an admin or filesystem collaborator call fails."""

    pass


class RestoreFailedError(RestoreError):
    """Raised when loading data into the target table fails."""

    pass


@contextmanager
def wrap_transport(action: str) -> Iterator[None]:
    """Re-raise collaborator failures as ``TransportError``.

    ``RestoreError`` subclasses pass through untouched so a timeout raised
    inside the block stays distinguishable.

    Args:
        action: Short description used in the error message
            (e.g. ``"create table ns:t1"``).
    """
    try:
        yield
    except RestoreError:
        raise
    except Exception as e:
        raise TransportError(f"Failed to {action}: {e}") from e
