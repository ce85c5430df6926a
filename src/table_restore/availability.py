"""Bounded wait for a table to become available.

``AvailabilityPoller`` checks ``AdminClient.is_table_available()`` at a
fixed interval until it reports True or the elapsed wall-clock time exceeds
the bound.  The poller is a small state machine:

    POLLING -> AVAILABLE    predicate flipped to True
    POLLING -> TIMED_OUT    bound exceeded, TableAvailabilityTimeout raised
    POLLING -> CANCELLED    task cancelled, CancelledError re-raised

Usage:
    from table_restore.availability import wait_table_available

    await admin.create_table(schema, keys)
    await wait_table_available(admin, schema.table, keys, timeout_ms=180000)
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING

from table_restore.config.models import (
    DEFAULT_POLL_INTERVAL_MS,
    DEFAULT_TABLE_AVAILABILITY_TIMEOUT_MS,
)
from table_restore.errors import TableAvailabilityTimeout, wrap_transport

if TYPE_CHECKING:
    from table_restore.collaborators.base import AdminClient
    from table_restore.schema.models import TableName

logger = logging.getLogger(__name__)


class PollState(Enum):
    """Lifecycle of an availability wait."""

    POLLING = "polling"
    AVAILABLE = "available"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


class AvailabilityPoller:
    """Single-use availability wait for one table.

    Args:
        admin: Admin client used for the availability check.
        table: Table to wait for.
        split_keys: Optional region boundaries the table must be online at.
        timeout_ms: Wall-clock bound for the whole wait.
        interval_ms: Sleep between checks.
    """

    def __init__(
        self,
        admin: AdminClient,
        table: TableName,
        split_keys: list[bytes] | None = None,
        timeout_ms: int = DEFAULT_TABLE_AVAILABILITY_TIMEOUT_MS,
        interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
    ) -> None:
        self.admin = admin
        self.table = table
        self.split_keys = split_keys
        self.timeout_ms = timeout_ms
        self.interval_ms = interval_ms
        self.state = PollState.POLLING
        self.checks = 0

    async def run(self) -> None:
        """Poll until available.

        Raises:
            TableAvailabilityTimeout: If the bound is exceeded.
            TransportError: If the availability check itself fails.
            asyncio.CancelledError: If the waiting task is cancelled.
        """
        if self.state is not PollState.POLLING:
            raise RuntimeError(f"Poller already finished ({self.state.value})")

        loop = asyncio.get_running_loop()
        started = loop.time()
        try:
            while True:
                self.checks += 1
                with wrap_transport(f"check availability of table {self.table}"):
                    available = await self.admin.is_table_available(
                        self.table, self.split_keys
                    )
                if available:
                    self.state = PollState.AVAILABLE
                    logger.debug(
                        f"Table {self.table} available after {self.checks} checks"
                    )
                    return

                elapsed_ms = (loop.time() - started) * 1000
                if elapsed_ms >= self.timeout_ms:
                    self.state = PollState.TIMED_OUT
                    raise TableAvailabilityTimeout(str(self.table), self.timeout_ms)

                await asyncio.sleep(self.interval_ms / 1000)
        except asyncio.CancelledError:
            self.state = PollState.CANCELLED
            logger.debug(f"Availability wait for table {self.table} cancelled")
            raise


async def wait_table_available(
    admin: AdminClient,
    table: TableName,
    split_keys: list[bytes] | None = None,
    timeout_ms: int = DEFAULT_TABLE_AVAILABILITY_TIMEOUT_MS,
    interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
) -> None:
    """Block until ``table`` is available or the bound is exceeded."""
    poller = AvailabilityPoller(admin, table, split_keys, timeout_ms, interval_ms)
    await poller.run()
