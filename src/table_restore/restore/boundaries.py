"""Region boundary inference from archived data files.

Reads the first and last row key of every data file under a set of region
archive directories and accumulates them into a weight map: +1 at each
file's first key, -1 at each file's last key.  Keys are kept in
byte-lexicographic order.  Turning the weight map into split keys is the
bulk loader's job (``BulkLoader.infer_split_keys``);
``split_points_from_weights`` implements the usual cumulative-sum rule for
loaders that want it.

Usage:
    from table_restore.restore.boundaries import infer_boundaries

    keys = await infer_boundaries(fs, reader, bulk_loader, region_dirs)
    await admin.create_table(schema, keys)
"""

import logging
import re
from collections.abc import Iterable, Sequence

from table_restore.collaborators.base import BulkLoader, DataFileReader, FileSystemClient
from table_restore.config.models import RECOVERED_EDITS_DIR
from table_restore.errors import InconsistentArchiveError, wrap_transport

logger = logging.getLogger(__name__)

# <hfile>.<parent region>, optionally with a bulk-load sequence id suffix
REFERENCE_NAME_PATTERN = re.compile(r"^([0-9a-f]+(?:_SeqId_[0-9]+_)?)\.(.+)$")

# [<namespace>=]<table>=<region>-<hfile>
LINK_NAME_PATTERN = re.compile(
    r"^(?:\w+=)?\w[-\w.]*=[0-9a-f]+-[0-9a-f]+(?:_SeqId_[0-9]+_)?$"
)


# ------------------------------------------------------------------
# File filters
# ------------------------------------------------------------------


def is_hidden(name: str) -> bool:
    """True for ``_logs``, ``.tmp`` and similar bookkeeping entries."""
    return name.startswith("_") or name.startswith(".")


def is_reference_file(name: str) -> bool:
    """True if the name denotes a reference to half of a parent region's file."""
    return REFERENCE_NAME_PATTERN.match(name) is not None


def is_link_file(name: str) -> bool:
    """True if the name denotes a link to a data file owned by another table."""
    return LINK_NAME_PATTERN.match(name) is not None


def skip_reason(name: str) -> str | None:
    """Why boundary inference skips a data file, or None if it is read."""
    if is_hidden(name):
        return "hidden"
    if is_reference_file(name):
        return "reference"
    if is_link_file(name):
        return "link"
    return None


def is_ignored_dir(name: str, ignore_dirs: Iterable[str]) -> bool:
    """True if a region child directory matches the ignore list."""
    return any(ignore in name for ignore in ignore_dirs)


# ------------------------------------------------------------------
# Accumulation
# ------------------------------------------------------------------


async def _add_file_keys(
    reader: DataFileReader,
    path: str,
    weights: dict[bytes, int],
) -> None:
    """Read one file's first/last row key and update the weight map."""
    with wrap_transport(f"read row keys of {path}"):
        handle = await reader.open(path)
        try:
            first = await reader.first_row_key(handle)
            last = await reader.last_row_key(handle)
        finally:
            await reader.close(handle)

    logger.debug(
        f"Trying to figure out region boundaries file={path} first={first!r} last={last!r}"
    )
    weights[first] = weights.get(first, 0) + 1
    weights[last] = weights.get(last, 0) - 1


async def collect_weighted_keys(
    fs: FileSystemClient,
    reader: DataFileReader,
    region_dirs: Sequence[str],
    ignore_dirs: Iterable[str] = (RECOVERED_EDITS_DIR,),
) -> dict[bytes, int]:
    """Build the first/last row key weight map for a set of region archives.

    Args:
        fs: Filesystem holding the archives.
        reader: Data-file reader used to fetch row keys.
        region_dirs: Region archive directories.
        ignore_dirs: Substrings of region children that are not families
            (e.g. ``recovered.edits``).

    Returns:
        Dict from row key to net weight, in byte-lexicographic key order.
        The result does not depend on the order of ``region_dirs``.

    Raises:
        InconsistentArchiveError: If a region directory is missing or a
            family directory holds no usable data file.
        TransportError: If listing or reading fails.
    """
    ignore_dirs = tuple(ignore_dirs)
    weights: dict[bytes, int] = {}

    for region_dir in region_dirs:
        logger.debug(f"Parsing region dir: {region_dir}")
        with wrap_transport(f"list region dir {region_dir}"):
            if not await fs.exists(region_dir):
                raise InconsistentArchiveError(f"Region dir {region_dir} not found")
            family_statuses = await fs.list_status(region_dir)

        for stat in family_statuses:
            if not stat.is_dir:
                logger.warning(f"Skipping non-directory {stat.path}")
                continue
            if is_ignored_dir(stat.name, ignore_dirs):
                logger.warning(f"Skipping non-family directory {stat.name}")
                continue
            if is_hidden(stat.name):
                continue

            family_dir = stat.path
            logger.debug(f"Parsing family dir [{family_dir}] in region [{region_dir}]")
            with wrap_transport(f"list family dir {family_dir}"):
                file_statuses = await fs.list_status(family_dir)

            data_files = [
                f.path for f in file_statuses
                if not f.is_dir and skip_reason(f.name) is None
            ]
            if not data_files:
                raise InconsistentArchiveError(
                    f"No data files found in family dir {family_dir}"
                )

            for path in data_files:
                await _add_file_keys(reader, path, weights)

    return dict(sorted(weights.items()))


def split_points_from_weights(weighted_keys: dict[bytes, int]) -> list[bytes]:
    """Derive split keys from a first/last key weight map.

    Walks the keys in order keeping a running sum.  Each time the sum returns
    to zero a contiguous covered key range has closed; the start key of every
    such range except the first becomes a split key.

    Example:
        >>> split_points_from_weights({b"a": 1, b"c": -1, b"d": 1, b"f": -1})
        [b'd']
    """
    split_keys: list[bytes] = []
    running = 0
    range_start: bytes | None = None
    first_range = True

    for key in sorted(weighted_keys):
        if running == 0:
            range_start = key
        running += weighted_keys[key]
        if running == 0:
            if not first_range:
                split_keys.append(range_start)
            first_range = False

    return split_keys


async def infer_boundaries(
    fs: FileSystemClient,
    reader: DataFileReader,
    bulk_loader: BulkLoader,
    region_dirs: Sequence[str],
    ignore_dirs: Iterable[str] = (RECOVERED_EDITS_DIR,),
) -> list[bytes]:
    """Infer split keys for pre-splitting a table over ``region_dirs``."""
    weights = await collect_weighted_keys(fs, reader, region_dirs, ignore_dirs)
    split_keys = bulk_loader.infer_split_keys(weights)
    logger.debug(f"Inferred {len(split_keys)} split keys from {len(region_dirs)} regions")
    return split_keys
