"""Date-sharded table name heuristics.

Tables sharded by day are conventionally named ``<base>_YYYYMMDD``,
``<base>__YYYY_MM_DD`` or ``<base>_YYYY_MM_DD``. The guess is based on the
name alone; nothing is looked up in the catalog, so an ordinary table whose
name happens to end in eight digits is treated as sharded too.
"""

import re
from typing import Optional

_SHARD_PATTERNS = (
    re.compile(r"^(?P<base>.+_)\d{8}$"),
    re.compile(r"^(?P<base>.+__)\d{4}_\d{2}_\d{2}$"),
    re.compile(r"^(?P<base>.+_)\d{4}_\d{2}_\d{2}$"),
)

RECENT_SHARDS_FILTER = (
    "_TABLE_SUFFIX BETWEEN "
    "FORMAT_DATE('%Y%m%d', DATE_SUB(CURRENT_DATE(), INTERVAL 7 DAY)) "
    "AND FORMAT_DATE('%Y%m%d', CURRENT_DATE())"
)


def shard_base(table_id: str) -> Optional[str]:
    """Name prefix shared by all shards, or None if ``table_id`` is not a shard."""
    for pattern in _SHARD_PATTERNS:
        match = pattern.match(table_id)
        if match:
            return match.group("base")
    return None


def is_sharded(table_id: str) -> bool:
    return shard_base(table_id) is not None
