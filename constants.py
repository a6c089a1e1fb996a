"""
Canonical shared constants for the grid share service.

Grid dimensions, wire-format characters and the environment-driven
settings for the tech catalog collaborator all live here so the codec,
the catalog client and the routes agree on them.
"""

import os
from typing import FrozenSet

# ---------------------------------------------------------------------------
# Grid dimensions (agreed out-of-band, never encoded in the token)
# ---------------------------------------------------------------------------

GRID_WIDTH = int(os.environ.get("GRID_WIDTH", "10"))
GRID_HEIGHT = int(os.environ.get("GRID_HEIGHT", "6"))

# ---------------------------------------------------------------------------
# Wire format
# ---------------------------------------------------------------------------

FIELD_DELIMITER = "|"
TABLE_ENTRY_DELIMITER = ","
TABLE_PAIR_DELIMITER = ":"
EMPTY_SLOT = " "
FIELD_COUNT = 6

GRID_INACTIVE = "0"
GRID_ACTIVE = "1"
GRID_SUPERCHARGED = "2"
GRID_STATE_CHARS: FrozenSet[str] = frozenset({GRID_INACTIVE, GRID_ACTIVE, GRID_SUPERCHARGED})

BONUS_SET = "T"
BONUS_UNSET = "F"

TECH_CODE_START = 3
MODULE_CODE_START = ord("A")

# Characters a symbol code may never take: digits are RLE counts, the rest
# are delimiters or the empty-slot marker.
RESERVED_SYMBOL_CHARS: FrozenSet[str] = frozenset(
    "0123456789" + EMPTY_SLOT + FIELD_DELIMITER + TABLE_ENTRY_DELIMITER + TABLE_PAIR_DELIMITER
)

# Matches JavaScript's encodeURIComponent unreserved set.
URI_COMPONENT_SAFE = "!~*'()"

# ---------------------------------------------------------------------------
# Query parameters
# ---------------------------------------------------------------------------

GRID_QUERY_PARAM = "grid"
PLATFORM_QUERY_PARAM = "platform"
LEGACY_SHIP_QUERY_PARAM = "ship"
DEFAULT_PLATFORM = os.environ.get("DEFAULT_PLATFORM", "standard")

# ---------------------------------------------------------------------------
# Tech catalog collaborator
# ---------------------------------------------------------------------------

TECH_API_BASE = os.environ.get("TECH_API_BASE", "http://localhost:8016").rstrip("/")
TECH_API_TIMEOUT_S = float(os.environ.get("TECH_API_TIMEOUT_S", "10"))
PLATFORMS_CACHE_KEY = "platforms"

# Module record fields copied onto a cell during hydration.
MODULE_DISPLAY_FIELDS = ("type", "label", "image", "bonus", "value", "adjacency", "sc_eligible")
