"""
Share-link glue between a page URL and the grid codec.

The token rides in the `grid` query parameter and the platform in
`platform` (older links used `ship`). Query values are form-encoded, so the
already percent-encoded token is escaped once more inside the URL and
unescaped once when read back.
"""

import logging
from typing import List, NamedTuple, Optional, Tuple
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from constants import (
    DEFAULT_PLATFORM,
    GRID_HEIGHT,
    GRID_QUERY_PARAM,
    GRID_WIDTH,
    LEGACY_SHIP_QUERY_PARAM,
    PLATFORM_QUERY_PARAM,
)
from grid_codec import CatalogLookup, DecodeResult, serialize_grid, try_deserialize_grid
from grid_model import Grid, create_grid


class ShareParams(NamedTuple):
    token: Optional[str]
    platform: Optional[str]


def _query_pairs(url: str) -> List[Tuple[str, str]]:
    return parse_qsl(urlsplit(url).query, keep_blank_values=True)


def _with_query(url: str, pairs: List[Tuple[str, str]]) -> str:
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(pairs), parts.fragment))


def read_share_params(url: str) -> ShareParams:
    params = dict(_query_pairs(url))
    token = params.get(GRID_QUERY_PARAM) or None
    platform = params.get(PLATFORM_QUERY_PARAM) or params.get(LEGACY_SHIP_QUERY_PARAM) or None
    return ShareParams(token=token, platform=platform)


def set_query_params(url: str, **values: str) -> str:
    pairs = [(k, v) for k, v in _query_pairs(url) if k not in values]
    pairs.extend(values.items())
    return _with_query(url, pairs)


def build_share_url(url: str, token: str, platform: str) -> str:
    return set_query_params(url, **{GRID_QUERY_PARAM: token, PLATFORM_QUERY_PARAM: platform})


def strip_grid_param(url: str) -> str:
    return _with_query(url, [(k, v) for k, v in _query_pairs(url) if k != GRID_QUERY_PARAM])


class DecodeSequencer:
    """Tags decodes with increasing tickets; only the newest ticket may land."""

    def __init__(self) -> None:
        self._latest = 0

    def next_ticket(self) -> int:
        self._latest += 1
        return self._latest

    def is_current(self, ticket: int) -> bool:
        return ticket == self._latest


class GridShareSession:
    """Holds the grid and platform being edited and syncs them with share URLs."""

    def __init__(
        self,
        catalog_lookup: CatalogLookup,
        *,
        platform: str = DEFAULT_PLATFORM,
        width: int = GRID_WIDTH,
        height: int = GRID_HEIGHT,
    ) -> None:
        self._catalog_lookup = catalog_lookup
        self._sequencer = DecodeSequencer()
        self.width = width
        self.height = height
        self.platform = platform
        self.grid: Grid = create_grid(width, height)
        self.is_shared_grid = False

    def share_url(self, page_url: str) -> str:
        return build_share_url(page_url, serialize_grid(self.grid), self.platform)

    def reset_url(self, page_url: str) -> str:
        # A reset supersedes any decode still in flight.
        self._sequencer.next_ticket()
        self.is_shared_grid = False
        return strip_grid_param(page_url)

    async def load_from_url(self, page_url: str) -> Optional[DecodeResult]:
        """Apply the platform and grid from `page_url`.

        Returns None when the URL carries no grid or when a newer load
        superseded this one before its decode finished.
        """
        ticket = self._sequencer.next_ticket()
        params = read_share_params(page_url)
        if params.platform and params.platform != self.platform:
            self.platform = params.platform
        if not params.token:
            self.is_shared_grid = False
            return None

        self.is_shared_grid = True
        result = await try_deserialize_grid(
            params.token,
            self.platform,
            self._catalog_lookup,
            width=self.width,
            height=self.height,
        )
        if not self._sequencer.is_current(ticket):
            logging.info("Discarding superseded grid decode (ticket %d)", ticket)
            return None
        if result.grid is not None:
            self.grid = result.grid
        return result
