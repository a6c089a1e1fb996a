"""
Grid share-token codec.

Token layout, percent-encoded once as a whole:

    grid | tech | module | bonus | tech_table | module_table

`grid` is one of 0/1/2 per cell (inactive / active / supercharged) and is
left uncompressed so its length always equals width*height. `tech`, `module`
and `bonus` are RLE-compressed per-cell streams; the two tables map keys to
the single-character codes used in the tech and module streams.

Decoding rebuilds the structural state from the token and hydrates module
display fields from the tech catalog of the selected platform.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Literal, Optional, Tuple
from urllib.parse import quote, unquote

from constants import (
    BONUS_SET,
    BONUS_UNSET,
    EMPTY_SLOT,
    FIELD_COUNT,
    FIELD_DELIMITER,
    GRID_ACTIVE,
    GRID_HEIGHT,
    GRID_INACTIVE,
    GRID_STATE_CHARS,
    GRID_SUPERCHARGED,
    GRID_WIDTH,
    MODULE_CODE_START,
    TECH_CODE_START,
    URI_COMPONENT_SAFE,
)
from grid_model import Cell, Grid, create_grid
from rle_codec import RLEFormatError, RLELimitExceeded, compress_rle, decompress_rle
from symbol_table import SymbolAllocator, format_symbol_table, parse_symbol_table
from tech_catalog_service import CatalogFetchError, ModuleLookup, ModuleRecord

CatalogLookup = Callable[[str], Awaitable[ModuleLookup]]
DecodeStatus = Literal["ok", "empty", "format_error", "length_mismatch", "fetch_failed"]

_BAD_PERCENT_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


class GridCodecError(ValueError):
    pass


class FormatError(GridCodecError):
    pass


class LengthMismatchError(GridCodecError):
    pass


class ModuleLookupError(GridCodecError):
    """A module referenced by the token is absent from the catalog."""

    def __init__(self, row: int, col: int, tech: str, module: str) -> None:
        super().__init__(f"Module not found for tech: {tech}, module: {module} (cell {row},{col})")
        self.row = row
        self.col = col
        self.tech = tech
        self.module = module


@dataclass
class DecodeResult:
    status: DecodeStatus
    grid: Optional[Grid] = None
    error: Optional[Exception] = None
    warnings: List[ModuleLookupError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status == "ok"


# ── Encoding ───────────────────────────────────────────────────────────────

def _grid_state_char(cell: Cell) -> str:
    if not cell.active:
        return GRID_INACTIVE
    return GRID_SUPERCHARGED if cell.supercharged else GRID_ACTIVE


def encode_uri_component(text: str) -> str:
    return quote(text, safe=URI_COMPONENT_SAFE)


def decode_uri_component(text: str) -> str:
    if _BAD_PERCENT_ESCAPE.search(text):
        raise FormatError("malformed percent-escape in token")
    try:
        return unquote(text, errors="strict")
    except UnicodeDecodeError as exc:
        raise FormatError(f"token is not valid UTF-8 after percent-decoding: {exc}") from exc


def build_token_fields(grid: Grid) -> List[str]:
    """Return the six unencoded token fields for `grid`."""
    techs = SymbolAllocator(TECH_CODE_START)
    modules = SymbolAllocator(MODULE_CODE_START)
    grid_stream: List[str] = []
    tech_stream: List[str] = []
    module_stream: List[str] = []
    bonus_stream: List[str] = []

    for _r, _c, cell in grid.iter_cells():
        grid_stream.append(_grid_state_char(cell))
        tech_stream.append(techs.code_for(cell.tech) if cell.tech else EMPTY_SLOT)
        module_stream.append(modules.code_for(cell.module) if cell.module else EMPTY_SLOT)
        bonus_stream.append(BONUS_SET if cell.adjacency_bonus > 0 else BONUS_UNSET)

    return [
        "".join(grid_stream),
        compress_rle("".join(tech_stream)),
        compress_rle("".join(module_stream)),
        compress_rle("".join(bonus_stream)),
        format_symbol_table(techs.codes),
        format_symbol_table(modules.codes),
    ]


def serialize_grid(grid: Grid) -> str:
    return encode_uri_component(FIELD_DELIMITER.join(build_token_fields(grid)))


# ── Decoding ───────────────────────────────────────────────────────────────

@dataclass
class _TokenStreams:
    grid: str
    tech: str
    module: str
    bonus: str
    tech_codes: dict
    module_codes: dict


def parse_token(token: str, width: int = GRID_WIDTH, height: int = GRID_HEIGHT) -> _TokenStreams:
    """Percent-decode, split, decompress and validate a token. No catalog access."""
    decoded = decode_uri_component(token)
    parts = decoded.split(FIELD_DELIMITER)
    if len(parts) != FIELD_COUNT:
        raise FormatError(f"expected {FIELD_COUNT} fields, got {len(parts)}")
    grid_stream, compressed_tech, compressed_module, compressed_bonus, tech_table, module_table = parts

    expected = width * height
    try:
        tech_stream = decompress_rle(compressed_tech, limit=expected)
        module_stream = decompress_rle(compressed_module, limit=expected)
        bonus_stream = decompress_rle(compressed_bonus, limit=expected)
    except RLELimitExceeded as exc:
        raise LengthMismatchError(str(exc)) from exc
    except RLEFormatError as exc:
        raise FormatError(f"corrupt stream: {exc}") from exc

    for name, stream in (
        ("grid", grid_stream),
        ("tech", tech_stream),
        ("module", module_stream),
        ("bonus", bonus_stream),
    ):
        if len(stream) != expected:
            raise LengthMismatchError(f"{name} stream has {len(stream)} cells, expected {expected}")

    if not set(grid_stream) <= GRID_STATE_CHARS:
        raise FormatError("grid stream contains characters other than 0, 1, 2")

    return _TokenStreams(
        grid=grid_stream,
        tech=tech_stream,
        module=module_stream,
        bonus=bonus_stream,
        tech_codes=parse_symbol_table(tech_table),
        module_codes=parse_symbol_table(module_table),
    )


def _hydrate_cell(cell: Cell, record: ModuleRecord) -> None:
    cell.module = str(record.get("id"))
    cell.type = str(record.get("type") or "")
    cell.label = str(record.get("label") or "")
    cell.image = record.get("image")
    cell.bonus = float(record.get("bonus") or 0.0)
    cell.value = float(record.get("value") or 0)
    cell.adjacency = bool(record.get("adjacency"))
    cell.sc_eligible = bool(record.get("sc_eligible"))


def build_grid(
    streams: _TokenStreams,
    catalog: ModuleLookup,
    width: int = GRID_WIDTH,
    height: int = GRID_HEIGHT,
) -> Tuple[Grid, List[ModuleLookupError]]:
    grid = create_grid(width, height)
    warnings: List[ModuleLookupError] = []
    for r, c, cell in grid.iter_cells():
        i = r * width + c
        state = streams.grid[i]
        cell.active = state != GRID_INACTIVE
        cell.supercharged = state == GRID_SUPERCHARGED
        tech_char = streams.tech[i]
        module_char = streams.module[i]
        tech = None if tech_char == EMPTY_SLOT else streams.tech_codes.get(tech_char)
        module_id = None if module_char == EMPTY_SLOT else streams.module_codes.get(module_char)
        cell.tech = tech
        # Share-time bonus state; catalog hydration never touches it.
        cell.adjacency_bonus = 1.0 if streams.bonus[i] == BONUS_SET else 0.0

        if tech and module_id:
            record = catalog.get(tech, {}).get(module_id)
            if record is None:
                missing = ModuleLookupError(r, c, tech, module_id)
                logging.warning("%s", missing)
                warnings.append(missing)
            else:
                _hydrate_cell(cell, record)
    return grid, warnings


async def decode_grid(
    token: str,
    ship_type: str,
    catalog_lookup: CatalogLookup,
    *,
    width: int = GRID_WIDTH,
    height: int = GRID_HEIGHT,
) -> Tuple[Grid, List[ModuleLookupError]]:
    """Decode `token`, raising FormatError, LengthMismatchError or CatalogFetchError."""
    streams = parse_token(token, width, height)
    catalog = await catalog_lookup(ship_type)
    return build_grid(streams, catalog, width, height)


async def try_deserialize_grid(
    token: Optional[str],
    ship_type: str,
    catalog_lookup: CatalogLookup,
    *,
    width: int = GRID_WIDTH,
    height: int = GRID_HEIGHT,
) -> DecodeResult:
    if not token:
        logging.warning("No serialized grid data found. Skipping deserialization.")
        return DecodeResult(status="empty")
    try:
        grid, warnings = await decode_grid(token, ship_type, catalog_lookup, width=width, height=height)
    except LengthMismatchError as exc:
        logging.error("Invalid serialized grid: %s", exc)
        return DecodeResult(status="length_mismatch", error=exc)
    except FormatError as exc:
        logging.error("Invalid serialized grid format: %s", exc)
        return DecodeResult(status="format_error", error=exc)
    except CatalogFetchError as exc:
        logging.error("Error deserializing grid: %s", exc)
        return DecodeResult(status="fetch_failed", error=exc)
    return DecodeResult(status="ok", grid=grid, warnings=warnings)


async def deserialize_grid(
    token: Optional[str],
    ship_type: str,
    catalog_lookup: CatalogLookup,
    *,
    width: int = GRID_WIDTH,
    height: int = GRID_HEIGHT,
) -> Optional[Grid]:
    result = await try_deserialize_grid(token, ship_type, catalog_lookup, width=width, height=height)
    return result.grid
