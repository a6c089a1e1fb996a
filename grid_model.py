"""
Grid and cell models shared by the codec, the routes and the share session.

Only `active`, `supercharged`, `tech`, `module` and `adjacency_bonus` travel
in a share token; every other field is display data rebuilt from the tech
catalog on decode.
"""

from typing import Iterator, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

from constants import FIELD_DELIMITER, TABLE_ENTRY_DELIMITER

# Keys are written verbatim into the symbol tables.
_FORBIDDEN_KEY_CHARS = (FIELD_DELIMITER, TABLE_ENTRY_DELIMITER)


class Cell(BaseModel):
    active: bool = True
    supercharged: bool = False
    tech: Optional[str] = None
    module: Optional[str] = None
    adjacency_bonus: float = 0.0
    adjacency: bool = False
    bonus: float = 0.0
    image: Optional[str] = None
    label: str = ""
    sc_eligible: bool = False
    total: float = 0.0
    type: str = ""
    value: float = 0

    @field_validator("tech", "module")
    @classmethod
    def _key_without_delimiters(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and any(ch in value for ch in _FORBIDDEN_KEY_CHARS):
            raise ValueError(f"key {value!r} must not contain '|' or ','")
        return value


class Grid(BaseModel):
    width: int = Field(0, ge=0)
    height: int = Field(0, ge=0)
    cells: List[List[Cell]] = Field(default_factory=list)

    def iter_cells(self) -> Iterator[Tuple[int, int, Cell]]:
        """Yield (row, col, cell) in row-major order."""
        for r, row in enumerate(self.cells):
            for c, cell in enumerate(row):
                yield r, c, cell


def create_empty_cell(supercharged: bool = False, active: bool = True) -> Cell:
    return Cell(active=active, supercharged=supercharged)


def create_grid(width: int, height: int) -> Grid:
    return Grid(
        width=width,
        height=height,
        cells=[[create_empty_cell() for _ in range(width)] for _ in range(height)],
    )
