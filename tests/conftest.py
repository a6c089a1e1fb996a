"""
Shared pytest fixtures for the grid share service tests.

Provides:
  - A sample tech tree in the optimizer API shape, and its flattened lookup
  - In-memory catalog lookups (working, failing, call-counting)
  - An httpx MockTransport-backed TechCatalog
  - FastAPI TestClient with the catalog dependency overridden
  - Grid building helpers
"""

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx
import pytest

# ---------------------------------------------------------------------------
# Ensure the project root is on sys.path so we can import app modules
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


# ---------------------------------------------------------------------------
# Catalog fixtures
# ---------------------------------------------------------------------------

SAMPLE_TECH_TREE: Dict[str, Any] = {
    "Weaponry": [
        {
            "key": "pulse",
            "label": "Pulse Engine",
            "image": "pulse.webp",
            "color": "teal",
            "modules": [
                {
                    "id": "PE",
                    "type": "core",
                    "label": "Pulse Engine",
                    "image": "pulse/pe.webp",
                    "bonus": 1.0,
                    "value": 1,
                    "adjacency": True,
                    "sc_eligible": True,
                },
                {
                    "id": "Xa",
                    "type": "bonus",
                    "label": "Pulse Upgrade Sigma",
                    "image": "pulse/upgrade.webp",
                    "bonus": 0.3,
                    "value": 2,
                    "adjacency": True,
                    "sc_eligible": True,
                },
            ],
        },
        {
            "key": "cyclotron",
            "label": "Cyclotron Ballista",
            "image": None,
            "color": "gray",
            "modules": [
                {
                    "id": "CB",
                    "type": "core",
                    "label": "Cyclotron Ballista",
                    "image": "cyclotron/cb.webp",
                    "bonus": 0.0,
                    "value": 0,
                    "adjacency": False,
                    "sc_eligible": False,
                },
            ],
        },
    ],
    "Defensive Systems": [
        {
            "key": "shield",
            "label": "Defensive Shield",
            "image": "shield.webp",
            "color": "blue",
            "modules": [
                {
                    "id": "DS",
                    "type": "core",
                    "label": "Defensive Shield",
                    "image": "shield/ds.webp",
                    "bonus": 0.5,
                    "value": 3,
                    "adjacency": True,
                    "sc_eligible": True,
                },
            ],
        },
    ],
    "recommended_builds": {"note": "not a category list"},
}


@pytest.fixture()
def tech_tree() -> Dict[str, Any]:
    return SAMPLE_TECH_TREE


@pytest.fixture()
def module_lookup(tech_tree):
    from tech_catalog_service import flatten_tech_tree
    return flatten_tech_tree(tech_tree)


class RecordingLookup:
    """Async catalog lookup that records which platforms were requested."""

    def __init__(self, lookup, error: Optional[Exception] = None) -> None:
        self.lookup = lookup
        self.error = error
        self.calls: List[str] = []

    async def __call__(self, ship_type: str):
        self.calls.append(ship_type)
        if self.error is not None:
            raise self.error
        return self.lookup


@pytest.fixture()
def catalog_lookup(module_lookup) -> RecordingLookup:
    return RecordingLookup(module_lookup)


@pytest.fixture()
def failing_lookup() -> RecordingLookup:
    from tech_catalog_service import CatalogFetchError
    return RecordingLookup({}, error=CatalogFetchError("HTTP 503 fetching tech tree"))


# ---------------------------------------------------------------------------
# HTTP-backed catalog
# ---------------------------------------------------------------------------

PLATFORMS_PAYLOAD: Dict[str, Any] = {
    "standard": {"label": "Starship", "type": "Starship"},
    "sentinel": {"label": "Sentinel Interceptor", "type": "Starship"},
    "corvette": {"label": "Corvette", "type": "Starship"},
}


class FakeTechApi:
    """httpx handler serving /tech_tree/{platform} and /platforms."""

    def __init__(self, tree: Dict[str, Any]) -> None:
        self.tree = tree
        self.requests: List[str] = []
        self.fail_status: Optional[int] = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request.url.path)
        if self.fail_status is not None:
            return httpx.Response(self.fail_status, json={"detail": "down"})
        if request.url.path == "/platforms":
            return httpx.Response(200, json=PLATFORMS_PAYLOAD)
        if request.url.path.startswith("/tech_tree/"):
            platform = request.url.path.rsplit("/", 1)[-1]
            if platform not in PLATFORMS_PAYLOAD:
                return httpx.Response(404, json={"detail": "unknown platform"})
            return httpx.Response(200, json=self.tree)
        return httpx.Response(404)


@pytest.fixture()
def fake_api(tech_tree) -> FakeTechApi:
    return FakeTechApi(tech_tree)


@pytest.fixture()
def http_catalog(fake_api):
    from tech_catalog_service import TechCatalog
    client = httpx.AsyncClient(transport=httpx.MockTransport(fake_api))
    return TechCatalog("http://tech.test", client=client)


# ---------------------------------------------------------------------------
# FastAPI TestClient
# ---------------------------------------------------------------------------

@pytest.fixture()
def client(http_catalog):
    """Return a Starlette TestClient with the tech catalog pointed at the fake API."""
    from fastapi.testclient import TestClient
    from grid_router import get_tech_catalog
    from main import app

    app.dependency_overrides[get_tech_catalog] = lambda: http_catalog
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Grid helpers
# ---------------------------------------------------------------------------

class GridHelpers:
    """Stateless helpers for building grids in tests."""

    @staticmethod
    def cell(
        tech: Optional[str] = None,
        module: Optional[str] = None,
        *,
        active: bool = True,
        supercharged: bool = False,
        adjacency_bonus: float = 0.0,
    ):
        from grid_model import Cell
        return Cell(
            active=active,
            supercharged=supercharged,
            tech=tech,
            module=module,
            adjacency_bonus=adjacency_bonus,
        )

    @staticmethod
    def grid(rows):
        from grid_model import Grid
        height = len(rows)
        width = len(rows[0]) if rows else 0
        return Grid(width=width, height=height, cells=rows)

    @staticmethod
    def full_grid(width: int = 10, height: int = 6):
        """A standard-size layout with techs, supercharged slots and inactive cells."""
        from grid_model import create_grid
        grid = create_grid(width, height)
        grid.cells[0][0].tech, grid.cells[0][0].module = "pulse", "PE"
        grid.cells[0][1].tech, grid.cells[0][1].module = "pulse", "Xa"
        grid.cells[0][1].supercharged = True
        grid.cells[0][1].adjacency_bonus = 1.25
        grid.cells[1][0].tech, grid.cells[1][0].module = "shield", "DS"
        grid.cells[1][0].adjacency_bonus = 0.5
        grid.cells[2][3].tech, grid.cells[2][3].module = "cyclotron", "CB"
        grid.cells[2][3].supercharged = True
        for c in range(width):
            grid.cells[height - 1][c].active = False
        return grid


@pytest.fixture()
def helpers() -> GridHelpers:
    return GridHelpers()
