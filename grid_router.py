"""
Grid share API routes.

Handles:
  /api/grid/serialize
  /api/grid/deserialize
  /api/platforms
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from constants import DEFAULT_PLATFORM, GRID_HEIGHT, GRID_WIDTH
from grid_codec import serialize_grid, try_deserialize_grid
from grid_model import Grid
from share_link import build_share_url
from tech_catalog_service import CatalogFetchError, TechCatalog, list_platform_keys

router = APIRouter(tags=["grid"])


def get_tech_catalog(request: Request) -> TechCatalog:
    """FastAPI dependency returning the app-wide tech catalog client."""
    return request.app.state.tech_catalog


class SerializeReq(BaseModel):
    grid: Grid
    platform: str = DEFAULT_PLATFORM
    base_url: Optional[str] = None


@router.post("/api/grid/serialize")
def api_grid_serialize(req: SerializeReq) -> Dict[str, Any]:
    token = serialize_grid(req.grid)
    payload: Dict[str, Any] = {"token": token, "platform": req.platform}
    if req.base_url:
        payload["url"] = build_share_url(req.base_url, token, req.platform)
    return payload


@router.get("/api/grid/deserialize")
async def api_grid_deserialize(
    grid: str = "",
    platform: str = DEFAULT_PLATFORM,
    catalog: TechCatalog = Depends(get_tech_catalog),
) -> Dict[str, Any]:
    result = await try_deserialize_grid(
        grid, platform, catalog.modules_for, width=GRID_WIDTH, height=GRID_HEIGHT
    )
    if result.status == "empty":
        raise HTTPException(status_code=404, detail="No grid token supplied")
    if result.status == "fetch_failed":
        raise HTTPException(status_code=502, detail=f"Tech catalog unavailable: {result.error}")
    if not result.ok:
        raise HTTPException(status_code=400, detail={"status": result.status, "message": str(result.error)})
    return {
        "grid": result.grid.model_dump(),
        "platform": platform,
        "warnings": [
            {"row": w.row, "col": w.col, "tech": w.tech, "module": w.module}
            for w in result.warnings
        ],
    }


@router.get("/api/platforms")
async def api_platforms(catalog: TechCatalog = Depends(get_tech_catalog)) -> Dict[str, Any]:
    try:
        platforms = await catalog.platforms()
    except CatalogFetchError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    return {"platforms": platforms, "keys": list_platform_keys(platforms)}
