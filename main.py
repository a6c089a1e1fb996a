import logging
import os
from typing import Any, Dict

from fastapi import FastAPI

from constants import TECH_API_BASE
from grid_router import router as grid_router
from tech_catalog_service import TechCatalog

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s [%(module)s] %(message)s",
)

app = FastAPI()
app.state.tech_catalog = TechCatalog(TECH_API_BASE)
app.include_router(grid_router)


@app.get("/api/health")
def api_health() -> Dict[str, Any]:
    return {
        "ok": True,
        "service": "grid-share",
    }
