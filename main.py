"""FastAPI app entry point for the Tactical Table engine."""

import logging

from fastapi import FastAPI

from api.combat import router as combat_router
from api.table import router as table_router
from config import GRID_HEIGHT, GRID_WIDTH, LOG_LEVEL, TABLE_ID, TABLE_NAME
from models.game_state import TableSession
from models.map_state import MapSnapshot

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="Tactical Table",
    description="Combat resolution for a virtual tabletop: grids, dice, movement, and turns",
    version="0.1.0",
)

# One in-memory table per process
app.state.table = TableSession(
    table_id=TABLE_ID,
    name=TABLE_NAME,
    map=MapSnapshot(map_id=f"{TABLE_ID}-map", width=GRID_WIDTH, height=GRID_HEIGHT),
)

app.include_router(table_router, prefix="/table", tags=["Table"])
app.include_router(combat_router, prefix="/table", tags=["Combat"])


@app.get("/")
def root() -> dict:
    """Root endpoint returning server info."""
    return {"name": "Tactical Table", "version": "0.1.0", "status": "running"}


@app.get("/health")
def health() -> dict:
    """Health check endpoint."""
    return {"healthy": True}
