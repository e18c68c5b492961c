"""Maintenance routes of the reference server: health and data wipe."""

from fastapi import APIRouter, HTTPException

from ...app import IApplication
from ...logging_config import get_logger

logger = get_logger(__name__)


def create_control_router(app: IApplication) -> APIRouter:
    """Create control router."""
    router = APIRouter(prefix="/api/control", tags=["control"])

    @router.get("/health")
    async def health() -> dict:
        """Ready once storage and the game master are up."""
        try:
            app.storage
            app.game_master
        except RuntimeError as e:
            raise HTTPException(status_code=503, detail=str(e))
        return {"status": "ok"}

    @router.post("/reset")
    async def reset() -> dict:
        """Drop every conversation, draft, dice command and trace event."""
        await app.reset()
        logger.warning("All server data was wiped")
        return {"status": "ok"}

    return router
