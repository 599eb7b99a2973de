from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from settleup.core.logging_setup import logger
from settleup.db.session import engine

router = APIRouter(tags=["health"])


@router.get("/live")
def live() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/ready")
def ready():
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.error("[health] database not reachable: %s", exc)
        return JSONResponse(status_code=503, content={"status": "unavailable"})
    return {"status": "ready"}
