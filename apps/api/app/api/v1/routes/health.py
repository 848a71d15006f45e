from __future__ import annotations

import logging

from fastapi import APIRouter
from neo4j.exceptions import DriverError, Neo4jError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.api.v1.schemas import HealthResponse
from app.core.timeutils import utc_now
from app.db.neo4j.driver import get_driver
from app.db.pg.session import engine

router = APIRouter(tags=["health"])
logger = logging.getLogger(__name__)


def _graph_status() -> str:
    driver = get_driver()
    if driver is None:
        return "not_configured"
    try:
        driver.verify_connectivity()
    except (Neo4jError, DriverError):
        logger.warning("health_graph_unreachable", exc_info=True)
        return "unavailable"
    return "ok"


def _event_store_status() -> str:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.warning("health_event_store_unreachable", exc_info=True)
        return "unavailable"
    return "ok"


@router.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    graph = _graph_status()
    event_store = _event_store_status()
    overall = "ok" if event_store == "ok" and graph != "unavailable" else "degraded"
    return HealthResponse(status=overall, timestamp=utc_now(), graph=graph, event_store=event_store)
