from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from functools import lru_cache
from typing import Any, TypeVar

from neo4j import READ_ACCESS, WRITE_ACCESS, Driver, GraphDatabase
from neo4j.exceptions import DriverError, Neo4jError

from app.core.config import get_settings
from app.core.errors import GraphNotConfiguredError, InternalError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@lru_cache(maxsize=1)
def get_driver() -> Driver | None:
    settings = get_settings()
    if not settings.neo4j_uri:
        return None
    return GraphDatabase.driver(
        settings.neo4j_uri,
        auth=(settings.neo4j_user, settings.neo4j_password),
        max_connection_pool_size=settings.neo4j_max_connection_pool_size,
    )


def close_driver() -> None:
    driver = get_driver()
    if driver is not None:
        driver.close()
    get_driver.cache_clear()


@contextmanager
def neo4j_session():
    driver = get_driver()
    if driver is None:
        yield None
        return
    with driver.session(database=get_settings().neo4j_database) as session:
        yield session


def _open_session(access_mode: str, database: str | None):
    driver = get_driver()
    if driver is None:
        raise GraphNotConfiguredError()
    settings = get_settings()
    return driver.session(
        default_access_mode=access_mode,
        database=database or settings.neo4j_database,
        fetch_size=settings.neo4j_fetch_size,
    )


@contextmanager
def new_read_session(database: str | None = None) -> Iterator[Any]:
    with _open_session(READ_ACCESS, database) as session:
        yield session


@contextmanager
def new_write_session(database: str | None = None) -> Iterator[Any]:
    with _open_session(WRITE_ACCESS, database) as session:
        yield session


def execute_read_in_transaction(work: Callable[[Any], T], tx: Any | None = None) -> T:
    """Run ``work`` in the caller's transaction when given, else in a fresh managed read transaction."""
    if tx is not None:
        return work(tx)
    try:
        with new_read_session() as session:
            return session.execute_read(work)
    except (Neo4jError, DriverError) as exc:
        logger.exception("graph_read_failed")
        raise InternalError(str(exc)) from exc


def execute_write_in_transaction(work: Callable[[Any], T], tx: Any | None = None) -> T:
    """Run ``work`` in the caller's transaction when given, else in a fresh managed write transaction.

    The driver rolls the transaction back when ``work`` raises.
    """
    if tx is not None:
        return work(tx)
    try:
        with new_write_session() as session:
            return session.execute_write(work)
    except (Neo4jError, DriverError) as exc:
        logger.exception("graph_write_failed")
        raise InternalError(str(exc)) from exc


def run_query(tx: Any, query_name: str, query: str, params: dict[str, Any] | None = None):
    params = params or {}
    logger.debug("graph_query", extra={"query_name": query_name, "query": query, "params": params})
    return tx.run(query, params)
