from __future__ import annotations
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api import router
from datastore.durable_store import build_default_store
from datastore.hot_cache import build_default_cache
from datastore.timeseries import build_default_collection
from logging_config import configure_logging
from services.ingestion import build_default_coordinator
from services.query import build_default_query


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    store = build_default_store()
    # A failed connect is logged; the service runs with the store disconnected.
    store.connect()
    coordinator = build_default_coordinator()
    try:
        yield
    finally:
        coordinator.shutdown()
        store.shutdown()
        build_default_query.cache_clear()
        build_default_coordinator.cache_clear()
        build_default_store.cache_clear()
        build_default_cache.cache_clear()
        build_default_collection.cache_clear()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Room Sensor Hub",
        description="Latest room readings from memory, history and statistics from a time-partitioned store.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(router)
    return app

app = create_app()
