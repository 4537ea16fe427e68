from __future__ import annotations
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI

from app.api import router
from logging_config import configure_logging
from services.pipeline import build_pipeline
from settings import Settings, get_settings
from storage.base import StoreClient


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = app.state.settings or get_settings()
    pipeline = build_pipeline(settings, store=app.state.store)
    await pipeline.start()
    app.state.pipeline = pipeline
    try:
        yield
    finally:
        await pipeline.shutdown()


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[StoreClient] = None,
) -> FastAPI:
    configure_logging(settings.log_level if settings else None)
    app = FastAPI(
        title="Air Quality Collector",
        description="Accepts sensor measurements over HTTP and writes them to InfluxDB.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.include_router(router)
    return app

app = create_app()
