"""Scraper job tracker - FastAPI application."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from jobsync.api.v1 import health as health_api
from jobsync.api.v1 import scraper as scraper_api
from jobsync.api.v1.router import v1_router
from jobsync.client.scraper_api import HttpScraperApi
from jobsync.config import settings
from jobsync.jobs.initiators import ScraperActions
from jobsync.jobs.store import job_store
from jobsync.realtime.connection import get_connection
from jobsync.realtime.listener import PushListener

logger = logging.getLogger("jobsync")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown logic."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Starting scraper job tracker on port %d", settings.service_port)
    logger.info("Scraper API: %s", settings.scraper_api_url)
    logger.info("Push channel: %s (topic %r)", settings.socket_url, settings.socket_topic)
    logger.info("Poll interval: %d ms", settings.poll_interval_ms)

    api = HttpScraperApi()
    connection = get_connection()
    listener = PushListener(job_store, connection)
    await listener.activate()

    # Wire store, actions and connection into API endpoints
    scraper_api.set_actions(ScraperActions(job_store, api))
    health_api.set_store(job_store)
    health_api.set_connection(connection)

    yield

    # Shutdown
    logger.info("Shutting down scraper job tracker")
    scraper_api.set_actions(None)
    await listener.deactivate()
    await connection.disconnect()
    await api.close()


app = FastAPI(
    title="Scraper Job Tracker",
    description="Reconciles scraper job state from push events and status polling",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS: allow frontend dev servers
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000", "*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(v1_router)  # All /api/v1/* endpoints


if __name__ == "__main__":
    uvicorn.run("jobsync.main:app", host="0.0.0.0", port=settings.service_port)
