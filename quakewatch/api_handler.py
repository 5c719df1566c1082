"""Read API - FastAPI service for stored earthquakes.

Serves the most recent persisted events to clients. Part of the
imperative shell - handles HTTP I/O. This endpoint only reads; ingestion
is done by the orchestrator.
"""

import logging
from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse

from quakewatch.shell.firestore_client import DEFAULT_PAGE_SIZE, FirestoreClient


logger = logging.getLogger(__name__)


def create_app(
    firestore_client: FirestoreClient | None = None,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> FastAPI:
    """Build the read API.

    Args:
        firestore_client: Store to read from (created lazily if not provided)
        page_size: Number of events returned by /events

    Returns:
        Configured FastAPI application
    """
    store = firestore_client or FirestoreClient()

    app = FastAPI(
        title="Earthquake API",
        description="Serves earthquakes aggregated from Kandilli, USGS and EMSC",
        version="1.0.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.get("/", include_in_schema=False)
    async def root():
        """Redirect to the events list."""
        return RedirectResponse(url="/events")

    @app.get("/events")
    def get_events() -> list[dict[str, Any]]:
        """Most recent stored earthquakes, newest first."""
        try:
            return store.fetch_recent(limit=page_size)
        except Exception as e:
            logger.exception("Failed to read events from Firestore")
            raise HTTPException(
                status_code=500,
                detail={
                    "error": "Storage unavailable",
                    "message": f"Could not load earthquake data: {e}",
                },
            )

    @app.get("/health")
    async def health_check():
        """Health check endpoint for Cloud Run."""
        return {"status": "healthy"}

    return app
