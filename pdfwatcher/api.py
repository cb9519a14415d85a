"""FastAPI application serving the latest document snapshot."""

import logging
from contextlib import asynccontextmanager
from typing import Annotated, AsyncGenerator, List, Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel

from . import __version__
from .config import AppConfig, load_config
from .events import event_stream
from .poller import ScrapePoller, scrape_from_config

logger = logging.getLogger(__name__)


class DocumentResponse(BaseModel):
    """One document reference."""

    date: str
    type: str
    title: str
    url: str


class StatusResponse(BaseModel):
    """Scraper status."""

    documentsCount: int
    lastScrapingTime: Optional[str] = None
    isScrapingInProgress: bool
    scrapingError: Optional[str] = None
    uptime: float


class ScrapeResponse(BaseModel):
    """Result of a forced scrape."""

    message: str
    count: int


class HealthResponse(BaseModel):
    status: str


def get_poller(request: Request) -> ScrapePoller:
    return request.app.state.poller


PollerDep = Annotated[ScrapePoller, Depends(get_poller)]

router = APIRouter()


@router.get("/pdfs", response_model=List[DocumentResponse])
async def list_documents(poller: PollerDep) -> list[dict]:
    """Return the current snapshot (empty until the first successful scrape)."""
    return [record.to_dict() for record in poller.snapshot]


@router.get("/status", response_model=StatusResponse)
async def get_status(poller: PollerDep) -> dict:
    return poller.status()


@router.post("/scrape", response_model=ScrapeResponse)
async def force_scrape(poller: PollerDep):
    """Run a scrape now instead of waiting for the timer."""
    if poller.in_progress:
        return JSONResponse(status_code=409, content={"error": "Scraping already in progress"})

    if await poller.run_once():
        return ScrapeResponse(message="Scraping completed", count=len(poller.snapshot))

    return JSONResponse(
        status_code=500,
        content={"error": "Scraping failed", "details": poller.scraping_error},
    )


@router.get("/events")
async def stream_events(poller: PollerDep) -> StreamingResponse:
    """Push a scrapingComplete event to the client after each successful scrape."""
    return StreamingResponse(
        event_stream(poller.broadcaster),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


def create_app(
    config: Optional[AppConfig] = None,
    poller: Optional[ScrapePoller] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Application configuration. Loaded from the environment if omitted
        poller: Poller to serve. Built from the scraper configuration if omitted
    """
    config = config or load_config()
    if poller is None:
        poller = ScrapePoller(
            scrape_from_config(config.scraper),
            interval=config.scraper.interval_seconds,
            snapshot_file=config.scraper.snapshot_file,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Start polling on startup; stop it and close streams on shutdown."""
        poller.load_snapshot()
        poller.start()
        logger.info("PDFWatcher API startup complete")

        yield

        logger.info("Shutting down PDFWatcher API...")
        poller.broadcaster.close()
        await poller.stop()

    app = FastAPI(
        title="PDFWatcher API",
        description="Latest snapshot of the published document list",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.poller = poller

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.allowed_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    app.include_router(router, prefix="/api", tags=["documents"])

    @app.get("/health", response_model=HealthResponse, tags=["health"])
    async def health_check() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(status="ok")

    return app
