from __future__ import annotations

import os
import asyncio
import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.gzip import GZipMiddleware
from pydantic import BaseModel

from core import MISSING_URL_MESSAGE, SCRAPE_MAX_CONCURRENT_JOBS, scrape_playlist
from lib.playlist.errors import InvalidInput, ScrapeFailed
from playwright_pool import close_browser

# Basic logging configuration to ensure logger outputs appear in the terminal
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("uvicorn.error")
logger.setLevel(logging.INFO)


# =========================
# Pydantic models
# =========================

class ScrapePlaylistBody(BaseModel):
    # Loosely typed so validate_playlist_url decides what is missing or invalid
    playlistUrl: Any = None


class VideoModel(BaseModel):
    title: str
    views: int
    thumbnail: str


class GraphPointModel(BaseModel):
    name: str
    views: int


class PlaylistResponse(BaseModel):
    videoList: List[VideoModel]
    graphData: List[GraphPointModel]


# =========================
# FastAPI app & CORS
# =========================

app = FastAPI(
    title="Playlist View Scraper",
    version="1.0.0",
)

# Large playlists produce sizeable JSON
app.add_middleware(GZipMiddleware, minimum_size=1000)


@app.on_event("startup")
def _log_startup():
    logger.info("playlist-scraper: startup event triggered")


@app.on_event("startup")
async def _init_scrape_state():
    # Browser starts lazily on the first scrape; only the admission limit is created here
    app.state.scrape_sem = asyncio.Semaphore(SCRAPE_MAX_CONCURRENT_JOBS)
    app.state.active_jobs = set()


@app.on_event("shutdown")
async def _shutdown_scrape_state():
    for job in list(getattr(app.state, "active_jobs", ())):
        job.cancel()
    try:
        await close_browser()
    except Exception as e:
        logger.warning(f"[shutdown] close_browser failed: {e}")


# Dashboard frontend runs on localhost:3000
default_origins = [
    "http://localhost:3000",
]

# ALLOWED_ORIGINS (comma separated) overrides the defaults
env_origins = os.getenv("ALLOWED_ORIGINS")
if env_origins:
    origins = [o.strip() for o in env_origins.split(",") if o.strip()]
else:
    origins = default_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =========================
# Error mapping
# =========================

@app.exception_handler(InvalidInput)
async def _invalid_input_handler(request: Request, exc: InvalidInput):
    logger.info(f"[scrape-playlist] rejected input: {exc} meta={exc.meta}")
    return JSONResponse(status_code=400, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def _request_validation_handler(request: Request, exc: RequestValidationError):
    # Unreadable bodies (non-JSON, non-object) carry no usable playlist URL
    logger.info(f"[scrape-playlist] rejected body: {exc.errors()}")
    return JSONResponse(status_code=400, content={"error": MISSING_URL_MESSAGE})


@app.exception_handler(ScrapeFailed)
async def _scrape_failed_handler(request: Request, exc: ScrapeFailed):
    # Cause was logged by core; keep internals out of the response
    return JSONResponse(status_code=500, content={"error": exc.message})


# =========================
# Health check
# =========================

@app.get("/health", tags=["system"])
def health() -> Dict[str, Any]:
    return {
        "ok": True,
        "status": "ok",
        "build_commit": os.getenv("RENDER_GIT_COMMIT", "local")[:7],
    }


@app.get("/", tags=["system"])
def root() -> Dict[str, Any]:
    return {"ok": True, "status": "ok"}


# =========================
# Endpoints
# =========================

@app.post("/scrape-playlist", response_model=PlaylistResponse)
async def scrape_playlist_endpoint(request: Request, body: Optional[ScrapePlaylistBody] = None):
    """
    Scrape a playlist page and return its videos plus the views-per-video series.
    {
      "playlistUrl": "https://www.youtube.com/playlist?list=..."
    }
    """
    playlist_url = body.playlistUrl if body is not None else None
    logger.info(f"[scrape-playlist] raw_url={playlist_url}")
    result = await scrape_playlist(
        playlist_url,
        semaphore=getattr(request.app.state, "scrape_sem", None),
        active_jobs=getattr(request.app.state, "active_jobs", None),
    )
    return result.to_dict()


# =========================
# Local dev entrypoint
# =========================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "5000")),
        reload=True,
    )
