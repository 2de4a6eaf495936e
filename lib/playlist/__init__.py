"""
Playlist page scraping: view-count parsing, item extraction and scrolling.

Public API:
  - normalize_views(text) -> int
  - extract(raw_items) -> list[VideoRecord]
  - extract_from_html(html) -> list[VideoRecord]
  - stabilize(page, poll_interval_ms) -> ScrollReport
"""
from lib.playlist.normalizer import normalize_views
from lib.playlist.extractor import extract, extract_from_html, ITEM_SELECTOR
from lib.playlist.scroll import stabilize, ScrollReport
from lib.playlist.models import (
    FALLBACK_THUMBNAIL,
    CrawlJob,
    GraphPoint,
    JobState,
    PlaylistRequest,
    PlaylistResult,
    VideoRecord,
    build_graph_data,
)

__all__ = [
    "normalize_views",
    "extract",
    "extract_from_html",
    "ITEM_SELECTOR",
    "stabilize",
    "ScrollReport",
    "FALLBACK_THUMBNAIL",
    "CrawlJob",
    "GraphPoint",
    "JobState",
    "PlaylistRequest",
    "PlaylistResult",
    "VideoRecord",
    "build_graph_data",
]
