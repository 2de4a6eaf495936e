"""
Data model for playlist scraping: requests, video records, chart points and
the per-request crawl job.
"""
from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from lib.playlist.errors import ScrapeError


# Shown when an item has no thumbnail image (or its src is empty).
FALLBACK_THUMBNAIL = (
    "https://imgs.search.brave.com/4g4GFqi0GfyV1NY16cG5XsEvUnzhjUv2Qd7w0OPOlwU/"
    "rs:fit:500:0:0/g:ce/aHR0cHM6Ly9jZG40/Lmljb25maW5kZXIu/Y29tL2RhdGEvaWNv/"
    "bnMvdWktYmVhc3Qt/NC8zMi9VaS0xMi01/MTIucG5n"
)


@dataclass(frozen=True)
class PlaylistRequest:
    """A validated scrape request. `playlist_id` is the `list` query value."""
    url: str
    playlist_id: str


@dataclass(frozen=True)
class VideoRecord:
    title: str
    views: int
    thumbnail_url: str = FALLBACK_THUMBNAIL

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "views": self.views,
            "thumbnail": self.thumbnail_url,
        }


@dataclass(frozen=True)
class GraphPoint:
    label: str
    value: int

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.label, "views": self.value}


def build_graph_data(videos: Iterable[VideoRecord]) -> List[GraphPoint]:
    """One point per video, labelled by 1-based position."""
    return [
        GraphPoint(label=f"Video {index}", value=video.views)
        for index, video in enumerate(videos, start=1)
    ]


@dataclass(frozen=True)
class PlaylistResult:
    video_list: List[VideoRecord]
    graph_data: List[GraphPoint]

    @classmethod
    def from_videos(cls, videos: Iterable[VideoRecord]) -> "PlaylistResult":
        video_list = list(videos)
        return cls(video_list=video_list, graph_data=build_graph_data(video_list))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "videoList": [v.to_dict() for v in self.video_list],
            "graphData": [p.to_dict() for p in self.graph_data],
        }


class JobState(str, Enum):
    """
    Crawl job lifecycle:
    created -> navigating -> waiting_for_content -> scrolling -> extracting -> completed
    Any step may move to failed instead.
    """
    CREATED = "created"
    NAVIGATING = "navigating"
    WAITING_FOR_CONTENT = "waiting_for_content"
    SCROLLING = "scrolling"
    EXTRACTING = "extracting"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (JobState.COMPLETED, JobState.FAILED)


@dataclass(eq=False)
class CrawlJob:
    url: str
    job_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    max_requests: int = 50
    requests_made: int = 0
    state: JobState = JobState.CREATED
    error: Optional[ScrapeError] = None
    timings: Dict[str, int] = field(default_factory=dict)
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)

    @property
    def unique_key(self) -> str:
        # Same URL in two jobs never shares a key
        return f"{self.url}:{self.job_id}"

    @property
    def dataset_name(self) -> str:
        return f"playlist-{self.job_id}"

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def cancel(self) -> None:
        self.cancel_event.set()
