#!/usr/bin/env python3
"""
YouTube プレイリストページをヘッドレスブラウザで描画し、
- 無限スクロールで全アイテムを読み込み
- 各動画のタイトル / 再生数 / サムネイル
- グラフ用の index-vs-views 系列

を返すコアモジュール。
"""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import nullcontext
from dataclasses import dataclass
from time import perf_counter
from typing import Any, AsyncContextManager, Callable, Dict, List, Optional
from urllib.parse import parse_qs, urlparse

from lib.playlist.errors import (
    ContentNotFound,
    ExtractionFault,
    InvalidInput,
    JobCancelled,
    NavigationFault,
    RequestBudgetExceeded,
    ScrapeError,
    ScrapeFailed,
)
from lib.playlist.extractor import (
    ITEM_FIELDS_SCRIPT,
    ITEM_SELECTOR,
    extract,
    extract_from_html,
    item_fields_args,
)
from lib.playlist.models import (
    CrawlJob,
    JobState,
    PlaylistRequest,
    PlaylistResult,
    VideoRecord,
)
from lib.playlist.page import RenderablePage
from lib.playlist.scroll import stabilize
from lib.scratch_store import ScratchStore, scratch_store
from playwright_pool import open_page

logger = logging.getLogger(__name__)

SCRAPE_MAX_REQUESTS = int(os.getenv("SCRAPE_MAX_REQUESTS", "50"))
SCRAPE_CONTENT_TIMEOUT_MS = int(os.getenv("SCRAPE_CONTENT_TIMEOUT_MS", "30000"))
SCRAPE_SCROLL_POLL_MS = int(os.getenv("SCRAPE_SCROLL_POLL_MS", "100"))
SCRAPE_SCROLL_MAX_ITERS = int(os.getenv("SCRAPE_SCROLL_MAX_ITERS", "500"))
SCRAPE_SCROLL_MAX_S = float(os.getenv("SCRAPE_SCROLL_MAX_S", "60"))
SCRAPE_JOB_TIMEOUT_S = float(os.getenv("SCRAPE_JOB_TIMEOUT_S", "120"))
SCRAPE_WAIT_FOR_IMAGES = os.getenv("SCRAPE_WAIT_FOR_IMAGES", "0") == "1"
SCRAPE_MAX_CONCURRENT_JOBS = int(os.getenv("SCRAPE_MAX_CONCURRENT_JOBS", "2"))
SCRAPE_ALLOWED_HOSTS = os.getenv("SCRAPE_ALLOWED_HOSTS", "")

MISSING_URL_MESSAGE = "Playlist URL is required"
INVALID_URL_MESSAGE = "Invalid playlist URL"
SCRAPE_FAILED_MESSAGE = "An error occurred while scraping the playlist"

PageFactory = Callable[[], AsyncContextManager[RenderablePage]]


@dataclass(frozen=True)
class CrawlSettings:
    max_requests: int = SCRAPE_MAX_REQUESTS
    content_timeout_ms: int = SCRAPE_CONTENT_TIMEOUT_MS
    scroll_poll_ms: int = SCRAPE_SCROLL_POLL_MS
    scroll_max_iterations: Optional[int] = SCRAPE_SCROLL_MAX_ITERS
    scroll_max_duration_s: Optional[float] = SCRAPE_SCROLL_MAX_S
    job_timeout_s: Optional[float] = SCRAPE_JOB_TIMEOUT_S
    wait_for_images: bool = SCRAPE_WAIT_FOR_IMAGES
    allowed_hosts: tuple[str, ...] = tuple(
        h.strip().lower() for h in SCRAPE_ALLOWED_HOSTS.split(",") if h.strip()
    )


DEFAULT_SETTINGS = CrawlSettings()


# =========================
# Input validation
# =========================

def sanitize_url(raw: str) -> str:
    """
    Trim whitespace, strip surrounding angle brackets and surrounding
    single/double quotes.
    """
    if not raw:
        return raw
    s = raw.strip()
    if s.startswith("<") and s.endswith(">"):
        s = s[1:-1].strip()
    return s.strip("'\"")


def _host_allowed(host: str, allowed_hosts: tuple[str, ...]) -> bool:
    if not allowed_hosts:
        return True
    return any(host == h or host.endswith("." + h) for h in allowed_hosts)


def validate_playlist_url(
    raw: Any,
    allowed_hosts: tuple[str, ...] = DEFAULT_SETTINGS.allowed_hosts,
) -> PlaylistRequest:
    """
    Accept only absolute http(s) URLs carrying a non-empty `list` parameter.
    Raises InvalidInput otherwise; nothing is fetched here.
    """
    if not isinstance(raw, str) or not raw.strip():
        raise InvalidInput(MISSING_URL_MESSAGE)

    url = sanitize_url(raw)
    try:
        parsed = urlparse(url)
        host = (parsed.hostname or "").lower()
    except ValueError as e:
        raise InvalidInput(INVALID_URL_MESSAGE, meta={"reason": f"unparsable: {e}"})

    if parsed.scheme not in ("http", "https") or not host:
        raise InvalidInput(INVALID_URL_MESSAGE, meta={"reason": "not_absolute"})
    if not _host_allowed(host, allowed_hosts):
        raise InvalidInput(INVALID_URL_MESSAGE, meta={"reason": "host_not_allowed", "host": host})

    playlist_ids = [v.strip() for v in parse_qs(parsed.query).get("list", []) if v.strip()]
    if not playlist_ids:
        raise InvalidInput(INVALID_URL_MESSAGE, meta={"reason": "missing_list_param"})

    return PlaylistRequest(url=url, playlist_id=playlist_ids[0])


# =========================
# Crawl orchestrator
# =========================

class CrawlOrchestrator:
    """
    Runs one crawl job against one exclusively owned page:
    navigate -> wait for first item -> scroll until stable -> extract -> store.

    Step errors move the job to FAILED via `_fail()`, which only records and
    logs; nothing is retried and the store is left untouched.
    """

    def __init__(
        self,
        job: CrawlJob,
        page: RenderablePage,
        store: ScratchStore,
        settings: CrawlSettings = DEFAULT_SETTINGS,
    ):
        self.job = job
        self.page = page
        self.store = store
        self.settings = settings

    def _transition(self, state: JobState) -> None:
        if self.job.cancelled and state is not JobState.FAILED:
            raise JobCancelled(f"Job {self.job.job_id} cancelled before {state.value}")
        logger.debug(f"[SCRAPE] job={self.job.job_id} {self.job.state.value} -> {state.value}")
        self.job.state = state

    def _fail(self, error: ScrapeError) -> None:
        self.job.error = error
        self.job.state = JobState.FAILED
        logger.error(f"[SCRAPE] Request {self.job.url} failed: {type(error).__name__}: {error} meta={error.meta}")

    async def _navigate(self) -> None:
        self._transition(JobState.NAVIGATING)
        if self.job.requests_made >= self.job.max_requests:
            raise RequestBudgetExceeded(
                f"Request budget of {self.job.max_requests} exhausted",
                meta={"requests_made": self.job.requests_made},
            )
        self.job.requests_made += 1
        logger.info(f"[SCRAPE] Processing {self.job.url} unique_key={self.job.unique_key}")
        try:
            await self.page.navigate(self.job.url)
        except NavigationFault:
            raise
        except Exception as e:
            raise NavigationFault(f"Failed to load {self.job.url}: {e}") from e

    async def _wait_for_initial_content(self) -> None:
        self._transition(JobState.WAITING_FOR_CONTENT)
        try:
            await self.page.wait_for_selector(ITEM_SELECTOR, self.settings.content_timeout_ms)
        except (TimeoutError, asyncio.TimeoutError) as e:
            raise ContentNotFound(
                f"No playlist items within {self.settings.content_timeout_ms}ms",
                meta={"selector": ITEM_SELECTOR},
            ) from e
        except Exception as e:
            raise ContentNotFound(f"Waiting for playlist items failed: {e}") from e

    async def _scroll(self) -> None:
        self._transition(JobState.SCROLLING)
        report = await stabilize(
            self.page,
            self.settings.scroll_poll_ms,
            max_iterations=self.settings.scroll_max_iterations,
            max_duration_s=self.settings.scroll_max_duration_s,
            cancel_event=self.job.cancel_event,
        )
        logger.info(f"[SCRAPE] scroll height progression: {report.heights[:20]} (final={report.final_height})")

    async def _extract(self) -> List[VideoRecord]:
        self._transition(JobState.EXTRACTING)
        raw_items = None
        try:
            raw_items = await self.page.query_all_map(
                ITEM_SELECTOR,
                ITEM_FIELDS_SCRIPT,
                item_fields_args(self.settings.wait_for_images),
            )
        except Exception as e:
            logger.warning(f"[SCRAPE] in-page extraction failed; fallback to HTML snapshot. err={e}")

        if raw_items:
            return extract(raw_items)

        try:
            videos = extract_from_html(await self.page.content())
        except ExtractionFault:
            raise
        except Exception as e:
            raise ExtractionFault(f"HTML snapshot extraction failed: {e}") from e
        if not videos:
            raise ExtractionFault("No playlist items found")
        return videos

    async def run(self) -> CrawlJob:
        job = self.job
        step_start = perf_counter()

        def _lap(key: str) -> None:
            nonlocal step_start
            now = perf_counter()
            job.timings[key] = int((now - step_start) * 1000)
            step_start = now

        try:
            await self._navigate()
            _lap("goto_ms")
            await self._wait_for_initial_content()
            _lap("wait_ms")
            await self._scroll()
            _lap("scroll_ms")
            videos = await self._extract()
            _lap("extract_ms")
            logger.info(f"[SCRAPE] Found {len(videos)} videos in the playlist")
            # a cancelled job leaves no record behind
            self._transition(JobState.COMPLETED)
            self.store.write({"videos": videos})
        except ScrapeError as e:
            self._fail(e)
        except Exception as e:
            self._fail(ExtractionFault(f"Unexpected crawl error: {e}"))
        return job


# =========================
# Request handler
# =========================

async def _run_job(
    job: CrawlJob,
    store: ScratchStore,
    page_factory: PageFactory,
    settings: CrawlSettings,
) -> CrawlJob:
    async with page_factory() as page:
        try:
            return await CrawlOrchestrator(job, page, store, settings).run()
        except asyncio.CancelledError:
            # set before the page context exits
            job.cancel()
            raise


async def scrape_playlist(
    playlist_url: Any,
    *,
    page_factory: Optional[PageFactory] = None,
    settings: Optional[CrawlSettings] = None,
    semaphore: Optional[asyncio.Semaphore] = None,
    active_jobs: Optional[set] = None,
) -> PlaylistResult:
    """
    Validate `playlist_url`, crawl it in an isolated job and return the
    playlist result.

    Raises:
        InvalidInput: bad or missing URL (no browser work is started)
        ScrapeFailed: any crawl-side failure; details are only logged
    """
    settings = settings or DEFAULT_SETTINGS
    request = validate_playlist_url(playlist_url, settings.allowed_hosts)
    page_factory = page_factory or open_page

    job = CrawlJob(url=request.url, max_requests=settings.max_requests)
    t0_total = perf_counter()
    if active_jobs is not None:
        active_jobs.add(job)
    try:
        with scratch_store(job.job_id) as store:
            try:
                async with (semaphore if semaphore is not None else nullcontext()):
                    await asyncio.wait_for(
                        _run_job(job, store, page_factory, settings),
                        timeout=settings.job_timeout_s,
                    )
            except asyncio.TimeoutError as e:
                logger.error(f"[SCRAPE] job={job.job_id} timed out after {settings.job_timeout_s}s")
                raise ScrapeFailed(SCRAPE_FAILED_MESSAGE, meta={"reason": "job_timeout"}) from e
            except Exception as e:
                logger.error(f"[SCRAPE] Crawling failed: {type(e).__name__}: {e}")
                raise ScrapeFailed(SCRAPE_FAILED_MESSAGE, meta={"reason": "crawl_error"}) from e

            if job.state is not JobState.COMPLETED:
                raise ScrapeFailed(
                    SCRAPE_FAILED_MESSAGE,
                    meta={"reason": type(job.error).__name__ if job.error else "incomplete"},
                ) from job.error

            rows: List[Dict[str, Any]] = store.read_all()
            videos: List[VideoRecord] = rows[0].get("videos", []) if rows else []
            result = PlaylistResult.from_videos(videos)
    finally:
        if active_jobs is not None:
            active_jobs.discard(job)

    total_ms = (perf_counter() - t0_total) * 1000
    logger.info(
        f"[PERF] job={job.job_id} goto_ms={job.timings.get('goto_ms', 0)} wait_ms={job.timings.get('wait_ms', 0)} "
        f"scroll_ms={job.timings.get('scroll_ms', 0)} extract_ms={job.timings.get('extract_ms', 0)} "
        f"total_ms={total_ms:.1f} videos={len(result.video_list)}"
    )
    return result
