import asyncio
import unittest
from contextlib import asynccontextmanager
from unittest import mock

import core
from core import CrawlSettings, scrape_playlist
from lib.playlist.errors import InvalidInput, ScrapeFailed
from lib.scratch_store import ScratchStore, active_store_count

from fake_page import FakePage, page_factory_for

PLAYLIST_URL = "https://www.youtube.com/playlist?list=PL123&si=abc"

SETTINGS = CrawlSettings(
    scroll_poll_ms=0,
    scroll_max_iterations=50,
    scroll_max_duration_s=None,
    job_timeout_s=5,
)

ITEMS = [
    {"title": "One", "info": "1,234 views", "thumbnail": "https://t/1.jpg"},
    {"title": "Two", "info": "2.5K views", "thumbnail": ""},
    {"title": "Three", "info": "3M view", "thumbnail": "https://t/3.jpg"},
]


class _HangingPage(FakePage):
    async def wait_for_selector(self, selector, timeout_ms):
        await asyncio.sleep(10)


class ScrapePlaylistTests(unittest.IsolatedAsyncioTestCase):
    async def test_returns_videos_and_matching_graph_data(self):
        page = FakePage(heights=[1000, 1800], items=ITEMS)
        result = await scrape_playlist(PLAYLIST_URL, page_factory=page_factory_for(page), settings=SETTINGS)

        self.assertEqual([v.views for v in result.video_list], [1234, 2500, 3_000_000])
        self.assertEqual(len(result.graph_data), len(result.video_list))
        for i, (point, video) in enumerate(zip(result.graph_data, result.video_list)):
            self.assertEqual(point.label, f"Video {i + 1}")
            self.assertEqual(point.value, video.views)

        data = result.to_dict()
        self.assertEqual(data["graphData"][0], {"name": "Video 1", "views": 1234})
        self.assertEqual(data["videoList"][2]["thumbnail"], "https://t/3.jpg")

    async def test_invalid_url_never_navigates(self):
        page = FakePage(items=ITEMS)
        with self.assertRaises(InvalidInput):
            await scrape_playlist(
                "https://www.youtube.com/watch?v=abc",
                page_factory=page_factory_for(page),
                settings=SETTINGS,
            )
        self.assertEqual(page.navigate_calls, [])

    async def test_missing_url_does_not_touch_the_browser(self):
        with mock.patch("core.open_page") as open_page:
            with self.assertRaises(InvalidInput) as ctx:
                await scrape_playlist(None, settings=SETTINGS)
        self.assertEqual(str(ctx.exception), core.MISSING_URL_MESSAGE)
        open_page.assert_not_called()

    async def test_content_timeout_releases_store_every_time(self):
        before = active_store_count()
        attempts = 5
        with mock.patch.object(ScratchStore, "drop", autospec=True, side_effect=ScratchStore.drop) as drop:
            for _ in range(attempts):
                page = FakePage(wait_error=TimeoutError("no items"))
                with self.assertRaises(ScrapeFailed) as ctx:
                    await scrape_playlist(PLAYLIST_URL, page_factory=page_factory_for(page), settings=SETTINGS)
                self.assertEqual(str(ctx.exception), core.SCRAPE_FAILED_MESSAGE)
                self.assertEqual(ctx.exception.meta["reason"], "ContentNotFound")
        self.assertEqual(drop.call_count, attempts)
        self.assertEqual(active_store_count(), before)

    async def test_success_also_releases_store(self):
        before = active_store_count()
        with mock.patch.object(ScratchStore, "drop", autospec=True, side_effect=ScratchStore.drop) as drop:
            await scrape_playlist(PLAYLIST_URL, page_factory=page_factory_for(FakePage(items=ITEMS)), settings=SETTINGS)
        self.assertEqual(drop.call_count, 1)
        self.assertEqual(active_store_count(), before)

    async def test_job_deadline_turns_into_scrape_failed(self):
        settings = CrawlSettings(scroll_poll_ms=0, job_timeout_s=0.05)
        before = active_store_count()
        with self.assertRaises(ScrapeFailed) as ctx:
            await scrape_playlist(PLAYLIST_URL, page_factory=page_factory_for(_HangingPage()), settings=settings)
        self.assertEqual(ctx.exception.meta["reason"], "job_timeout")
        self.assertEqual(active_store_count(), before)

    async def test_job_deadline_flags_the_job_before_page_teardown(self):
        settings = CrawlSettings(scroll_poll_ms=0, job_timeout_s=0.05)
        active_jobs = set()
        seen_at_teardown = []

        @asynccontextmanager
        async def _factory():
            try:
                yield _HangingPage()
            finally:
                seen_at_teardown.extend(job.cancelled for job in active_jobs)

        with self.assertRaises(ScrapeFailed):
            await scrape_playlist(PLAYLIST_URL, page_factory=_factory, settings=settings, active_jobs=active_jobs)
        self.assertEqual(seen_at_teardown, [True])
        self.assertEqual(active_jobs, set())

    async def test_browser_startup_error_is_a_generic_failure(self):
        def broken_factory():
            raise RuntimeError("[PW_POOL] new_context failed twice; aborting")

        with self.assertRaises(ScrapeFailed) as ctx:
            await scrape_playlist(PLAYLIST_URL, page_factory=broken_factory, settings=SETTINGS)
        self.assertNotIn("PW_POOL", str(ctx.exception))

    async def test_active_jobs_are_tracked_only_while_running(self):
        active_jobs = set()
        seen = []

        class _RecordingPage(FakePage):
            async def navigate(self, url):
                seen.append(len(active_jobs))
                await super().navigate(url)

        page = _RecordingPage(items=ITEMS)
        await scrape_playlist(
            PLAYLIST_URL,
            page_factory=page_factory_for(page),
            settings=SETTINGS,
            semaphore=asyncio.Semaphore(1),
            active_jobs=active_jobs,
        )
        self.assertEqual(seen, [1])
        self.assertEqual(active_jobs, set())


if __name__ == "__main__":
    unittest.main()
