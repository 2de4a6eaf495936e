import asyncio
import unittest

from lib.playlist.scroll import (
    STOP_CANCELLED,
    STOP_MAX_DURATION,
    STOP_MAX_ITERATIONS,
    STOP_STABLE,
    stabilize,
)

from fake_page import FakePage


class StabilizeTests(unittest.IsolatedAsyncioTestCase):
    async def test_page_that_never_grows_stops_after_one_iteration(self):
        page = FakePage(heights=[1200])
        report = await stabilize(page, 0)
        self.assertEqual(report.iterations, 1)
        self.assertEqual(report.reason, STOP_STABLE)
        self.assertEqual(report.final_height, 1200)

    async def test_stops_one_iteration_after_growth_plateaus(self):
        growth_steps = 4
        page = FakePage(heights=[1000, 2000, 3000, 4000, 5000])
        report = await stabilize(page, 0)
        self.assertEqual(report.iterations, growth_steps + 1)
        self.assertEqual(page.scroll_calls, growth_steps + 1)
        self.assertEqual(report.heights, [1000, 2000, 3000, 4000, 5000, 5000])
        self.assertEqual(report.final_height, 5000)

    async def test_max_iterations_bounds_an_ever_growing_page(self):
        page = FakePage(grow_forever=True)
        report = await stabilize(page, 0, max_iterations=25)
        self.assertEqual(report.iterations, 25)
        self.assertEqual(report.reason, STOP_MAX_ITERATIONS)

    async def test_zero_duration_budget_stops_before_scrolling(self):
        page = FakePage(grow_forever=True)
        report = await stabilize(page, 0, max_duration_s=0)
        self.assertEqual(report.iterations, 0)
        self.assertEqual(page.scroll_calls, 0)
        self.assertEqual(report.reason, STOP_MAX_DURATION)

    async def test_cancel_event_stops_the_loop(self):
        page = FakePage(grow_forever=True)
        cancel = asyncio.Event()

        async def cancel_soon():
            while page.scroll_calls < 3:
                await asyncio.sleep(0)
            cancel.set()

        canceller = asyncio.create_task(cancel_soon())
        report = await stabilize(page, 0, cancel_event=cancel)
        await canceller
        self.assertEqual(report.reason, STOP_CANCELLED)
        self.assertGreaterEqual(report.iterations, 3)

    async def test_already_cancelled_never_scrolls(self):
        page = FakePage(heights=[1000, 2000])
        cancel = asyncio.Event()
        cancel.set()
        report = await stabilize(page, 0, cancel_event=cancel)
        self.assertEqual(page.scroll_calls, 0)
        self.assertEqual(report.reason, STOP_CANCELLED)


if __name__ == "__main__":
    unittest.main()
