"""
Scroll-to-bottom driver for infinite-scroll playlists.

Keeps scrolling until document height stops growing, with optional bounds on
iterations and wall time and a cooperative cancel event.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from time import perf_counter
from typing import List, Optional

from lib.playlist.page import RenderablePage

logger = logging.getLogger(__name__)

PAGE_HEIGHT_SCRIPT = "() => document.body.scrollHeight"
SCROLL_TO_BOTTOM_SCRIPT = "() => window.scrollTo(0, document.body.scrollHeight)"

STOP_STABLE = "stable"
STOP_MAX_ITERATIONS = "max_iterations"
STOP_MAX_DURATION = "max_duration"
STOP_CANCELLED = "cancelled"


@dataclass
class ScrollReport:
    iterations: int = 0
    final_height: int = 0
    reason: str = STOP_STABLE
    heights: List[int] = field(default_factory=list)


async def _page_height(page: RenderablePage) -> int:
    height = await page.evaluate(PAGE_HEIGHT_SCRIPT)
    try:
        return int(height or 0)
    except (TypeError, ValueError):
        return 0


async def stabilize(
    page: RenderablePage,
    poll_interval_ms: int = 100,
    *,
    max_iterations: Optional[int] = None,
    max_duration_s: Optional[float] = None,
    cancel_event: Optional[asyncio.Event] = None,
) -> ScrollReport:
    """
    Scroll to the bottom, wait `poll_interval_ms`, and repeat until two
    consecutive height measurements match.

    A page that never grows stops after one iteration; a page that grows k
    times stops after k + 1. Hitting `max_iterations` / `max_duration_s` or a
    set `cancel_event` stops early and is reported in `ScrollReport.reason`.
    """
    report = ScrollReport()
    started = perf_counter()
    height = await _page_height(page)
    report.heights.append(height)

    while True:
        if cancel_event is not None and cancel_event.is_set():
            report.reason = STOP_CANCELLED
            break
        if max_iterations is not None and report.iterations >= max_iterations:
            report.reason = STOP_MAX_ITERATIONS
            logger.warning(f"[SCROLL] stopped after {report.iterations} iterations; height still growing")
            break
        if max_duration_s is not None and perf_counter() - started >= max_duration_s:
            report.reason = STOP_MAX_DURATION
            logger.warning(f"[SCROLL] stopped after {max_duration_s}s; height still growing")
            break

        await page.evaluate(SCROLL_TO_BOTTOM_SCRIPT)
        await asyncio.sleep(max(0, poll_interval_ms) / 1000)
        report.iterations += 1

        new_height = await _page_height(page)
        report.heights.append(new_height)
        if new_height == height:
            report.reason = STOP_STABLE
            break
        height = new_height

    report.final_height = height
    logger.info(
        f"[SCROLL] done reason={report.reason} iterations={report.iterations} "
        f"final_height={report.final_height}"
    )
    return report
