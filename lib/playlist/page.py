"""
Renderable-page capability consumed by the scraper core.

The core only talks to this interface; playwright_pool.PlaywrightPage is the
browser-backed implementation and tests use in-memory doubles.
"""
from __future__ import annotations

from typing import Any, Protocol


class RenderablePage(Protocol):
    async def navigate(self, url: str) -> None:
        """Load `url`. Raises on network errors or an HTTP error status."""

    async def wait_for_selector(self, selector: str, timeout_ms: int) -> None:
        """Block until `selector` matches. Raises TimeoutError when it never does."""

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        ...

    async def query_all_map(self, selector: str, script: str, arg: Any = None) -> Any:
        """Run `script(elements, arg)` in the page over every match of `selector`."""

    async def content(self) -> str:
        ...
