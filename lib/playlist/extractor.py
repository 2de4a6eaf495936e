"""
Turn rendered playlist item elements into VideoRecords.

Two sources of raw item fields feed `extract()`:
  - ITEM_FIELDS_SCRIPT, mapped over the live item elements inside the page
  - extract_from_html(), which reads the same fields from a page snapshot
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from bs4 import BeautifulSoup

from lib.playlist.errors import ExtractionFault
from lib.playlist.models import FALLBACK_THUMBNAIL, VideoRecord
from lib.playlist.normalizer import normalize_views

logger = logging.getLogger(__name__)

ITEM_SELECTOR = "#contents ytd-playlist-video-renderer"
TITLE_SELECTOR = "#video-title"
INFO_SELECTOR = "#video-info span"
IMAGE_SELECTOR = "img"

# Runs inside the page via batch-query-and-map. Optionally waits for every
# <img> on the page to load or error first so lazy src values are set.
ITEM_FIELDS_SCRIPT = """
async (elements, opts) => {
  if (opts.waitForImages) {
    await Promise.all(
      Array.from(document.querySelectorAll("img")).map(
        (img) =>
          new Promise((resolve) => {
            if (img.complete) resolve(true);
            else img.onload = img.onerror = () => resolve(true);
          })
      )
    );
  }
  const text = (el, sel) => {
    const node = el.querySelector(sel);
    return node ? node.textContent : null;
  };
  return elements.map((el) => {
    const img = el.querySelector(opts.image);
    return {
      title: text(el, opts.title),
      info: text(el, opts.info),
      thumbnail: img ? img.src : null,
    };
  });
}
"""


def item_fields_args(wait_for_images: bool = False) -> Dict[str, Any]:
    """Argument object passed alongside ITEM_FIELDS_SCRIPT."""
    return {
        "title": TITLE_SELECTOR,
        "info": INFO_SELECTOR,
        "image": IMAGE_SELECTOR,
        "waitForImages": bool(wait_for_images),
    }


def _clean(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    return value.strip()


def extract_record(raw: Optional[Mapping[str, Any]]) -> VideoRecord:
    """Build one VideoRecord; missing sub-elements fall back to defaults."""
    if raw is None:
        raw = {}
    if not isinstance(raw, Mapping):
        raise ExtractionFault(f"Unexpected item payload type: {type(raw).__name__}")
    return VideoRecord(
        title=_clean(raw.get("title")),
        views=normalize_views(_clean(raw.get("info"))),
        thumbnail_url=_clean(raw.get("thumbnail")) or FALLBACK_THUMBNAIL,
    )


def extract(raw_items: Iterable[Optional[Mapping[str, Any]]]) -> List[VideoRecord]:
    """Map raw item fields to VideoRecords, keeping document order."""
    return [extract_record(raw) for raw in raw_items]


def raw_items_from_html(html: str) -> List[Dict[str, Optional[str]]]:
    soup = BeautifulSoup(html or "", "html.parser")
    items: List[Dict[str, Optional[str]]] = []
    for el in soup.select(ITEM_SELECTOR):
        title = el.select_one(TITLE_SELECTOR)
        info = el.select_one(INFO_SELECTOR)
        img = el.select_one(IMAGE_SELECTOR)
        items.append({
            "title": title.get_text() if title else None,
            "info": info.get_text() if info else None,
            "thumbnail": img.get("src") if img else None,
        })
    logger.debug(f"[EXTRACT] Found {len(items)} item rows in HTML snapshot")
    return items


def extract_from_html(html: str) -> List[VideoRecord]:
    """Fallback path: read item fields from a rendered HTML snapshot."""
    return extract(raw_items_from_html(html))
