# Dev-only: scrape a playlist from the command line (no HTTP server)
import asyncio
import json
import logging
import sys

from core import scrape_playlist
from lib.playlist.errors import ScrapeError
from playwright_pool import close_browser

DEFAULT_URL = "https://youtube.com/playlist?list=PLhQjrBD2T381WAHyx1pq-sBfykqMBI7V4"

URL = sys.argv[1] if len(sys.argv) > 1 else DEFAULT_URL


async def main() -> int:
    logging.basicConfig(level=logging.INFO)
    print("USING_URL:", URL)
    try:
        result = await scrape_playlist(URL)
    except ScrapeError as e:
        print(f"error: {type(e).__name__}: {e} meta={e.meta}")
        return 1
    finally:
        await close_browser()

    data = result.to_dict()
    print("count:", len(data["videoList"]))
    if data["videoList"]:
        print("sample0:", json.dumps(data["videoList"][0], ensure_ascii=False, indent=2))
    print("graph head:", data["graphData"][:5])
    return 0


if __name__ == "__main__":
    raise SystemExit(asyncio.run(main()))
