#!/usr/bin/env python3
"""
Scrape timing diagnosis tool.
Measures: cold request (browser launch + crawl) vs warm request against a running backend.
"""
import sys
import time
import requests

BACKEND_URL = "http://127.0.0.1:5000"
TEST_PLAYLIST_URL = "https://youtube.com/playlist?list=PLhQjrBD2T381WAHyx1pq-sBfykqMBI7V4"


def measure_request(url, label):
    """Measure a single scrape request."""
    print(f"\n{'='*60}")
    print(f"{label}")
    print(f"{'='*60}")

    t0 = time.time()
    try:
        response = requests.post(
            f"{BACKEND_URL}/scrape-playlist",
            json={"playlistUrl": url},
            timeout=180,
        )
    except requests.RequestException as e:
        print(f"❌ Request failed: {e}")
        return None
    elapsed_ms = (time.time() - t0) * 1000

    try:
        data = response.json()
    except ValueError:
        print(f"❌ Non-JSON response (HTTP {response.status_code})")
        return None

    if response.status_code != 200:
        print(f"❌ HTTP {response.status_code}: {data.get('error')}")
        return elapsed_ms

    videos = data.get("videoList", [])
    total_views = sum(v.get("views", 0) for v in videos)
    missing_views = sum(1 for v in videos if not v.get("views"))
    print(f"\n📊 Timing:")
    print(f"  Full response:              {elapsed_ms:8.1f} ms")
    print(f"\n🔧 Result:")
    print(f"  videos:                     {len(videos):8d}")
    print(f"  total views:                {total_views:8d}")
    print(f"  videos with 0 views:        {missing_views:8d}")
    return elapsed_ms


def main():
    url = sys.argv[1] if len(sys.argv) > 1 else TEST_PLAYLIST_URL
    cold = measure_request(url, "Request 1 (cold: browser launch)")
    warm = measure_request(url, "Request 2 (warm: browser reused)")
    if cold is not None and warm is not None:
        print(f"\n⚡ Cold start overhead: {cold - warm:8.1f} ms")


if __name__ == "__main__":
    main()
