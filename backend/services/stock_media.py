"""
stock_media.py — Stock Footage Search (Pexels)
================================================

Looks up landscape stock videos by keyword, used both by the
`/ai/stock-videos` endpoint and by the renderer when a scene has no
media of its own.
"""

import logging
import os
from typing import Dict, List, Optional, Union

import httpx

import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from config import PEXELS_API_KEY, PEXELS_SEARCH_URL, STOCK_RESULTS_PER_QUERY

logger = logging.getLogger(__name__)

DEFAULT_CONTRIBUTOR = "Pexels Contributor"
DEFAULT_CONTRIBUTOR_URL = "https://www.pexels.com"


class StockMediaError(RuntimeError):
    """Upstream failure, carrying the HTTP status to report."""
    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message)
        self.status_code = status_code


def build_query(keywords: Union[List[str], str, None], max_terms: Optional[int] = None) -> str:
    """
    Turn a keyword list (or a plain string) into a search query.

    Raises:
        ValueError: when there is nothing to search for.
    """
    if keywords is None:
        raise ValueError("Keywords parameter is required")

    if isinstance(keywords, str):
        query = keywords.strip()
    elif isinstance(keywords, list):
        terms = [str(k).strip() for k in keywords if str(k).strip()]
        if max_terms:
            terms = terms[:max_terms]
        query = " ".join(terms)
    else:
        raise ValueError("Invalid keywords format")

    if not query:
        raise ValueError("Empty search query")
    return query


def pick_video_file(video_files: List[Dict]) -> Optional[Dict]:
    """Prefer HD ≥1280 wide, then SD ≥640 wide, then whatever is first."""
    if not video_files:
        return None

    for file in video_files:
        if file.get("quality") == "hd" and (file.get("width") or 0) >= 1280:
            return file
    for file in video_files:
        if file.get("quality") == "sd" and (file.get("width") or 0) >= 640:
            return file
    return video_files[0]


def format_video(video: Dict) -> Optional[Dict]:
    """Flatten one Pexels video into the shape the dashboard uses."""
    file = pick_video_file(video.get("video_files") or [])
    if not file:
        return None

    pictures = video.get("video_pictures") or []
    image = pictures[0].get("picture") if pictures else video.get("image")
    user = video.get("user") or {}

    return {
        "id": video.get("id"),
        "url": file.get("link"),
        "image": image,
        "width": file.get("width"),
        "height": file.get("height"),
        "duration": video.get("duration"),
        "user": {
            "name": user.get("name") or DEFAULT_CONTRIBUTOR,
            "url": user.get("url") or DEFAULT_CONTRIBUTOR_URL,
        },
    }


async def search_videos(
    keywords: Union[List[str], str],
    per_page: int = STOCK_RESULTS_PER_QUERY,
    max_terms: Optional[int] = None,
) -> List[Dict]:
    """
    Search Pexels for landscape videos.

    Returns:
        List of formatted videos (possibly empty).

    Raises:
        ValueError:       bad keywords.
        StockMediaError:  missing key or upstream failure.
    """
    query = build_query(keywords, max_terms=max_terms)

    if not PEXELS_API_KEY:
        raise StockMediaError("Pexels API key is not configured", status_code=500)

    params = {"query": query, "per_page": per_page, "orientation": "landscape"}
    headers = {"Authorization": PEXELS_API_KEY}

    logger.info(f"Searching Pexels for '{query}'")

    async with httpx.AsyncClient(timeout=30) as client:
        response = await client.get(PEXELS_SEARCH_URL, params=params, headers=headers)

    if response.status_code == 401:
        raise StockMediaError("Unauthorized request to Pexels API", status_code=401)
    if response.status_code == 429:
        raise StockMediaError("Rate limit exceeded with Pexels API", status_code=429)
    if response.status_code >= 400:
        logger.error(f"Pexels API error: {response.status_code} {response.text}")
        raise StockMediaError(f"Pexels API error: {response.status_code}")

    videos = response.json().get("videos") or []
    results = [v for v in (format_video(video) for video in videos) if v]

    logger.info(f"Pexels returned {len(results)} video(s) for '{query}'")
    return results


async def find_scene_video(keywords: Union[List[str], str]) -> Optional[str]:
    """Best single video URL for a scene, or None when nothing usable turns up."""
    try:
        results = await search_videos(keywords, per_page=1, max_terms=3)
    except (ValueError, StockMediaError, httpx.HTTPError) as e:
        logger.warning(f"Stock video lookup failed for {keywords!r}: {e}")
        return None

    return results[0]["url"] if results else None
