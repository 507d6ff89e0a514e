"""YouTube Data API v3 playlist listing (the video listing collaborator)."""
from __future__ import annotations

import logging
import os
import re
from time import perf_counter
from typing import List
from urllib.parse import parse_qsl, urlparse

import httpx

from lib.errors import InvalidInputError, UpstreamUnavailableError
from lib.youtube.extractor import RawVideoItem

logger = logging.getLogger(__name__)

YOUTUBE_API_URL = "https://www.googleapis.com/youtube/v3/playlistItems"
YOUTUBE_MAX_ITEMS = int(os.getenv("YOUTUBE_MAX_ITEMS", "200"))
YOUTUBE_HTTP_TIMEOUT_S = float(os.getenv("YOUTUBE_HTTP_TIMEOUT_S", "15"))
# API の1リクエストあたりの上限
_PAGE_SIZE = 50

_PLAYLIST_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def extract_playlist_id(url: str) -> str:
    """Extract a YouTube playlist ID from a URL.

    Supports formats like:
    - https://www.youtube.com/playlist?list=<id>
    - https://www.youtube.com/watch?v=<video>&list=<id>
    - https://music.youtube.com/playlist?list=<id>
    - raw playlist ID
    """
    s = (url or "").strip()
    if not s:
        raise InvalidInputError("YouTube playlist URL is required")

    # Raw ID fallback (PL..., OL..., etc.)
    if "/" not in s and ":" not in s and len(s) >= 10 and _PLAYLIST_ID_RE.match(s):
        return s

    parsed = urlparse(s)
    host = (parsed.hostname or "").lower()
    is_youtube = host in ("youtube.com", "youtu.be") or host.endswith(".youtube.com")
    if parsed.scheme not in ("http", "https") or not is_youtube:
        raise InvalidInputError("Invalid YouTube playlist URL", meta={"url": s})

    for key, value in parse_qsl(parsed.query):
        if key == "list" and _PLAYLIST_ID_RE.match(value):
            return value

    raise InvalidInputError("Invalid YouTube playlist URL", meta={"url": s})


def _to_raw_item(item: dict) -> RawVideoItem | None:
    snippet = item.get("snippet") or {}
    video_id = (snippet.get("resourceId") or {}).get("videoId")
    if not video_id:
        return None
    return RawVideoItem(
        external_id=video_id,
        raw_title=snippet.get("title") or "",
        raw_description=snippet.get("description") or "",
    )


async def fetch_playlist_items(
    playlist_id: str,
    api_key: str,
    max_items: int | None = None,
    client: httpx.AsyncClient | None = None,
) -> List[RawVideoItem]:
    """
    Fetch playlist items in playlist order, following nextPageToken.

    Items without a video id (deleted / private videos) are skipped.
    An empty list is returned as-is; the caller decides it is "not found".

    Raises:
        UpstreamUnavailableError: the API answered with an error or could not be reached
    """
    limit = max_items or YOUTUBE_MAX_ITEMS
    t0 = perf_counter()
    items: List[RawVideoItem] = []
    page_token: str | None = None

    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient(timeout=httpx.Timeout(YOUTUBE_HTTP_TIMEOUT_S))
    try:
        while len(items) < limit:
            params = {
                "key": api_key,
                "part": "snippet",
                "playlistId": playlist_id,
                "maxResults": min(_PAGE_SIZE, limit - len(items)),
            }
            if page_token:
                params["pageToken"] = page_token
            try:
                resp = await client.get(YOUTUBE_API_URL, params=params)
                resp.raise_for_status()
                data = resp.json()
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                if status == 404:
                    # 非公開 / 存在しないプレイリスト
                    return []
                raise UpstreamUnavailableError(
                    f"YouTube API error ({status})",
                    meta={"playlist_id": playlist_id, "status": status},
                ) from e
            except httpx.HTTPError as e:
                raise UpstreamUnavailableError(
                    f"YouTube API unreachable: {e}",
                    meta={"playlist_id": playlist_id},
                ) from e

            for raw in data.get("items") or []:
                video = _to_raw_item(raw)
                if video is not None:
                    items.append(video)

            page_token = data.get("nextPageToken")
            if not page_token:
                break
    finally:
        if owns_client:
            await client.aclose()

    fetch_ms = int((perf_counter() - t0) * 1000)
    logger.info(f"[youtube] playlist_id={playlist_id} items={len(items)} fetch_ms={fetch_ms}")
    return items[:limit]
