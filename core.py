#!/usr/bin/env python3
"""
YouTube プレイリストを処理して、
- 動画タイトルから artist / title / remix を抽出
- 所有ライブラリ（Rekordbox 取り込み済み）と fuzzy マッチング
- 未所有トラックについて Discogs / Beatport / Bandcamp / Juno を横断検索

を行うコアモジュール。永続化は DurableStore 経由。
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from time import perf_counter
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from lib.auth import verify_owner
from lib.cache_manager import build_marketplace_cache_key, get_marketplace_cache
from lib.errors import (
    InvalidInputError,
    MissingCredentialsError,
    PartialWriteFailureError,
    SourceEmptyError,
)
from lib.marketplace import (
    DiscogsProvider,
    MarketplaceProvider,
    aggregate,
    build_providers,
    build_query,
)
from lib.rekordbox import TrackStatus, load_rekordbox_library_xml, match_track
from lib.store import DurableStore, ProcessedTrackRecord, new_id, utcnow_iso
from lib.youtube import (
    RawVideoItem,
    extract_playlist_id,
    extract_track_info,
    fetch_playlist_items,
)

# Configure logger for this module
logger = logging.getLogger(__name__)

VideoLister = Callable[[str, str], Awaitable[List[RawVideoItem]]]

CORRECTABLE_FIELDS = {
    "artist": "detected_artist",
    "title": "detected_title",
    "remix": "detected_remix",
}


def _sanitize_url(raw: str) -> str:
    """
    Basic server-side URL sanitization: trim whitespace, strip surrounding
    angle brackets and surrounding single/double quotes.
    """
    if not raw:
        return raw
    s = raw.strip()
    if s.startswith('<') and s.endswith('>'):
        s = s[1:-1].strip()
    # strip surrounding quotes
    s = s.strip('\'"')
    return s


def _require_text(value: Any, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidInputError(f"{name} is required", meta={"field": name})
    return value.strip()


# =========================
# API キー
# =========================


async def resolve_youtube_api_key(store: DurableStore, user_id: str) -> str:
    """ユーザー設定の YouTube API キー → 環境変数 YOUTUBE_API_KEY の順で探す。"""
    user = await store.get_user(user_id)
    key = (user.get("api_keys") or {}).get("youtube_api_key") or os.getenv("YOUTUBE_API_KEY")
    if not key:
        raise MissingCredentialsError(
            "YouTube API key not configured. Please add your API key in Settings."
        )
    return key


async def save_api_keys(
    store: DurableStore,
    owner_id: str,
    authenticated_user_id: str | None,
    **keys: Optional[str],
) -> Dict[str, bool]:
    """None 以外のキーだけ上書き。戻り値はキーごとの設定有無（値そのものは返さない）。"""
    user_id = verify_owner(owner_id, authenticated_user_id)
    user = await store.get_user(user_id)
    api_keys = dict(user.get("api_keys") or {})
    for name, value in keys.items():
        if value is not None:
            api_keys[name] = value.strip() or None
    await store.set_user_fields(user_id, api_keys=api_keys)
    return {name: bool(value) for name, value in api_keys.items()}


# =========================
# プレイリスト処理
# =========================


def build_track_record(
    video: RawVideoItem,
    user_id: str,
    job_id: str,
    index: Sequence,
    threshold: float | None = None,
) -> ProcessedTrackRecord:
    """動画1件 → 抽出 → マッチング → 保存用レコード（同期・I/O なし）"""
    info = extract_track_info(video.raw_title, video.raw_description)
    match = match_track(info.artist, info.title, index, threshold=threshold)
    now = utcnow_iso()
    return {
        "id": new_id(),
        "user_id": user_id,
        "job_id": job_id,
        "video_id": video.external_id,
        "video_title": video.raw_title,
        "detected_artist": info.artist,
        "detected_title": info.title,
        "detected_remix": info.remix,
        "confidence": match.confidence,
        "owned": match.owned,
        "owned_track_id": match.owned_id,
        "marketplace_results": [],
        "manual_corrections": [],
        "status": (TrackStatus.MATCHED if match.owned else TrackStatus.PENDING).value,
        "created_at": now,
        "updated_at": now,
    }


def _track_summary(record: ProcessedTrackRecord) -> Dict[str, Any]:
    return {
        "id": record["id"],
        "video_title": record["video_title"],
        "detected_artist": record["detected_artist"],
        "detected_title": record["detected_title"],
        "detected_remix": record["detected_remix"],
        "confidence": record["confidence"],
        "owned": record["owned"],
        "status": record["status"],
    }


async def process_playlist(
    playlist_url: str,
    owner_id: str,
    authenticated_user_id: str | None,
    store: DurableStore,
    list_videos: VideoLister | None = None,
    threshold: float | None = None,
) -> Dict[str, Any]:
    """
    YouTube プレイリストを処理して ProcessedTrackRecord を保存する。

    戻り値フォーマット:
    {
      "job_id": str,
      "track_count": int,
      "tracks": [ {id, video_title, detected_artist, detected_title, detected_remix,
                   confidence, owned, status}, ... ],
      "perf": {"fetch_ms": int, "match_ms": int, "write_ms": int, "total_ms": int},
    }

    Raises:
        InvalidInputError / AuthorizationMismatchError / MissingCredentialsError:
            リクエスト不正（ジョブは作られない）
        SourceEmptyError: プレイリストが空 or アクセス不可
        UpstreamUnavailableError: YouTube API エラー
        PartialWriteFailureError: 一部レコードの保存に失敗（ジョブは error）
    """
    t0_total = perf_counter()
    if not isinstance(playlist_url, str) or not playlist_url.strip():
        raise InvalidInputError("YouTube playlist URL is required")
    user_id = verify_owner(owner_id, authenticated_user_id)

    clean_url = _sanitize_url(playlist_url)
    playlist_id = extract_playlist_id(clean_url)
    api_key = await resolve_youtube_api_key(store, user_id)

    lister = list_videos or fetch_playlist_items
    t0_fetch = perf_counter()
    videos = await lister(playlist_id, api_key)
    fetch_ms = int((perf_counter() - t0_fetch) * 1000)
    if not videos:
        raise SourceEmptyError(
            "Playlist is empty or not accessible",
            meta={"playlist_id": playlist_id},
        )

    job_id = await store.create_job(user_id, clean_url)
    try:
        # 1回の実行につき1回だけスナップショットを取る
        index = await store.list_owned_index(user_id)

        t0_match = perf_counter()
        records = [build_track_record(v, user_id, job_id, index, threshold) for v in videos]
        match_ms = int((perf_counter() - t0_match) * 1000)

        t0_write = perf_counter()
        report = await store.save_tracks(records)
        write_ms = int((perf_counter() - t0_write) * 1000)
        if not report.ok:
            raise PartialWriteFailureError(
                f"Failed to save {report.failed} of {len(records)} tracks",
                written=report.written,
                failed=report.failed,
                meta={"job_id": job_id},
            )

        await store.update_job(job_id, status="completed", processed_at=utcnow_iso())
    except Exception as e:
        logger.error(f"[pipeline] job={job_id} playlist_id={playlist_id} failed: {e}")
        await store.update_job(job_id, status="error", error=str(e))
        raise

    owned_count = sum(1 for r in records if r["owned"])
    total_ms = int((perf_counter() - t0_total) * 1000)
    logger.info(
        f"[pipeline] job={job_id} playlist_id={playlist_id} tracks={len(records)} owned={owned_count} "
        f"index_size={len(index)} fetch_ms={fetch_ms} match_ms={match_ms} write_ms={write_ms} total_ms={total_ms}"
    )

    return {
        "job_id": job_id,
        "track_count": len(records),
        "tracks": [_track_summary(r) for r in records],
        "perf": {
            "fetch_ms": fetch_ms,
            "match_ms": match_ms,
            "write_ms": write_ms,
            "total_ms": total_ms,
        },
    }


# =========================
# マーケットプレイス検索
# =========================


async def _load_owned_track(store: DurableStore, track_id: str, user_id: str) -> ProcessedTrackRecord:
    record = await store.get_track(track_id)
    if record is None:
        raise InvalidInputError("Unknown track", meta={"track_id": track_id})
    # 他人のレコードは存在しないものと同じく拒否
    verify_owner(record.get("user_id"), user_id)
    return record


async def search_marketplace(
    artist: str,
    title: str,
    remix: str | None,
    owner_id: str,
    authenticated_user_id: str | None,
    store: DurableStore,
    track_id: str | None = None,
    providers: Sequence[MarketplaceProvider] | None = None,
    refresh: bool = False,
) -> Dict[str, Any]:
    """
    全マーケットプレイスを並行検索し、track_id があればレコードに結果を保存する。

    戻り値フォーマット:
    {
      "listings": [ {provider_name, url, price, condition_or_format, available}, ... ],
      "searched": "artist title [remix]",
      "meta": {"cache_hit": bool, "aggregate_ms": int},
    }
    """
    artist = _require_text(artist, "artist")
    title = _require_text(title, "title")
    remix = remix.strip() if isinstance(remix, str) else None
    remix = remix or None
    user_id = verify_owner(owner_id, authenticated_user_id)

    if track_id:
        await _load_owned_track(store, track_id, user_id)

    if providers is None:
        api_keys = (await store.get_user(user_id)).get("api_keys") or {}
        providers = build_providers(
            discogs_key=api_keys.get("discogs_api_key"),
            discogs_secret=api_keys.get("discogs_api_secret"),
        )
    discogs_auth = any(isinstance(p, DiscogsProvider) and p.has_credentials for p in providers)

    if track_id:
        await store.update_track(track_id, lambda doc: doc.update(status=TrackStatus.PROCESSING.value))

    query = build_query(artist, title, remix)
    cache = get_marketplace_cache()
    cache_key = build_marketplace_cache_key(query, [p.name for p in providers], authenticated=discogs_auth)
    cached = None if refresh else cache.get(cache_key)
    cache_hit = cached is not None

    t0 = perf_counter()
    if cached is not None:
        listings = cached
    else:
        try:
            listings = await aggregate(artist, title, remix, providers)
        except Exception:
            if track_id:
                await store.update_track(track_id, lambda doc: doc.update(status=TrackStatus.ERROR.value))
            raise
        if listings:
            cache[cache_key] = listings
    aggregate_ms = int((perf_counter() - t0) * 1000)

    results = [l.to_dict() for l in listings]
    if track_id:
        def _apply(doc: Dict[str, Any]) -> None:
            doc["marketplace_results"] = results
            doc["status"] = TrackStatus.COMPLETED.value

        await store.update_track(track_id, _apply)

    logger.info(
        f"[marketplace] query={query!r} listings={len(results)} cache_hit={'true' if cache_hit else 'false'} "
        f"track_id={track_id or '-'} aggregate_ms={aggregate_ms}"
    )
    return {
        "listings": results,
        "searched": query,
        "meta": {"cache_hit": cache_hit, "aggregate_ms": aggregate_ms},
    }


# =========================
# 手動修正
# =========================


async def correct_track(
    track_id: str,
    field: str,
    value: str | None,
    owner_id: str,
    authenticated_user_id: str | None,
    store: DurableStore,
    threshold: float | None = None,
) -> ProcessedTrackRecord:
    """
    artist / title / remix を手動で修正し、修正履歴を残して所有判定をやり直す。
    空文字は None として扱う（title だけは必須）。
    """
    if field not in CORRECTABLE_FIELDS:
        raise InvalidInputError(
            f"field must be one of {sorted(CORRECTABLE_FIELDS)}", meta={"field": field}
        )
    new_value = value.strip() if isinstance(value, str) else None
    new_value = new_value or None
    if field == "title" and new_value is None:
        raise InvalidInputError("title cannot be empty", meta={"field": field})

    user_id = verify_owner(owner_id, authenticated_user_id)
    await _load_owned_track(store, track_id, user_id)
    index = await store.list_owned_index(user_id)
    key = CORRECTABLE_FIELDS[field]

    def _apply(doc: Dict[str, Any]) -> None:
        doc.setdefault("manual_corrections", []).append(
            {
                "field": field,
                "old_value": doc.get(key),
                "new_value": new_value,
                "corrected_at": utcnow_iso(),
            }
        )
        doc[key] = new_value
        match = match_track(doc.get("detected_artist"), doc.get("detected_title"), index, threshold=threshold)
        doc["confidence"] = match.confidence
        doc["owned"] = match.owned
        doc["owned_track_id"] = match.owned_id
        if doc.get("status") in (TrackStatus.PENDING.value, TrackStatus.MATCHED.value):
            doc["status"] = (TrackStatus.MATCHED if match.owned else TrackStatus.PENDING).value

    updated = await store.update_track(track_id, _apply)
    logger.info(f"[pipeline] corrected track={track_id} field={field} owned={updated['owned']}")
    return updated


# =========================
# ライブラリ取り込み
# =========================


async def import_library(
    xml_path: str | Path,
    owner_id: str,
    authenticated_user_id: str | None,
    store: DurableStore,
) -> Dict[str, Any]:
    """
    Rekordbox XML を取り込み、所有トラックとして保存する。

    戻り値: {"track_count", "written", "failed", "skipped", "status": "completed" | "partial"}
    """
    user_id = verify_owner(owner_id, authenticated_user_id)
    t0 = perf_counter()
    try:
        library = await asyncio.to_thread(load_rekordbox_library_xml, xml_path)
    except (FileNotFoundError, ValueError, OverflowError, TimeoutError) as e:
        raise InvalidInputError(f"Failed to parse Rekordbox XML: {e}") from e

    def _log_progress(written: int, total: int) -> None:
        logger.info(f"[rekordbox] import user={user_id} progress={written}/{total}")

    report = await store.add_owned_tracks(user_id, library.tracks, on_progress=_log_progress)
    await store.set_user_fields(user_id, last_library_sync=utcnow_iso())
    import_ms = int((perf_counter() - t0) * 1000)
    logger.info(
        f"[rekordbox] import user={user_id} tracks={len(library.tracks)} written={report.written} "
        f"failed={report.failed} import_ms={import_ms}"
    )
    return {
        "track_count": len(library.tracks),
        "written": report.written,
        "failed": report.failed,
        "skipped": library.skipped,
        "status": "completed" if report.ok else "partial",
    }
