"""
Durable store interface and an in-memory implementation.

Documents are plain dicts (document-store style). Batch writes fall back to
one-by-one writes when a batch commit fails; the result is a WriteReport with
the number of failures instead of an aborted batch.
"""
from __future__ import annotations

import asyncio
import copy
import logging
import uuid
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, TypedDict

from lib.rekordbox.matcher import build_owned_index
from lib.rekordbox.models import OwnedIndexEntry, OwnedTrack

logger = logging.getLogger(__name__)

# Firestore と同じバッチ上限
BATCH_SIZE = 500

OWNED_TRACKS = "tracks"
PROCESSED_TRACKS = "processedTracks"
PLAYLIST_JOBS = "playlists"


class ManualCorrection(TypedDict):
    field: str
    old_value: Optional[str]
    new_value: Optional[str]
    corrected_at: str


class ProcessedTrackRecord(TypedDict, total=False):
    """
    Fields:
        id / user_id / job_id: document id, owner, enclosing playlist job
        video_id / video_title: source video
        detected_artist / detected_title / detected_remix: extraction result
        confidence / owned / owned_track_id: match result
        marketplace_results: list of MarketplaceListing dicts
        manual_corrections: list of ManualCorrection
        status: TrackStatus value
    """
    id: str
    user_id: str
    job_id: str
    video_id: str
    video_title: str
    detected_artist: Optional[str]
    detected_title: str
    detected_remix: Optional[str]
    confidence: int
    owned: bool
    owned_track_id: Optional[str]
    marketplace_results: List[Dict[str, Any]]
    manual_corrections: List[ManualCorrection]
    status: str
    created_at: str
    updated_at: str


@dataclass
class WriteReport:
    written: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.failed == 0


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return uuid.uuid4().hex


class DurableStore(ABC):
    """Persistence collaborator used by the pipeline."""

    batch_size = BATCH_SIZE

    # --- primitives implemented by concrete stores ---

    @abstractmethod
    async def _commit_batch(self, collection: str, docs: Sequence[Dict[str, Any]]) -> None:
        """Write all docs atomically or raise."""

    @abstractmethod
    async def _write_one(self, collection: str, doc: Dict[str, Any]) -> None:
        """Write a single doc or raise."""

    @abstractmethod
    async def _query(self, collection: str, **equals: Any) -> List[Dict[str, Any]]:
        """Return copies of docs whose fields equal the given values."""

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Return a copy of a doc, or None."""

    @abstractmethod
    async def update(
        self,
        collection: str,
        doc_id: str,
        mutate: Callable[[Dict[str, Any]], None],
    ) -> Dict[str, Any]:
        """Apply mutate to a doc; writes to the same doc are serialized. KeyError if missing."""

    # --- batched writes ---

    async def write_batched(
        self,
        collection: str,
        docs: Sequence[Dict[str, Any]],
        on_progress: Callable[[int, int], None] | None = None,
    ) -> WriteReport:
        report = WriteReport()
        total = len(docs)
        for start in range(0, total, self.batch_size):
            chunk = docs[start:start + self.batch_size]
            try:
                await self._commit_batch(collection, chunk)
                report.written += len(chunk)
            except Exception as e:
                batch_no = start // self.batch_size + 1
                logger.error(f"[store] batch {batch_no} of {collection} failed, attempting individual writes: {e}")
                for doc in chunk:
                    try:
                        await self._write_one(collection, doc)
                        report.written += 1
                    except Exception as item_error:
                        report.failed += 1
                        report.errors.append(str(item_error))
                        logger.error(f"[store] failed to write {collection}/{doc.get('id')}: {item_error}")
            if on_progress:
                on_progress(report.written, total)
        return report

    # --- owned catalog ---

    async def add_owned_tracks(
        self,
        user_id: str,
        tracks: Sequence[OwnedTrack],
        on_progress: Callable[[int, int], None] | None = None,
    ) -> WriteReport:
        now = utcnow_iso()
        docs = [
            {
                "id": new_id(),
                "user_id": user_id,
                "artist": t.artist,
                "title": t.title,
                "remix": t.remix,
                "format": t.format,
                "normalized_key": t.normalized_key,
                "created_at": now,
            }
            for t in tracks
        ]
        return await self.write_batched(OWNED_TRACKS, docs, on_progress=on_progress)

    async def list_owned_index(self, user_id: str) -> Tuple[OwnedIndexEntry, ...]:
        return build_owned_index(await self._query(OWNED_TRACKS, user_id=user_id))

    # --- processed tracks ---

    async def save_tracks(self, records: Sequence[ProcessedTrackRecord]) -> WriteReport:
        return await self.write_batched(PROCESSED_TRACKS, list(records))

    async def get_track(self, track_id: str) -> Optional[ProcessedTrackRecord]:
        return await self.get(PROCESSED_TRACKS, track_id)  # type: ignore[return-value]

    async def update_track(
        self,
        track_id: str,
        mutate: Callable[[Dict[str, Any]], None],
    ) -> ProcessedTrackRecord:
        def _stamped(doc: Dict[str, Any]) -> None:
            mutate(doc)
            doc["updated_at"] = utcnow_iso()

        return await self.update(PROCESSED_TRACKS, track_id, _stamped)  # type: ignore[return-value]

    async def list_tracks(self, user_id: str, job_id: str | None = None) -> List[ProcessedTrackRecord]:
        if job_id:
            return await self._query(PROCESSED_TRACKS, user_id=user_id, job_id=job_id)  # type: ignore[return-value]
        return await self._query(PROCESSED_TRACKS, user_id=user_id)  # type: ignore[return-value]

    # --- playlist jobs ---

    async def create_job(self, user_id: str, playlist_url: str) -> str:
        job_id = new_id()
        await self._write_one(
            PLAYLIST_JOBS,
            {
                "id": job_id,
                "user_id": user_id,
                "youtube_url": playlist_url,
                "status": "processing",
                "created_at": utcnow_iso(),
                "processed_at": None,
            },
        )
        return job_id

    async def update_job(self, job_id: str, **fields: Any) -> Dict[str, Any]:
        return await self.update(PLAYLIST_JOBS, job_id, lambda doc: doc.update(fields))

    # --- users ---

    @abstractmethod
    async def get_user(self, user_id: str) -> Dict[str, Any]:
        """User settings doc (api keys, last_library_sync); {} when unknown."""

    @abstractmethod
    async def set_user_fields(self, user_id: str, **fields: Any) -> None:
        """Merge fields into the user doc."""


class InMemoryStore(DurableStore):
    """Dict-backed store for local runs and tests."""

    def __init__(self) -> None:
        self._data: Dict[str, Dict[str, Dict[str, Any]]] = defaultdict(dict)
        self._users: Dict[str, Dict[str, Any]] = {}
        self._locks: Dict[Tuple[str, str], asyncio.Lock] = defaultdict(asyncio.Lock)

    async def _commit_batch(self, collection: str, docs: Sequence[Dict[str, Any]]) -> None:
        staged = {doc["id"]: copy.deepcopy(doc) for doc in docs}
        self._data[collection].update(staged)

    async def _write_one(self, collection: str, doc: Dict[str, Any]) -> None:
        self._data[collection][doc["id"]] = copy.deepcopy(doc)

    async def _query(self, collection: str, **equals: Any) -> List[Dict[str, Any]]:
        return [
            copy.deepcopy(doc)
            for doc in self._data[collection].values()
            if all(doc.get(k) == v for k, v in equals.items())
        ]

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        doc = self._data[collection].get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def update(
        self,
        collection: str,
        doc_id: str,
        mutate: Callable[[Dict[str, Any]], None],
    ) -> Dict[str, Any]:
        async with self._locks[(collection, doc_id)]:
            current = self._data[collection].get(doc_id)
            if current is None:
                raise KeyError(f"{collection}/{doc_id}")
            updated = copy.deepcopy(current)
            mutate(updated)
            self._data[collection][doc_id] = updated
            return copy.deepcopy(updated)

    async def get_user(self, user_id: str) -> Dict[str, Any]:
        return copy.deepcopy(self._users.get(user_id) or {})

    async def set_user_fields(self, user_id: str, **fields: Any) -> None:
        self._users.setdefault(user_id, {}).update(fields)
