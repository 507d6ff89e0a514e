"""
所有ライブラリ（Rekordbox）とマッチングのデータモデル。
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional


class TrackStatus(str, Enum):
    """
    ProcessedTrackRecord のライフサイクル。
    pending → matched / processing → completed（失敗時は error）
    """
    PENDING = "pending"
    PROCESSING = "processing"
    MATCHED = "matched"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass
class OwnedTrack:
    """Rekordbox コレクション内の単一トラック（取り込み結果）。"""
    artist: str
    title: str
    remix: Optional[str]
    format: str

    # 正規化済み検索キー（マッチングに使用）
    normalized_key: str


@dataclass(frozen=True)
class OwnedIndexEntry:
    """マッチング専用の軽量な射影: 所有トラックID + 正規化キー。"""
    owned_id: str
    normalized_key: str


@dataclass(frozen=True)
class MatchResult:
    """
    Fields:
        owned_id: マッチした所有トラックのID（無ければ None）
        confidence: 0-100。owned_id が None のときだけ 0
    """
    owned_id: Optional[str]
    confidence: int

    @property
    def owned(self) -> bool:
        return self.owned_id is not None


NO_MATCH = MatchResult(owned_id=None, confidence=0)


@dataclass
class RekordboxLibrary:
    """パース済み Rekordbox コレクション。"""
    tracks: List[OwnedTrack]
    skipped: int = 0
