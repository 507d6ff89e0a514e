"""
プレイリストから抽出したトラックと所有ライブラリ（インデックス）のマッチング。
token_sort_ratio の距離を 0〜100 の confidence に変換する。
"""
from __future__ import annotations

import logging
import os
from typing import Iterable, Mapping, Sequence, Tuple

from rapidfuzz import fuzz

from lib.rekordbox.models import NO_MATCH, MatchResult, OwnedIndexEntry
from lib.rekordbox.normalizer import normalize

logger = logging.getLogger(__name__)

# 距離 (0 = 同一, 1 = 無関係) の上限。小さいほど厳しい
MATCH_THRESHOLD = float(os.getenv("MATCH_THRESHOLD", "0.55"))


def build_owned_index(rows: Iterable[Mapping[str, str]]) -> Tuple[OwnedIndexEntry, ...]:
    """
    {"id": ..., "normalized_key": ...} の行からインデックスのスナップショットを作る。
    マッチャーはこのタプルを読むだけ（変更しない）。
    """
    return tuple(
        OwnedIndexEntry(owned_id=row["id"], normalized_key=row.get("normalized_key") or "")
        for row in rows
    )


def _distance(query_key: str, candidate_key: str) -> float:
    """0〜1 の距離（0 = 同一）"""
    return 1.0 - fuzz.token_sort_ratio(query_key, candidate_key) / 100.0


def match_track(
    artist: str | None,
    title: str | None,
    index: Sequence[OwnedIndexEntry],
    threshold: float | None = None,
) -> MatchResult:
    """
    artist / title のどちらかが空なら何もせず NO_MATCH を返す。

    判定:
    1. normalize(artist + " " + title) をクエリキーにする
    2. 全エントリと距離を計算し、最小距離のものを1件だけ採用（同点は先勝ち）
    3. 距離が threshold を超えたら NO_MATCH
    4. confidence = round((1 - d) * 100)、0 未満は 0
    """
    if not artist or not title:
        return NO_MATCH

    limit = MATCH_THRESHOLD if threshold is None else threshold
    query_key = normalize(f"{artist} {title}")
    if not query_key:
        return NO_MATCH

    best_entry: OwnedIndexEntry | None = None
    best_distance = 1.0
    for entry in index:
        d = _distance(query_key, entry.normalized_key)
        if best_entry is None or d < best_distance:
            best_entry = entry
            best_distance = d
            if d == 0.0:
                break

    if best_entry is None or best_distance > limit:
        return NO_MATCH

    confidence = max(0, round((1.0 - best_distance) * 100))
    if confidence == 0:
        return NO_MATCH
    return MatchResult(owned_id=best_entry.owned_id, confidence=confidence)
