"""
YouTube の動画タイトルから {artist, title, remix} を抽出する。

パターンは優先順に評価し、最初にマッチしたものを採用する（順序がそのまま優先度）:
  1. ARTIST_TITLE_BRACKET  "ARTIST - TITLE [Official Video]"
  2. REMIX_BY_ARTIST       "TITLE (X Remix) by ARTIST"（by 以降は任意）
  3. ARTIST_TITLE_REMIX    "ARTIST - TITLE (X Remix)"
  4. GENERIC               "A - B"

ARTIST / TITLE の境界は常に最初のハイフン。ハイフンを含むアーティスト名は
誤って分割される（既知の制限）。
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class RawVideoItem:
    """プレイリストから取得した動画1件（不変）。"""
    external_id: str
    raw_title: str
    raw_description: str = ""


@dataclass(frozen=True)
class ExtractedTrackInfo:
    artist: Optional[str]
    title: str
    remix: Optional[str]


class Pattern(Enum):
    ARTIST_TITLE_BRACKET = re.compile(r"^([^-]+?)\s*-\s*([^\[(\n]+?)(?:\s*\[.*?\])?$")
    REMIX_BY_ARTIST = re.compile(
        r"^([^-]+?)\s*\(([^)]+?)\s*remix\)(?:\s*by\s*(.+?))?$", re.IGNORECASE
    )
    ARTIST_TITLE_REMIX = re.compile(
        r"^([^-]+?)\s*-\s*(.+?)\s*\(([^)]+?)\s*remix\)$", re.IGNORECASE
    )
    GENERIC = re.compile(r"^(.+?)\s*-\s*(.+?)$")


# 評価順（Enum の定義順と同じだが、明示しておく）
PATTERN_ORDER = (
    Pattern.ARTIST_TITLE_BRACKET,
    Pattern.REMIX_BY_ARTIST,
    Pattern.ARTIST_TITLE_REMIX,
    Pattern.GENERIC,
)

_DESCRIPTION_ARTIST = re.compile(r"^\s*(?:artist|by)\s*:\s*(.+?)\s*$", re.IGNORECASE | re.MULTILINE)
_TITLE_CUT = re.compile(r"[-\[(]")


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _apply(pattern: Pattern, m: re.Match) -> tuple[str | None, str | None, str | None]:
    """パターンごとのキャプチャ → (artist, title, remix)"""
    if pattern is Pattern.REMIX_BY_ARTIST:
        return _clean(m.group(3)), _clean(m.group(1)), _clean(m.group(2))
    if pattern is Pattern.ARTIST_TITLE_REMIX:
        return _clean(m.group(1)), _clean(m.group(2)), _clean(m.group(3))
    # ARTIST_TITLE_BRACKET / GENERIC
    return _clean(m.group(1)), _clean(m.group(2)), None


def match_pattern(raw_title: str) -> tuple[Pattern, tuple[str | None, str | None, str | None]] | None:
    """最初にマッチしたパターンとその抽出結果。どれにも当たらなければ None。"""
    for pattern in PATTERN_ORDER:
        m = pattern.value.match(raw_title)
        if m:
            return pattern, _apply(pattern, m)
    return None


def extract_track_info(raw_title: str | None, raw_description: str | None = None) -> ExtractedTrackInfo:
    """
    Args:
        raw_title: 動画タイトル
        raw_description: 動画の説明文（パターン不一致時のフォールバック用）

    Returns:
        ExtractedTrackInfo。title は必ず文字列（空タイトルなら ""）
    """
    label = (raw_title or "").strip()
    if not label:
        return ExtractedTrackInfo(artist=None, title="", remix=None)

    artist: str | None = None
    title: str | None = None
    remix: str | None = None

    matched = match_pattern(label)
    if matched:
        _, (artist, title, remix) = matched
    elif raw_description:
        # 説明文の "Artist: X" / "By: X" 行からアーティストを拾う
        dm = _DESCRIPTION_ARTIST.search(raw_description)
        if dm:
            artist = _clean(dm.group(1))
            title = _clean(_TITLE_CUT.split(label, maxsplit=1)[0])

    if not title:
        title = label

    return ExtractedTrackInfo(artist=artist, title=title, remix=remix)
