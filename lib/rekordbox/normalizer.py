"""
正規化ヘルパー: 所有ライブラリ側とプレイリスト側で同じ検索キーを作る。
"""
from __future__ import annotations

import re

_REMIX_PATTERNS = [
    re.compile(r"\(([^)]+)\s+remix\)", re.IGNORECASE),
    re.compile(r"\[([^\]]+)\s+remix\]", re.IGNORECASE),
    re.compile(r"\s+-\s+([^-]+)\s+remix", re.IGNORECASE),
    re.compile(r"\(remix\s+by\s+([^)]+)\)", re.IGNORECASE),
]

# Kind / Location に含まれる拡張子 → フォーマット（先勝ち）
_FORMATS = ("wav", "flac", "aiff", "mp3")


def normalize(text: str | None) -> str:
    """
    検索キーの正規化:
    - 小文字化
    - 英数字と空白以外を削る（アンダースコアも削る）
    - 連続する空白を1つに詰める
    - 前後の空白を削る

    normalize(normalize(x)) == normalize(x)
    """
    s = (text or "").lower()
    s = re.sub(r"[^\w\s]|_", "", s)
    s = re.sub(r"\s+", " ", s)
    return s.strip()


def build_search_key(artist: str, title: str, remix: str | None = None) -> str:
    """artist / title / remix から所有インデックス用のキーを作る。"""
    parts = [artist, title]
    if remix:
        parts.append(remix)
    return normalize(" ".join(parts))


def extract_remix(name: str, artist: str) -> str | None:
    """
    タイトルまたはアーティストから remix 名を拾う:
    "(X Remix)" / "[X Remix]" / " - X Remix" / "(Remix by X)"
    """
    combined = f"{name} {artist}".lower()
    for pattern in _REMIX_PATTERNS:
        m = pattern.search(combined)
        if m and m.group(1):
            return m.group(1).strip()
    return None


def extract_format(kind_or_location: str) -> str:
    """Rekordbox の Kind / Location からファイル形式を推定（不明なら mp3）。"""
    lower = (kind_or_location or "").lower()
    for fmt in _FORMATS:
        if fmt in lower:
            return fmt
    return "mp3"
