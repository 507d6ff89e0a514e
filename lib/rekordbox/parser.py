"""
Rekordbox XML パーサー。所有ライブラリの取り込み（Catalog Importer）を担当。
"""
from __future__ import annotations

import hashlib
import logging
import os
import xml.etree.ElementTree as ET
import time as time_module
from pathlib import Path

from lib.cache_manager import build_rekordbox_cache_key, get_rekordbox_cache
from lib.rekordbox.models import OwnedTrack, RekordboxLibrary
from lib.rekordbox.normalizer import build_search_key, extract_format, extract_remix

logger = logging.getLogger(__name__)

# XML ファイルサイズ上限（環境変数で設定可能、デフォルト: 20 MB）
MAX_XML_SIZE_BYTES = int(os.getenv("REKORDBOX_MAX_XML_MB", "20")) * 1024 * 1024

UNKNOWN_ARTIST = "Unknown Artist"
UNKNOWN_TITLE = "Unknown Title"


def _get_file_hash(path: Path) -> str:
    """Content hash of the XML file (cache key)."""
    return hashlib.sha1(path.read_bytes()).hexdigest()


def parse_track_element(track_elem: ET.Element) -> OwnedTrack | None:
    """Convert one TRACK element; returns None when it has neither name nor artist."""
    name = (track_elem.get("Name") or "").strip()
    artist_raw = (track_elem.get("Artist") or "").strip()
    if not name and not artist_raw:
        return None

    artist = artist_raw or UNKNOWN_ARTIST
    title = name or UNKNOWN_TITLE
    remix = extract_remix(title, artist)
    fmt = extract_format(track_elem.get("Kind") or track_elem.get("Location") or "")

    return OwnedTrack(
        artist=artist,
        title=title,
        remix=remix,
        format=fmt,
        normalized_key=build_search_key(artist, title, remix),
    )


def load_rekordbox_library_xml(
    path: str | Path,
    timeout_sec: float = 30.0,
) -> RekordboxLibrary:
    """
    Parse Rekordbox XML collection file.

    Args:
        path: Path to the XML file
        timeout_sec: Max seconds to spend parsing (prevents hang on huge XML)

    Raises:
        FileNotFoundError: XML file not found
        ValueError: Invalid XML structure or no usable tracks
        TimeoutError: Parsing exceeded timeout
        OverflowError: File size exceeds the configured limit

    Returns:
        RekordboxLibrary with owned tracks in document order
    """
    path = Path(path).expanduser()
    if not path.exists():
        raise FileNotFoundError(f"Rekordbox XML not found: {path}")

    xml_bytes = path.stat().st_size

    # File size guard
    if xml_bytes > MAX_XML_SIZE_BYTES:
        raise OverflowError(
            f"Rekordbox XML exceeds {MAX_XML_SIZE_BYTES / (1024 * 1024):.0f}MB limit "
            f"({xml_bytes / (1024 * 1024):.1f}MB)."
        )

    t0 = time_module.time()

    cache = get_rekordbox_cache()
    cache_key = build_rekordbox_cache_key(_get_file_hash(path))
    cached = cache.get(cache_key)
    if cached:
        return cached

    try:
        tree = ET.parse(path)
    except ET.ParseError as e:
        raise ValueError(f"Invalid Rekordbox XML: {e}") from e
    parse_ms = int((time_module.time() - t0) * 1000)

    xml_mb = xml_bytes / (1024 * 1024)
    logger.info(f"[rekordbox] parsed {xml_mb:.1f}MB XML in {parse_ms}ms")

    if parse_ms > timeout_sec * 1000:
        raise TimeoutError(f"XML parsing exceeded {timeout_sec}s timeout")

    root = tree.getroot()
    collection = root if root.tag == "COLLECTION" else root.find("COLLECTION")
    if collection is None:
        raise ValueError("Invalid Rekordbox XML: COLLECTION not found")

    tracks: list[OwnedTrack] = []
    skipped = 0
    for track_elem in collection.findall("TRACK"):
        owned = parse_track_element(track_elem)
        if owned is None:
            skipped += 1
            continue
        tracks.append(owned)

    if not tracks:
        raise ValueError("No tracks found in Rekordbox XML")

    library = RekordboxLibrary(tracks=tracks, skipped=skipped)
    cache[cache_key] = library
    logger.info(f"[rekordbox] tracks={len(tracks)} skipped={skipped}")
    return library
