"""
Rekordbox library import and owned-track matching.

Public API:
  - load_rekordbox_library_xml(path, timeout_sec) -> RekordboxLibrary
  - build_owned_index(rows) -> tuple[OwnedIndexEntry, ...]
  - match_track(artist, title, index, threshold) -> MatchResult
  - normalize(text) -> str
"""
from lib.rekordbox.matcher import build_owned_index, match_track
from lib.rekordbox.normalizer import normalize, build_search_key
from lib.rekordbox.parser import load_rekordbox_library_xml
from lib.rekordbox.models import (
    RekordboxLibrary,
    OwnedTrack,
    OwnedIndexEntry,
    MatchResult,
    TrackStatus,
)

__all__ = [
    "load_rekordbox_library_xml",
    "build_owned_index",
    "match_track",
    "normalize",
    "build_search_key",
    "RekordboxLibrary",
    "OwnedTrack",
    "OwnedIndexEntry",
    "MatchResult",
    "TrackStatus",
]
