"""
YouTube playlist listing and title parsing.

Public API:
  - extract_track_info(raw_title, raw_description) -> ExtractedTrackInfo
  - extract_playlist_id(url) -> str
  - fetch_playlist_items(playlist_id, api_key) -> list[RawVideoItem]
"""
from lib.youtube.extractor import (
    ExtractedTrackInfo,
    Pattern,
    RawVideoItem,
    extract_track_info,
)
from lib.youtube.playlist import extract_playlist_id, fetch_playlist_items

__all__ = [
    "ExtractedTrackInfo",
    "Pattern",
    "RawVideoItem",
    "extract_track_info",
    "extract_playlist_id",
    "fetch_playlist_items",
]
