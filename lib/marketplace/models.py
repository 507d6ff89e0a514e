"""Marketplace listing model."""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class MarketplaceListing:
    """
    One result per provider.

    available is True only when a concrete price was resolved.
    condition_or_format: media condition for physical releases, file format for digital stores.
    """
    provider_name: str
    url: Optional[str]
    price: Optional[str] = None
    condition_or_format: Optional[str] = None
    available: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


AggregationResult = List[MarketplaceListing]


def build_query(artist: str, title: str, remix: str | None = None) -> str:
    """Combined search text: "artist title [remix]"."""
    parts = [artist.strip(), title.strip()]
    if remix and remix.strip():
        parts.append(remix.strip())
    return " ".join(p for p in parts if p)
