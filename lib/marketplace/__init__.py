"""
Marketplace search (Discogs + digital stores).

Public API:
  - aggregate(artist, title, remix, providers) -> list[MarketplaceListing]
  - build_providers(names, discogs_key, discogs_secret) -> list[MarketplaceProvider]
  - run_with_retry(op, max_attempts, base_delay)
"""
from __future__ import annotations

import os
from typing import Dict, List, Type

from lib.marketplace.aggregator import aggregate
from lib.marketplace.base import MarketplaceProvider
from lib.marketplace.discogs import DiscogsProvider
from lib.marketplace.models import AggregationResult, MarketplaceListing, build_query
from lib.marketplace.retry import run_with_retry
from lib.marketplace.stores import (
    BandcampProvider,
    BeatportProvider,
    ITunesProvider,
    JunoProvider,
)

PROVIDER_CLASSES: Dict[str, Type[MarketplaceProvider]] = {
    "discogs": DiscogsProvider,
    "beatport": BeatportProvider,
    "bandcamp": BandcampProvider,
    "juno": JunoProvider,
    "itunes": ITunesProvider,
}

MARKETPLACE_PROVIDERS = [
    p.strip().lower()
    for p in os.getenv("MARKETPLACE_PROVIDERS", "discogs,beatport,bandcamp,juno").split(",")
    if p.strip()
]


def build_providers(
    names: List[str] | None = None,
    discogs_key: str | None = None,
    discogs_secret: str | None = None,
) -> List[MarketplaceProvider]:
    """Instantiate providers in registration order; unknown names raise ValueError."""
    providers: List[MarketplaceProvider] = []
    for name in names or MARKETPLACE_PROVIDERS:
        cls = PROVIDER_CLASSES.get(name)
        if cls is None:
            raise ValueError(f"Unknown marketplace provider: {name}")
        if cls is DiscogsProvider:
            providers.append(DiscogsProvider(api_key=discogs_key, api_secret=discogs_secret))
        else:
            providers.append(cls())
    return providers


__all__ = [
    "aggregate",
    "build_providers",
    "build_query",
    "run_with_retry",
    "AggregationResult",
    "MarketplaceListing",
    "MarketplaceProvider",
    "DiscogsProvider",
    "BeatportProvider",
    "BandcampProvider",
    "JunoProvider",
    "ITunesProvider",
    "PROVIDER_CLASSES",
]
