"""
Discogs: physical releases with marketplace listings.

search → top release → listings → cheapest listing in the best available condition.
If only the listings call fails, the release URL is still returned (price unknown).
"""
from __future__ import annotations

import os
from typing import Any, Dict, List, Optional

import httpx

from lib.marketplace.base import MarketplaceProvider
from lib.marketplace.models import MarketplaceListing, build_query
from lib.marketplace.retry import run_with_retry

DISCOGS_API_BASE = "https://api.discogs.com"
DISCOGS_WEB_BASE = "https://www.discogs.com"
DISCOGS_USER_AGENT = os.getenv("DISCOGS_USER_AGENT", "CrateDigger/1.0")
DISCOGS_HTTP_TIMEOUT_S = float(os.getenv("DISCOGS_HTTP_TIMEOUT_S", "15"))

# Best condition first
PREFERRED_CONDITIONS = [
    "Mint (M)",
    "Near Mint (NM or M-)",
    "Very Good Plus (VG+)",
    "Very Good (VG)",
]


def _price_value(listing: Dict[str, Any]) -> float | None:
    price = listing.get("price") or {}
    try:
        value = float(price.get("value"))
    except (TypeError, ValueError):
        return None
    return value if value > 0 else None


def select_best_listing(listings: List[Dict[str, Any]]) -> Dict[str, Any] | None:
    """
    Cheapest listing among the preferred conditions (ties go to the better
    condition); otherwise the cheapest listing with a positive price.
    """
    priced = [(l, _price_value(l)) for l in listings]
    priced = [(l, v) for l, v in priced if v is not None]
    if not priced:
        return None

    best: Dict[str, Any] | None = None
    best_key: tuple[float, int] | None = None
    for listing, value in priced:
        condition = listing.get("condition")
        if condition not in PREFERRED_CONDITIONS:
            continue
        key = (value, PREFERRED_CONDITIONS.index(condition))
        if best_key is None or key < best_key:
            best, best_key = listing, key
    if best is not None:
        return best

    return min(priced, key=lambda lv: lv[1])[0]


def format_price(listing: Dict[str, Any]) -> str:
    price = listing.get("price") or {}
    return f"{price.get('value')} {price.get('currency') or ''}".strip()


class DiscogsProvider(MarketplaceProvider):
    name = "discogs"

    def __init__(
        self,
        api_key: str | None = None,
        api_secret: str | None = None,
        client: httpx.AsyncClient | None = None,
        max_attempts: int | None = None,
        base_delay: float | None = None,
    ):
        super().__init__(max_attempts=max_attempts, base_delay=base_delay)
        self.api_key = api_key or os.getenv("DISCOGS_API_KEY")
        self.api_secret = api_secret or os.getenv("DISCOGS_API_SECRET")
        self._client = client

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key and self.api_secret)

    def _headers(self) -> Dict[str, str]:
        headers = {"User-Agent": DISCOGS_USER_AGENT}
        if self.has_credentials:
            headers["Authorization"] = f"Discogs key={self.api_key}, secret={self.api_secret}"
        return headers

    async def _get_json(self, client: httpx.AsyncClient, path: str, params: dict | None = None) -> dict:
        resp = await client.get(f"{DISCOGS_API_BASE}{path}", params=params, headers=self._headers())
        resp.raise_for_status()
        return resp.json()

    async def _fetch_listings(self, client: httpx.AsyncClient, release_id: Any) -> List[Dict[str, Any]]:
        data = await run_with_retry(
            lambda: self._get_json(client, f"/marketplace/listings/{release_id}"),
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            label=f"discogs listings release={release_id}",
        )
        return data.get("listings") or []

    async def _search(self, client: httpx.AsyncClient, query: str) -> Optional[MarketplaceListing]:
        data = await self._get_json(
            client,
            "/database/search",
            params={"q": query, "type": "release", "per_page": 5},
        )
        results = data.get("results") or []
        if not results:
            return None

        release_id = results[0].get("id")
        if release_id is None:
            return None
        release_url = f"{DISCOGS_WEB_BASE}/release/{release_id}"

        try:
            listings = await self._fetch_listings(client, release_id)
        except Exception as e:
            self.logger.warning(f"[discogs] listings failed for release={release_id}, returning release URL only: {e}")
            return MarketplaceListing(provider_name=self.name, url=release_url)

        best = select_best_listing(listings)
        if best is None:
            return MarketplaceListing(provider_name=self.name, url=release_url)

        return MarketplaceListing(
            provider_name=self.name,
            url=release_url,
            price=format_price(best),
            condition_or_format=best.get("condition"),
            available=True,
        )

    async def search(
        self,
        artist: str,
        title: str,
        remix: str | None = None,
    ) -> Optional[MarketplaceListing]:
        query = build_query(artist, title, remix)
        if not query:
            return None
        if self._client is not None:
            return await self._search(self._client, query)
        async with httpx.AsyncClient(timeout=httpx.Timeout(DISCOGS_HTTP_TIMEOUT_S)) as client:
            return await self._search(client, query)
