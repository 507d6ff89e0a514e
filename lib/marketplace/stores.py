"""
Digital stores without a public API.

These only build a deterministic search URL; price / format resolution would
need scraping and is not done here, so listings are always available=False.
"""
from __future__ import annotations

import urllib.parse
from typing import Optional

from lib.marketplace.base import MarketplaceProvider
from lib.marketplace.models import MarketplaceListing, build_query


class SearchLinkProvider(MarketplaceProvider):
    """Store whose result is just a search link."""

    url_template: str = ""

    def build_search_url(self, query: str) -> str:
        return self.url_template.format(q=urllib.parse.quote_plus(query))

    async def search(
        self,
        artist: str,
        title: str,
        remix: str | None = None,
    ) -> Optional[MarketplaceListing]:
        query = build_query(artist, title, remix)
        if not query:
            return None
        return MarketplaceListing(
            provider_name=self.name,
            url=self.build_search_url(query),
            price=None,
            condition_or_format=None,
            available=False,
        )


class BeatportProvider(SearchLinkProvider):
    name = "beatport"
    url_template = "https://www.beatport.com/search?q={q}"


class BandcampProvider(SearchLinkProvider):
    name = "bandcamp"
    url_template = "https://bandcamp.com/search?q={q}"


class JunoProvider(SearchLinkProvider):
    name = "juno"
    url_template = "https://www.junodownload.com/search/?q[all][]={q}"


class ITunesProvider(SearchLinkProvider):
    name = "itunes"
    url_template = "https://music.apple.com/search?term={q}"
