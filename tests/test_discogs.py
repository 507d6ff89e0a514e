import os
import unittest
from unittest import mock

import httpx

from lib.marketplace.discogs import DiscogsProvider, select_best_listing


def _listing(value, condition, currency="USD"):
    return {"price": {"value": value, "currency": currency}, "condition": condition}


class SelectBestListingTests(unittest.TestCase):
    def test_cheapest_preferred_condition(self):
        best = select_best_listing([
            _listing(30.0, "Mint (M)"),
            _listing(12.0, "Very Good Plus (VG+)"),
            _listing(5.0, "Good (G)"),
        ])
        self.assertEqual(best["condition"], "Very Good Plus (VG+)")

    def test_price_tie_goes_to_better_condition(self):
        best = select_best_listing([
            _listing(10.0, "Very Good (VG)"),
            _listing(10.0, "Near Mint (NM or M-)"),
        ])
        self.assertEqual(best["condition"], "Near Mint (NM or M-)")

    def test_falls_back_to_cheapest_any_condition(self):
        best = select_best_listing([
            _listing(9.0, "Good (G)"),
            _listing(4.0, "Fair (F)"),
        ])
        self.assertEqual(best["condition"], "Fair (F)")

    def test_unpriced_listings_are_ignored(self):
        self.assertIsNone(select_best_listing([_listing(0, "Mint (M)"), {"condition": "Mint (M)"}]))
        self.assertIsNone(select_best_listing([]))


class DiscogsProviderTests(unittest.IsolatedAsyncioTestCase):
    def _provider(self, handler, max_attempts=2):
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        self.addAsyncCleanup(client.aclose)
        return DiscogsProvider(
            api_key="k",
            api_secret="s",
            client=client,
            max_attempts=max_attempts,
            base_delay=0,
        )

    async def test_search_then_listings(self):
        seen = []

        def handler(request: httpx.Request):
            seen.append(request)
            if request.url.path == "/database/search":
                return httpx.Response(200, json={"results": [{"id": 42}]})
            if request.url.path == "/marketplace/listings/42":
                return httpx.Response(200, json={"listings": [
                    _listing(25.0, "Mint (M)", "EUR"),
                    _listing(18.5, "Near Mint (NM or M-)", "EUR"),
                ]})
            return httpx.Response(404)

        listing = await self._provider(handler).search("Daft Punk", "One More Time")

        self.assertTrue(listing.available)
        self.assertEqual(listing.provider_name, "discogs")
        self.assertEqual(listing.url, "https://www.discogs.com/release/42")
        self.assertEqual(listing.price, "18.5 EUR")
        self.assertEqual(listing.condition_or_format, "Near Mint (NM or M-)")
        self.assertEqual(seen[0].url.params["q"], "Daft Punk One More Time")
        self.assertEqual(seen[0].url.params["type"], "release")
        self.assertIn("Discogs key=k, secret=s", seen[0].headers["Authorization"])

    async def test_no_search_results_is_none(self):
        def handler(request):
            return httpx.Response(200, json={"results": []})

        self.assertIsNone(await self._provider(handler).search("Nobody", "Nothing"))

    async def test_top_result_without_id_is_none(self):
        def handler(request: httpx.Request):
            if request.url.path == "/database/search":
                return httpx.Response(200, json={"results": [{"title": "No id"}]})
            return httpx.Response(500)

        self.assertIsNone(await self._provider(handler).search("A", "B"))

    def test_has_credentials_needs_key_and_secret(self):
        self.assertTrue(DiscogsProvider(api_key="k", api_secret="s").has_credentials)
        with mock.patch.dict(os.environ, {"DISCOGS_API_KEY": "", "DISCOGS_API_SECRET": ""}):
            self.assertFalse(DiscogsProvider(api_key="k").has_credentials)

    async def test_listings_failure_degrades_to_release_url(self):
        listing_calls = 0

        def handler(request: httpx.Request):
            nonlocal listing_calls
            if request.url.path == "/database/search":
                return httpx.Response(200, json={"results": [{"id": 7}]})
            listing_calls += 1
            return httpx.Response(503)

        listing = await self._provider(handler, max_attempts=3).search("A", "B")

        self.assertEqual(listing_calls, 3)
        self.assertEqual(listing.url, "https://www.discogs.com/release/7")
        self.assertIsNone(listing.price)
        self.assertFalse(listing.available)

    async def test_listings_recover_after_retry(self):
        listing_calls = 0

        def handler(request: httpx.Request):
            nonlocal listing_calls
            if request.url.path == "/database/search":
                return httpx.Response(200, json={"results": [{"id": 7}]})
            listing_calls += 1
            if listing_calls == 1:
                return httpx.Response(500)
            return httpx.Response(200, json={"listings": [_listing(3.0, "Good (G)")]})

        listing = await self._provider(handler).search("A", "B")

        self.assertTrue(listing.available)
        self.assertEqual(listing.condition_or_format, "Good (G)")

    async def test_release_without_priced_listings(self):
        def handler(request: httpx.Request):
            if request.url.path == "/database/search":
                return httpx.Response(200, json={"results": [{"id": 9}]})
            return httpx.Response(200, json={"listings": []})

        listing = await self._provider(handler).search("A", "B")
        self.assertFalse(listing.available)
        self.assertEqual(listing.url, "https://www.discogs.com/release/9")

    async def test_search_failure_raises(self):
        def handler(request):
            return httpx.Response(500)

        with self.assertRaises(httpx.HTTPStatusError):
            await self._provider(handler).search("A", "B")


if __name__ == "__main__":
    unittest.main()
