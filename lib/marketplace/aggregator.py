"""
Fan a track out to every provider concurrently and collect whoever succeeds.

Settle-all: one provider failing (after its retries) or timing out never cancels
or fails the others; it is simply missing from the result. Output order is the
provider registration order, independent of completion order.
"""
from __future__ import annotations

import asyncio
import logging
import os
from time import perf_counter
from typing import List, Optional, Sequence

from lib.marketplace.base import MarketplaceProvider
from lib.marketplace.models import AggregationResult, MarketplaceListing
from lib.marketplace.retry import run_with_retry

logger = logging.getLogger(__name__)

# Per-provider wall-clock cap (retries included)
MARKETPLACE_PROVIDER_TIMEOUT_S = float(os.getenv("MARKETPLACE_PROVIDER_TIMEOUT_S", "20"))


async def _run_provider(
    provider: MarketplaceProvider,
    artist: str,
    title: str,
    remix: str | None,
    timeout_s: float,
) -> Optional[MarketplaceListing]:
    return await asyncio.wait_for(
        run_with_retry(
            lambda: provider.search(artist, title, remix),
            max_attempts=provider.max_attempts,
            base_delay=provider.base_delay,
            label=f"{provider.name} search",
        ),
        timeout=timeout_s,
    )


async def aggregate(
    artist: str,
    title: str,
    remix: str | None,
    providers: Sequence[MarketplaceProvider],
    timeout_s: float | None = None,
) -> AggregationResult:
    """
    Returns:
        At most one listing per provider, in registration order. Providers that
        returned None or failed are omitted.
    """
    limit = MARKETPLACE_PROVIDER_TIMEOUT_S if timeout_s is None else timeout_s
    t0 = perf_counter()

    outcomes = await asyncio.gather(
        *(_run_provider(p, artist, title, remix, limit) for p in providers),
        return_exceptions=True,
    )

    listings: List[MarketplaceListing] = []
    failed: List[str] = []
    for provider, outcome in zip(providers, outcomes):
        if isinstance(outcome, BaseException):
            if isinstance(outcome, asyncio.TimeoutError):
                logger.warning(f"[marketplace] provider={provider.name} timed out after {limit}s")
            else:
                logger.warning(f"[marketplace] provider={provider.name} unavailable: {outcome!r}")
            failed.append(provider.name)
            continue
        if outcome is None:
            continue
        listings.append(outcome)

    aggregate_ms = int((perf_counter() - t0) * 1000)
    logger.info(
        f"[marketplace] providers={len(providers)} listings={len(listings)} "
        f"failed={','.join(failed) or '-'} aggregate_ms={aggregate_ms}"
    )
    return listings
