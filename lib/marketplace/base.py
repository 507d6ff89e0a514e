"""Base interface for marketplace providers."""
from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from typing import Optional

from lib.marketplace.models import MarketplaceListing

MARKETPLACE_MAX_ATTEMPTS = int(os.getenv("MARKETPLACE_MAX_ATTEMPTS", "3"))
MARKETPLACE_RETRY_BASE_DELAY_S = float(os.getenv("MARKETPLACE_RETRY_BASE_DELAY_S", "1.0"))


class MarketplaceProvider(ABC):
    """
    Uniform search contract.

    search() returns a listing, or None for "nothing found". Raising means the
    provider is unavailable; the aggregator retries it with this provider's own
    attempt budget and omits it from the result if it keeps failing.
    """

    name: str = ""

    def __init__(
        self,
        max_attempts: int | None = None,
        base_delay: float | None = None,
    ):
        self.max_attempts = max_attempts or MARKETPLACE_MAX_ATTEMPTS
        self.base_delay = MARKETPLACE_RETRY_BASE_DELAY_S if base_delay is None else base_delay
        self.logger = logging.getLogger(f"{__name__}.{self.name}")

    @abstractmethod
    async def search(
        self,
        artist: str,
        title: str,
        remix: str | None = None,
    ) -> Optional[MarketplaceListing]:
        """Search this marketplace for a track."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name} max_attempts={self.max_attempts}>"
