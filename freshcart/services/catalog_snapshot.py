"""
Catalog Snapshot

In-memory copy of the product catalog used for matching and listing.
Refreshed from storage when older than CATALOG_REFRESH_SECONDS or on
demand; each refresh rebuilds the matcher so it never sees a stale set.
"""
import logging
import threading
import time
from typing import Optional, Tuple

from freshcart.core.config import settings
from freshcart.domain.product import Product
from freshcart.repositories.product_repository import ProductRepository
from freshcart.services.product_matcher import ProductMatcher

logger = logging.getLogger(__name__)


class CatalogSnapshot:
    """
    Read-mostly shared catalog.

    Readers get an immutable matcher/tuple; only refresh() swaps them, under
    a lock so concurrent requests do not reload the catalog twice.
    """

    def __init__(
        self,
        product_repo: Optional[ProductRepository] = None,
        max_age_seconds: Optional[int] = None,
        clock=time.monotonic
    ):
        self.product_repo = product_repo or ProductRepository()
        self.max_age_seconds = (
            settings.CATALOG_REFRESH_SECONDS if max_age_seconds is None else max_age_seconds
        )
        self._clock = clock
        self._lock = threading.Lock()
        self._matcher: Optional[ProductMatcher] = None
        self._loaded_at: Optional[float] = None

    @property
    def is_stale(self) -> bool:
        if self._matcher is None or self._loaded_at is None:
            return True
        return self._clock() - self._loaded_at >= self.max_age_seconds

    def refresh(self) -> ProductMatcher:
        """
        Reload products from storage and rebuild the matcher.

        Raises:
            StorageError if the catalog cannot be loaded
        """
        with self._lock:
            products = self.product_repo.fetch_catalog()
            self._matcher = ProductMatcher(products)
            self._loaded_at = self._clock()
            logger.info(f"Catalog snapshot refreshed: {len(products)} products")
            return self._matcher

    def matcher(self) -> ProductMatcher:
        """
        Current matcher, refreshing first when the snapshot is stale.

        If a refresh fails but an older snapshot exists, the older one is
        served and the failure logged; with no snapshot at all the error
        propagates.
        """
        if not self.is_stale:
            return self._matcher

        try:
            return self.refresh()
        except Exception:
            if self._matcher is None:
                raise
            logger.exception("Catalog refresh failed, serving previous snapshot")
            return self._matcher

    @property
    def products(self) -> Tuple[Product, ...]:
        return self.matcher().products

    def invalidate(self) -> None:
        """Force the next read to reload (e.g. a matched product vanished)"""
        self._loaded_at = None
