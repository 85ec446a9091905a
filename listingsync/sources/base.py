from __future__ import annotations

import logging
from typing import Iterable, Protocol, runtime_checkable

from listingsync.schemas.crea import AccessToken, CreaListing, FeedType


log = logging.getLogger(__name__)


@runtime_checkable
class ListingSource(Protocol):
    """
    Supplies the complete current listing set. Pagination and sub-record
    resolution are internal to the source.
    """

    async def fetch_access_token(self, kind: FeedType) -> AccessToken:
        """Raises CredentialError when no usable token is issued."""
        ...

    async def fetch_all_listings(self, token: AccessToken) -> list[CreaListing]:
        """Raises FetchError rather than returning a partial set."""
        ...


def merge_feed_listings(feeds: Iterable[tuple[FeedType, list[CreaListing]]]) -> list[CreaListing]:
    """
    Merge listings from several feeds; the national pool wins on key clashes,
    then feeds in the order given.
    """
    ordered = sorted(feeds, key=lambda f: 0 if f[0] == "national" else 1)
    seen: set[str] = set()
    merged: list[CreaListing] = []
    for feed, listings in ordered:
        # duplicates inside one feed are left for the reconciler to resolve
        kept = [l for l in listings if l.listing_key not in seen]
        seen.update(l.listing_key for l in listings)
        merged.extend(kept)
        log.info("merge: feed=%s contributed %d of %d listings", feed, len(kept), len(listings))
    return merged
