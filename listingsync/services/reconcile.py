from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Literal, Sequence

from listingsync.core.ids import gen_item_id
from listingsync.destinations.base import CollectionStore
from listingsync.schemas.collection import CollectionItem, ListingFields
from listingsync.schemas.crea import CreaListing
from listingsync.services.batch_executor import BatchExecutor, ItemResult
from listingsync.services.field_mapper import shape_fields


log = logging.getLogger(__name__)

Action = Literal["create", "update", "delete"]


@dataclass(frozen=True)
class FailedOperation:
    key: str
    action: Action
    cause: str

    def as_dict(self) -> dict[str, str]:
        return {"key": self.key, "action": self.action, "cause": self.cause}


@dataclass(frozen=True)
class PlannedUpdate:
    listing: CreaListing
    item: CollectionItem


@dataclass
class SyncPlan:
    creates: list[CreaListing] = field(default_factory=list)
    updates: list[PlannedUpdate] = field(default_factory=list)


@dataclass
class SyncReport:
    created: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    failed: list[FailedOperation] = field(default_factory=list)

    @property
    def touched(self) -> list[str]:
        return self.created + self.updated


@dataclass
class CleanupReport:
    deleted: list[str] = field(default_factory=list)
    failed: list[FailedOperation] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.deleted)


def index_items_by_key(items: Sequence[CollectionItem]) -> dict[str, CollectionItem]:
    """
    Index collection items by their stored listing key.
    Duplicate keys: the last item seen wins; each duplicate is logged.
    """
    index: dict[str, CollectionItem] = {}
    for item in items:
        key = item.listing_key
        if key is None:
            continue
        if key in index:
            log.warning(
                "duplicate listing key %s in collection: item %s replaces %s in the match index",
                key, item.id, index[key].id,
            )
        index[key] = item
    return index


def dedupe_listings(listings: Sequence[CreaListing]) -> list[CreaListing]:
    """Keep one listing per key (last seen wins), first-seen position."""
    by_key: dict[str, CreaListing] = {}
    for listing in listings:
        if listing.listing_key in by_key:
            log.warning("duplicate listing key %s from source: last record wins", listing.listing_key)
        by_key[listing.listing_key] = listing
    return list(by_key.values())


class ReconciliationEngine:
    """
    Diffs the current listings against the collection on the listing key and
    applies the result through the BatchExecutor.

    `sync()` creates/updates, `cleanup()` deletes; they are independent passes
    and the caller must finish `sync()` before starting `cleanup()`.
    """

    def __init__(
        self,
        store: CollectionStore,
        executor: BatchExecutor,
        *,
        mapper: Callable[[CreaListing], ListingFields] = shape_fields,
        id_factory: Callable[[], str] = gen_item_id,
    ):
        self.store = store
        self.executor = executor
        self.mapper = mapper
        self.id_factory = id_factory

    # --- planning (pure) ---

    def plan_sync(self, listings: Sequence[CreaListing], items: Sequence[CollectionItem]) -> SyncPlan:
        index = index_items_by_key(items)
        plan = SyncPlan()
        for listing in dedupe_listings(listings):
            existing = index.get(listing.listing_key)
            if existing is not None:
                plan.updates.append(PlannedUpdate(listing=listing, item=existing))
            else:
                plan.creates.append(listing)
        return plan

    def plan_cleanup(self, listings: Sequence[CreaListing], items: Sequence[CollectionItem]) -> list[CollectionItem]:
        current = {listing.listing_key for listing in listings}
        # items without a stored key can never match a listing
        return [item for item in items if item.listing_key not in current]

    # --- execution ---

    async def _apply(self, work: CreaListing | PlannedUpdate) -> tuple[Action, CollectionItem]:
        if isinstance(work, PlannedUpdate):
            fields = self.mapper(work.listing).with_identity_of(work.item)
            updated = await self.store.update_item(work.item.id, fields.to_payload())
            return "update", updated

        fields = self.mapper(work)
        created = await self.store.create_item(fields.to_payload(), item_id=self.id_factory())
        return "create", created

    async def sync(self, listings: Sequence[CreaListing], items: Sequence[CollectionItem]) -> SyncReport:
        plan = self.plan_sync(listings, items)
        log.info("sync: %d to update, %d to create", len(plan.updates), len(plan.creates))

        # updates and creates share one batch pipeline, in listing order
        order = {listing.listing_key: n for n, listing in enumerate(listings)}
        work: list[CreaListing | PlannedUpdate] = [*plan.updates, *plan.creates]
        work.sort(key=lambda w: order[_work_key(w)])

        results: list[ItemResult[tuple[Action, CollectionItem]]] = await self.executor.run(
            work, self._apply, key=_work_key, label="sync",
        )

        report = SyncReport()
        for w, r in zip(work, results):
            if r.ok and r.value is not None:
                action, item = r.value
                (report.updated if action == "update" else report.created).append(item.id)
            else:
                action = "update" if isinstance(w, PlannedUpdate) else "create"
                log.error("sync: error processing listing %s (%s): %s", r.key, action, r.cause)
                report.failed.append(FailedOperation(key=r.key, action=action, cause=r.cause or "unknown"))

        log.info(
            "sync: complete, created=%d updated=%d failed=%d",
            len(report.created), len(report.updated), len(report.failed),
        )
        return report

    async def _delete(self, item: CollectionItem) -> str:
        await self.store.delete_item(item.id)
        return item.id

    async def cleanup(self, listings: Sequence[CreaListing], items: Sequence[CollectionItem]) -> CleanupReport:
        obsolete = self.plan_cleanup(listings, items)
        log.info("cleanup: %d obsolete items", len(obsolete))

        results = await self.executor.run(obsolete, self._delete, key=lambda i: i.id, label="cleanup")

        report = CleanupReport()
        for item, r in zip(obsolete, results):
            if r.ok:
                report.deleted.append(item.id)
            else:
                log.error("cleanup: error removing item %s (key=%s): %s", item.id, item.listing_key, r.cause)
                report.failed.append(FailedOperation(key=item.listing_key or item.id, action="delete", cause=r.cause or "unknown"))

        log.info("cleanup: complete, deleted %d items", report.count)
        return report


def _work_key(work: CreaListing | PlannedUpdate) -> str:
    return work.listing.listing_key if isinstance(work, PlannedUpdate) else work.listing_key
