from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator

from listingsync.core.config import Settings, settings as default_settings
from listingsync.destinations.webflow import WebflowCollectionStore
from listingsync.services.batch_executor import BatchExecutor
from listingsync.services.http_client import SyncHttpClient
from listingsync.services.orchestrator import RunResult, SyncOrchestrator
from listingsync.services.reconcile import ReconciliationEngine
from listingsync.services.run_lock import RunLock
from listingsync.sources.crea import CreaListingSource


log = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlanSummary:
    listings: int
    items: int
    creates: int
    updates: int
    deletes: int

    def to_dict(self) -> dict[str, int]:
        return {
            "listings": self.listings,
            "items": self.items,
            "creates": self.creates,
            "updates": self.updates,
            "deletes": self.deletes,
        }


@asynccontextmanager
async def build_orchestrator(config: Settings | None = None) -> AsyncIterator[SyncOrchestrator]:
    cfg = config or default_settings
    async with SyncHttpClient(timeout_seconds=cfg.request_timeout_seconds) as http:
        store = WebflowCollectionStore(http, config=cfg)
        executor = BatchExecutor(
            batch_size=cfg.sync_batch_size,
            inter_batch_delay=cfg.sync_inter_batch_delay_seconds,
            item_timeout=cfg.sync_item_timeout_seconds,
        )
        yield SyncOrchestrator(
            source=CreaListingSource(http, config=cfg),
            store=store,
            engine=ReconciliationEngine(store, executor),
            feeds=cfg.crea_feeds,
            publish_domains=cfg.webflow_publish_domains,
        )


def build_run_lock(config: Settings | None = None) -> RunLock:
    cfg = config or default_settings
    return RunLock.from_url(cfg.redis_url, collection_id=cfg.webflow_collection_id, ttl_seconds=cfg.run_lock_ttl_seconds)


async def run_sync_once(config: Settings | None = None) -> RunResult:
    async with build_orchestrator(config) as orchestrator:
        return await orchestrator.run()


async def run_sync_locked(config: Settings | None = None, *, lock: RunLock | None = None) -> RunResult:
    """Raises RunAlreadyInProgress when another run holds the lock."""
    if lock is not None:
        async with lock.hold():
            return await run_sync_once(config)

    # lock built here owns its redis connection
    lock = build_run_lock(config)
    try:
        async with lock.hold():
            return await run_sync_once(config)
    finally:
        await lock.aclose()


async def plan_once(config: Settings | None = None) -> PlanSummary:
    """Fetch both sides and compute the diff without mutating anything."""
    async with build_orchestrator(config) as orchestrator:
        listings = await orchestrator.fetch_listings()
        items = await orchestrator.store.fetch_all_collection_items()
        plan = orchestrator.engine.plan_sync(listings, items)
        obsolete = orchestrator.engine.plan_cleanup(listings, items)
    return PlanSummary(
        listings=len(listings),
        items=len(items),
        creates=len(plan.creates),
        updates=len(plan.updates),
        deletes=len(obsolete),
    )
