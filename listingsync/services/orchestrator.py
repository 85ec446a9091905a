from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Sequence

from opentelemetry import trace

from listingsync.core.ids import gen_id
from listingsync.destinations.base import CollectionStore
from listingsync.schemas.crea import CreaListing, FeedType
from listingsync.services.reconcile import ReconciliationEngine
from listingsync.sources.base import ListingSource, merge_feed_listings


log = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class RunState(str, enum.Enum):
    IDLE = "idle"
    FETCHING_LISTINGS = "fetching_listings"
    FETCHING_COLLECTION = "fetching_collection"
    SYNCING = "syncing"
    CLEANING_UP = "cleaning_up"
    PUBLISHING = "publishing"


@dataclass
class RunResult:
    run_id: str
    status: str = "running"  # "success" | "failed"
    created: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    failed: list[dict[str, str]] = field(default_factory=list)
    publish_errors: list[str] = field(default_factory=list)
    error: str | None = None
    failed_stage: str | None = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: datetime | None = None

    @property
    def ok(self) -> bool:
        return self.status == "success"

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "status": self.status,
            "created": self.created,
            "updated": self.updated,
            "deleted": self.deleted,
            "failed": self.failed,
            "publish_errors": self.publish_errors,
            "error": self.error,
            "failed_stage": self.failed_stage,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


class SyncOrchestrator:
    """
    Runs one full sync:

        IDLE -> FETCHING_LISTINGS -> FETCHING_COLLECTION -> SYNCING
             -> CLEANING_UP -> PUBLISHING -> IDLE

    Any exception ends the run as failed from the stage it was raised in;
    `run()` never raises and always returns to IDLE. Publishing is
    best-effort and never fails the run.

    Overlapping runs against the same collection are not guarded here; the
    caller (scheduler task / admin endpoint) holds the run lock.
    """

    def __init__(
        self,
        *,
        source: ListingSource,
        store: CollectionStore,
        engine: ReconciliationEngine,
        feeds: Sequence[FeedType] = ("member",),
        publish_domains: Sequence[str] = (),
    ):
        if not feeds:
            raise ValueError("at least one feed is required")
        self.source = source
        self.store = store
        self.engine = engine
        self.feeds = list(feeds)
        self.publish_domains = list(publish_domains)
        self.state = RunState.IDLE

    def _enter(self, state: RunState) -> None:
        log.info("run: %s -> %s", self.state.value, state.value)
        self.state = state

    async def fetch_listings(self) -> list[CreaListing]:
        per_feed: list[tuple[FeedType, list[CreaListing]]] = []
        for feed in self.feeds:
            token = await self.source.fetch_access_token(feed)
            listings = await self.source.fetch_all_listings(token)
            log.info("run: feed=%s returned %d listings", feed, len(listings))
            per_feed.append((feed, listings))

        if len(per_feed) == 1:
            return per_feed[0][1]
        return merge_feed_listings(per_feed)

    async def _publish(self, result: RunResult, item_ids: list[str]) -> None:
        if item_ids:
            try:
                await self.store.publish_items(item_ids)
                log.info("run: published %d items", len(item_ids))
            except Exception as e:
                log.error("run: problem publishing items: %s", e)
                result.publish_errors.append(f"items: {e}")

        # attempted even when item publishing failed
        try:
            await self.store.publish_site(self.publish_domains)
            log.info("run: site published domains=%s", self.publish_domains)
        except Exception as e:
            log.error("run: problem publishing site: %s", e)
            result.publish_errors.append(f"site: {e}")

    async def run(self) -> RunResult:
        result = RunResult(run_id=gen_id("run"))
        log.info("run %s: starting", result.run_id)

        with tracer.start_as_current_span("listing_sync.run") as span:
            span.set_attribute("listing_sync.run_id", result.run_id)
            try:
                self._enter(RunState.FETCHING_LISTINGS)
                listings = await self.fetch_listings()

                self._enter(RunState.FETCHING_COLLECTION)
                items = await self.store.fetch_all_collection_items()

                self._enter(RunState.SYNCING)
                sync_report = await self.engine.sync(listings, items)
                result.created = sync_report.created
                result.updated = sync_report.updated
                result.failed.extend(f.as_dict() for f in sync_report.failed)

                # cleanup only after every create/update has settled
                self._enter(RunState.CLEANING_UP)
                cleanup_report = await self.engine.cleanup(listings, items)
                result.deleted = cleanup_report.deleted
                result.failed.extend(f.as_dict() for f in cleanup_report.failed)

                self._enter(RunState.PUBLISHING)
                await self._publish(result, sync_report.touched)

                result.status = "success"
            except Exception as e:
                result.status = "failed"
                result.failed_stage = self.state.value
                result.error = f"{type(e).__name__}: {e}"
                log.exception("run %s: failed during %s", result.run_id, self.state.value)
                span.record_exception(e)
            finally:
                self.state = RunState.IDLE
                result.finished_at = datetime.now(timezone.utc)
                span.set_attribute("listing_sync.status", result.status)
                span.set_attribute("listing_sync.created", len(result.created))
                span.set_attribute("listing_sync.updated", len(result.updated))
                span.set_attribute("listing_sync.deleted", len(result.deleted))
                span.set_attribute("listing_sync.failed", len(result.failed))
                log.info(
                    "run %s: complete status=%s created=%d updated=%d deleted=%d failed=%d",
                    result.run_id, result.status, len(result.created), len(result.updated),
                    len(result.deleted), len(result.failed),
                )

        return result
