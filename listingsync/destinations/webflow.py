from __future__ import annotations

import logging
from typing import Any, Sequence

from pydantic import ValidationError

from listingsync.core.config import Settings, settings as default_settings
from listingsync.core.errors import FetchError, PublishError, StoreError
from listingsync.schemas.collection import CollectionItem
from listingsync.services.http_client import HttpResult, SyncHttpClient


log = logging.getLogger(__name__)


def _page_items(detail: dict[str, Any]) -> list[dict[str, Any]]:
    if isinstance(detail.get("items"), list):
        return detail["items"]
    if isinstance(detail.get("data"), list):
        return detail["data"]
    return []


class WebflowCollectionStore:
    """
    Webflow CMS listings collection.

    One collection and one site per instance (from settings). All calls go
    through the shared SyncHttpClient; non-2xx responses become StoreError
    (item calls), FetchError (bulk fetch) or PublishError (publish calls).
    """

    def __init__(
        self,
        http: SyncHttpClient,
        *,
        config: Settings | None = None,
        collection_id: str | None = None,
    ):
        self._http = http
        self._cfg = config or default_settings
        self.collection_id = collection_id or self._cfg.webflow_collection_id
        self.site_id = self._cfg.webflow_site_id
        self._base = self._cfg.webflow_api_base_url.rstrip("/")

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._cfg.webflow_api_key.get_secret_value()}",
            "accept-version": "1.0.0",
        }

    def _items_url(self, item_id: str | None = None) -> str:
        url = f"{self._base}/collections/{self.collection_id}/items"
        return f"{url}/{item_id}" if item_id else url

    def _item_from(self, result: HttpResult, *, fallback_id: str, fields: dict[str, Any]) -> CollectionItem:
        try:
            return CollectionItem.from_api(result.detail)
        except ValidationError:
            # store answered 2xx without an item body
            return CollectionItem.from_api({"_id": fallback_id, **fields})

    async def fetch_all_collection_items(self) -> list[CollectionItem]:
        limit = self._cfg.webflow_page_size
        offset = 0
        raw: list[dict[str, Any]] = []

        while True:
            page = await self._http.get_json(
                url=self._items_url(),
                headers=self._headers(),
                params={"limit": str(limit), "offset": str(offset)},
            )
            if not page.ok:
                raise FetchError(
                    f"collection page request failed at offset={offset}: {page.describe()}",
                    detail=page.detail,
                )
            items = _page_items(page.detail)
            raw.extend(items)
            if len(items) < limit:
                break
            offset += limit

        try:
            collection = [CollectionItem.from_api(r) for r in raw]
        except ValidationError as e:
            raise FetchError(f"invalid collection item: {e}") from e

        log.info("webflow: fetched %d items from collection=%s", len(collection), self.collection_id)
        return collection

    async def create_item(self, fields: dict[str, Any], *, item_id: str) -> CollectionItem:
        result = await self._http.post_json(
            url=self._items_url(),
            headers=self._headers(),
            json_body={"_id": item_id, "fields": fields},
        )
        if not result.ok:
            raise StoreError(f"create failed idnum={fields.get('idnum')}: {result.describe()}", detail=result.detail)
        return self._item_from(result, fallback_id=item_id, fields=fields)

    async def update_item(self, item_id: str, fields: dict[str, Any]) -> CollectionItem:
        result = await self._http.patch_json(
            url=self._items_url(item_id),
            headers=self._headers(),
            json_body={"fields": fields},
        )
        if not result.ok:
            raise StoreError(f"update failed item={item_id}: {result.describe()}", detail=result.detail)
        return self._item_from(result, fallback_id=item_id, fields=fields)

    async def delete_item(self, item_id: str) -> None:
        result = await self._http.delete(url=self._items_url(item_id), headers=self._headers())
        if not result.ok:
            raise StoreError(f"delete failed item={item_id}: {result.describe()}", detail=result.detail)

    async def publish_items(self, item_ids: Sequence[str]) -> None:
        result = await self._http.request_json(
            method="PUT",
            url=f"{self._items_url()}/publish",
            headers=self._headers(),
            json_body={"itemIds": list(item_ids)},
        )
        if not result.ok:
            raise PublishError(f"publishing {len(item_ids)} items failed: {result.describe()}", detail=result.detail)

    async def publish_site(self, domains: Sequence[str]) -> None:
        result = await self._http.post_json(
            url=f"{self._base}/sites/{self.site_id}/publish",
            headers=self._headers(),
            json_body={"domains": list(domains)},
        )
        if not result.ok:
            raise PublishError(f"site publish failed: {result.describe()}", detail=result.detail)
