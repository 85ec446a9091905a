from __future__ import annotations

from typing import Any, Protocol, Sequence, runtime_checkable

from listingsync.schemas.collection import CollectionItem


@runtime_checkable
class CollectionStore(Protocol):
    """
    The target CMS collection. Every mutating call raises StoreError on
    failure; publish calls raise PublishError. Pagination is internal.
    """

    async def fetch_all_collection_items(self) -> list[CollectionItem]:
        ...

    async def create_item(self, fields: dict[str, Any], *, item_id: str) -> CollectionItem:
        """`item_id` is caller-assigned; the store rejects collisions."""
        ...

    async def update_item(self, item_id: str, fields: dict[str, Any]) -> CollectionItem:
        ...

    async def delete_item(self, item_id: str) -> None:
        ...

    async def publish_items(self, item_ids: Sequence[str]) -> None:
        ...

    async def publish_site(self, domains: Sequence[str]) -> None:
        ...
