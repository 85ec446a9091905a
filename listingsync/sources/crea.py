from __future__ import annotations

import asyncio
import logging
from typing import Any

from pydantic import ValidationError

from listingsync.core.config import Settings, settings as default_settings
from listingsync.core.errors import CredentialError, FetchError
from listingsync.schemas.crea import AccessToken, CreaListing, CreaMember, CreaOffice, FeedType
from listingsync.services.http_client import HttpResult, SyncHttpClient


log = logging.getLogger(__name__)

# Member/office lookups in flight at once while resolving agents
LOOKUP_CONCURRENCY = 10


class CreaListingSource:
    """
    CREA DDF (OData) listing source.

    - Token exchange per feed (member / national pool client credentials).
    - Paginated Property fetch following `@odata.nextLink`.
    - Resolves ListAgentKey / CoListAgentKey into members with their office.
      A failed member or office lookup leaves that sub-record empty; a failed
      page fails the whole fetch.
    """

    def __init__(self, http: SyncHttpClient, *, config: Settings | None = None):
        self._http = http
        self._cfg = config or default_settings

    def _client_credentials(self, kind: FeedType) -> tuple[str, str]:
        if kind == "member":
            return self._cfg.crea_member_client_id, self._cfg.crea_member_client_secret.get_secret_value()
        if kind == "national":
            return self._cfg.crea_national_client_id, self._cfg.crea_national_client_secret.get_secret_value()
        raise CredentialError(f"unknown feed type: {kind}")

    async def fetch_access_token(self, kind: FeedType) -> AccessToken:
        client_id, client_secret = self._client_credentials(kind)
        result = await self._http.post_form(
            url=self._cfg.crea_identity_url,
            form_body={
                "grant_type": "client_credentials",
                "client_id": client_id,
                "client_secret": client_secret,
                "scope": self._cfg.crea_scope,
            },
        )
        if not result.ok:
            raise CredentialError(f"token exchange failed for feed={kind}: {result.describe()}", detail=result.detail)

        if not result.detail.get("access_token"):
            raise CredentialError(f"token exchange for feed={kind} returned no access_token")

        try:
            token = AccessToken.model_validate({**result.detail, "feed": kind})
        except ValidationError as e:
            raise CredentialError(f"malformed token response for feed={kind}: {e}") from e

        log.info("crea: token issued feed=%s expires_in=%ss", kind, token.expires_in)
        return token

    async def _fresh(self, token: AccessToken) -> AccessToken:
        if not token.is_expired():
            return token
        if token.feed is None:
            raise CredentialError("access token expired and its feed is unknown")
        log.info("crea: token expired, refreshing feed=%s", token.feed)
        return await self.fetch_access_token(token.feed)

    async def _get(self, url: str, token: "_SharedToken", params: dict[str, str] | None = None) -> HttpResult:
        current = await token.get()
        return await self._http.get_json(url=url, headers=current.authorization_header(), params=params)

    async def fetch_all_listings(self, token: AccessToken) -> list[CreaListing]:
        shared = _SharedToken(self, token)
        base_url = f"{self._cfg.crea_api_base_url}/Property"

        count_result = await self._get(base_url, shared, params={"$count": "true", "$top": "1"})
        if not count_result.ok:
            raise FetchError(f"listing count request failed: {count_result.describe()}", detail=count_result.detail)
        total = count_result.detail.get("@odata.count")
        if not isinstance(total, int) or isinstance(total, bool) or total < 0:
            raise FetchError(f"listing count response has no usable @odata.count: {total!r}", detail=count_result.detail)
        log.info("crea: %d listings reported for feed=%s", total, shared.feed)

        raw: list[dict[str, Any]] = []
        next_link: str | None = base_url
        while next_link and len(raw) < total:
            page = await self._get(next_link, shared)
            if not page.ok:
                raise FetchError(
                    f"listing page request failed after {len(raw)}/{total}: {page.describe()}",
                    detail=page.detail,
                )
            values = page.detail.get("value") or []
            raw.extend(values)
            next_link = page.detail.get("@odata.nextLink")
            if not values:
                break

        # a short set would make cleanup delete live items
        if len(raw) < total:
            raise FetchError(f"listing fetch incomplete: got {len(raw)} of {total} reported listings")

        try:
            listings = [CreaListing.from_api(r) for r in raw]
        except ValidationError as e:
            raise FetchError(f"invalid listing record: {e}") from e

        return await self._resolve_agents(listings, shared)

    async def _fetch_office(self, office_key: str, token: "_SharedToken") -> CreaOffice | None:
        result = await self._get(f"{self._cfg.crea_api_base_url}/Office/{office_key}", token)
        if not result.ok:
            log.warning("crea: office lookup failed key=%s: %s", office_key, result.describe())
            return None
        try:
            return CreaOffice.model_validate(result.detail)
        except ValidationError as e:
            log.warning("crea: invalid office record key=%s: %s", office_key, e)
            return None

    async def _fetch_member(self, member_key: str, token: "_SharedToken") -> CreaMember | None:
        result = await self._get(f"{self._cfg.crea_api_base_url}/Member/{member_key}", token)
        if not result.ok:
            log.warning("crea: member lookup failed key=%s: %s", member_key, result.describe())
            return None
        try:
            member = CreaMember.model_validate(result.detail)
        except ValidationError as e:
            log.warning("crea: invalid member record key=%s: %s", member_key, e)
            return None
        office = await self._fetch_office(member.office_key, token) if member.office_key else None
        return member.model_copy(update={"office": office})

    async def _resolve_agents(self, listings: list[CreaListing], token: "_SharedToken") -> list[CreaListing]:
        keys = sorted({k for listing in listings for k in listing.agent_keys()})
        if not keys:
            return listings

        sem = asyncio.Semaphore(LOOKUP_CONCURRENCY)

        async def lookup(key: str) -> CreaMember | None:
            async with sem:
                return await self._fetch_member(key, token)

        members = dict(zip(keys, await asyncio.gather(*[lookup(k) for k in keys])))
        log.info("crea: resolved %d/%d agents", sum(1 for m in members.values() if m), len(keys))

        return [
            listing.with_agents(
                members.get(listing.list_agent_key) if listing.list_agent_key else None,
                members.get(listing.co_list_agent_key) if listing.co_list_agent_key else None,
            )
            for listing in listings
        ]


class _SharedToken:
    """
    Token shared by every request of one fetch, including the concurrent
    agent lookups. The expiry check and refresh run under a lock, so an
    expired token is exchanged once and the new one is reused by all callers.
    """

    def __init__(self, source: CreaListingSource, token: AccessToken):
        self._source = source
        self._token = token
        self._lock = asyncio.Lock()

    @property
    def feed(self) -> FeedType | None:
        return self._token.feed

    async def get(self) -> AccessToken:
        async with self._lock:
            self._token = await self._source._fresh(self._token)
            return self._token
