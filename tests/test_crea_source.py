from datetime import datetime, timedelta, timezone

import httpx
import pytest

from listingsync.core.config import Settings
from listingsync.core.errors import CredentialError, FetchError
from listingsync.schemas.crea import AccessToken
from listingsync.services.http_client import SyncHttpClient
from listingsync.sources.crea import CreaListingSource


API = "https://ddf.test/odata/v1"
IDENTITY = "https://identity.test/connect/token"


def _settings() -> Settings:
    return Settings(
        crea_identity_url=IDENTITY,
        crea_api_base_url=API,
        crea_member_client_id="member-id",
        crea_member_client_secret="member-secret",
    )


class DDF:
    """Routes for a tiny fake DDF API."""

    def __init__(self, *, fail_page: bool = False, token_body: dict | None = None):
        self.fail_page = fail_page
        self.token_body = token_body if token_body is not None else {"access_token": "abc", "token_type": "Bearer", "expires_in": 3600}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)

        if url == IDENTITY:
            return httpx.Response(200, json=self.token_body)

        if request.url.path.endswith("/Property"):
            if request.url.params.get("$count") == "true":
                return httpx.Response(200, json={"@odata.count": 3, "value": []})
            if request.url.params.get("$skip") == "2":
                if self.fail_page:
                    return httpx.Response(500, json={"error": "boom"})
                return httpx.Response(200, json={"value": [{"ListingKey": "L3"}]})
            return httpx.Response(200, json={
                "value": [
                    {"ListingKey": "L1", "ListAgentKey": "M1", "CoListAgentKey": "M2"},
                    {"ListingKey": "L2", "ListAgentKey": "M1", "Appliances": None},
                ],
                "@odata.nextLink": f"{API}/Property?$skip=2",
            })

        if request.url.path.endswith("/Member/M1"):
            return httpx.Response(200, json={"MemberKey": "M1", "MemberFirstName": "Ann", "MemberLastName": "Lee", "OfficeKey": "O1"})
        if request.url.path.endswith("/Office/O1"):
            return httpx.Response(200, json={"OfficeKey": "O1", "OfficeName": "Lakeside Realty"})
        return httpx.Response(404, json={"error": "not found"})


def _source(ddf: DDF) -> CreaListingSource:
    return CreaListingSource(SyncHttpClient(transport=httpx.MockTransport(ddf)), config=_settings())


@pytest.mark.asyncio
async def test_token_exchange_posts_client_credentials():
    ddf = DDF()
    token = await _source(ddf).fetch_access_token("member")

    assert token.access_token == "abc"
    assert token.feed == "member"
    body = ddf.requests[0].content.decode()
    assert "grant_type=client_credentials" in body
    assert "client_id=member-id" in body
    assert "scope=DDFApi_Read" in body


@pytest.mark.asyncio
async def test_token_without_access_token_is_credential_error():
    with pytest.raises(CredentialError):
        await _source(DDF(token_body={"token_type": "Bearer"})).fetch_access_token("member")


@pytest.mark.asyncio
async def test_fetch_all_listings_follows_next_link_and_resolves_agents():
    ddf = DDF()
    source = _source(ddf)
    token = await source.fetch_access_token("member")

    listings = await source.fetch_all_listings(token)

    assert [l.listing_key for l in listings] == ["L1", "L2", "L3"]
    first = listings[0]
    assert first.agent.display_name == "Ann Lee"
    assert first.agent.office.office_name == "Lakeside Realty"
    # M2 lookup 404s: sub-record left empty, listing kept
    assert first.agent2 is None
    assert listings[1].appliances == []
    # M1 looked up once for both listings
    member_calls = [r for r in ddf.requests if r.url.path.endswith("/Member/M1")]
    assert len(member_calls) == 1
    assert all(r.headers["authorization"] == "Bearer abc" for r in ddf.requests[1:])


@pytest.mark.asyncio
async def test_failed_page_fails_the_whole_fetch():
    source = _source(DDF(fail_page=True))
    token = await source.fetch_access_token("member")

    with pytest.raises(FetchError):
        await source.fetch_all_listings(token)


@pytest.mark.asyncio
async def test_expired_token_is_refreshed_before_use():
    ddf = DDF()
    source = _source(ddf)
    stale = AccessToken(
        access_token="old",
        expires_in=60,
        feed="member",
        issued_at=datetime.now(timezone.utc) - timedelta(hours=2),
    )

    await source.fetch_all_listings(stale)

    assert str(ddf.requests[0].url) == IDENTITY
    assert ddf.requests[1].headers["authorization"] == "Bearer abc"


@pytest.mark.asyncio
async def test_expired_token_without_feed_is_credential_error():
    stale = AccessToken(access_token="old", expires_in=0, issued_at=datetime.now(timezone.utc) - timedelta(hours=1))
    with pytest.raises(CredentialError):
        await _source(DDF()).fetch_all_listings(stale)


def test_token_expiry_window():
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    token = AccessToken(access_token="t", expires_in=3600, issued_at=now)

    assert not token.is_expired(now=now + timedelta(minutes=30))
    assert token.is_expired(now=now + timedelta(minutes=59, seconds=30))
    assert token.authorization_header() == {"Authorization": "Bearer t"}


class ShortDDF(DDF):
    """Reports more listings than its pages deliver, or no count at all."""

    def __init__(self, count_body: dict):
        super().__init__()
        self.count_body = count_body

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/Property"):
            self.requests.append(request)
            if request.url.params.get("$count") == "true":
                return httpx.Response(200, json=self.count_body)
            # last page arrives before the reported count is reached
            return httpx.Response(200, json={"value": [{"ListingKey": "L1"}, {"ListingKey": "L2"}]})
        return super().__call__(request)


@pytest.mark.asyncio
async def test_short_listing_fetch_is_fetch_error():
    source = _source(ShortDDF({"@odata.count": 3, "value": []}))
    token = await source.fetch_access_token("member")

    with pytest.raises(FetchError, match="2 of 3"):
        await source.fetch_all_listings(token)


@pytest.mark.asyncio
@pytest.mark.parametrize("count_body", [{"value": []}, {"@odata.count": "3"}, {"@odata.count": None}])
async def test_missing_listing_count_is_fetch_error(count_body):
    source = _source(ShortDDF(count_body))
    token = await source.fetch_access_token("member")

    with pytest.raises(FetchError, match="@odata.count"):
        await source.fetch_all_listings(token)


class AgentDDF:
    """Eight listings with distinct agents; the token expires once the pages are read."""

    def __init__(self, expired: set[str]):
        self.expired = expired
        self.exchanges = 0
        self.member_auth: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if str(request.url) == IDENTITY:
            self.exchanges += 1
            return httpx.Response(200, json={"access_token": f"tok{self.exchanges}", "expires_in": 3600})

        if request.url.path.endswith("/Property"):
            if request.url.params.get("$count") == "true":
                return httpx.Response(200, json={"@odata.count": 8, "value": []})
            self.expired.add(request.headers["authorization"].removeprefix("Bearer "))
            return httpx.Response(200, json={
                "value": [{"ListingKey": f"L{n}", "ListAgentKey": f"M{n}"} for n in range(1, 9)],
            })

        if "/Member/" in request.url.path:
            self.member_auth.append(request.headers["authorization"])
            key = request.url.path.rsplit("/", 1)[-1]
            return httpx.Response(200, json={"MemberKey": key})
        return httpx.Response(404, json={})


@pytest.mark.asyncio
async def test_token_expiring_mid_fetch_is_exchanged_once_for_all_lookups(monkeypatch):
    expired: set[str] = set()
    monkeypatch.setattr(AccessToken, "is_expired", lambda self, **kw: self.access_token in expired)

    ddf = AgentDDF(expired)
    source = CreaListingSource(SyncHttpClient(transport=httpx.MockTransport(ddf)), config=_settings())
    token = await source.fetch_access_token("member")

    listings = await source.fetch_all_listings(token)

    assert len(listings) == 8
    assert all(l.agent is not None for l in listings)
    # tok1 for the pages, one refresh shared by every member lookup
    assert ddf.exchanges == 2
    assert ddf.member_auth == ["Bearer tok2"] * 8
