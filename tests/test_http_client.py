import httpx
import pytest

from listingsync.services.http_client import SyncHttpClient


def _client(handler) -> SyncHttpClient:
    return SyncHttpClient(transport=httpx.MockTransport(handler), default_headers={"User-Agent": "listing-sync-test"})


@pytest.mark.asyncio
async def test_json_success_and_headers_merge():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["ua"] = request.headers["user-agent"]
        seen["auth"] = request.headers["authorization"]
        return httpx.Response(200, json={"ok": 1})

    async with _client(handler) as http:
        result = await http.get_json(url="https://api.example.com/x", headers={"Authorization": "Bearer t"})

    assert result.ok
    assert result.detail == {"ok": 1}
    assert seen == {"ua": "listing-sync-test", "auth": "Bearer t"}


@pytest.mark.asyncio
async def test_list_payload_is_wrapped():
    async with _client(lambda r: httpx.Response(200, json=[1, 2])) as http:
        result = await http.get_json(url="https://api.example.com/x")
    assert result.detail == {"data": [1, 2]}


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [400, 404, 429, 503])
async def test_error_status_is_reported(status):
    async with _client(lambda r: httpx.Response(status, json={"msg": "nope"})) as http:
        result = await http.delete(url="https://api.example.com/items/1")

    assert not result.ok
    assert result.error_code == f"HTTP_{status}"
    assert result.describe() == f"HTTP_{status}: HTTP {status}"
    assert result.detail == {"msg": "nope"}


@pytest.mark.asyncio
async def test_transport_errors_are_results_not_exceptions():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as http:
        result = await http.post_json(url="https://api.example.com/x", json_body={})

    assert not result.ok
    assert result.error_code == "REQUEST_ERROR"
    assert result.status_code is None


@pytest.mark.asyncio
async def test_form_body_is_urlencoded():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["ct"] = request.headers["content-type"]
        seen["body"] = request.content.decode()
        return httpx.Response(200, json={})

    async with _client(handler) as http:
        await http.post_form(url="https://id.example.com/token", form_body={"grant_type": "client_credentials", "scope": "DDFApi_Read"})

    assert seen["ct"] == "application/x-www-form-urlencoded"
    assert seen["body"] == "grant_type=client_credentials&scope=DDFApi_Read"


@pytest.mark.asyncio
async def test_non_json_body_is_kept_as_capped_text():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="x" * 50, headers={"content-type": "text/html"})

    http = SyncHttpClient(transport=httpx.MockTransport(handler), max_response_body_chars=10)
    async with http:
        result = await http.get_json(url="https://api.example.com/x")

    assert result.status_code == 502
    assert result.detail["raw"].startswith("x" * 10 + "...(truncated, 50 chars)")
    assert result.detail["content_type"] == "text/html"
