from __future__ import annotations

import json

import httpx
import pytest

from merchant_onboarding.api_client import ApiError, MerchantApiClient
from merchant_onboarding.config import ConfigurationError, RuntimeConfig
from merchant_onboarding.models import FormData


def _client(handler, base_url: str | None = "http://api.test") -> MerchantApiClient:
    config = RuntimeConfig(api_base_url=base_url)
    return MerchantApiClient(config, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


@pytest.mark.asyncio
async def test_create_merchant_posts_payload_and_parses_record():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            201,
            json={
                "message": "created",
                "merchant": {"id": "m1", "merchantName": "Cafe X", "merchantCode": "C-1", "qrLink": "upi://x"},
            },
        )

    form = FormData(merchant_name="Cafe X", campaign_id="abc123", latitude=1.5, longitude=2.5)
    result = await _client(handler).create_merchant(form)

    assert len(seen) == 1
    assert seen[0].method == "POST"
    assert str(seen[0].url) == "http://api.test/api/merchant/create"
    assert json.loads(seen[0].content) == form.to_payload()
    assert result.message == "created"
    assert result.merchant.merchant_code == "C-1"
    assert result.merchant.qr_link == "upi://x"


@pytest.mark.asyncio
async def test_create_merchant_surfaces_server_message_on_error():
    client = _client(lambda request: httpx.Response(409, json={"message": "Mobile already registered"}))
    with pytest.raises(ApiError) as info:
        await client.create_merchant(FormData())
    assert info.value.message == "Mobile already registered"
    assert info.value.status_code == 409


@pytest.mark.asyncio
async def test_create_merchant_fallback_message_for_non_json_error():
    client = _client(lambda request: httpx.Response(500, text="<html>oops</html>"))
    with pytest.raises(ApiError, match="Failed to create merchant"):
        await client.create_merchant(FormData())


@pytest.mark.asyncio
async def test_create_merchant_without_merchant_record_is_an_error():
    client = _client(lambda request: httpx.Response(200, json={"message": "queued"}))
    with pytest.raises(ApiError, match="queued"):
        await client.create_merchant(FormData())


@pytest.mark.asyncio
async def test_missing_base_url_is_a_configuration_error():
    client = _client(lambda request: httpx.Response(200), base_url=None)
    with pytest.raises(ConfigurationError):
        await client.create_merchant(FormData())


@pytest.mark.asyncio
async def test_find_qr_link_matches_merchant_code_id():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/merchant/abc123"
        return httpx.Response(
            200,
            json={
                "merchants": [
                    {"merchantCode": {"_id": "other"}, "merchantName": "B", "qrLink": "upi://b"},
                    {"merchantCode": {"_id": "C-1"}, "merchantName": "Cafe X", "qrLink": "upi://mine"},
                ]
            },
        )

    client = _client(handler)
    assert await client.find_qr_link("abc123", "C-1") == "upi://mine"
    assert await client.find_qr_link("abc123", "missing") is None
