"""HTTP client for the merchant registration API.

Only two endpoints are used: merchant creation and the per-campaign merchant
listing that carries the final QR links.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

import httpx

from .config import RuntimeConfig
from .models import FormData, MerchantRecord, SubmissionResult

logger = logging.getLogger(__name__)

DEFAULT_CREATE_ERROR = "Failed to create merchant"
DEFAULT_LOOKUP_ERROR = "Failed to fetch merchant QR code"


class ApiError(RuntimeError):
    """The API answered with an error or with a body we cannot use."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _json_body(resp: httpx.Response) -> Mapping[str, Any]:
    try:
        data = resp.json()
    except ValueError:
        return {}
    return data if isinstance(data, Mapping) else {}


class MerchantApiClient:
    def __init__(self, config: RuntimeConfig, client: Optional[httpx.AsyncClient] = None) -> None:
        self.config = config
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> "MerchantApiClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.config.http_timeout)
        return self._client

    def _url(self, path: str) -> str:
        return f"{self.config.require_api_base_url()}{path}"

    async def create_merchant(self, form: FormData) -> SubmissionResult:
        """POST the whole form; raises ApiError unless a merchant record comes back."""
        url = self._url("/api/merchant/create")
        resp = await self._get_client().post(url, json=form.to_payload())
        data = _json_body(resp)
        message = str(data.get("message") or "")

        if not resp.is_success:
            logger.info("Merchant create rejected (%s): %s", resp.status_code, message or "-")
            raise ApiError(message or DEFAULT_CREATE_ERROR, resp.status_code)

        merchant = data.get("merchant")
        if not isinstance(merchant, Mapping):
            raise ApiError(message or DEFAULT_CREATE_ERROR, resp.status_code)

        return SubmissionResult(message=message, merchant=MerchantRecord.from_api(merchant))

    async def list_campaign_merchants(self, campaign_id: str) -> list[MerchantRecord]:
        url = self._url(f"/api/merchant/{campaign_id}")
        resp = await self._get_client().get(url)
        data = _json_body(resp)
        if not resp.is_success:
            raise ApiError(str(data.get("message") or DEFAULT_LOOKUP_ERROR), resp.status_code)
        merchants = data.get("merchants") or []
        return [MerchantRecord.from_api(item) for item in merchants if isinstance(item, Mapping)]

    async def find_qr_link(self, campaign_id: str, merchant_code: str) -> Optional[str]:
        """QR link of the campaign merchant whose merchantCode._id matches."""
        for record in await self.list_campaign_merchants(campaign_id):
            if record.merchant_code == merchant_code and record.qr_link:
                return record.qr_link
        return None

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
