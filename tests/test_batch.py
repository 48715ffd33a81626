from __future__ import annotations

import json
from pathlib import Path

import httpx
import pandas as pd
import pytest

from merchant_onboarding.api_client import MerchantApiClient
from merchant_onboarding.batch import process_batch
from merchant_onboarding.config import BatchOptions, RuntimeConfig, SheetSelection

CSV_TEXT = """merchantName,merchantMobile,upiId,company,campaignId,latitude,longitude
Cafe X,9876543210,cafe@upi,,,12.97,77.59
Tea Stall,12345,tea@okbank,Acme,abc123,12.90,77.50
No Location,9123456780,nl@okbank,Acme,abc123,,
"""


def _api(config: RuntimeConfig, requests: list[httpx.Request]) -> MerchantApiClient:
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        body = json.loads(request.content)
        return httpx.Response(
            201,
            json={
                "message": "ok",
                "merchant": {
                    "id": "m1",
                    "merchantName": body["merchantName"],
                    "merchantCode": "C-1",
                    "qrLink": "upi://pay?pa=" + body["upiId"],
                },
            },
        )

    return MerchantApiClient(config, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


@pytest.mark.asyncio
async def test_process_batch_registers_valid_rows_and_logs_failures(tmp_path: Path):
    sheet = tmp_path / "merchants.csv"
    sheet.write_text(CSV_TEXT, encoding="utf-8")
    config = RuntimeConfig(
        api_base_url="http://api.test",
        log_dir=tmp_path / "logs",
        download_dir=tmp_path / "downloads",
        run_id="t1",
    )
    requests: list[httpx.Request] = []
    options = BatchOptions(sheet=SheetSelection(sheet, 0), query="campaign=camp-9&company=Acme")

    stats = await process_batch(options, config, api=_api(config, requests))

    assert stats.success_count == 1
    assert stats.error_count == 2
    assert len(requests) == 1
    payload = json.loads(requests[0].content)
    assert payload["campaignId"] == "camp-9"
    assert payload["company"] == "Acme"

    assert (tmp_path / "downloads" / "Cafe X_qr.png").read_bytes().startswith(b"\x89PNG")

    log = pd.read_csv(tmp_path / "logs" / "log_merchant_register_t1.csv", dtype=str, keep_default_na=False)
    final = log.drop_duplicates("row_index", keep="last").set_index("row_index")
    assert final.loc["1", "level"] == "OK"
    assert final.loc["1", "merchant_code"] == "C-1"
    assert final.loc["2", "stage"] == "DETAILS"
    assert "10-digit" in final.loc["2", "note"]
    assert final.loc["3", "stage"] == "DETAILS"
    assert "Location access is required" in final.loc["3", "note"]
    assert (tmp_path / "logs" / "log_merchant_register_t1.html").exists()


@pytest.mark.asyncio
async def test_process_batch_stop_on_error(tmp_path: Path):
    sheet = tmp_path / "merchants.csv"
    sheet.write_text(CSV_TEXT, encoding="utf-8")
    config = RuntimeConfig(
        api_base_url="http://api.test",
        log_dir=tmp_path / "logs",
        download_dir=tmp_path / "downloads",
    )
    requests: list[httpx.Request] = []
    options = BatchOptions(sheet=SheetSelection(sheet, 0), start_row=2, stop_on_error=True)

    stats = await process_batch(options, config, api=_api(config, requests))

    assert stats.error_count == 1
    assert stats.success_count == 0
    assert requests == []
    assert stats.recent_errors == ["Row 2: Please enter a valid 10-digit mobile number"]


@pytest.mark.asyncio
async def test_process_batch_reports_mount_problems_as_warnings(tmp_path: Path, capsys):
    sheet = tmp_path / "merchants.csv"
    sheet.write_text(CSV_TEXT, encoding="utf-8")
    config = RuntimeConfig(
        api_base_url="http://api.test",
        log_dir=tmp_path / "logs",
        download_dir=tmp_path / "downloads",
        run_id="t3",
    )
    options = BatchOptions(sheet=SheetSelection(sheet, 0), query="company=Acme", start_row=1, end_row=1)

    stats = await process_batch(options, config, api=_api(config, []))

    assert stats.error_count == 1
    assert "[Mount] Campaign ID is required" in capsys.readouterr().out
    log = pd.read_csv(tmp_path / "logs" / "log_merchant_register_t3.csv", dtype=str, keep_default_na=False)
    mount = log[log["stage"] == "MOUNT"]
    assert list(mount["level"]) == ["WARN"]
    assert list(mount["note"]) == ["Campaign ID is required"]
