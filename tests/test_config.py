from __future__ import annotations

import json
from pathlib import Path

import pytest

from merchant_onboarding import config


def test_parse_query_params_prefers_campaign_over_campaign_id():
    params = config.parse_query_params("?campaign=abc123&campaignId=zzz&company=Acme")
    assert params == config.QueryParams(campaign_id="abc123", company="Acme")


def test_parse_query_params_falls_back_to_campaign_id():
    assert config.parse_query_params("campaignId=xyz").campaign_id == "xyz"
    assert config.parse_query_params({"campaignId": "xyz", "company": None}) == config.QueryParams("xyz", "")


def test_parse_query_params_empty():
    assert config.parse_query_params(None) == config.QueryParams()
    assert config.parse_query_params("") == config.QueryParams()


def test_resolve_api_base_url_prefers_explicit(monkeypatch):
    monkeypatch.setenv(config.API_URL_ENV, "http://env.test")
    assert config.resolve_api_base_url("http://flag.test/") == "http://flag.test"


def test_resolve_api_base_url_reads_env_file(tmp_path: Path, monkeypatch):
    monkeypatch.setenv(config.API_URL_ENV, "placeholder")
    monkeypatch.delenv(config.API_URL_ENV)
    env_file = tmp_path / ".env"
    env_file.write_text(f"{config.API_URL_ENV}=http://dotenv.test/\n", encoding="utf-8")
    assert config.resolve_api_base_url(None, env_file) == "http://dotenv.test"


def test_require_api_base_url_raises_when_missing():
    with pytest.raises(config.ConfigurationError, match="API URL is not configured"):
        config.RuntimeConfig().require_api_base_url()


def test_load_profile_defaults_rejects_unknown_keys(tmp_path: Path):
    profile = tmp_path / "profile.json"
    profile.write_text(json.dumps({"campaign": "abc", "colour": "blue"}), encoding="utf-8")
    with pytest.raises(RuntimeError, match="colour"):
        config.load_profile_defaults(str(profile), {"campaign"})


def test_load_profile_defaults_reads_allowed_keys(tmp_path: Path):
    profile = tmp_path / "profile.json"
    profile.write_text(json.dumps({"campaign": "abc"}), encoding="utf-8")
    assert config.load_profile_defaults(str(profile), {"campaign"}) == {"campaign": "abc"}


def test_create_run_directories_sanitizes_and_deduplicates(tmp_path: Path):
    logs = tmp_path / "logs"
    downloads = tmp_path / "downloads"
    run_id, log_dir, download_dir, _ = config.create_run_directories(
        "my run!", log_root=logs, download_root=downloads
    )
    assert run_id == "my_run"
    assert log_dir.parent == logs
    assert download_dir.name == "my_run"

    (log_dir / f"log_merchant_register_{run_id}.csv").write_text("x", encoding="utf-8")
    second_id, *_ = config.create_run_directories("my run!", log_root=logs, download_root=downloads)
    assert second_id == "my_run-02"
