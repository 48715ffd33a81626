from __future__ import annotations

import json
import os
import re
import shutil
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Set
from urllib.parse import parse_qs

from dotenv import load_dotenv

from .utils import ensure_directory


BASE_DIR = Path(__file__).resolve().parent.parent
ARTIFACTS_DIR = BASE_DIR / "artifacts"

DEFAULT_DOWNLOAD_DIR = ARTIFACTS_DIR / "downloads"
DEFAULT_LOG_DIR = ARTIFACTS_DIR / "logs"

API_URL_ENV = "MERCHANT_API_URL"
DEFAULT_GEOCODE_URL = "https://nominatim.openstreetmap.org/reverse"
DEFAULT_USER_AGENT = "merchant-onboarding/0.1"
DEFAULT_KEEP_RUNS = 10

CAMPAIGN_PARAMS = ("campaign", "campaignId")
COMPANY_PARAM = "company"


class ConfigurationError(RuntimeError):
    """Raised when a required runtime setting is absent."""


@dataclass(slots=True)
class RuntimeConfig:
    api_base_url: Optional[str] = None
    geocode_url: str = DEFAULT_GEOCODE_URL
    user_agent: str = DEFAULT_USER_AGENT
    http_timeout: Optional[float] = None
    location_timeout: Optional[float] = None
    resolve_qr_via_lookup: bool = False
    cdp_endpoint: str = "http://localhost:9222"
    max_wait_ms: int = 6000
    download_dir: Path = DEFAULT_DOWNLOAD_DIR
    log_dir: Path = DEFAULT_LOG_DIR
    run_id: str = ""
    run_started_at: str = ""

    def require_api_base_url(self) -> str:
        if not self.api_base_url:
            raise ConfigurationError("API URL is not configured")
        return self.api_base_url.rstrip("/")


@dataclass(slots=True)
class SheetSelection:
    path: Path
    sheet_index: int


@dataclass(slots=True)
class BatchOptions:
    sheet: SheetSelection
    query: str = ""
    start_row: Optional[int] = None  # 1-indexed from CLI
    end_row: Optional[int] = None  # inclusive
    stop_on_error: bool = False


@dataclass(frozen=True, slots=True)
class QueryParams:
    campaign_id: str = ""
    company: str = ""


def parse_query_params(query: str | Mapping[str, Any] | None) -> QueryParams:
    """Read the campaign and company identifiers the page was opened with."""
    if not query:
        return QueryParams()

    if isinstance(query, str):
        parsed = parse_qs(query.lstrip("?"), keep_blank_values=True)
        values: Dict[str, str] = {key: items[0] for key, items in parsed.items() if items}
    else:
        values = {key: "" if value is None else str(value) for key, value in query.items()}

    campaign = ""
    for key in CAMPAIGN_PARAMS:
        if values.get(key):
            campaign = values[key]
            break
    return QueryParams(campaign_id=campaign, company=values.get(COMPANY_PARAM, ""))


def resolve_api_base_url(explicit: str | None = None, env_file: str | Path | None = None) -> Optional[str]:
    """CLI flag wins, then the environment (after loading any .env file)."""
    if explicit:
        return explicit.rstrip("/")
    load_dotenv(env_file)
    value = os.environ.get(API_URL_ENV, "").strip()
    return value.rstrip("/") or None


def load_profile_defaults(path: str | None, allowed_keys: set[str]) -> Dict[str, Any]:
    if not path:
        return {}

    file_path = Path(path).expanduser()
    if not file_path.is_absolute():
        file_path = (Path.cwd() / file_path).resolve()

    if not file_path.is_file():
        raise FileNotFoundError(f"Profile file not found: {file_path}")

    try:
        raw = json.loads(file_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise RuntimeError(f"Profile file is not valid JSON: {exc}") from exc

    if not isinstance(raw, dict):
        raise RuntimeError("Profile file must contain a JSON object.")

    unknown = [key for key in raw if key not in allowed_keys]
    if unknown:
        allowed_str = ", ".join(sorted(allowed_keys))
        raise RuntimeError(f"Unknown profile keys: {', '.join(unknown)}. Valid choices: {allowed_str}")

    return dict(raw)


def _sanitize_run_id(candidate: str | None, fallback: str) -> str:
    if not candidate:
        return fallback
    slug = re.sub(r"[^A-Za-z0-9_-]+", "_", candidate).strip("_")
    return slug or fallback


def _prune_old_runs(base_dir: Path, keep: int, reserved: Set[str]) -> None:
    if keep <= 0 or not base_dir.exists():
        return
    dirs = [p for p in base_dir.iterdir() if p.is_dir()]
    if len(dirs) <= keep:
        return
    dirs.sort(key=lambda p: p.stat().st_mtime)
    remaining = len(dirs)
    for path in dirs:
        if remaining <= keep:
            break
        if path.name in reserved:
            continue
        shutil.rmtree(path, ignore_errors=True)
        remaining -= 1


def create_run_directories(
    run_id: str | None = None,
    keep_runs: int | None = None,
    *,
    log_root: Path = DEFAULT_LOG_DIR,
    download_root: Path = DEFAULT_DOWNLOAD_DIR,
) -> tuple[str, Path, Path, str]:
    """Return (run_id, log_dir, download_dir, started_at) for a new run."""
    now = datetime.now()
    day_folder = now.strftime("%Y-%m-%d")
    sanitized = _sanitize_run_id(run_id, now.strftime("%H-%M-%S"))

    log_dir = ensure_directory(log_root / day_folder)
    candidate = sanitized
    counter = 2
    while (log_dir / f"log_merchant_register_{candidate}.csv").exists():
        candidate = f"{sanitized}-{counter:02d}"
        counter += 1

    download_dir = ensure_directory(download_root / day_folder / candidate)

    limit = DEFAULT_KEEP_RUNS if keep_runs is None else keep_runs
    _prune_old_runs(log_root, limit, {day_folder})
    _prune_old_runs(download_root, limit, {day_folder})

    return candidate, log_dir, download_dir, now.isoformat(timespec="seconds")
