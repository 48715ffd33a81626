from __future__ import annotations

import re
from datetime import datetime
from pathlib import Path
from typing import Iterable

import pandas as pd


TIMESTAMP_FMT = "%Y%m%d_%H%M%S"
_UNSAFE_FILENAME_CHARS = re.compile(r'[\\/:*?"<>|\x00-\x1f]+')


def timestamp() -> str:
    """Generate a filesystem-friendly timestamp."""
    return datetime.now().strftime(TIMESTAMP_FMT)


def norm_space(value: object) -> str:
    """Normalize whitespace and coerce NaN/None to empty string."""
    if value is None:
        return ""
    if isinstance(value, float) and pd.isna(value):
        return ""
    if value is pd.NA:
        return ""
    if isinstance(value, str):
        return re.sub(r"\s+", " ", value).strip()
    # pandas may give numpy scalars; cast to string first
    return re.sub(r"\s+", " ", str(value)).strip()


def nonempty(value: object) -> bool:
    """Return True when a value is not null/empty/whitespace-only."""
    return bool(norm_space(value))


def norm_phone(value: object) -> str:
    """Keep only digits of telephone input."""
    digits = re.findall(r"\d", norm_space(value))
    return "".join(digits)


def norm_float(value: object) -> float | None:
    """Extract first float-compatible token from text."""
    text = norm_space(value).replace(",", ".")
    match = re.search(r"-?\d+(?:\.\d+)?", text)
    return float(match.group(0)) if match else None


def ensure_directory(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def safe_filename(name: str, fallback: str = "merchant") -> str:
    """Strip path separators and control characters, keep the readable name."""
    cleaned = _UNSAFE_FILENAME_CHARS.sub("_", name or "").strip(" .")
    return cleaned or fallback


def qr_filename(merchant_name: str) -> str:
    return f"{safe_filename(merchant_name)}_qr.png"


def format_candidates(files: Iterable[Path]) -> str:
    return ", ".join(sorted(str(p) for p in files))


def describe_exception(exc: BaseException) -> str:
    return f"{exc.__class__.__name__}: {exc}"
