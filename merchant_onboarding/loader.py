from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable, Tuple

import pandas as pd

from .config import BatchOptions, SheetSelection
from .models import RowContext
from .utils import format_candidates, norm_float, norm_phone, norm_space

SHEET_SUFFIXES = (".xlsx", ".xls", ".csv")

COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "merchant_name": ("merchant_name", "merchantname", "name", "nama_usaha"),
    "merchant_mobile": ("merchant_mobile", "merchantmobile", "mobile", "phone", "mobile_number"),
    "merchant_email": ("merchant_email", "merchantemail", "email"),
    "upi_id": ("upi_id", "upiid", "upi", "vpa"),
    "company": ("company", "company_name"),
    "address": ("address", "alamat"),
    "campaign_id": ("campaign_id", "campaignid", "campaign"),
    "latitude": ("latitude", "lat"),
    "longitude": ("longitude", "lon", "lng"),
}
REQUIRED_COLUMNS = ("merchant_name", "merchant_mobile", "upi_id")


def resolve_sheet(path_arg: str | None, search_dir: Path, sheet_index: int) -> SheetSelection:
    if path_arg:
        path = Path(path_arg).expanduser().resolve()
        if not path.is_file():
            raise FileNotFoundError(f"Spreadsheet not found: {path}")
        return SheetSelection(path=path, sheet_index=sheet_index)

    search_locations = [search_dir, search_dir / "data"]
    seen: set[Path] = set()
    candidates: list[Path] = []
    for location in search_locations:
        if not location.exists():
            continue
        for candidate in sorted(location.iterdir()):
            if candidate.suffix.lower() not in SHEET_SUFFIXES or candidate.name.startswith("~$"):
                continue
            resolved = candidate.resolve()
            if resolved not in seen:
                seen.add(resolved)
                candidates.append(resolved)

    if not candidates:
        raise FileNotFoundError(
            "No .xlsx/.csv file found in the working folder or its 'data' folder. "
            "Pass --excel to choose one explicitly."
        )
    if len(candidates) > 1:
        raise RuntimeError(
            f"More than one spreadsheet found, choose one with --excel. Candidates: {format_candidates(candidates)}"
        )
    return SheetSelection(path=candidates[0], sheet_index=sheet_index)


def _clean_column_name(raw: object) -> str:
    if raw is None:
        return ""
    if isinstance(raw, float) and pd.isna(raw):
        return ""
    lines = str(raw).strip().splitlines()
    text = lines[0].strip() if lines else ""
    text = re.sub(r"[\s\-]+", "_", text)
    return text.strip("_").lower()


def load_dataframe(selection: SheetSelection) -> pd.DataFrame:
    """Read the sheet as strings with normalised header names."""
    if selection.path.suffix.lower() == ".csv":
        df = pd.read_csv(selection.path, dtype=str, keep_default_na=False)
    else:
        df = pd.read_excel(selection.path, sheet_name=selection.sheet_index, dtype=str)
    df = df.copy()
    df.columns = [_clean_column_name(col) for col in df.columns]
    return df


def has_column(df: pd.DataFrame, name: str) -> bool:
    return any(alias in df.columns for alias in COLUMN_ALIASES.get(name, (name,)))


def ensure_required_columns(df: pd.DataFrame, required: Iterable[str] = REQUIRED_COLUMNS) -> None:
    missing = [col for col in required if not has_column(df, col)]
    if missing:
        raise RuntimeError(f"Required spreadsheet columns are missing: {', '.join(missing)}")


def _cell(df_row, name: str) -> object:
    for alias in COLUMN_ALIASES.get(name, (name,)):
        if alias in df_row.index:
            value = df_row.get(alias)
            if norm_space(value):
                return value
    return None


def _context_from_row(df_row, display_index: int) -> RowContext:
    return RowContext(
        display_index=display_index,
        merchant_name=norm_space(_cell(df_row, "merchant_name")),
        merchant_mobile=norm_phone(_cell(df_row, "merchant_mobile")),
        merchant_email=norm_space(_cell(df_row, "merchant_email")),
        upi_id=norm_space(_cell(df_row, "upi_id")),
        company=norm_space(_cell(df_row, "company")),
        address=norm_space(_cell(df_row, "address")),
        campaign_id=norm_space(_cell(df_row, "campaign_id")),
        latitude=norm_float(_cell(df_row, "latitude")),
        longitude=norm_float(_cell(df_row, "longitude")),
    )


def slice_rows(df: pd.DataFrame, start: int | None, end: int | None) -> tuple[int, int]:
    start_idx = 0 if start is None else max(start - 1, 0)
    end_idx = len(df) if end is None else min(end, len(df))
    return start_idx, end_idx


def load_rows(options: BatchOptions) -> Tuple[list[RowContext], int, int]:
    """Read the sheet, check its columns and return the rows in range with their display bounds."""
    df = load_dataframe(options.sheet)
    ensure_required_columns(df)
    start_idx, end_idx = slice_rows(df, options.start_row, options.end_row)

    contexts = [_context_from_row(df.iloc[i], i + 1) for i in range(start_idx, end_idx)]
    return contexts, start_idx + 1, end_idx
