from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field
from datetime import datetime
from html import escape
from pathlib import Path
from typing import Iterable, Literal, Optional

import pandas as pd

Level = Literal["OK", "WARN", "ERROR"]


@dataclass(slots=True)
class LogEvent:
    ts: str
    row_index: int
    level: Level
    stage: str
    merchant_name: str = ""
    mobile: str = ""
    merchant_code: str = ""
    note: str = ""
    qr_file: str = ""


@dataclass
class LogBook:
    path: Path
    report_path: Optional[Path] = None
    _events: list[LogEvent] = field(default_factory=list)

    def append(self, event: LogEvent) -> None:
        self._events.append(event)

    def extend(self, events: Iterable[LogEvent]) -> None:
        for event in events:
            self.append(event)

    def _build_report(self, df: pd.DataFrame) -> str:
        timestamp_str = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        level_counts = df["level"].value_counts().to_dict()
        summary_items = "".join(
            f"<li><strong>{escape(level)}</strong>: {count}</li>" for level, count in level_counts.items()
        )

        log_dir = self.path.parent.resolve()

        def _make_link(value: str) -> str:
            if not value:
                return ""
            target = Path(value)
            href = target.as_posix()
            if target.exists():
                try:
                    href = target.resolve().relative_to(log_dir).as_posix()
                except ValueError:
                    href = os.path.relpath(target, log_dir).replace("\\", "/")
            return f'<a href="{escape(href)}">{escape(target.name)}</a>'

        df_display = df.copy()
        df_display["qr_file"] = df_display["qr_file"].apply(_make_link)
        for column in ("merchant_name", "mobile", "merchant_code", "note", "stage"):
            df_display[column] = df_display[column].astype(str).apply(escape)
        table_html = df_display.to_html(index=False, escape=False)
        csv_source = escape(os.path.relpath(self.path, log_dir).replace("\\", "/"))

        return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="utf-8">
    <title>Merchant Registration Report</title>
    <style>
        body {{ font-family: Arial, sans-serif; margin: 2rem; background: #f8f9fa; color: #212529; }}
        h1, h2 {{ color: #1c64f2; }}
        .summary {{ background: #e8f0fe; padding: 1rem; border-radius: 8px; margin-bottom: 1.5rem; }}
        table {{ border-collapse: collapse; width: 100%; background: #fff; }}
        th, td {{ border: 1px solid #dee2e6; padding: 0.5rem; text-align: left; font-size: 0.95rem; }}
        th {{ background: #1c64f2; color: #fff; position: sticky; top: 0; }}
        tr:nth-child(even) {{ background: #f1f3f5; }}
        a {{ color: #1c64f2; text-decoration: none; }}
        a:hover {{ text-decoration: underline; }}
    </style>
</head>
<body>
    <h1>Merchant Registration Report</h1>
    <p>Generated: {escape(timestamp_str)}</p>
    <div class="summary">
        <h2>Level Summary</h2>
        <ul>
            {summary_items or "<li>No data yet</li>"}
        </ul>
        <p>Source CSV: <code>{csv_source}</code></p>
    </div>
    <h2>Rows</h2>
    {table_html}
</body>
</html>
"""

    def save(self) -> None:
        if not self._events:
            return
        df = pd.DataFrame([asdict(e) for e in self._events])
        self.path.parent.mkdir(parents=True, exist_ok=True)
        df.to_csv(self.path, index=False)
        if self.report_path:
            report_html = self._build_report(df)
            self.report_path.parent.mkdir(parents=True, exist_ok=True)
            self.report_path.write_text(report_html, encoding="utf-8")
