from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from .api_client import MerchantApiClient
from .config import BatchOptions, RuntimeConfig
from .controller import RegistrationFormController
from .downloads import DirectoryDownloader, FileDownloader
from .loader import load_rows
from .location import LocationProvider, ReverseGeocoder, StaticLocationProvider
from .logbook import LogBook, LogEvent
from .models import FormStep, RowContext
from .utils import timestamp

logger = logging.getLogger(__name__)

_ROW_DIVIDER = "=" * 72
_ROW_SUBDIVIDER = "-" * 72


@dataclass
class BatchStats:
    """Statistics from a batch registration run."""
    success_count: int = 0
    error_count: int = 0
    recent_errors: list[str] = field(default_factory=list)


def _print_row_header(ctx: RowContext) -> None:
    print(f"\n{_ROW_DIVIDER}")
    print(f"Row {ctx.display_index}: {ctx.merchant_name or '(no name)'}")
    print(f"Mobile : {ctx.merchant_mobile or '-'}")
    print(f"UPI    : {ctx.upi_id or '-'}")
    print(_ROW_SUBDIVIDER)


def _print_run_summary(stats: BatchStats, logbook: LogBook, config: RuntimeConfig) -> None:
    print(f"\n{_ROW_DIVIDER}")
    print("Done.")
    print(f"  - Registered rows : {stats.success_count}")
    print(f"  - Failed rows     : {stats.error_count}")
    print(f"  - CSV log         : {logbook.path}")
    if logbook.report_path:
        print(f"  - HTML report     : {logbook.report_path}")
    if config.run_id:
        print(f"  - Run ID          : {config.run_id}")
    print(_ROW_SUBDIVIDER)


def _event(ctx: RowContext, level, stage: str, note: str, **extra) -> LogEvent:
    return LogEvent(
        ts=timestamp(),
        row_index=ctx.display_index,
        level=level,
        stage=stage,
        merchant_name=ctx.merchant_name,
        mobile=ctx.merchant_mobile,
        note=note,
        **extra,
    )


async def register_row(
    ctx: RowContext,
    *,
    config: RuntimeConfig,
    query: str,
    api: MerchantApiClient,
    downloader: FileDownloader,
    location_provider: Optional[LocationProvider],
    geocoder: Optional[ReverseGeocoder],
) -> list[LogEvent]:
    """Drive one form through both steps; return the log events for the row."""
    events: list[LogEvent] = []
    if ctx.latitude is not None and ctx.longitude is not None:
        provider: LocationProvider = StaticLocationProvider(ctx.latitude, ctx.longitude)
    else:
        provider = location_provider or StaticLocationProvider(None, None)

    controller = RegistrationFormController(
        config,
        query,
        api=api,
        location_provider=provider,
        downloader=downloader,
        geocoder=None if ctx.address else geocoder,
    )
    await controller.mount()
    if controller.state.error:
        print(f"    [Mount] {controller.state.error}")
        events.append(_event(ctx, "WARN", "MOUNT", controller.state.error))

    for name, value in ctx.form_fields().items():
        if value:
            controller.handle_change(name, value)

    if await controller.submit() is not FormStep.PAYMENT:
        events.append(_event(ctx, "ERROR", "DETAILS", controller.state.error))
        return events

    if await controller.submit() is not FormStep.DONE:
        events.append(_event(ctx, "ERROR", "SUBMIT", controller.state.error))
        return events

    merchant = controller.result.merchant if controller.result else None
    code = merchant.merchant_code if merchant else ""
    note = controller.state.success
    qr_path = controller.download_qr() if controller.state.qr_image else None
    if controller.state.error:
        note = f"{note} | {controller.state.error}"
    print(f"    [Submit] {controller.state.success} (code={code or '-'})")
    if qr_path:
        print(f"    [QR] {qr_path}")
    events.append(_event(ctx, "OK", "SUBMIT", note, merchant_code=code, qr_file=str(qr_path or "")))
    controller.close_dialog()
    return events


async def process_batch(
    options: BatchOptions,
    config: RuntimeConfig,
    *,
    api: Optional[MerchantApiClient] = None,
    location_provider: Optional[LocationProvider] = None,
    geocoder: Optional[ReverseGeocoder] = None,
) -> BatchStats:
    contexts, start_display, end_display = load_rows(options)
    print(f"Rows {start_display}-{end_display} loaded from {options.sheet.path.name} ({len(contexts)} rows).")

    log_filename = f"log_merchant_register_{config.run_id}.csv" if config.run_id else "log_merchant_register.csv"
    logbook = LogBook(
        config.log_dir / log_filename,
        report_path=config.log_dir / log_filename.replace(".csv", ".html"),
    )
    downloader = DirectoryDownloader(config.download_dir)
    stats = BatchStats()

    client = api or MerchantApiClient(config)
    try:
        for ctx in contexts:
            _print_row_header(ctx)
            events = await register_row(
                ctx,
                config=config,
                query=options.query,
                api=client,
                downloader=downloader,
                location_provider=location_provider,
                geocoder=geocoder,
            )
            logbook.extend(events)
            failed = next((e for e in events if e.level == "ERROR"), None)
            if failed is None:
                stats.success_count += 1
                continue

            stats.error_count += 1
            stats.recent_errors.append(f"Row {ctx.display_index}: {failed.note}")
            print(f"    [Error] {failed.stage}: {failed.note}")
            if options.stop_on_error:
                logger.info("Stopping at row %s (--stop-on-error)", ctx.display_index)
                break
    finally:
        if api is None:
            await client.aclose()
        logbook.save()

    _print_run_summary(stats, logbook, config)
    return stats
