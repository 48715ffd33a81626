from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from urllib.parse import urlencode

from merchant_onboarding.api_client import MerchantApiClient
from merchant_onboarding.batch import process_batch
from merchant_onboarding.config import (
    DEFAULT_KEEP_RUNS,
    BatchOptions,
    RuntimeConfig,
    create_run_directories,
    load_profile_defaults,
    resolve_api_base_url,
)
from merchant_onboarding.controller import RegistrationFormController
from merchant_onboarding.downloads import DirectoryDownloader
from merchant_onboarding.loader import resolve_sheet
from merchant_onboarding.location import (
    BrowserLocationProvider,
    LocationProvider,
    ReverseGeocoder,
    StaticLocationProvider,
)
from merchant_onboarding.models import FormStep


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    base = argparse.ArgumentParser(add_help=False)
    base.add_argument("--profile", help="JSON profile file holding default CLI arguments")
    initial, remaining = base.parse_known_args(argv)

    allowed_profile_keys = {
        "api_url",
        "env_file",
        "campaign",
        "company",
        "batch",
        "excel",
        "sheet",
        "start",
        "end",
        "stop_on_error",
        "browser_location",
        "cdp_endpoint",
        "max_wait",
        "no_geocode",
        "lookup_qr",
        "http_timeout",
        "location_timeout",
        "run_id",
        "keep_runs",
        "verbose",
    }
    profile_defaults = load_profile_defaults(initial.profile, allowed_profile_keys)

    parser = argparse.ArgumentParser(description="Merchant registration (two-step form)", parents=[base])
    parser.add_argument("--api-url", help="Merchant API base URL (default: $MERCHANT_API_URL)")
    parser.add_argument("--env-file", help="Path to a .env file to load before reading the environment")
    parser.add_argument("--campaign", help="Campaign identifier (query parameter 'campaign')")
    parser.add_argument("--company", help="Company identifier (query parameter 'company')")

    single = parser.add_argument_group("single registration")
    single.add_argument("--name", help="Merchant name")
    single.add_argument("--mobile", help="10-digit mobile number")
    single.add_argument("--email", help="Merchant email (optional)")
    single.add_argument("--upi", help="UPI ID, e.g. name@bank")
    single.add_argument("--address", help="Address (otherwise reverse-geocoded from the location)")
    single.add_argument("--lat", type=float, help="Latitude")
    single.add_argument("--lon", type=float, help="Longitude")

    batch = parser.add_argument_group("batch registration")
    batch.add_argument("--batch", action="store_true", help="Batch mode; without --excel the working folder is scanned")
    batch.add_argument("--excel", help="Spreadsheet (.xlsx/.csv) with one merchant per row")
    batch.add_argument("--sheet", type=int, default=0, help="Excel sheet index (default: 0)")
    batch.add_argument("--start", type=int, help="First row (1-indexed)")
    batch.add_argument("--end", type=int, help="Last row (inclusive)")
    batch.add_argument("--stop-on-error", action="store_true", help="Stop at the first failed row")

    parser.add_argument(
        "--browser-location",
        action="store_true",
        help="Read the position from a Chrome tab attached over CDP",
    )
    parser.add_argument(
        "--cdp-endpoint",
        default="http://localhost:9222",
        help="Chrome CDP endpoint (default: http://localhost:9222)",
    )
    parser.add_argument("--max-wait", type=int, default=6000, help="Browser wait timeout (ms)")
    parser.add_argument("--no-geocode", action="store_true", help="Skip reverse geocoding of the location")
    parser.add_argument(
        "--lookup-qr",
        action="store_true",
        help="Resolve the QR link through the campaign merchant listing after creation",
    )
    parser.add_argument("--http-timeout", type=float, help="HTTP timeout in seconds (default: none)")
    parser.add_argument("--location-timeout", type=float, help="Location lookup timeout in seconds (default: none)")
    parser.add_argument("--run-id", help="Custom run ID (letters/digits/-/_) for the artifact folders")
    parser.add_argument("--keep-runs", type=int, help="Number of run folders to keep (default 10)")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    if profile_defaults:
        parser.set_defaults(**profile_defaults)
    parser.set_defaults(profile=initial.profile)
    return parser.parse_args(remaining)


def build_query(args: argparse.Namespace) -> str:
    params = {}
    if args.campaign:
        params["campaign"] = args.campaign
    if args.company:
        params["company"] = args.company
    return urlencode(params)


def build_config(args: argparse.Namespace) -> RuntimeConfig:
    keep_runs = args.keep_runs if args.keep_runs is not None else DEFAULT_KEEP_RUNS
    run_id, log_dir, download_dir, started_at = create_run_directories(args.run_id, keep_runs)
    return RuntimeConfig(
        api_base_url=resolve_api_base_url(args.api_url, args.env_file),
        http_timeout=args.http_timeout,
        location_timeout=args.location_timeout,
        resolve_qr_via_lookup=args.lookup_qr,
        cdp_endpoint=args.cdp_endpoint,
        max_wait_ms=args.max_wait,
        download_dir=download_dir,
        log_dir=log_dir,
        run_id=run_id,
        run_started_at=started_at,
    )


def _location_provider(args: argparse.Namespace, config: RuntimeConfig) -> LocationProvider | None:
    if args.browser_location:
        return BrowserLocationProvider(config)
    if args.lat is not None and args.lon is not None:
        return StaticLocationProvider(args.lat, args.lon)
    return None


async def run_single(args: argparse.Namespace, config: RuntimeConfig) -> int:
    geocoder = None if args.no_geocode or args.address else ReverseGeocoder(config)
    provider = _location_provider(args, config) or StaticLocationProvider(None, None)
    try:
        async with MerchantApiClient(config) as api:
            controller = RegistrationFormController(
                config,
                build_query(args),
                api=api,
                location_provider=provider,
                downloader=DirectoryDownloader(config.download_dir),
                geocoder=geocoder,
            )
            print("[Location] Detecting location...")
            await controller.mount()
            if controller.state.error:
                print(f"[Location] {controller.state.error}")
            elif controller.form.address:
                print(f"[Location] {controller.form.address}")

            fields = {
                "merchantName": args.name,
                "merchantMobile": args.mobile,
                "merchantEmail": args.email,
                "upiId": args.upi,
                "address": args.address,
            }
            for name, value in fields.items():
                if value:
                    controller.handle_change(name, value)

            if await controller.submit() is not FormStep.PAYMENT:
                print(f"[Step 1] {controller.state.error}")
                return 1
            print("[Step 1] Merchant details OK.")

            if await controller.submit() is not FormStep.DONE:
                print(f"[Step 2] {controller.state.error}")
                return 1
            print(f"[Submit] {controller.state.success}")

            if controller.state.qr_image:
                path = controller.download_qr()
                if path:
                    print(f"[QR] Saved to {path}")
            if controller.state.error:
                print(f"[Warn] {controller.state.error}")
            controller.close_dialog()
            return 0
    finally:
        if geocoder is not None:
            await geocoder.aclose()


async def run_batch(args: argparse.Namespace, config: RuntimeConfig) -> int:
    options = BatchOptions(
        sheet=resolve_sheet(args.excel, Path.cwd(), args.sheet),
        query=build_query(args),
        start_row=args.start,
        end_row=args.end,
        stop_on_error=args.stop_on_error,
    )
    geocoder = None if args.no_geocode else ReverseGeocoder(config)
    try:
        stats = await process_batch(
            options,
            config,
            location_provider=_location_provider(args, config),
            geocoder=geocoder,
        )
    finally:
        if geocoder is not None:
            await geocoder.aclose()
    return 1 if stats.error_count else 0


def main(argv: list[str] | None = None) -> int:
    try:
        args = parse_args(argv)
    except (FileNotFoundError, RuntimeError) as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
    )

    config = build_config(args)
    if not config.api_base_url:
        print("Warning: API URL is not configured (use --api-url or MERCHANT_API_URL).")

    try:
        if args.batch or args.excel:
            return asyncio.run(run_batch(args, config))
        return asyncio.run(run_single(args, config))
    except (FileNotFoundError, RuntimeError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
