from __future__ import annotations

import json
from typing import Any, Iterable
from urllib.error import URLError
from urllib.request import urlopen

from playwright.async_api import Browser, Page, async_playwright

# Tabs Chrome opens for itself; never the registration page.
INTERNAL_URL_PREFIXES = ("devtools://", "chrome://", "chrome-extension://", "about:blank")

GEOLOCATION_JS = """
(timeoutMs) => new Promise((resolve) => {
    if (!navigator.geolocation) {
        resolve({ supported: false });
        return;
    }
    navigator.geolocation.getCurrentPosition(
        (pos) => resolve({
            supported: true,
            latitude: pos.coords.latitude,
            longitude: pos.coords.longitude,
        }),
        (err) => resolve({ supported: true, code: err.code, message: err.message }),
        { timeout: timeoutMs },
    );
})
"""


def ensure_cdp_ready(endpoint: str, timeout_ms: int) -> dict[str, Any]:
    """Check that Chrome exposes CDP at ``endpoint`` and return its version info."""
    version_url = f"{endpoint.rstrip('/')}/json/version"
    try:
        with urlopen(version_url, timeout=max(timeout_ms, 2000) / 1000) as response:
            raw = response.read()
    except (URLError, OSError) as exc:
        raise RuntimeError(
            f"Chrome is not listening for remote debugging at {version_url}. Start it with "
            '`google-chrome --remote-debugging-port=9222 --user-data-dir="$HOME/.chrome-merchant"`.'
        ) from exc

    try:
        info = json.loads(raw)
    except ValueError as exc:
        raise RuntimeError(f"{version_url} did not return JSON") from exc
    if not isinstance(info, dict) or "webSocketDebuggerUrl" not in info:
        raise RuntimeError(f"{version_url} has no webSocketDebuggerUrl; remote debugging looks disabled.")
    return info


def _is_form_candidate(url: str) -> bool:
    return bool(url) and not url.startswith(INTERNAL_URL_PREFIXES)


def latest_form_page(pages: Iterable[Page]) -> Page:
    """Most recently opened tab that is a regular web page."""
    candidates = [page for page in pages if _is_form_candidate(page.url)]
    if not candidates:
        raise RuntimeError("No open web page in Chrome. Open the registration page first.")
    return candidates[-1]


def _all_pages(browser: Browser) -> list[Page]:
    return [page for context in browser.contexts for page in context.pages]


async def read_page_geolocation(endpoint: str, timeout_ms: int) -> dict[str, Any]:
    """Run the Geolocation API inside the registration tab and return its raw result."""
    async with async_playwright() as p:
        browser = await p.chromium.connect_over_cdp(endpoint)
        page = latest_form_page(_all_pages(browser))
        result = await page.evaluate(GEOLOCATION_JS, timeout_ms)
    return result if isinstance(result, dict) else {}
