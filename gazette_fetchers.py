#!/usr/bin/env python3
"""
Fetch strategies for the gazette listing page.

Each strategy exposes ``attempt(url)`` and returns either the page markup
(``str``) or, for the rendered strategy evaluated in-page, a list of
GazetteRecord. Failures are raised as FetchFailure subclasses:

- DirectFetchStrategy: curl_cffi with Chrome TLS impersonation and browser
  headers (the site rejects plain clients by fingerprint).
- ProxiedFetchStrategy: same request relayed through a public CORS proxy, so
  the upstream sees the relay's network origin instead of ours.
- RenderedFetchStrategy: headless Chromium via Playwright.
"""

import logging
import re
from typing import Callable, List, Optional, Union
from urllib.parse import quote

import requests
from curl_cffi import requests as cffi_requests
from curl_cffi.requests.exceptions import RequestException as CurlRequestException
from curl_cffi.requests.exceptions import Timeout as CurlTimeout
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from gazette_config import BLOCK_TITLE_INDICATORS, BROWSER_HEADERS, BROWSER_USER_AGENT, GazetteSettings
from gazette_errors import (
    BlockedFailure,
    FetchFailure,
    MalformedContentFailure,
    NetworkFailure,
    TimeoutFailure,
)
from gazette_extractor import ROW_EVALUATION_SCRIPT, evaluation_arguments, records_from_rows
from gazette_models import GazetteRecord


logger = logging.getLogger(__name__)

FetchOutput = Union[str, List[GazetteRecord]]

BLOCK_STATUS_CODES = {401, 403}


def block_indicator(title: str) -> str:
    """Return the matched access-denied indicator in a page title, or ''."""
    text = str(title or "").strip().lower()
    if not text:
        return ""
    for indicator in BLOCK_TITLE_INDICATORS:
        if indicator in text:
            return indicator
    return ""


def _html_title(html: str) -> str:
    m = re.search(r"<title[^>]*>(.*?)</title>", str(html or ""), flags=re.IGNORECASE | re.DOTALL)
    if not m:
        return ""
    return re.sub(r"\s+", " ", m.group(1)).strip()


def _checked_body(response, strategy: str, url: str) -> str:
    status_code = int(getattr(response, "status_code", 0) or 0)
    if status_code in BLOCK_STATUS_CODES:
        raise BlockedFailure(
            f"{strategy} request was refused with HTTP {status_code}",
            strategy=strategy,
            url=url,
            status_code=status_code,
        )
    if status_code >= 400:
        raise NetworkFailure(f"{strategy} request failed with HTTP {status_code}", strategy=strategy, url=url)

    html = str(getattr(response, "text", "") or "")
    if not html.strip():
        raise MalformedContentFailure(f"{strategy} request returned an empty body", strategy=strategy, url=url)

    indicator = block_indicator(_html_title(html))
    if indicator:
        raise BlockedFailure(
            f"{strategy} request returned an interstitial page ({indicator})",
            strategy=strategy,
            url=url,
            status_code=status_code,
            indicator=indicator,
        )
    return html


class DirectFetchStrategy:
    name = "direct"

    def __init__(self, settings: GazetteSettings, session=None):
        self.settings = settings
        if session is None:
            session = cffi_requests.Session(impersonate="chrome")
            session.headers.update(BROWSER_HEADERS)
        self.session = session

    def attempt(self, url: str) -> FetchOutput:
        try:
            response = self.session.get(url, timeout=self.settings.direct_timeout, allow_redirects=True)
        except CurlTimeout as e:
            raise TimeoutFailure(f"direct request timed out: {e}", strategy=self.name, url=url) from e
        except CurlRequestException as e:
            raise NetworkFailure(f"direct request failed: {e}", strategy=self.name, url=url) from e
        return _checked_body(response, self.name, url)


class ProxiedFetchStrategy:
    name = "proxied"

    def __init__(self, settings: GazetteSettings, session: Optional[requests.Session] = None):
        self.settings = settings
        if session is None:
            session = requests.Session()
            session.headers.update(BROWSER_HEADERS)
        self.session = session

    def relay_url(self, url: str) -> str:
        return self.settings.proxy_template.format(url=quote(url, safe=""))

    def attempt(self, url: str) -> FetchOutput:
        relay = self.relay_url(url)
        try:
            response = self.session.get(relay, timeout=self.settings.proxy_timeout)
        except requests.exceptions.Timeout as e:
            raise TimeoutFailure(f"proxy request timed out: {e}", strategy=self.name, url=url) from e
        except requests.exceptions.RequestException as e:
            raise NetworkFailure(f"proxy request failed: {e}", strategy=self.name, url=url) from e
        return _checked_body(response, self.name, url)


class RenderedFetchStrategy:
    name = "rendered"

    def __init__(self, settings: GazetteSettings, playwright_factory: Optional[Callable] = None):
        self.settings = settings
        self._playwright_factory = playwright_factory or sync_playwright

    def attempt(self, url: str) -> FetchOutput:
        try:
            with self._playwright_factory() as p:
                browser = p.chromium.launch(headless=self.settings.headless)
                try:
                    return self._render(browser, url)
                finally:
                    browser.close()
        except FetchFailure:
            raise
        except PlaywrightTimeoutError as e:
            raise TimeoutFailure(f"browser navigation timed out: {e}", strategy=self.name, url=url) from e
        except PlaywrightError as e:
            raise NetworkFailure(f"browser navigation failed: {e}", strategy=self.name, url=url) from e

    def _render(self, browser, url: str) -> FetchOutput:
        settings = self.settings
        context = browser.new_context(
            user_agent=BROWSER_USER_AGENT,
            locale="pt-BR",
            extra_http_headers={
                "Accept-Language": BROWSER_HEADERS["Accept-Language"],
                "Referer": BROWSER_HEADERS["Referer"],
            },
        )
        page = context.new_page()
        nav_timeout_ms = int(settings.browser_timeout * 1000)
        page.set_default_navigation_timeout(nav_timeout_ms)

        response = page.goto(url, wait_until="domcontentloaded", timeout=nav_timeout_ms)
        status_code = int(getattr(response, "status", 0) or 0) if response is not None else 0
        if status_code in BLOCK_STATUS_CODES:
            raise BlockedFailure(
                f"browser navigation was refused with HTTP {status_code}",
                strategy=self.name,
                url=url,
                status_code=status_code,
            )

        try:
            page.wait_for_load_state("networkidle", timeout=nav_timeout_ms)
        except PlaywrightTimeoutError:
            logger.info("Network did not go idle within %.0fs; continuing with current DOM", settings.browser_timeout)

        indicator = block_indicator(page.title())
        if indicator:
            raise BlockedFailure(
                f"browser landed on an interstitial page ({indicator})",
                strategy=self.name,
                url=url,
                status_code=status_code or None,
                indicator=indicator,
            )

        try:
            page.wait_for_selector(
                f"#{settings.container_id}",
                timeout=int(settings.container_wait_timeout * 1000),
            )
        except PlaywrightTimeoutError:
            logger.info("Container #%s did not appear; reading page anyway", settings.container_id)

        if not settings.evaluate_in_page:
            return page.content()

        rows = page.evaluate(ROW_EVALUATION_SCRIPT, evaluation_arguments(settings))
        if rows is None:
            raise MalformedContentFailure(
                f"rendered page has no #{settings.container_id} container",
                strategy=self.name,
                url=url,
            )
        return records_from_rows(rows, settings)


def default_strategies(settings: GazetteSettings) -> list:
    return [
        DirectFetchStrategy(settings),
        ProxiedFetchStrategy(settings),
        RenderedFetchStrategy(settings),
    ]
