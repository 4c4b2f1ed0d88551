"""CrawlbaseFetcher: proxy fetcher using the Crawlbase crawling API.

Crawlbase issues separate tokens for plain and JavaScript-rendered
requests. Either token makes the fetcher available, but each call needs
the token matching its mode:

- ``CRAWLBASE_JS_API_KEY`` for ``render=True`` (the default)
- ``CRAWLBASE_NORMAL_API_KEY`` for ``render=False``

A call whose mode has no token returns a ``not_configured`` failure, which
the manager skips without counting it as an attempt.
"""

from __future__ import annotations

import requests
from loguru import logger
from w3lib.url import safe_url_string

from .base import (
    AdapterResponse,
    AdapterResult,
    FetchOptions,
    TransportErrorKind,
    TransportFailure,
)
from .blocking import parse_retry_after
from .config import env_api_key

CRAWLBASE_API_URL = "https://api.crawlbase.com/"

DEFAULT_PAGE_WAIT_MS = 2000

# Crawlbase bills in credits; JavaScript requests cost two.
CREDIT_COST_USD = 0.001
NORMAL_CREDITS = 1
JAVASCRIPT_CREDITS = 2


class CrawlbaseFetcher:
    """Fetcher that routes requests through the Crawlbase API."""

    name = "crawlbase"

    def __init__(
        self,
        normal_api_key: str | None = None,
        js_api_key: str | None = None,
        page_wait: int = DEFAULT_PAGE_WAIT_MS,
        ajax_wait: bool = True,
    ):
        self._normal_api_key = normal_api_key
        self._js_api_key = js_api_key
        self.page_wait = page_wait
        self.ajax_wait = ajax_wait

    @property
    def normal_api_key(self) -> str:
        return self._normal_api_key or env_api_key("CRAWLBASE_NORMAL_API_KEY")

    @property
    def js_api_key(self) -> str:
        return self._js_api_key or env_api_key("CRAWLBASE_JS_API_KEY")

    def available(self) -> bool:
        return bool(self.normal_api_key or self.js_api_key)

    def available_for_mode(self, render: bool) -> bool:
        return bool(self._token(render))

    def fetch(self, url: str, options: FetchOptions) -> AdapterResult:
        render = True if options.render is None else options.render
        mode = "javascript" if render else "normal"
        token = self._token(render)
        if not token:
            return TransportFailure(
                self.name,
                TransportErrorKind.NOT_CONFIGURED,
                f"No Crawlbase token configured for {mode} mode",
            )

        try:
            api_response = requests.get(
                CRAWLBASE_API_URL,
                params=self._build_params(url, token, render),
                timeout=options.timeouts,
            )
        except requests.Timeout as exc:
            logger.warning(f"Crawlbase API timed out for {url}: {exc}")
            return TransportFailure(self.name, TransportErrorKind.TIMEOUT, str(exc))
        except requests.RequestException as exc:
            logger.warning(f"Crawlbase API request failed for {url}: {exc}")
            return TransportFailure(
                self.name, TransportErrorKind.NETWORK_ERROR, str(exc)
            )

        if api_response.status_code != 200:
            retry_after = None
            if api_response.status_code == 429:
                retry_after = parse_retry_after(api_response.headers)
            message = self._error_message(api_response)
            logger.warning(
                f"Crawlbase API error ({api_response.status_code}) for {url}: {message}"
            )
            return TransportFailure(
                self.name,
                TransportErrorKind.PROVIDER_ERROR,
                f"Crawlbase API error {api_response.status_code}: {message}",
                retry_after=retry_after,
            )

        return self._parse(api_response, mode)

    def _token(self, render: bool) -> str:
        return self.js_api_key if render else self.normal_api_key

    def _build_params(self, url: str, token: str, render: bool) -> dict[str, str]:
        params = {"token": token, "url": safe_url_string(url), "format": "json"}
        if render:
            params["page_wait"] = str(self.page_wait)
            if self.ajax_wait:
                params["ajax_wait"] = "true"
        return params

    def _parse(self, api_response: requests.Response, mode: str) -> AdapterResult:
        extra = {
            "mode": mode,
            "cost_usd": CREDIT_COST_USD
            * (JAVASCRIPT_CREDITS if mode == "javascript" else NORMAL_CREDITS),
        }

        try:
            data = api_response.json()
        except ValueError:
            # Some accounts are set up to return the page itself
            text = api_response.text
            if "<html" in text.lower() or "<!" in text:
                return AdapterResponse(
                    body=text, status_code=200, adapter=self.name, extra=extra
                )
            return TransportFailure(
                self.name, TransportErrorKind.PROVIDER_ERROR, "JSON decode error"
            )

        if not isinstance(data, dict):
            return TransportFailure(
                self.name,
                TransportErrorKind.PROVIDER_ERROR,
                "Unexpected Crawlbase response format",
            )

        pc_status = data.get("pc_status")
        if isinstance(pc_status, int) and pc_status >= 400 and "body" not in data:
            error = data.get("error") or f"HTTP {pc_status}"
            logger.warning(f"Crawlbase returned pc_status {pc_status}: {error}")
            return TransportFailure(
                self.name,
                TransportErrorKind.PROVIDER_ERROR,
                f"Crawlbase error {pc_status}: {error}",
            )

        body = data.get("body")
        if not isinstance(body, str):
            return TransportFailure(
                self.name,
                TransportErrorKind.PROVIDER_ERROR,
                f"Unexpected Crawlbase response format: {sorted(data)}",
            )

        raw_status = data.get("original_status") or pc_status or 200
        try:
            status_code = int(raw_status)
        except (TypeError, ValueError):
            logger.warning(f"Crawlbase returned an unreadable status: {raw_status!r}")
            return TransportFailure(
                self.name,
                TransportErrorKind.PROVIDER_ERROR,
                f"Unreadable Crawlbase status: {raw_status!r}",
            )

        extra["pc_status"] = pc_status
        return AdapterResponse(
            body=body,
            status_code=status_code,
            adapter=self.name,
            extra=extra,
        )

    def _error_message(self, api_response: requests.Response) -> str:
        try:
            data = api_response.json()
        except ValueError:
            return f"HTTP {api_response.status_code}"
        if not isinstance(data, dict):
            return f"HTTP {api_response.status_code}"
        if data.get("error"):
            return str(data["error"])
        if data.get("message"):
            return str(data["message"])
        if data.get("pc_status"):
            return f"PC Status {data['pc_status']}"
        return f"HTTP {api_response.status_code}"
