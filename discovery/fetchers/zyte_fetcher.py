"""ZyteFetcher: proxy/rendering fetcher using the Zyte API."""

from __future__ import annotations

from base64 import b64decode

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
from .config import env_api_key

ZYTE_API_URL = "https://api.zyte.com/v1/extract"

# Estimated USD per request
BROWSER_HTML_COST = 0.001
HTTP_RESPONSE_BODY_COST = 0.0003


class ZyteFetcher:
    """Fetcher that routes requests through the Zyte API.

    ``render=True`` (the default) asks Zyte for browser-rendered HTML;
    ``render=False`` asks for the raw HTTP response body and headers, and
    forwards the caller's request headers.
    """

    name = "zyte"

    def __init__(self, api_key: str | None = None):
        self._api_key = api_key

    @property
    def api_key(self) -> str:
        return self._api_key or env_api_key("ZYTE_API_KEY")

    def available(self) -> bool:
        return bool(self.api_key)

    def fetch(self, url: str, options: FetchOptions) -> AdapterResult:
        api_key = self.api_key
        if not api_key:
            return TransportFailure(
                self.name, TransportErrorKind.NOT_CONFIGURED, "ZYTE_API_KEY not set"
            )

        render = True if options.render is None else options.render
        payload = self._build_payload(url, options, render)

        try:
            api_response = requests.post(
                ZYTE_API_URL,
                auth=(api_key, ""),
                json=payload,
                timeout=options.timeouts,
            )
        except requests.Timeout as exc:
            logger.warning(f"Zyte API timed out for {url}: {exc}")
            return TransportFailure(self.name, TransportErrorKind.TIMEOUT, str(exc))
        except requests.RequestException as exc:
            logger.warning(f"Zyte API request failed for {url}: {exc}")
            return TransportFailure(
                self.name, TransportErrorKind.NETWORK_ERROR, str(exc)
            )

        if api_response.status_code != 200:
            message = self._error_message(api_response)
            logger.warning(
                f"Zyte API error ({api_response.status_code}) for {url}: {message}"
            )
            return TransportFailure(
                self.name,
                TransportErrorKind.PROVIDER_ERROR,
                f"Zyte API error {api_response.status_code}: {message}",
            )

        try:
            data = api_response.json()
            body, headers = self._extract(data, render)
            status_code = int(data.get("statusCode") or 200)
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.warning(f"Zyte API returned an unreadable payload for {url}: {exc}")
            return TransportFailure(
                self.name,
                TransportErrorKind.PROVIDER_ERROR,
                f"Unreadable Zyte API payload: {exc}",
            )

        mode = "browser_html" if render else "http_response_body"
        return AdapterResponse(
            body=body,
            status_code=status_code,
            adapter=self.name,
            headers=headers,
            extra={
                "mode": mode,
                "cost_usd": BROWSER_HTML_COST if render else HTTP_RESPONSE_BODY_COST,
            },
        )

    def _build_payload(self, url: str, options: FetchOptions, render: bool) -> dict:
        payload: dict = {"url": safe_url_string(url)}
        if render:
            payload["browserHtml"] = True
        else:
            payload["httpResponseBody"] = True
            payload["httpResponseHeaders"] = True
            if options.headers:
                payload["customHttpRequestHeaders"] = [
                    {"name": name, "value": value} for name, value in options.headers
                ]
        return payload

    def _extract(self, data: dict, render: bool) -> tuple[str, list[tuple[str, str]]]:
        headers = [
            (h["name"], h["value"]) for h in data.get("httpResponseHeaders") or []
        ]
        if render:
            return data["browserHtml"], headers
        body = b64decode(data["httpResponseBody"]).decode("utf-8", errors="replace")
        return body, headers

    def _error_message(self, api_response: requests.Response) -> str:
        try:
            data = api_response.json()
        except ValueError:
            return api_response.text[:200]
        if not isinstance(data, dict):
            return f"HTTP {api_response.status_code}"
        return data.get("detail") or data.get("title") or f"HTTP {api_response.status_code}"
