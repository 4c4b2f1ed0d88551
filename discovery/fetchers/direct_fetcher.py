"""DirectFetcher: local request with browser TLS impersonation via curl-cffi."""

from __future__ import annotations

from curl_cffi import requests as curl_requests
from curl_cffi.requests.exceptions import RequestException, Timeout
from loguru import logger

from .base import (
    AdapterResponse,
    AdapterResult,
    FetchOptions,
    TransportErrorKind,
    TransportFailure,
)


class DirectFetcher:
    """Fetcher that requests the target from this process. Always available.

    Any HTTP status is handed back as a response; the manager classifies it.
    """

    name = "direct"

    def __init__(self, impersonate: str = "chrome"):
        self.impersonate = impersonate

    def available(self) -> bool:
        return True

    def fetch(self, url: str, options: FetchOptions) -> AdapterResult:
        try:
            response = curl_requests.get(
                url,
                headers=dict(options.headers) or None,
                impersonate=self.impersonate,
                timeout=options.timeouts,
                allow_redirects=options.follow_redirects,
                max_redirects=options.max_redirects,
            )
        except Timeout as exc:
            logger.debug(f"direct fetch timed out for {url}: {exc}")
            return TransportFailure(self.name, TransportErrorKind.TIMEOUT, str(exc))
        except RequestException as exc:
            logger.debug(f"direct fetch connection failed for {url}: {exc}")
            return TransportFailure(
                self.name, TransportErrorKind.NETWORK_ERROR, str(exc)
            )

        return AdapterResponse(
            body=response.text,
            status_code=response.status_code,
            adapter=self.name,
            headers=list(response.headers.items()),
        )
