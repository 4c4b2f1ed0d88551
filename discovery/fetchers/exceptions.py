"""Exceptions surfaced to callers of the fetch strategy module."""

from __future__ import annotations

from .base import Attempt, AttemptOutcome
from .blocking import BlockingType


class FetchError(Exception):
    """Base class for every failure returned by ``FetchStrategyManager.fetch``."""

    reason = "fetch_error"

    def __init__(self, message: str, attempts: list[Attempt] | None = None):
        self.attempts = list(attempts or [])
        super().__init__(message)


class HttpError(FetchError):
    """The target answered with a non-2xx status that is not bot blocking."""

    reason = "http_error"

    def __init__(
        self,
        message: str,
        status_code: int,
        adapter: str,
        body: str = "",
        attempts: list[Attempt] | None = None,
    ):
        self.status_code = status_code
        self.adapter = adapter
        self.body = body
        super().__init__(message, attempts)


class ConfigurationError(FetchError):
    """No fetcher in the resolved chain is usable."""

    reason = "not_configured"

    def __init__(
        self,
        message: str,
        strategy: str | None = None,
        source: str | None = None,
        attempts: list[Attempt] | None = None,
    ):
        self.strategy = strategy
        self.source = source
        super().__init__(message, attempts)


class AllAdaptersFailed(FetchError):
    """Every fetcher in the chain failed or was blocked."""

    reason = "all_adapters_failed"

    @property
    def blocked_by(self) -> list[tuple[str, BlockingType]]:
        return [
            (a.adapter, a.blocking_type)
            for a in self.attempts
            if a.outcome is AttemptOutcome.BLOCKED and a.blocking_type
        ]
