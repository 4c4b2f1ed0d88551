"""FetchStrategyManager: tries fetchers in a per-source chain with blocking-aware failover."""

from __future__ import annotations

import time
from collections.abc import Mapping
from enum import Enum

from loguru import logger

from .base import (
    DEFAULT_MAX_REDIRECTS,
    DEFAULT_RECV_TIMEOUT_MS,
    DEFAULT_TIMEOUT_MS,
    Attempt,
    AttemptOutcome,
    BaseFetcher,
    FetchMetadata,
    FetchOptions,
    FetchResult,
    TransportErrorKind,
    TransportFailure,
)
from .blocking import detect
from .config import DIRECT, StrategyConfig
from .crawlbase_fetcher import CrawlbaseFetcher
from .direct_fetcher import DirectFetcher
from .events import EventSink, emit
from .exceptions import AllAdaptersFailed, ConfigurationError, HttpError
from .zyte_fetcher import ZyteFetcher

MAX_LOGGED_URL = 100


class Strategy(str, Enum):
    DIRECT = "direct"
    PROXY = "proxy"
    FALLBACK = "fallback"
    AUTO = "auto"


def default_fetchers() -> list[BaseFetcher]:
    """Known fetchers in priority order: direct first, then proxies."""
    return [DirectFetcher(), ZyteFetcher(), CrawlbaseFetcher()]


def truncate_url(url: str) -> str:
    if len(url) > MAX_LOGGED_URL:
        return url[:MAX_LOGGED_URL] + "..."
    return url


class FetchStrategyManager:
    """Tries fetchers in order, failing over when a response is blocked.

    The strategy config is read-only here. A host that hot-reloads it does so
    by assigning a new ``StrategyConfig`` to ``manager.config``; calls already
    in flight keep the chain they resolved.
    """

    def __init__(
        self,
        config: StrategyConfig | None = None,
        fetchers: list[BaseFetcher] | None = None,
        event_sink: EventSink | None = None,
    ) -> None:
        self.config = config if config is not None else StrategyConfig.from_env()
        if fetchers is None:
            fetchers = default_fetchers()
        self._fetchers: dict[str, BaseFetcher] = {f.name: f for f in fetchers}
        self.event_sink = event_sink

    def all_fetchers(self) -> list[BaseFetcher]:
        return list(self._fetchers.values())

    def available_fetchers(self) -> list[BaseFetcher]:
        return [f for f in self._fetchers.values() if f.available()]

    def resolve_chain(
        self, source: str | None = None, strategy: Strategy | str = Strategy.AUTO
    ) -> list[str]:
        """Return the ordered fetcher names that a fetch would try."""
        strategy = Strategy(strategy)

        if strategy is Strategy.DIRECT:
            return [DIRECT]

        if strategy is Strategy.PROXY:
            proxies = [name for name in self._fetchers if name != DIRECT]
            available = [name for name in proxies if self._fetchers[name].available()]
            return available + [name for name in proxies if name not in available]

        if strategy is Strategy.FALLBACK:
            names = [name for name in self._fetchers if name != DIRECT]
            if DIRECT in self._fetchers:
                names.insert(0, DIRECT)
            return names

        chain = []
        for name in self.config.chain_for(source):
            if name not in self._fetchers:
                logger.warning(f"Unknown fetcher '{name}' configured for source {source}")
                continue
            chain.append(name)
        return chain

    def fetch(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | list[tuple[str, str]] | None = None,
        timeout: int = DEFAULT_TIMEOUT_MS,
        recv_timeout: int = DEFAULT_RECV_TIMEOUT_MS,
        source: str | None = None,
        strategy: Strategy | str = Strategy.AUTO,
        render: bool | None = None,
        follow_redirects: bool = True,
        max_redirects: int = DEFAULT_MAX_REDIRECTS,
    ) -> FetchResult:
        """Fetch *url* through the resolved chain.

        Timeouts are in milliseconds. ``source`` selects the configured chain
        when ``strategy`` is ``auto``. Redirect options reach the direct fetcher.

        Raises:
            ConfigurationError: no fetcher in the chain is available.
            HttpError: the target returned a non-2xx, non-blocking status.
            AllAdaptersFailed: every fetcher in the chain failed or was blocked.
        """
        strategy = Strategy(strategy)
        options = FetchOptions(
            headers=_header_pairs(headers),
            timeout=timeout,
            recv_timeout=recv_timeout,
            render=render,
            follow_redirects=follow_redirects,
            max_redirects=max_redirects,
        )
        chain = self.resolve_chain(source, strategy)
        log_url = truncate_url(url)

        logger.debug(
            f"Fetching {log_url} (source={source}, strategy={strategy.value}, chain={chain})"
        )
        emit(
            self.event_sink,
            "request.start",
            {"url": log_url, "source": source, "strategy": strategy.value, "chain": chain},
        )

        started = time.monotonic()
        try:
            result = self._execute(url, options, chain, source, strategy)
        except (ConfigurationError, HttpError, AllAdaptersFailed) as exc:
            logger.warning(f"Fetch failed for {log_url}: {exc}")
            emit(
                self.event_sink,
                "request.exception",
                {
                    "url": log_url,
                    "source": source,
                    "reason": exc.reason,
                    "error": str(exc),
                    "attempts": [a.as_dict() for a in exc.attempts],
                    "duration_ms": _elapsed_ms(started),
                },
            )
            raise

        metadata = result.metadata
        logger.debug(
            f"Fetched {log_url} via {metadata.adapter} "
            f"(status={metadata.status_code}, attempts={metadata.attempts}, "
            f"duration={metadata.duration_ms}ms)"
        )
        emit(
            self.event_sink,
            "request.stop",
            {
                "url": log_url,
                "source": source,
                "adapter": metadata.adapter,
                "status_code": metadata.status_code,
                "attempts": metadata.attempts,
                "blocked_by": [[name, kind.value] for name, kind in metadata.blocked_by],
                "duration_ms": _elapsed_ms(started),
            },
        )
        return result

    def fetch_body(self, url: str, **kwargs) -> str:
        """Like ``fetch`` but return only the body."""
        return self.fetch(url, **kwargs).body

    def _execute(
        self,
        url: str,
        options: FetchOptions,
        chain: list[str],
        source: str | None,
        strategy: Strategy,
    ) -> FetchResult:
        fetchers = [self._fetchers[name] for name in chain if name in self._fetchers]
        if not any(f.available() for f in fetchers):
            raise ConfigurationError(
                f"No available fetcher for strategy={strategy.value}, source={source}",
                strategy=strategy.value,
                source=source,
            )

        log_url = truncate_url(url)
        attempts: list[Attempt] = []

        for fetcher in fetchers:
            if not fetcher.available():
                logger.debug(f"Fetcher {fetcher.name} not available, skipping")
                continue

            logger.debug(f"Trying fetcher {fetcher.name} for {log_url}")
            started = time.monotonic()
            response = fetcher.fetch(url, options)
            duration_ms = _elapsed_ms(started)

            if isinstance(response, TransportFailure):
                if response.kind is TransportErrorKind.NOT_CONFIGURED:
                    logger.debug(f"Fetcher {fetcher.name} not configured: {response.message}")
                    continue
                logger.warning(
                    f"Fetcher {fetcher.name} failed for {log_url}: "
                    f"{response.kind.value}: {response.message}"
                )
                attempts.append(
                    Attempt(
                        adapter=fetcher.name,
                        outcome=AttemptOutcome.TRANSPORT_ERROR,
                        retry_after=response.retry_after,
                        error=f"{response.kind.value}: {response.message}",
                        duration_ms=duration_ms,
                    )
                )
                continue

            verdict = detect(response.status_code, response.headers, response.body)

            if verdict.blocked:
                logger.info(
                    f"Fetcher {fetcher.name} blocked by {verdict.type.value} "
                    f"(status={response.status_code}) for {log_url}, trying next fetcher"
                )
                attempts.append(
                    Attempt(
                        adapter=fetcher.name,
                        outcome=AttemptOutcome.BLOCKED,
                        status_code=response.status_code,
                        blocking_type=verdict.type,
                        retry_after=verdict.retry_after,
                        duration_ms=duration_ms,
                    )
                )
                emit(
                    self.event_sink,
                    "blocked",
                    {
                        "url": log_url,
                        "source": source,
                        "adapter": fetcher.name,
                        "blocking_type": verdict.type.value,
                        "status_code": response.status_code,
                        "retry_after": verdict.retry_after,
                    },
                )
                continue

            if not 200 <= response.status_code < 300:
                attempts.append(
                    Attempt(
                        adapter=fetcher.name,
                        outcome=AttemptOutcome.HTTP_ERROR,
                        status_code=response.status_code,
                        duration_ms=duration_ms,
                    )
                )
                raise HttpError(
                    f"HTTP {response.status_code} from {log_url} via {fetcher.name}",
                    status_code=response.status_code,
                    adapter=fetcher.name,
                    body=response.body,
                    attempts=attempts,
                )

            attempts.append(
                Attempt(
                    adapter=fetcher.name,
                    outcome=AttemptOutcome.SUCCESS,
                    status_code=response.status_code,
                    duration_ms=duration_ms,
                )
            )
            return FetchResult(
                url=url,
                body=response.body,
                metadata=FetchMetadata(
                    adapter=fetcher.name,
                    status_code=response.status_code,
                    duration_ms=duration_ms,
                    attempts=len(attempts),
                    blocked_by=tuple(
                        (a.adapter, a.blocking_type)
                        for a in attempts
                        if a.outcome is AttemptOutcome.BLOCKED
                    ),
                    attempts_log=tuple(attempts),
                    headers=tuple(response.headers),
                    extra=dict(response.extra),
                ),
            )

        if not attempts:
            raise ConfigurationError(
                f"No fetcher in chain {chain} could serve {log_url}",
                strategy=strategy.value,
                source=source,
            )

        raise AllAdaptersFailed(
            f"All fetchers exhausted for {log_url} ({_summarize(attempts)})",
            attempts=attempts,
        )


def _header_pairs(headers) -> list[tuple[str, str]]:
    if not headers:
        return []
    if isinstance(headers, Mapping):
        return list(headers.items())
    return [(name, value) for name, value in headers]


def _summarize(attempts: list[Attempt]) -> str:
    parts = []
    for attempt in attempts:
        detail = attempt.blocking_type.value if attempt.blocking_type else attempt.error
        parts.append(f"{attempt.adapter}: {detail}")
    return ", ".join(parts)


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
