"""Base types for the fetch strategy module."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Protocol, Union

from .blocking import BlockingType

Headers = list[tuple[str, str]]

DEFAULT_TIMEOUT_MS = 30_000
DEFAULT_RECV_TIMEOUT_MS = 30_000
DEFAULT_MAX_REDIRECTS = 5


@dataclass(frozen=True)
class FetchOptions:
    """Per-call transport options handed to every fetcher in the chain.

    Timeouts are in milliseconds. ``render`` asks proxy services for
    JavaScript rendering; ``None`` leaves the choice to each fetcher.
    Redirect options apply to fetchers that talk to the target themselves.
    """

    headers: Headers = field(default_factory=list)
    timeout: int = DEFAULT_TIMEOUT_MS
    recv_timeout: int = DEFAULT_RECV_TIMEOUT_MS
    render: bool | None = None
    follow_redirects: bool = True
    max_redirects: int = DEFAULT_MAX_REDIRECTS

    @property
    def timeouts(self) -> tuple[float, float]:
        """(connect, read) timeouts in seconds, as HTTP clients expect them."""
        return self.timeout / 1000, self.recv_timeout / 1000


@dataclass(frozen=True)
class AdapterResponse:
    """A response that made it back over the wire, whatever its status."""

    body: str
    status_code: int
    adapter: str
    headers: Headers = field(default_factory=list)
    extra: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "extra", _frozen(self.extra))


class TransportErrorKind(str, Enum):
    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"
    PROVIDER_ERROR = "provider_error"
    NOT_CONFIGURED = "not_configured"


@dataclass(frozen=True)
class TransportFailure:
    """A fetcher could not produce a response."""

    adapter: str
    kind: TransportErrorKind
    message: str
    # Seconds the provider asked us to back off, when it said so
    retry_after: int | None = None


AdapterResult = Union[AdapterResponse, TransportFailure]


class AttemptOutcome(str, Enum):
    SUCCESS = "success"
    BLOCKED = "blocked"
    TRANSPORT_ERROR = "transport_error"
    HTTP_ERROR = "http_error"


@dataclass(frozen=True)
class Attempt:
    """One entry of the attempts log: a single fetcher tried once."""

    adapter: str
    outcome: AttemptOutcome
    status_code: int | None = None
    blocking_type: BlockingType | None = None
    retry_after: int | None = None
    error: str | None = None
    duration_ms: int = 0

    def as_dict(self) -> dict[str, Any]:
        return {
            "adapter": self.adapter,
            "outcome": self.outcome.value,
            "status_code": self.status_code,
            "blocking_type": self.blocking_type.value if self.blocking_type else None,
            "retry_after": self.retry_after,
            "error": self.error,
            "duration_ms": self.duration_ms,
        }


@dataclass(frozen=True)
class FetchMetadata:
    adapter: str
    status_code: int
    duration_ms: int
    attempts: int
    blocked_by: tuple[tuple[str, BlockingType], ...] = ()
    attempts_log: tuple[Attempt, ...] = ()
    headers: tuple[tuple[str, str], ...] = ()
    extra: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "extra", _frozen(self.extra))


@dataclass(frozen=True)
class FetchResult:
    """Result of a successful fetch."""

    url: str
    body: str
    metadata: FetchMetadata

    @property
    def adapter(self) -> str:
        return self.metadata.adapter

    @property
    def status_code(self) -> int:
        return self.metadata.status_code


class BaseFetcher(Protocol):
    """Protocol that all fetchers must implement."""

    name: str

    def available(self) -> bool:
        """True when the backend is usable right now (e.g. credentials set)."""
        ...

    def fetch(self, url: str, options: FetchOptions) -> AdapterResult:
        """Fetch *url*. Transport problems are returned, never raised."""
        ...


def _frozen(extra: Mapping[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(dict(extra))
