"""Fetch strategy module: per-source fetcher chains with blocking detection and failover."""

from .base import FetchMetadata, FetchOptions, FetchResult
from .blocking import BlockingType, BlockingVerdict, detect
from .config import StrategyConfig
from .exceptions import AllAdaptersFailed, ConfigurationError, FetchError, HttpError
from .manager import FetchStrategyManager, Strategy

__all__ = [
    "FetchStrategyManager",
    "Strategy",
    "StrategyConfig",
    "FetchOptions",
    "FetchResult",
    "FetchMetadata",
    "BlockingType",
    "BlockingVerdict",
    "detect",
    "FetchError",
    "HttpError",
    "ConfigurationError",
    "AllAdaptersFailed",
]
