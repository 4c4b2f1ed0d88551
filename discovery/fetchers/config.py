"""Strategy configuration: which fetchers to try, per source.

Loaded once at start-up from the ``FETCH_STRATEGIES`` environment variable
(a JSON object, ``.env`` files honoured), e.g.::

    FETCH_STRATEGIES='{"default": ["direct", "zyte"], "bandsintown": ["zyte"]}'

The ``default`` key is the fallback chain for unconfigured sources and must
include ``direct`` so at least one usable fetcher always exists.
"""

from __future__ import annotations

import os

from dotenv import load_dotenv
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    field_validator,
    model_validator,
)

load_dotenv()

DIRECT = "direct"

DEFAULT_CHAIN = [DIRECT, "zyte"]


def _dedupe(names: list[str]) -> list[str]:
    seen: set[str] = set()
    ordered = []
    for name in names:
        name = name.strip().lower()
        if name and name not in seen:
            seen.add(name)
            ordered.append(name)
    return ordered


class StrategyConfig(BaseModel):
    """Read-only mapping of source identifier to an ordered fetcher chain."""

    model_config = ConfigDict(frozen=True)

    default: list[str] = Field(default_factory=lambda: list(DEFAULT_CHAIN))
    sources: dict[str, list[str]] = Field(default_factory=dict)

    @field_validator("default")
    @classmethod
    def _clean_default(cls, value: list[str]) -> list[str]:
        return _dedupe(value)

    @field_validator("sources")
    @classmethod
    def _clean_sources(cls, value: dict[str, list[str]]) -> dict[str, list[str]]:
        return {source.strip().lower(): _dedupe(chain) for source, chain in value.items()}

    @model_validator(mode="after")
    def _default_includes_direct(self) -> StrategyConfig:
        if DIRECT not in self.default:
            raise ValueError(f"default chain must include '{DIRECT}', got {self.default}")
        return self

    def chain_for(self, source: str | None) -> list[str]:
        """Return the configured chain for *source*, or the default chain."""
        if source:
            chain = self.sources.get(source.strip().lower())
            if chain:
                return list(chain)
        return list(self.default)

    @classmethod
    def from_mapping(cls, mapping: dict[str, list[str]]) -> StrategyConfig:
        """Build from the flat ``{"default": [...], "<source>": [...]}`` shape."""
        mapping = dict(mapping)
        default = mapping.pop("default", None)
        if default is None:
            return cls(sources=mapping)
        return cls(default=default, sources=mapping)

    @classmethod
    def from_env(cls) -> StrategyConfig:
        raw = os.getenv("FETCH_STRATEGIES")
        if not raw:
            return cls()
        return cls.from_mapping(_MAPPING_ADAPTER.validate_json(raw))


_MAPPING_ADAPTER = TypeAdapter(dict[str, list[str]])


def env_api_key(name: str) -> str:
    """Read an API key from the environment at call time, so rotated keys apply."""
    return (os.getenv(name) or "").strip()
