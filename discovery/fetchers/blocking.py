"""Blocking detection: classify a response as bot-defense blocked or legitimate.

Checks run in a fixed order and the first match wins:

1. HTTP 429 -> rate limit (with Retry-After seconds, default 60)
2. CAPTCHA widgets or human-verification text in the body, any status
3. HTTP 403/503 with Cloudflare headers -> Cloudflare challenge
4. HTTP 403 without Cloudflare headers -> generic access denied

Everything else, including 404 and 500, is not blocking. Only bot-defense
signals are flagged here; ordinary HTTP errors are left to the caller.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Union

DEFAULT_RETRY_AFTER = 60

HeaderInput = Union[Mapping[str, str], Iterable[tuple[str, str]], None]
BodyInput = Union[str, bytes, None]

CLOUDFLARE_HEADERS = frozenset({"cf-ray", "cf-cache-status", "cf-mitigated"})

CLOUDFLARE_BLOCKING_STATUSES = frozenset({403, 503})

CLOUDFLARE_CHALLENGE_SIGNATURES = [
    "just a moment",
    "checking your browser",
    "checking if the site connection is secure",
    "cf-browser-verification",
    "cf-please-wait",
    "cf-spinner",
    "data-cf-beacon",
    "_cf_chl_opt",
    "/cdn-cgi/challenge-platform",
    "cloudflare ray id",
]

CAPTCHA_SIGNATURES = [
    # Provider scripts and widget containers
    "google.com/recaptcha",
    "recaptcha/api.js",
    "g-recaptcha",
    "grecaptcha",
    "hcaptcha.com",
    "h-captcha",
    "cf-turnstile",
    "challenges.cloudflare.com/turnstile",
    "funcaptcha",
    "arkoselabs.com",
    "geetest",
    # Generic human-verification phrases
    "verify you are human",
    "verify you are a human",
    "verify that you are human",
    "not a robot",
    "are you a robot",
    "solve this puzzle",
    "complete the captcha",
    "captcha-container",
]


class BlockingType(str, Enum):
    CLOUDFLARE = "cloudflare"
    CAPTCHA = "captcha"
    RATE_LIMIT = "rate_limit"
    ACCESS_DENIED = "access_denied"


@dataclass(frozen=True)
class BlockingVerdict:
    """Outcome of classifying one response."""

    blocked: bool
    type: BlockingType | None = None
    retry_after: int | None = None

    @classmethod
    def not_blocked(cls) -> BlockingVerdict:
        return cls(blocked=False)

    @classmethod
    def blocked_by(
        cls, blocking_type: BlockingType, retry_after: int | None = None
    ) -> BlockingVerdict:
        return cls(blocked=True, type=blocking_type, retry_after=retry_after)


@dataclass(frozen=True)
class BlockingDetails:
    """Verdict plus the indicators that produced it, for diagnostics."""

    blocked: bool
    type: BlockingType | None
    status_code: int
    retry_after: int | None = None
    indicators: list[str] = field(default_factory=list)


def detect(status: int, headers: HeaderInput, body: BodyInput) -> BlockingVerdict:
    """Classify a response. Never raises on empty or missing headers/body."""
    header_pairs = _normalize_headers(headers)

    if status == 429:
        return BlockingVerdict.blocked_by(
            BlockingType.RATE_LIMIT, _retry_after(header_pairs)
        )

    text = _normalize_body(body)

    if _has_captcha(text):
        return BlockingVerdict.blocked_by(BlockingType.CAPTCHA)

    if status in CLOUDFLARE_BLOCKING_STATUSES and _has_cloudflare_header(header_pairs):
        return BlockingVerdict.blocked_by(BlockingType.CLOUDFLARE)

    if status == 403:
        return BlockingVerdict.blocked_by(BlockingType.ACCESS_DENIED)

    return BlockingVerdict.not_blocked()


def is_blocked(status: int, headers: HeaderInput, body: BodyInput) -> bool:
    return detect(status, headers, body).blocked


def is_cloudflare_response(headers: HeaderInput) -> bool:
    """True when any Cloudflare infrastructure header is present."""
    return _has_cloudflare_header(_normalize_headers(headers))


def details(status: int, headers: HeaderInput, body: BodyInput) -> BlockingDetails:
    """Return the verdict together with the indicator tags that fired.

    Indicators are only collected for the signals relevant to the verdict,
    so a normal response always reports an empty list.
    """
    verdict = detect(status, headers, body)
    indicators: list[str] = []

    if verdict.type is BlockingType.RATE_LIMIT:
        indicators.append("status_429")
        if _header_value(_normalize_headers(headers), "retry-after") is not None:
            indicators.append("retry_after_header")
    elif verdict.type is BlockingType.CAPTCHA:
        indicators.append("captcha_detected")
    elif verdict.type is BlockingType.CLOUDFLARE:
        indicators.append(f"status_{status}")
        indicators.append("cf_headers")
        if _has_cloudflare_challenge(_normalize_body(body)):
            indicators.append("cf_challenge_page")
    elif verdict.type is BlockingType.ACCESS_DENIED:
        indicators.append("status_403")

    return BlockingDetails(
        blocked=verdict.blocked,
        type=verdict.type,
        status_code=status,
        retry_after=verdict.retry_after,
        indicators=indicators,
    )


def _normalize_headers(headers: HeaderInput) -> list[tuple[str, str]]:
    if not headers:
        return []
    if isinstance(headers, Mapping):
        items: Iterable = headers.items()
    else:
        items = headers
    return [(str(name).lower(), str(value)) for name, value in items]


def _normalize_body(body: BodyInput) -> str:
    if not body:
        return ""
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    return str(body).lower()


def _header_value(header_pairs: list[tuple[str, str]], name: str) -> str | None:
    for key, value in header_pairs:
        if key == name:
            return value
    return None


def _retry_after(header_pairs: list[tuple[str, str]]) -> int:
    """Parse Retry-After as integer seconds. HTTP-date values fall back to the default."""
    value = _header_value(header_pairs, "retry-after")
    if value is None:
        return DEFAULT_RETRY_AFTER
    try:
        seconds = int(value.strip())
    except ValueError:
        return DEFAULT_RETRY_AFTER
    return seconds if seconds >= 0 else DEFAULT_RETRY_AFTER


def parse_retry_after(headers: HeaderInput) -> int:
    """Seconds to wait from a Retry-After header, or the default when unusable."""
    return _retry_after(_normalize_headers(headers))


def _has_cloudflare_header(header_pairs: list[tuple[str, str]]) -> bool:
    return any(key in CLOUDFLARE_HEADERS for key, _ in header_pairs)


def _has_captcha(text: str) -> bool:
    return any(sig in text for sig in CAPTCHA_SIGNATURES)


def _has_cloudflare_challenge(text: str) -> bool:
    return any(sig in text for sig in CLOUDFLARE_CHALLENGE_SIGNATURES)
