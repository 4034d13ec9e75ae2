"""Per-room provider configuration.

One ``ProviderConfig`` exists per ``[providers.<room>]`` table in the
config file. Durations accept Go-style strings (``"12h"``, ``"1m30s"``,
``"500ms"``), plain numbers of seconds, or any value pydantic accepts for
``timedelta``.
"""

import re
from datetime import timedelta
from typing import Annotated, Any, Literal

import httpx
from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from alertrelay.alerts.delivery import DeliveryOptions, RetryConfig

_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d+)?)(ns|us|µs|ms|s|m|h)")

_PROXY_SCHEMES = frozenset({"http", "https", "socks5", "socks5h"})

_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration(value: Any) -> Any:
    """Convert a Go-style duration string to a timedelta.

    Values that are not Go-style strings are returned unchanged for
    pydantic's own ``timedelta`` parsing.

    Raises:
        ValueError: The string looks like a Go duration but has leftovers.
    """
    if not isinstance(value, str):
        return value
    text = value.strip()
    if not text or not text[0].isdigit() or ":" in text:
        return value
    try:
        return timedelta(seconds=float(text))
    except ValueError:
        pass

    total = 0.0
    pos = 0
    for match in _DURATION_PART_RE.finditer(text):
        if match.start() != pos:
            raise ValueError(f"invalid duration {value!r}")
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()
    if pos != len(text):
        raise ValueError(f"invalid duration {value!r}")
    return timedelta(seconds=total)


def _parse_url(value: str) -> httpx.URL:
    try:
        return httpx.URL(value)
    except httpx.InvalidURL as e:
        raise ValueError(f"invalid URL {value!r}: {e}") from e


Duration = Annotated[timedelta, BeforeValidator(parse_duration)]


class ProviderConfig(BaseModel):
    """Configuration for one room's chat provider."""

    model_config = ConfigDict(extra="ignore")

    type: Literal["google_chat"] = "google_chat"
    endpoint: str = Field(
        min_length=1,
        description="Webhook URL of the chat space",
    )
    template: str = Field(
        default="",
        description="Path to the Jinja2 message template (empty = bundled default)",
    )
    max_idle_conns: int = Field(default=50, ge=1)
    timeout: Duration = Field(
        default=timedelta(seconds=30),
        description="Per-request HTTP timeout",
    )
    proxy_url: str = Field(default="", description="Optional outbound proxy")
    thread_ttl: Duration = Field(
        default=timedelta(hours=12),
        description="How long a fingerprint keeps its chat thread",
    )
    prune_interval: Duration = Field(
        default=timedelta(hours=1),
        description="How often expired threads are swept",
    )
    threaded_replies: bool = Field(
        default=False,
        description="Reply in the alert's thread instead of starting a new one",
    )
    dry_run: bool = Field(
        default=False,
        description="Render messages but skip the outbound request",
    )
    retry_max: int = Field(default=3, ge=0, le=20)
    retry_wait_min: Duration = Field(default=timedelta(seconds=1))
    retry_wait_max: Duration = Field(default=timedelta(seconds=5))
    max_message_size: int = Field(default=4096, ge=64)
    timezone: str = Field(
        default="UTC",
        description="Default IANA time zone for format_time in templates",
    )

    @field_validator("endpoint")
    @classmethod
    def _check_endpoint(cls, value: str) -> str:
        url = _parse_url(value)
        if url.scheme not in ("http", "https") or not url.host:
            raise ValueError(f"endpoint must be an http(s) URL, got {value!r}")
        return value

    @field_validator("proxy_url")
    @classmethod
    def _check_proxy_url(cls, value: str) -> str:
        if not value:
            return value
        url = _parse_url(value)
        if url.scheme not in _PROXY_SCHEMES or not url.host:
            raise ValueError(
                f"proxy_url must use one of {sorted(_PROXY_SCHEMES)}, got {value!r}"
            )
        return value

    @model_validator(mode="after")
    def _check_bounds(self) -> "ProviderConfig":
        if self.retry_wait_min > self.retry_wait_max:
            raise ValueError("retry_wait_min must not exceed retry_wait_max")
        if self.prune_interval <= timedelta(0):
            raise ValueError("prune_interval must be positive")
        if self.thread_ttl <= timedelta(0):
            raise ValueError("thread_ttl must be positive")
        return self

    def delivery_options(self) -> DeliveryOptions:
        """Build transport options for the delivery client."""
        return DeliveryOptions(
            timeout=self.timeout.total_seconds(),
            max_idle_conns=self.max_idle_conns,
            proxy_url=self.proxy_url or None,
            retry=RetryConfig(
                retry_max=self.retry_max,
                wait_min=self.retry_wait_min.total_seconds(),
                wait_max=self.retry_wait_max.total_seconds(),
            ),
        )
