"""Schema definitions for alerts received from Alertmanager.

An ``Alert`` is one entry of the ``alerts`` array in an Alertmanager
webhook payload. Its ``fingerprint`` is a hash of the label set, so it
stays the same across every firing/resolved update of one logical alert
and is not a per-event identifier.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

AlertStatus = Literal["firing", "resolved"]

VALID_STATUSES: frozenset[str] = frozenset({
    "firing",
    "resolved",
})

# Alertmanager encodes "no value" as Go's zero time.
_ZERO_TIME_PREFIX = "0001-01-01"

_FRACTION_RE = re.compile(r"\.(\d+)")


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an RFC 3339 timestamp into an aware datetime.

    Args:
        value: ISO string, datetime, or None.

    Returns:
        Timezone-aware datetime, or None for missing/zero values.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value)
        if text.startswith(_ZERO_TIME_PREFIX):
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        # Go emits nanoseconds; fromisoformat accepts at most microseconds.
        text = _FRACTION_RE.sub(
            lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1,
        )
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


@dataclass(frozen=True)
class Alert:
    """A single alert from an Alertmanager notification.

    Attributes:
        fingerprint: Label-set hash, stable across updates of the same alert.
        status: Either ``firing`` or ``resolved``.
        labels: Identifying labels (alertname, severity, ...).
        annotations: Descriptive annotations (summary, description, ...).
        starts_at: When the alert started firing.
        ends_at: When the alert resolved, if it has.
        generator_url: Link back to the expression that produced the alert.
    """

    fingerprint: str
    status: str
    starts_at: datetime
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    ends_at: datetime | None = None
    generator_url: str = ""

    def __post_init__(self) -> None:
        if self.status not in VALID_STATUSES:
            raise ValueError(
                f"Invalid status {self.status!r}. "
                f"Must be one of: {sorted(VALID_STATUSES)}"
            )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Alert":
        """Create an Alert from an Alertmanager alert object.

        Args:
            data: One element of the payload's ``alerts`` array.

        Returns:
            Alert instance.
        """
        starts_at = parse_timestamp(data.get("startsAt") or data.get("starts_at"))
        if starts_at is None:
            starts_at = datetime.now(timezone.utc)

        return cls(
            fingerprint=data["fingerprint"],
            status=data.get("status", "firing"),
            labels=dict(data.get("labels") or {}),
            annotations=dict(data.get("annotations") or {}),
            starts_at=starts_at,
            ends_at=parse_timestamp(data.get("endsAt") or data.get("ends_at")),
            generator_url=data.get("generatorURL") or data.get("generator_url") or "",
        )
