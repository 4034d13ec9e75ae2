"""Message rendering and size-bounded chunking.

Alerts are rendered with a user-provided Jinja2 template and packed into
chunks no larger than the chat backend's message limit (4096 bytes for
Google Chat webhooks). A chunk is closed before appending text that would
make it reach the limit, so one alert's output is never split across
chunks. A single alert that alone exceeds the limit is still emitted as
one oversized chunk.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import jinja2
import structlog

from alertrelay.alerts.errors import ConfigurationError, RenderError
from alertrelay.alerts.schemas import Alert

logger = structlog.get_logger(__name__)

MAX_MESSAGE_SIZE = 4096

DEFAULT_TEMPLATE_PATH = Path(__file__).parent / "templates" / "message.j2"

DEFAULT_TIME_FORMAT = "%Y-%m-%d %H:%M:%S %Z"

_WORD_RE = re.compile(r"\w+(?:['\u2019]\w+)*")


@dataclass(frozen=True)
class Chunk:
    """One outbound message unit."""

    text: str

    @property
    def size(self) -> int:
        """Size in bytes as sent on the wire."""
        return len(self.text.encode("utf-8"))

    def to_payload(self) -> dict[str, Any]:
        """Build the webhook JSON body for this chunk."""
        return {"text": self.text}


# ── Template helpers ────────────────────────────────────


def title_case(value: str) -> str:
    """Upper-case the first letter of each word and lower-case the rest.

    Words are runs of word characters (an inner apostrophe stays part of
    the word), so hyphens and spacing are kept as they are.
    """
    return _WORD_RE.sub(lambda m: m.group(0)[:1].upper() + m.group(0)[1:].lower(), str(value))


def to_upper(value: str) -> str:
    return str(value).upper()


def contains(value: str, substring: str) -> bool:
    return str(substring) in str(value)


def re_replace_all(text: str, pattern: str, replacement: str) -> str:
    """Replace every regex match in ``text`` (filter argument order)."""
    return re.sub(pattern, replacement, str(text))


def _make_format_time(default_timezone: str):
    def format_time(
        value: datetime | None,
        tz: str | None = None,
        fmt: str = DEFAULT_TIME_FORMAT,
    ) -> str:
        """Format an aware datetime in the given IANA time zone."""
        if value is None:
            return ""
        if not isinstance(value, datetime):
            raise TypeError(f"format_time expects a datetime, got {type(value).__name__}")
        return value.astimezone(ZoneInfo(tz or default_timezone)).strftime(fmt)

    return format_time


class MessageRenderer:
    """
    Renders alerts through a Jinja2 template and splits the output.

    Templates see the alert's fields as top-level variables (``status``,
    ``labels``, ``annotations``, ``starts_at``, ``ends_at``,
    ``generator_url``, ``fingerprint``) and the alert itself as ``alert``.

    Helpers (both filters and globals):
        title_case, to_upper, contains, re_replace_all, format_time

    Usage:
        renderer = MessageRenderer(template_path="message.j2")
        chunks = renderer.prepare(alert)
    """

    def __init__(
        self,
        template_path: str | Path | None = None,
        template_source: str | None = None,
        max_size: int = MAX_MESSAGE_SIZE,
        default_timezone: str = "UTC",
    ):
        """
        Parse the template once.

        Args:
            template_path: Template file. Uses the bundled template if None.
            template_source: Inline template text, takes precedence over path.
            max_size: Maximum chunk size in bytes.
            default_timezone: IANA zone used by ``format_time`` when none is given.

        Raises:
            ConfigurationError: Template missing or syntactically invalid, or
                unknown default time zone.
        """
        if max_size <= 0:
            raise ConfigurationError(f"max_size must be positive, got {max_size}")
        try:
            ZoneInfo(default_timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ConfigurationError(f"unknown time zone {default_timezone!r}") from e

        self._max_size = max_size
        self._env = jinja2.Environment(
            autoescape=False,
            keep_trailing_newline=False,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        helpers = {
            "title_case": title_case,
            "to_upper": to_upper,
            "contains": contains,
            "re_replace_all": re_replace_all,
            "format_time": _make_format_time(default_timezone),
        }
        self._env.filters.update(helpers)
        self._env.globals.update(helpers)

        if template_source is None:
            path = Path(template_path) if template_path else DEFAULT_TEMPLATE_PATH
            try:
                template_source = path.read_text(encoding="utf-8")
            except OSError as e:
                raise ConfigurationError(f"error reading template {path}: {e}") from e
            self._template_name = path.name
        else:
            self._template_name = "<inline>"

        try:
            self._template = self._env.from_string(template_source)
        except jinja2.TemplateSyntaxError as e:
            raise ConfigurationError(
                f"error parsing template {self._template_name}: {e}"
            ) from e

    @property
    def max_size(self) -> int:
        return self._max_size

    def render(self, alert: Alert) -> str:
        """
        Render one alert to text.

        Raises:
            RenderError: Template execution failed for this alert.
        """
        try:
            return self._template.render(
                alert=alert,
                fingerprint=alert.fingerprint,
                status=alert.status,
                labels=alert.labels,
                annotations=alert.annotations,
                starts_at=alert.starts_at,
                ends_at=alert.ends_at,
                generator_url=alert.generator_url,
            )
        except Exception as e:
            raise RenderError(
                f"error rendering template {self._template_name}: {e}",
                fingerprint=alert.fingerprint,
            ) from e

    def split(self, texts: list[str]) -> list[Chunk]:
        """
        Pack rendered texts into chunks below ``max_size``.

        Each text is followed by a newline. The buffer is flushed before an
        append that would make it reach the limit; the last non-empty buffer
        is always flushed.
        """
        chunks: list[Chunk] = []
        buffer: list[str] = []
        buffer_size = 0

        for text in texts:
            piece = text + "\n"
            piece_size = len(piece.encode("utf-8"))

            if buffer and buffer_size + piece_size >= self._max_size:
                chunks.append(Chunk(text="".join(buffer)))
                buffer = []
                buffer_size = 0

            buffer.append(piece)
            buffer_size += piece_size

        if buffer:
            chunks.append(Chunk(text="".join(buffer)))

        oversized = [c.size for c in chunks if c.size >= self._max_size]
        if oversized:
            logger.warning(
                "Rendered alert exceeds message size limit",
                sizes=oversized,
                max_size=self._max_size,
            )
        return chunks

    def prepare(self, alert: Alert) -> list[Chunk]:
        """
        Render a single alert into chunks.

        Raises:
            RenderError: Template execution failed.
        """
        return self.split([self.render(alert)])

    def prepare_batch(self, alerts: list[Alert]) -> tuple[list[Chunk], list[RenderError]]:
        """
        Render a batch into an ordered chunk sequence.

        A failing alert is skipped and its error collected; its siblings are
        still rendered.

        Returns:
            (chunks, errors)
        """
        texts: list[str] = []
        errors: list[RenderError] = []

        for alert in alerts:
            try:
                texts.append(self.render(alert))
            except RenderError as e:
                logger.error(
                    "Error preparing message",
                    fingerprint=alert.fingerprint,
                    error=str(e),
                )
                errors.append(e)

        return self.split(texts), errors
