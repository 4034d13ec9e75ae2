"""Exception taxonomy for alert relaying.

Only ``ConfigurationError`` and ``RoutingError`` ever cross a provider
boundary. ``RenderError`` and ``DeliveryError`` are absorbed inside
``Provider.push`` and surface through logs and metrics.
"""


class RelayError(Exception):
    """Base exception for all alert relay errors."""


class ConfigurationError(RelayError):
    """Missing or invalid room configuration, raised at startup."""


class RoutingError(RelayError):
    """No provider is registered for the requested room."""

    def __init__(self, message: str, room: str, available_rooms: list[str]):
        super().__init__(message)
        self.room = room
        self.available_rooms = available_rooms


class RenderError(RelayError):
    """Template execution failed for a single alert."""

    def __init__(self, message: str, fingerprint: str | None = None):
        super().__init__(message)
        self.fingerprint = fingerprint


class DeliveryError(RelayError):
    """A chunk could not be delivered after the retry budget was spent."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body
