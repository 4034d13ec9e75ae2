"""Room router mapping room names to providers.

Built once at startup and never mutated afterwards, so lookups need no
locking. When two providers claim the same room the later one wins.
"""

import structlog

from alertrelay.alerts.errors import RoutingError
from alertrelay.alerts.providers import Provider
from alertrelay.alerts.schemas import Alert

NAMESPACED_ROOM_HINT = (
    " (hint: the upstream receiver name may be prefixed, e.g. Kubernetes "
    "AlertmanagerConfig uses namespace/config-name/receiver; pass the room "
    "explicitly with the ?room_name= query param instead)"
)


class RoomRouter:
    """Dispatches alert batches to the provider registered for a room."""

    def __init__(
        self,
        providers: list[Provider],
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._logger = logger or structlog.get_logger(__name__)
        self._providers: dict[str, Provider] = {}
        for provider in providers:
            if provider.room in self._providers:
                self._logger.warning(
                    "Duplicate room registration, later provider wins",
                    room=provider.room,
                )
            self._providers[provider.room] = provider

    @property
    def rooms(self) -> list[str]:
        """Registered room names, sorted."""
        return sorted(self._providers)

    def get(self, room: str) -> Provider | None:
        return self._providers.get(room)

    def start(self) -> None:
        """Start every provider's background tasks."""
        for provider in self._providers.values():
            provider.start()

    async def stop(self) -> None:
        """Stop every provider, logging rather than raising on failure."""
        for provider in self._providers.values():
            try:
                await provider.stop()
            except Exception as e:
                self._logger.warning(
                    "Error stopping provider",
                    room=provider.room,
                    error=str(e),
                )

    async def dispatch(self, alerts: list[Alert], room: str) -> None:
        """
        Push alerts to the provider registered for ``room``.

        Args:
            alerts: Alerts to deliver.
            room: Target room name.

        Raises:
            RoutingError: No provider is registered for ``room``.
        """
        self._logger.info("Dispatching alerts", room=room, count=len(alerts))

        provider = self._providers.get(room)
        if provider is None:
            available = self.rooms
            self._logger.error(
                "No provider available for room",
                room=room,
                available_rooms=available,
            )
            hint = NAMESPACED_ROOM_HINT if "/" in room else ""
            raise RoutingError(
                f"no provider configured for room: {room}, available: {available}{hint}",
                room=room,
                available_rooms=available,
            )

        await provider.push(alerts)
