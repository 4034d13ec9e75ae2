"""Room providers that push alerts to a chat backend.

Provides an ABC for providers plus the Google Chat implementation. The
router only relies on the ABC (``id``, ``room``, ``push``, lifecycle), so
another chat backend can be added as a new subclass.

Pattern: Composition. ``GoogleChatProvider`` wires a correlation store,
message renderer, delivery client and expiry sweeper for one room.
"""

import time
from abc import ABC, abstractmethod

import structlog

from alertrelay.alerts.config import ProviderConfig
from alertrelay.alerts.correlation import CorrelationStore
from alertrelay.alerts.delivery import DeliveryClient
from alertrelay.alerts.errors import ConfigurationError, DeliveryError, RenderError
from alertrelay.alerts.rendering import MessageRenderer
from alertrelay.alerts.schemas import Alert
from alertrelay.alerts.sweeper import ExpirySweeper
from alertrelay.observability.metrics import MetricsCollector


class Provider(ABC):
    """Abstract base for chat providers serving one room."""

    @property
    @abstractmethod
    def id(self) -> str:
        """Backend name (e.g. 'google_chat')."""

    @property
    @abstractmethod
    def room(self) -> str:
        """Room name this provider is configured for."""

    @abstractmethod
    async def push(self, alerts: list[Alert]) -> None:
        """Deliver a batch of alerts.

        Per-alert and per-chunk failures are absorbed and reported through
        logs and metrics; only systemic errors are raised.

        Args:
            alerts: Alerts to deliver, in order.
        """

    def start(self) -> None:
        """Start background tasks. Requires a running event loop."""

    async def stop(self) -> None:
        """Stop background tasks and release resources."""


class GoogleChatProvider(Provider):
    """Delivers alerts to a Google Chat space via incoming webhook.

    Each alert's fingerprint is mapped to a correlation token. With
    threaded replies enabled, the token is sent as ``threadKey`` so every
    update of the alert lands in the same thread until the token expires.
    """

    def __init__(
        self,
        room: str,
        renderer: MessageRenderer,
        client: DeliveryClient,
        store: CorrelationStore | None = None,
        sweeper: ExpirySweeper | None = None,
        metrics: MetricsCollector | None = None,
        dry_run: bool = False,
        threaded_replies: bool = False,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        if not room:
            raise ConfigurationError("provider room name must not be empty")
        self._room = room
        self._renderer = renderer
        self._client = client
        self._store = store if store is not None else CorrelationStore()
        self._sweeper = sweeper
        self._metrics = metrics or MetricsCollector()
        if sweeper is not None:
            sweeper.on_pruned = self._record_active_alerts
        self._dry_run = dry_run
        self._threaded_replies = threaded_replies
        self._logger = (logger or structlog.get_logger(__name__)).bind(
            provider=self.id, room=room,
        )

    @classmethod
    def from_config(
        cls,
        room: str,
        config: ProviderConfig,
        metrics: MetricsCollector | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> "GoogleChatProvider":
        """
        Build a provider and its collaborators from room configuration.

        Raises:
            ConfigurationError: Missing endpoint, unusable template, or a
                proxy the HTTP client rejects.
        """
        if not config.endpoint:
            raise ConfigurationError(f"room {room!r} has no endpoint")

        metrics = metrics or MetricsCollector()
        renderer = MessageRenderer(
            template_path=config.template or None,
            max_size=config.max_message_size,
            default_timezone=config.timezone,
        )
        try:
            client = DeliveryClient(config.endpoint, config.delivery_options())
        except (ValueError, ImportError) as e:
            raise ConfigurationError(f"room {room!r}: cannot build HTTP client: {e}") from e
        store = CorrelationStore()
        return cls(
            room=room,
            renderer=renderer,
            client=client,
            store=store,
            sweeper=ExpirySweeper(
                store,
                ttl=config.thread_ttl,
                interval=config.prune_interval,
                metrics=metrics,
                name=f"expiry-sweeper-{room}",
            ),
            metrics=metrics,
            dry_run=config.dry_run,
            threaded_replies=config.threaded_replies,
            logger=logger,
        )

    @property
    def id(self) -> str:
        return "google_chat"

    @property
    def room(self) -> str:
        return self._room

    @property
    def store(self) -> CorrelationStore:
        """Correlation store (for inspection/testing)."""
        return self._store

    def start(self) -> None:
        if self._sweeper is not None:
            self._sweeper.start()

    async def stop(self) -> None:
        if self._sweeper is not None:
            await self._sweeper.stop()
        await self._client.aclose()

    async def push(self, alerts: list[Alert]) -> None:
        self._logger.info("Dispatching alerts to google chat", count=len(alerts))

        for alert in alerts:
            start = time.perf_counter()
            self._metrics.record_dispatch(self.id, self.room)

            token = self._store.get_or_create(alert.fingerprint, alert.starts_at)

            try:
                chunks = self._renderer.prepare(alert)
            except RenderError as e:
                self._logger.error(
                    "Error preparing message",
                    fingerprint=alert.fingerprint,
                    error=str(e),
                )
                self._metrics.record_dispatch_error(self.id, self.room, reason="preparing")
                continue

            thread_key = token if self._threaded_replies else None
            for chunk in chunks:
                if self._dry_run:
                    self._logger.info(
                        "dry_run is enabled for this room, skipping pushing notification",
                        fingerprint=alert.fingerprint,
                        text=chunk.text,
                    )
                    continue
                try:
                    await self._client.send(chunk, thread_key=thread_key)
                except DeliveryError as e:
                    self._logger.error(
                        "Error sending message",
                        fingerprint=alert.fingerprint,
                        status=e.status_code,
                        error=str(e),
                    )
                    self._metrics.record_dispatch_error(self.id, self.room, reason="sending")

            self._metrics.record_dispatch_duration(
                self.id, self.room, time.perf_counter() - start,
            )

        self._record_active_alerts(len(self._store))

    def _record_active_alerts(self, count: int) -> None:
        self._metrics.set_active_alerts(self.id, self.room, count)


def build_providers(
    configs: dict[str, ProviderConfig],
    metrics: MetricsCollector | None = None,
) -> list[Provider]:
    """
    Build one provider per configured room.

    Raises:
        ConfigurationError: No rooms configured, or a room cannot be built.
    """
    if not configs:
        raise ConfigurationError("no providers listed in config")

    logger = structlog.get_logger(__name__)
    providers: list[Provider] = []
    for room, config in configs.items():
        if config.type == "google_chat":
            provider = GoogleChatProvider.from_config(room, config, metrics=metrics)
        else:
            raise ConfigurationError(f"unknown provider type {config.type!r} for room {room!r}")
        logger.info("Initialised provider", room=provider.room, provider=provider.id)
        providers.append(provider)
    return providers
