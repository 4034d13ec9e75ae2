"""Alert correlation and delivery engine.

Components:
- Alert: Frozen dataclass for one Alertmanager alert
- CorrelationStore: Fingerprint → thread token map with TTL pruning
- MessageRenderer / Chunk: Jinja2 rendering and size-bounded splitting
- DeliveryClient / RetryConfig: Webhook POST with 429-aware retry
- ExpirySweeper: Background prune task with explicit stop
- Provider / GoogleChatProvider: One room's composed pipeline
- RoomRouter: Room name → provider dispatch
- RelayError and subclasses: Error taxonomy
"""

from alertrelay.alerts.config import ProviderConfig
from alertrelay.alerts.correlation import CorrelationEntry, CorrelationStore
from alertrelay.alerts.delivery import DeliveryClient, DeliveryOptions, RetryConfig
from alertrelay.alerts.errors import (
    ConfigurationError,
    DeliveryError,
    RelayError,
    RenderError,
    RoutingError,
)
from alertrelay.alerts.providers import GoogleChatProvider, Provider, build_providers
from alertrelay.alerts.rendering import Chunk, MessageRenderer
from alertrelay.alerts.routing import RoomRouter
from alertrelay.alerts.schemas import VALID_STATUSES, Alert, AlertStatus
from alertrelay.alerts.sweeper import ExpirySweeper

__all__ = [
    "Alert",
    "AlertStatus",
    "Chunk",
    "ConfigurationError",
    "CorrelationEntry",
    "CorrelationStore",
    "DeliveryClient",
    "DeliveryError",
    "DeliveryOptions",
    "ExpirySweeper",
    "GoogleChatProvider",
    "MessageRenderer",
    "Provider",
    "ProviderConfig",
    "RelayError",
    "RenderError",
    "RetryConfig",
    "RoomRouter",
    "RoutingError",
    "VALID_STATUSES",
    "build_providers",
]
