"""
HTTP delivery of message chunks to a chat webhook.

Provides:
- RetryConfig: Bounded exponential backoff and the retryable-status policy
- DeliveryOptions: Per-room transport and retry settings
- DeliveryClient: Async client posting one chunk per request, with optional
  thread key query parameters

The retry policy follows the usual transient-failure rules (connection
errors, timeouts, 5xx other than 501) and also retries 429, since Google
Chat rate limits webhook posts aggressively.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog

from alertrelay.alerts.errors import DeliveryError
from alertrelay.alerts.rendering import Chunk

logger = structlog.get_logger(__name__)

REPLY_FALLBACK_TO_NEW_THREAD = "REPLY_MESSAGE_FALLBACK_TO_NEW_THREAD"


@dataclass
class RetryConfig:
    """
    Bounded exponential backoff for webhook retries.

    Formula: min(wait_max, wait_min * 2^attempt). A numeric ``Retry-After``
    on 429/503 overrides the computed wait, still capped at ``wait_max``.
    """

    retry_max: int = 3
    wait_min: float = 1.0
    wait_max: float = 5.0

    def calculate_backoff(
        self,
        attempt: int,
        response: httpx.Response | None = None,
    ) -> float:
        """
        Wait before the retry following ``attempt`` (0-indexed).

        Args:
            attempt: The attempt that just failed.
            response: The failed response, if any, for Retry-After.

        Returns:
            Seconds to sleep.
        """
        if response is not None and response.status_code in (429, 503):
            retry_after = response.headers.get("Retry-After", "")
            if retry_after.isdigit():
                return min(float(retry_after), self.wait_max)

        return min(self.wait_min * (2**attempt), self.wait_max)

    def is_retryable_status(self, status_code: int) -> bool:
        """
        Check if an HTTP status code should trigger a retry.

        429 plus every 5xx except 501 Not Implemented.
        """
        if status_code == 429:
            return True
        return status_code >= 500 and status_code != 501

    def is_retryable_exception(self, exc: Exception) -> bool:
        """Transport-level failures that are worth another attempt."""
        return isinstance(exc, httpx.TransportError)


@dataclass
class DeliveryOptions:
    """Transport settings for one room's webhook."""

    timeout: float = 30.0
    max_idle_conns: int = 50
    proxy_url: str | None = None
    retry: RetryConfig = field(default_factory=RetryConfig)


class DeliveryClient:
    """
    Posts chunks to a chat webhook with retry.

    Holds one pooled ``httpx.AsyncClient`` for the room; call ``aclose()``
    (or use as an async context manager) on shutdown.

    Example:
        async with DeliveryClient(endpoint, DeliveryOptions()) as client:
            await client.send(Chunk(text="hello"), thread_key=token)
    """

    def __init__(
        self,
        endpoint: str,
        options: DeliveryOptions | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the client.

        Args:
            endpoint: Webhook URL (may already carry key/token params).
            options: Timeout, pooling, proxy and retry settings.
            transport: Custom transport (tests).
        """
        self.endpoint = endpoint
        self.options = options or DeliveryOptions()
        self.retry_config = self.options.retry

        client_kwargs: dict[str, Any] = {
            "timeout": self.options.timeout,
            "limits": httpx.Limits(
                max_keepalive_connections=self.options.max_idle_conns,
            ),
        }
        if transport is not None:
            client_kwargs["transport"] = transport
        elif self.options.proxy_url:
            client_kwargs["proxy"] = self.options.proxy_url

        self._client = httpx.AsyncClient(**client_kwargs)

    async def __aenter__(self) -> "DeliveryClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close pooled connections."""
        await self._client.aclose()

    @staticmethod
    def thread_params(thread_key: str | None) -> dict[str, str]:
        """Query parameters that place a message in a thread."""
        if thread_key is None:
            return {}
        return {
            "threadKey": thread_key,
            "messageReplyOption": REPLY_FALLBACK_TO_NEW_THREAD,
        }

    async def send(self, chunk: Chunk, thread_key: str | None = None) -> httpx.Response:
        """
        Deliver one chunk.

        Args:
            chunk: Message chunk to post.
            thread_key: Correlation token; None starts a new thread.

        Returns:
            The HTTP 200 response.

        Raises:
            DeliveryError: Non-200 response or transport failure after
                retries were exhausted, or a non-retryable status.
        """
        url = httpx.URL(self.endpoint)
        params = self.thread_params(thread_key)
        if params:
            url = url.copy_merge_params(params)

        payload = chunk.to_payload()
        max_attempts = self.retry_config.retry_max + 1

        logger.debug("Sending alert", url=str(url), size=chunk.size)

        for attempt in range(max_attempts):
            is_last = attempt == max_attempts - 1
            try:
                response = await self._client.post(
                    url,
                    json=payload,
                    headers={"Content-Type": "application/json"},
                )
            except httpx.HTTPError as e:
                if not self.retry_config.is_retryable_exception(e):
                    raise DeliveryError(f"Request to webhook failed: {e}") from e
                if is_last:
                    raise DeliveryError(
                        f"Request to webhook failed after {attempt + 1} attempts: {e}",
                    ) from e

                backoff = self.retry_config.calculate_backoff(attempt)
                logger.warning(
                    "Retryable webhook error, backing off",
                    error_type=type(e).__name__,
                    attempt=attempt + 1,
                    max_attempts=max_attempts,
                    backoff=round(backoff, 3),
                )
                await asyncio.sleep(backoff)
                continue

            if response.status_code == 200:
                if attempt > 0:
                    logger.info("Chunk delivered after retry", attempt=attempt + 1)
                return response

            if self.retry_config.is_retryable_status(response.status_code) and not is_last:
                backoff = self.retry_config.calculate_backoff(attempt, response)
                logger.warning(
                    "Retryable webhook status, backing off",
                    status=response.status_code,
                    attempt=attempt + 1,
                    max_attempts=max_attempts,
                    backoff=round(backoff, 3),
                )
                await asyncio.sleep(backoff)
                continue

            logger.error(
                "Non OK HTTP response received from webhook endpoint",
                status=response.status_code,
                body=response.text,
                attempts=attempt + 1,
            )
            raise DeliveryError(
                f"Webhook returned status {response.status_code} after {attempt + 1} attempts",
                status_code=response.status_code,
                response_body=response.text,
            )

        # Unreachable: every iteration returns, continues or raises.
        raise DeliveryError(f"Webhook delivery failed after {max_attempts} attempts")
