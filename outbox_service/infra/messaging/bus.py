"""Message bus abstraction and its RabbitMQ implementation.

The publisher only depends on the ``MessageBus`` protocol. In production
``RabbitMessageBus`` delivers events through a FastStream ``RabbitBroker``
to a durable topic exchange, routed by ``event_type``.

Usage:
    broker = create_rabbit_broker(get_rabbit_settings())
    bus = RabbitMessageBus(broker, exchange_name="integration-events")
    await bus.start()
    await bus.publish(OrderPlacedIntegrationEvent(order_id="O1"))
    await bus.stop()
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from faststream.rabbit import ExchangeType, RabbitBroker, RabbitExchange

if TYPE_CHECKING:
    from outbox_service.core.events.base import IntegrationEvent
    from outbox_service.core.settings import RabbitSettings

logger = logging.getLogger(__name__)


@runtime_checkable
class MessageBus(Protocol):
    """Delivers integration events to other services.

    ``publish`` must raise on any failure so the caller can fall back to
    the outbox.
    """

    async def publish(self, event: IntegrationEvent) -> None: ...


class MessageBusUnavailableError(ConnectionError):
    """The bus has no broker connection."""


def create_rabbit_broker(settings: RabbitSettings) -> RabbitBroker | None:
    """Build a FastStream RabbitBroker from settings.

    Returns:
        The (not yet connected) broker, or None when RabbitMQ is not configured.
    """
    if not settings.is_configured:
        logger.warning("RabbitMQ not configured - integration events go to the outbox only")
        return None

    return RabbitBroker(
        settings.get_url(),
        graceful_timeout=settings.graceful_timeout,
        publisher_confirms=settings.publisher_confirms,
        logger=logger,
    )


def build_exchange(name: str) -> RabbitExchange:
    """Durable topic exchange for integration events."""
    return RabbitExchange(
        name=name,
        type=ExchangeType.TOPIC,
        durable=True,
        auto_delete=False,
    )


class RabbitMessageBus:
    """MessageBus backed by a FastStream RabbitBroker.

    The message body is the masked wire payload; routing key, message id,
    correlation id and event headers are set from the event.
    """

    def __init__(
        self,
        broker: RabbitBroker,
        *,
        exchange_name: str,
        connection_timeout: float = 10.0,
    ) -> None:
        self.broker = broker
        self.exchange = build_exchange(exchange_name)
        self._connection_timeout = connection_timeout
        self._connected = False

    @classmethod
    def from_settings(cls, broker: RabbitBroker, settings: RabbitSettings) -> RabbitMessageBus:
        return cls(
            broker,
            exchange_name=settings.exchange_name,
            connection_timeout=settings.connection_timeout,
        )

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def start(self) -> None:
        """Connect the broker and declare the exchange.

        Raises:
            ConnectionError: The broker did not answer within the timeout.
        """
        if self._connected:
            return

        logger.info("Connecting to RabbitMQ", extra={"exchange": self.exchange.name})
        try:
            await asyncio.wait_for(self.broker.connect(), timeout=self._connection_timeout)
        except TimeoutError:
            error_msg = f"RabbitMQ connection timeout after {self._connection_timeout}s"
            logger.error(error_msg, extra={"exchange": self.exchange.name})
            raise ConnectionError(error_msg) from None

        await self.broker.declare_exchange(self.exchange)
        self._connected = True
        logger.info("RabbitMQ message bus ready", extra={"exchange": self.exchange.name})

    async def stop(self) -> None:
        if not self._connected:
            return
        logger.info("Closing RabbitMQ connection")
        try:
            await self.broker.close()
        except Exception as e:
            logger.exception("Error closing RabbitMQ connection", extra={"error": str(e)})
        finally:
            self._connected = False

    async def publish(self, event: IntegrationEvent) -> None:
        """Publish the event to the exchange.

        Raises:
            MessageBusUnavailableError: ``start()`` has not completed.
        """
        if not self._connected:
            raise MessageBusUnavailableError("RabbitMQ message bus is not connected")

        await self.broker.publish(
            event.to_wire_payload(),
            exchange=self.exchange,
            routing_key=event.routing_key,
            message_id=event.event_id,
            correlation_id=event.correlation_id,
            headers=event.headers(),
            persist=True,
        )


class UnavailableMessageBus:
    """MessageBus used when no broker is configured.

    Every publish fails, so events are parked in the outbox until a broker
    is configured and the relay delivers them.
    """

    async def publish(self, event: IntegrationEvent) -> None:
        raise MessageBusUnavailableError("No message broker configured")


__all__ = [
    "MessageBus",
    "MessageBusUnavailableError",
    "RabbitMessageBus",
    "UnavailableMessageBus",
    "build_exchange",
    "create_rabbit_broker",
]
