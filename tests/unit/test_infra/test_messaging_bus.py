"""Unit tests for the message bus implementations."""
from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from faststream.rabbit import ExchangeType, RabbitBroker

from outbox_service.core.settings import RabbitSettings
from outbox_service.infra.messaging import (
    MessageBus,
    MessageBusUnavailableError,
    RabbitMessageBus,
    UnavailableMessageBus,
    create_rabbit_broker,
)
from outbox_service.infra.messaging.bus import build_exchange
from tests.fixtures.events import CardDetails, PaymentCapturedIntegrationEvent


@pytest.fixture
def broker() -> MagicMock:
    broker = MagicMock(spec=RabbitBroker)
    broker.connect = AsyncMock()
    broker.declare_exchange = AsyncMock()
    broker.publish = AsyncMock()
    broker.close = AsyncMock()
    return broker


@pytest.fixture
def rabbit_bus(broker) -> RabbitMessageBus:
    return RabbitMessageBus(broker, exchange_name="integration-events", connection_timeout=0.1)


class TestBrokerFactory:
    def test_disabled_returns_none(self):
        assert create_rabbit_broker(RabbitSettings(enabled=False)) is None

    def test_configured_returns_broker(self):
        broker = create_rabbit_broker(RabbitSettings(enabled=True, host="rabbit.local"))

        assert isinstance(broker, RabbitBroker)

    def test_exchange_is_durable_topic(self):
        exchange = build_exchange("integration-events")

        assert exchange.name == "integration-events"
        assert exchange.type == ExchangeType.TOPIC
        assert exchange.durable is True


class TestRabbitMessageBus:
    def test_satisfies_protocol(self, rabbit_bus):
        assert isinstance(rabbit_bus, MessageBus)
        assert isinstance(UnavailableMessageBus(), MessageBus)

    def test_from_settings(self, broker):
        settings = RabbitSettings(exchange_name="orders", connection_timeout=3.0)

        bus = RabbitMessageBus.from_settings(broker, settings)

        assert bus.exchange.name == "orders"
        assert bus.is_connected is False

    @pytest.mark.asyncio
    async def test_publish_before_start_raises(self, rabbit_bus, order_event, broker):
        with pytest.raises(MessageBusUnavailableError):
            await rabbit_bus.publish(order_event)

        broker.publish.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_start_connects_and_declares_exchange(self, rabbit_bus, broker):
        await rabbit_bus.start()
        await rabbit_bus.start()

        broker.connect.assert_awaited_once()
        broker.declare_exchange.assert_awaited_once_with(rabbit_bus.exchange)
        assert rabbit_bus.is_connected

    @pytest.mark.asyncio
    async def test_start_timeout_raises_connection_error(self, rabbit_bus, broker):
        async def hang():
            await asyncio.sleep(5)

        broker.connect.side_effect = hang

        with pytest.raises(ConnectionError, match="timeout"):
            await rabbit_bus.start()

        assert rabbit_bus.is_connected is False
        broker.declare_exchange.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_publish_sets_routing_and_headers(self, rabbit_bus, broker, order_event):
        await rabbit_bus.start()

        await rabbit_bus.publish(order_event)

        broker.publish.assert_awaited_once()
        body = broker.publish.await_args.args[0]
        kwargs = broker.publish.await_args.kwargs
        assert body["order_id"] == "O1"
        assert kwargs["exchange"] is rabbit_bus.exchange
        assert kwargs["routing_key"] == "order.placed"
        assert kwargs["message_id"] == "E1"
        assert kwargs["correlation_id"] == "corr-1"
        assert kwargs["headers"]["x-event-type"] == "order.placed"
        assert kwargs["persist"] is True

    @pytest.mark.asyncio
    async def test_publish_masks_sensitive_fields(self, rabbit_bus, broker):
        await rabbit_bus.start()
        event = PaymentCapturedIntegrationEvent(
            payment_id="P1",
            card=CardDetails(holder="Ada", number="4111111111111111"),
            cvv="123",
        )

        await rabbit_bus.publish(event)

        body = broker.publish.await_args.args[0]
        assert body["card"]["number"] == "****"
        assert body["cvv"] == "***"
        assert body["card"]["holder"] == "Ada"

    @pytest.mark.asyncio
    async def test_broker_errors_propagate(self, rabbit_bus, broker, order_event):
        await rabbit_bus.start()
        broker.publish.side_effect = ConnectionResetError("channel closed")

        with pytest.raises(ConnectionResetError):
            await rabbit_bus.publish(order_event)

    @pytest.mark.asyncio
    async def test_stop_closes_broker_once(self, rabbit_bus, broker):
        await rabbit_bus.start()

        await rabbit_bus.stop()
        await rabbit_bus.stop()

        broker.close.assert_awaited_once()
        assert rabbit_bus.is_connected is False

    @pytest.mark.asyncio
    async def test_stop_swallows_close_errors(self, rabbit_bus, broker):
        await rabbit_bus.start()
        broker.close.side_effect = RuntimeError("already closed")

        await rabbit_bus.stop()

        assert rabbit_bus.is_connected is False


class TestUnavailableMessageBus:
    @pytest.mark.asyncio
    async def test_publish_always_fails(self, order_event):
        with pytest.raises(MessageBusUnavailableError):
            await UnavailableMessageBus().publish(order_event)
