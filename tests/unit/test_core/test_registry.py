"""Unit tests for the integration event registry."""
from __future__ import annotations

import json
from decimal import Decimal

import pytest

from outbox_service.core.events import EventRegistry, IntegrationEvent
from outbox_service.core.exceptions import EventReconstructionError
from tests.fixtures.events import (
    CardDetails,
    OrderPlacedIntegrationEvent,
    OrderPlacedIntegrationEventV2,
    PaymentCapturedIntegrationEvent,
)


class TestEventRegistration:
    """Tests for registering event classes."""

    def test_register_event(self):
        registry = EventRegistry()
        registry.register(OrderPlacedIntegrationEvent)

        assert "order.placed" in registry
        assert registry.get("order.placed") is OrderPlacedIntegrationEvent

    def test_register_as_decorator(self):
        registry = EventRegistry()

        @registry.register
        class ItemAdded(IntegrationEvent):
            event_type = "item.added"
            item_id: str

        assert registry.get("item.added") is ItemAdded

    def test_register_as_decorator_with_parentheses(self):
        registry = EventRegistry()
        registry.register()(OrderPlacedIntegrationEvent)

        assert registry.get("order.placed") is OrderPlacedIntegrationEvent

    def test_register_is_idempotent(self):
        registry = EventRegistry()
        registry.register(OrderPlacedIntegrationEvent)
        registry.register(OrderPlacedIntegrationEvent)

        assert len(registry) == 1

    def test_conflicting_registration_raises(self):
        registry = EventRegistry()
        registry.register(OrderPlacedIntegrationEvent)

        class OtherOrderPlaced(OrderPlacedIntegrationEvent):
            event_type = "order.placed"

        with pytest.raises(ValueError, match="already registered"):
            registry.register(OtherOrderPlaced)

    def test_multiple_versions(self):
        registry = EventRegistry()
        registry.register(OrderPlacedIntegrationEvent)
        registry.register(OrderPlacedIntegrationEventV2)

        assert registry.get("order.placed", 1) is OrderPlacedIntegrationEvent
        assert registry.get("order.placed") is OrderPlacedIntegrationEventV2
        assert registry.list_versions("order.placed") == [1, 2]

    def test_get_unknown_event(self):
        assert EventRegistry().get("nope") is None

    def test_get_or_raise_unknown_event(self):
        with pytest.raises(KeyError, match="nope"):
            EventRegistry().get_or_raise("nope", 3)

    def test_list_types_and_clear(self, registry: EventRegistry):
        assert sorted(registry.list_types()) == ["order.placed", "payment.captured"]

        registry.clear()

        assert len(registry) == 0


class TestReconstruct:
    """Tests for rebuilding typed events from stored payloads."""

    def test_round_trip(self, registry: EventRegistry):
        """Stored payload reconstructs to an equal event."""
        event = OrderPlacedIntegrationEvent(
            order_id="O1",
            total=Decimal("99.95"),
            correlation_id="corr-1",
            metadata={"source": "web"},
        )

        rebuilt = registry.reconstruct(event.event_type, event.to_outbox_payload())

        assert rebuilt == event
        assert type(rebuilt) is OrderPlacedIntegrationEvent

    def test_round_trip_keeps_sensitive_values(self, registry: EventRegistry):
        """Masking applies to the wire only, never to the stored payload."""
        event = PaymentCapturedIntegrationEvent(
            payment_id="P1",
            card=CardDetails(holder="Ada", number="4111111111111111"),
            cvv="123",
        )

        rebuilt = registry.reconstruct(event.event_type, event.to_outbox_payload())

        assert rebuilt == event
        assert rebuilt.card.number == "4111111111111111"

    def test_reconstruct_from_mapping(self, registry: EventRegistry):
        event = OrderPlacedIntegrationEvent(order_id="O1")
        payload = json.loads(event.to_outbox_payload())

        assert registry.reconstruct("order.placed", payload) == event

    def test_missing_version_falls_back_to_latest(self, registry: EventRegistry):
        event = OrderPlacedIntegrationEvent(order_id="O1")

        rebuilt = registry.reconstruct("order.placed", event.to_outbox_payload(), version=7)

        assert rebuilt.event_id == event.event_id

    def test_exact_version_is_preferred(self):
        registry = EventRegistry()
        registry.register(OrderPlacedIntegrationEvent)
        registry.register(OrderPlacedIntegrationEventV2)
        event = OrderPlacedIntegrationEvent(order_id="O1")

        rebuilt = registry.reconstruct("order.placed", event.to_outbox_payload(), version=1)

        assert type(rebuilt) is OrderPlacedIntegrationEvent

    def test_unknown_type_raises(self, registry: EventRegistry):
        with pytest.raises(EventReconstructionError) as exc_info:
            registry.reconstruct("order.cancelled", "{}")

        assert exc_info.value.event_type == "order.cancelled"

    def test_corrupt_json_raises(self, registry: EventRegistry):
        with pytest.raises(EventReconstructionError):
            registry.reconstruct("order.placed", "{not json")

    def test_schema_mismatch_raises(self, registry: EventRegistry):
        with pytest.raises(EventReconstructionError, match="does not match"):
            registry.reconstruct("order.placed", json.dumps({"event_id": "E1"}))
