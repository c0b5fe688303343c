"""Unit tests for sensitive field masking."""
from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel

from outbox_service.core.events.security import (
    DEFAULT_MASK,
    SensitiveData,
    mask_sensitive_fields,
    sensitive_field_names,
)
from tests.fixtures.events import CardDetails, PaymentCapturedIntegrationEvent


def _payment(**overrides) -> PaymentCapturedIntegrationEvent:
    data = {
        "payment_id": "P1",
        "card": CardDetails(holder="Ada Lovelace", number="4111111111111111"),
        "cvv": "123",
    }
    data.update(overrides)
    return PaymentCapturedIntegrationEvent(**data)


class TestMaskSensitiveFields:
    """Tests for mask_sensitive_fields()."""

    def test_marked_fields_are_masked(self):
        payload = mask_sensitive_fields(_payment())

        assert payload["cvv"] == "***"
        assert payload["card"]["number"] == DEFAULT_MASK

    def test_unmarked_fields_are_kept(self):
        payload = mask_sensitive_fields(_payment())

        assert payload["payment_id"] == "P1"
        assert payload["card"]["holder"] == "Ada Lovelace"

    def test_none_values_stay_none(self):
        payload = mask_sensitive_fields(_payment(cvv=None))

        assert payload["cvv"] is None

    def test_lists_of_models_are_masked(self):
        event = _payment(
            previous_cards=[
                CardDetails(holder="Ada", number="5500000000000004"),
                CardDetails(holder="Ada", number="340000000000009"),
            ]
        )

        payload = mask_sensitive_fields(event)

        assert [card["number"] for card in payload["previous_cards"]] == [DEFAULT_MASK, DEFAULT_MASK]

    def test_model_itself_is_not_modified(self):
        event = _payment()
        mask_sensitive_fields(event)

        assert event.card.number == "4111111111111111"

    def test_wire_payload_is_masked_and_outbox_payload_is_not(self):
        event = _payment()

        assert event.to_wire_payload()["card"]["number"] == DEFAULT_MASK
        assert "4111111111111111" in event.to_outbox_payload()

    def test_plain_model_without_markers(self):
        class Plain(BaseModel):
            name: str

        assert mask_sensitive_fields(Plain(name="x")) == {"name": "x"}


class TestSensitiveFieldNames:
    def test_lists_marked_fields(self):
        class Account(BaseModel):
            login: str
            password: Annotated[str, SensitiveData()]
            pin: Annotated[str, SensitiveData(mask="#")]

        assert sensitive_field_names(Account) == ["password", "pin"]
