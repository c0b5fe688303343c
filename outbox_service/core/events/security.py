"""Sensitive field masking for integration events.

Fields marked with ``SensitiveData`` are replaced by a fixed mask string
when an event is serialized for the message bus. The outbox keeps the
unmasked payload so a deferred event can be replayed faithfully.

Usage:
    from typing import Annotated

    class PaymentCapturedEvent(IntegrationEvent):
        event_type: ClassVar[str] = "payment.captured"

        payment_id: str
        card_number: Annotated[str, SensitiveData()]
        cvv: Annotated[str, SensitiveData(mask="***")]

    event.to_wire_payload()["card_number"]  # "****"
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Final

from pydantic import BaseModel

DEFAULT_MASK: Final[str] = "****"


@dataclass(frozen=True, slots=True)
class SensitiveData:
    """Field marker: the value is masked on the wire.

    Attributes:
        mask: Replacement written instead of the real value.
    """

    mask: str = DEFAULT_MASK


def get_sensitive_marker(model_cls: type[BaseModel], field_name: str) -> SensitiveData | None:
    """Return the SensitiveData marker of a model field, if any."""
    field = model_cls.model_fields.get(field_name)
    if field is None:
        return None
    for item in field.metadata:
        if isinstance(item, SensitiveData):
            return item
    return None


def sensitive_field_names(model_cls: type[BaseModel]) -> list[str]:
    """List the names of all fields marked as sensitive on a model class."""
    return [
        name
        for name in model_cls.model_fields
        if get_sensitive_marker(model_cls, name) is not None
    ]


def _mask_value(value: Any, dumped: Any) -> Any:
    if isinstance(value, BaseModel) and isinstance(dumped, dict):
        return _mask_model(value, dumped)
    if isinstance(value, (list, tuple)) and isinstance(dumped, list):
        return [_mask_value(item, item_dump) for item, item_dump in zip(value, dumped, strict=True)]
    return dumped


def _mask_model(model: BaseModel, dumped: dict[str, Any]) -> dict[str, Any]:
    model_cls = type(model)
    for name in model_cls.model_fields:
        if name not in dumped:
            continue
        marker = get_sensitive_marker(model_cls, name)
        if marker is not None:
            if dumped[name] is not None:
                dumped[name] = marker.mask
            continue
        dumped[name] = _mask_value(getattr(model, name), dumped[name])
    return dumped


def mask_sensitive_fields(model: BaseModel) -> dict[str, Any]:
    """Dump a model in JSON mode with sensitive fields masked.

    Recurses into nested models and lists of models. ``None`` values are
    left as ``None`` so consumers can still tell a missing value apart.

    Args:
        model: Any pydantic model (typically an IntegrationEvent).

    Returns:
        JSON-compatible dict safe to send over the wire.
    """
    return _mask_model(model, model.model_dump(mode="json"))


__all__ = [
    "DEFAULT_MASK",
    "SensitiveData",
    "get_sensitive_marker",
    "mask_sensitive_fields",
    "sensitive_field_names",
]
