"""Integration event type registry.

The registry maps stable ``event_type`` strings to event classes so that a
payload stored in the outbox can be turned back into a typed event by the
relay job. Registration is explicit and happens at startup.

Usage:
    from outbox_service.core.events import IntegrationEvent, event_registry

    @event_registry.register
    class OrderPlacedIntegrationEvent(IntegrationEvent):
        event_type: ClassVar[str] = "order.placed"
        order_id: str

    event = event_registry.reconstruct("order.placed", record.payload)
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, TypeVar, overload

from pydantic import ValidationError

from outbox_service.core.exceptions import EventReconstructionError

if TYPE_CHECKING:
    from outbox_service.core.events.base import IntegrationEvent

logger = logging.getLogger(__name__)

T = TypeVar("T", bound="IntegrationEvent")


class EventRegistry:
    """Registry for integration event types.

    Supports several schema versions per event type. Registration is
    expected during startup; lookups are read-only afterwards.
    """

    def __init__(self) -> None:
        # Map: event_type -> version -> event_class
        self._events: dict[str, dict[int, type[IntegrationEvent]]] = {}

    @overload
    def register(self, event_class: type[T]) -> type[T]: ...

    @overload
    def register(self, event_class: None = None) -> Any: ...

    def register(self, event_class: type[T] | None = None) -> type[T] | Any:
        """Register an event class.

        Can be used as a decorator (with or without parentheses) or as a
        direct call. Re-registering the same class is a no-op.

        Raises:
            ValueError: If the type/version pair is already bound to a
                different class.
        """

        def _register(cls: type[T]) -> type[T]:
            event_type = cls.get_event_type()
            event_version = cls.get_event_version()
            versions = self._events.setdefault(event_type, {})

            existing = versions.get(event_version)
            if existing is not None:
                if existing is not cls:
                    raise ValueError(
                        f"Event type '{event_type}' version {event_version} "
                        f"already registered with {existing.__name__}"
                    )
                return cls

            versions[event_version] = cls
            logger.debug(
                "Registered event type",
                extra={
                    "event_type": event_type,
                    "version": event_version,
                    "class": cls.__name__,
                },
            )
            return cls

        if event_class is None:
            return _register
        return _register(event_class)

    def get(
        self,
        event_type: str,
        version: int | None = None,
    ) -> type[IntegrationEvent] | None:
        """Get an event class by type and optional version (latest if None)."""
        versions = self._events.get(event_type)
        if not versions:
            return None
        if version is not None:
            return versions.get(version)
        return versions[max(versions)]

    def get_or_raise(
        self,
        event_type: str,
        version: int | None = None,
    ) -> type[IntegrationEvent]:
        """Get an event class or raise if not found.

        Raises:
            KeyError: If event type/version not found
        """
        event_class = self.get(event_type, version)
        if event_class is None:
            version_str = f" version {version}" if version is not None else ""
            raise KeyError(f"Unknown event type: '{event_type}'{version_str}")
        return event_class

    def reconstruct(
        self,
        event_type: str,
        payload: str | bytes | Mapping[str, Any],
        version: int | None = None,
    ) -> IntegrationEvent:
        """Rebuild a typed event from a stored payload.

        The exact version is tried first; when it is not registered the
        latest registered version is used for forward compatibility.

        Args:
            event_type: Discriminator stored alongside the payload.
            payload: JSON text (as produced by ``to_outbox_payload``) or an
                already-decoded mapping.
            version: Schema version stored alongside the payload.

        Raises:
            EventReconstructionError: Unknown type, corrupt JSON or a payload
                that does not match the registered schema.
        """
        event_class = self.get(event_type, version)
        if event_class is None and version is not None:
            event_class = self.get(event_type)
            if event_class is not None:
                logger.warning(
                    "Using latest version for reconstruction",
                    extra={
                        "event_type": event_type,
                        "requested_version": version,
                        "using_version": event_class.get_event_version(),
                    },
                )

        if event_class is None:
            raise EventReconstructionError(
                f"Unknown event type: '{event_type}'",
                event_type,
                details={"version": version},
            )

        try:
            if isinstance(payload, (str, bytes)):
                return event_class.model_validate_json(payload)
            return event_class.model_validate(dict(payload))
        except ValidationError as exc:
            raise EventReconstructionError(
                "Stored payload does not match event schema",
                event_type,
                details={"errors": exc.error_count(), "class": event_class.__name__},
            ) from exc

    def list_types(self) -> list[str]:
        """List all registered event types."""
        return list(self._events.keys())

    def list_versions(self, event_type: str) -> list[int]:
        """List registered versions for an event type, ascending."""
        return sorted(self._events.get(event_type, {}))

    def __contains__(self, event_type: object) -> bool:
        """Check if event type is registered."""
        return event_type in self._events

    def __len__(self) -> int:
        """Get total number of registered event types."""
        return len(self._events)

    def clear(self) -> None:
        """Clear all registrations (mainly for testing)."""
        self._events.clear()


# Global registry instance
event_registry = EventRegistry()


__all__ = ["EventRegistry", "event_registry"]
