"""Reliable integration-event delivery using the transactional outbox pattern."""

__version__ = "0.1.0"
