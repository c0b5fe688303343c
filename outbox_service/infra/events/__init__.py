"""Integration event infrastructure."""
