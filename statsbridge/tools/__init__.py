"""Bundled tools; importing this package registers them in REGISTRY."""

from statsbridge.tools import database, garmin, kpm

__all__ = ["database", "garmin", "kpm"]
