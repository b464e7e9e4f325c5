"""Cadence: slot-scheduled activity reports with idempotent indexing."""

from __future__ import annotations

__version__ = "0.1.0"
