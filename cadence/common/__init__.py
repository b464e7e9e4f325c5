"""Shared helpers used across Cadence packages."""
