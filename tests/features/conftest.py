"""Shared fixtures for BDD feature tests.

Store, activity source and orchestrator fixtures come from the root
``tests/conftest.py``; step modules build their own per-scenario context.
"""
