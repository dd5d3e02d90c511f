"""
Skynet SDK Test Suite.

This package contains:
- unit/: Unit tests (no network, portal mocked)
- integration/: Integration tests (SDK against the in-memory portal app)
"""
