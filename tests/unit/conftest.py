"""
Unit test fixtures. Services run against the in-memory session from the root conftest.
"""
