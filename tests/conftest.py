"""Shared fixtures for every test module."""
from tests.fixtures.core import app_config, memory_store, mock_logger  # noqa: F401
