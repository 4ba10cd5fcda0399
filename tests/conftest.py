"""
Pytest configuration for starttls tests.

This file provides fixtures and utilities for testing.
"""
import pytest
import sys
from pathlib import Path

# Ensure starttls package and test helpers are importable
sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))


@pytest.fixture
def log_records():
    """Collect (level, message) pairs emitted by a coroutine."""
    records = []

    def logger(level, message):
        records.append((level, message))

    logger.records = records
    return logger
