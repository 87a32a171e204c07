"""Pytest configuration for tests.

Sets up Python path and fixtures for all tests.
"""

import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Add project root to Python path so imports work correctly
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from common.telemetry.app_logger import AppLogger  # noqa: E402


@pytest.fixture
def app_logger():
    """AppLogger double that records calls."""
    return MagicMock(spec=AppLogger)
