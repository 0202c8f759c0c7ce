"""Pytest configuration for registry tests."""

import os
import pytest
from unittest.mock import patch

from etix.models.config import EtixConfig
from etix.registry import TicketRegistry


ADMIN = "admin-0x01"
ORGANIZER = "organizer-0x02"
BUYER = "buyer-0x03"
BUYER2 = "buyer-0x04"
STRANGER = "stranger-0x05"


@pytest.fixture(scope="session", autouse=True)
def mock_env_vars():
    """Keep a developer's .env or shell settings out of the tests."""
    with patch.dict(os.environ, {
        "ADMIN_PRINCIPAL": ADMIN,
        "CREATE_INITIAL_EVENT": "false",
        "ETIX_API_KEYS": "{}",
    }):
        yield


@pytest.fixture
def registry():
    """Create a test registry instance"""
    return TicketRegistry(name="Event Tickets", symbol="ETIX", admin=ADMIN)


@pytest.fixture
def etix_config():
    """Create an EtixConfig for testing."""
    return EtixConfig(
        admin_principal=ADMIN,
        tickets_name="Event Tickets",
        tickets_symbol="ETIX",
        _env_file=None,
    )
