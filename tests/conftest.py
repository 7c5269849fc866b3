"""
Global pytest configuration and fixtures.
"""

from unittest.mock import MagicMock, patch

import pytest

from vaultcourier.client import VaultClient
from vaultcourier.config import VaultClientConfigModel

VAULT_ADDRESS = "https://vault.example.com"


@pytest.fixture
def client_config() -> VaultClientConfigModel:
    return VaultClientConfigModel(address=VAULT_ADDRESS, namespace="tenant-a")


@pytest.fixture
def anonymous_client(client_config) -> VaultClient:
    """A client that has not logged in."""
    return VaultClient(client_config)


@pytest.fixture
def vault_client(client_config) -> VaultClient:
    """A client holding a session token."""
    client = VaultClient(client_config)
    client.session.set_token("test-token")
    return client


@pytest.fixture
def mock_hvac():
    """Patch ``hvac.Client`` and yield the mock returned by every construction."""
    with patch("hvac.Client") as mock_hvac_client:
        mock_client = MagicMock()
        mock_hvac_client.return_value = mock_client
        mock_client.constructor = mock_hvac_client
        yield mock_client
