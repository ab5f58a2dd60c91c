"""
Tests for the NetworkConfig module.
"""
from unittest.mock import patch

import pytest

from testimonium_sdk.config import NetworkConfig

# Sample network configuration
MOCK_NETWORKS = {
    "test-network": {
        "chainId": 123,
        "rpc": "https://test.example.com",
        "testimonium": "0x1234567890123456789012345678901234567890",
        "explorer": "https://explorer.example.com"
    },
    "bare": {
        "chainId": "5",
        "rpc": "https://bare.example.com",
        "testimonium": None
    }
}


class TestNetworkConfig:
    """Test NetworkConfig class."""

    def test_packaged_networks(self):
        networks = NetworkConfig.load_networks()
        assert networks["local"]["chainId"] == 1337
        assert "sepolia" in networks

    def test_load_networks_cached(self):
        """Networks are read once and then served from the cache."""
        NetworkConfig._networks_cache = MOCK_NETWORKS

        with patch("importlib.resources.files") as mock_files:
            result = NetworkConfig.load_networks()
            mock_files.assert_not_called()

        assert result == MOCK_NETWORKS

    def test_get_network_not_found(self):
        NetworkConfig._networks_cache = MOCK_NETWORKS

        with pytest.raises(ValueError) as exc_info:
            NetworkConfig.get_network("non-existent-network")

        # Error message lists the available networks
        assert "bare, test-network" in str(exc_info.value)

    def test_get_rpc_url_precedence(self, monkeypatch):
        NetworkConfig._networks_cache = MOCK_NETWORKS
        assert NetworkConfig.get_rpc_url("test-network") == "https://test.example.com"

        monkeypatch.setenv("TESTIMONIUM_RPC_URL", "https://generic.example.com")
        assert NetworkConfig.get_rpc_url("test-network") == "https://generic.example.com"

        monkeypatch.setenv("TEST_NETWORK_RPC_URL", "https://specific.example.com")
        assert NetworkConfig.get_rpc_url("test-network") == "https://specific.example.com"

        assert NetworkConfig.get_rpc_url("test-network", "https://override.example.com") == \
            "https://override.example.com"

    def test_get_chain_id(self):
        NetworkConfig._networks_cache = MOCK_NETWORKS
        assert NetworkConfig.get_chain_id("test-network") == 123
        assert NetworkConfig.get_chain_id("bare") == 5

    def test_get_testimonium_address(self, monkeypatch):
        NetworkConfig._networks_cache = MOCK_NETWORKS
        assert NetworkConfig.get_testimonium_address("test-network") == MOCK_NETWORKS["test-network"]["testimonium"]

        monkeypatch.setenv("TESTIMONIUM_CONTRACT", "0x" + "ab" * 20)
        assert NetworkConfig.get_testimonium_address("test-network") == "0x" + "ab" * 20
        assert NetworkConfig.get_testimonium_address("test-network", "0x" + "cd" * 20) == "0x" + "cd" * 20

    def test_missing_testimonium_address(self):
        NetworkConfig._networks_cache = MOCK_NETWORKS
        with pytest.raises(ValueError, match="No Testimonium deployment known for 'bare'"):
            NetworkConfig.get_testimonium_address("bare")

    def test_get_explorer_url(self):
        NetworkConfig._networks_cache = MOCK_NETWORKS
        assert NetworkConfig.get_explorer_url("test-network") == "https://explorer.example.com"
        assert NetworkConfig.get_explorer_url("bare") is None


class TestPollInterval:
    def test_default(self):
        assert NetworkConfig.get_poll_interval() == 1.0

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("TESTIMONIUM_POLL_INTERVAL", "2.5")
        assert NetworkConfig.get_poll_interval() == 2.5

    @pytest.mark.parametrize("raw", ["fast", "0", "-1"])
    def test_invalid(self, monkeypatch, raw):
        monkeypatch.setenv("TESTIMONIUM_POLL_INTERVAL", raw)
        with pytest.raises(ValueError, match="TESTIMONIUM_POLL_INTERVAL"):
            NetworkConfig.get_poll_interval()
