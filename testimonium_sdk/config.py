"""
Network configuration for the Testimonium SDK.

Known networks ship with the package in ``networks.json``; environment
variables override individual entries.
"""
import importlib.resources
import json
import logging
import os
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 1.0


def _env_prefix(network: str) -> str:
    return network.upper().replace("-", "_")


class NetworkConfig:
    """Lookup of packaged network settings"""

    _networks_cache: Optional[Dict[str, Dict[str, Any]]] = None

    @classmethod
    def load_networks(cls) -> Dict[str, Dict[str, Any]]:
        """
        Load all network definitions.

        The file is read once and cached for the life of the process.
        """
        if cls._networks_cache is None:
            resource = importlib.resources.files("testimonium_sdk").joinpath("networks.json")
            with resource.open("r", encoding="utf-8") as f:
                cls._networks_cache = json.load(f)
            logger.debug(f"Loaded {len(cls._networks_cache)} network definitions")
        return cls._networks_cache

    @classmethod
    def get_network(cls, network: str) -> Dict[str, Any]:
        """
        Get one network's configuration.

        Raises:
            ValueError: If the network is unknown
        """
        networks = cls.load_networks()
        if network not in networks:
            available = ", ".join(sorted(networks))
            raise ValueError(f"Unknown network '{network}'. Available networks: {available}")
        return networks[network]

    @classmethod
    def get_rpc_url(cls, network: str, override: Optional[str] = None) -> str:
        """
        RPC URL for ``network``.

        Precedence: ``override``, ``<NETWORK>_RPC_URL``, ``TESTIMONIUM_RPC_URL``,
        then the packaged value.
        """
        if override:
            return override
        env_url = os.environ.get(f"{_env_prefix(network)}_RPC_URL") or os.environ.get("TESTIMONIUM_RPC_URL")
        if env_url:
            logger.debug(f"Using RPC URL from environment for {network}")
            return env_url
        return cls.get_network(network)["rpc"]

    @classmethod
    def get_chain_id(cls, network: str) -> int:
        return int(cls.get_network(network)["chainId"])

    @classmethod
    def get_testimonium_address(cls, network: str, override: Optional[str] = None) -> str:
        """
        Testimonium contract address on ``network``.

        Raises:
            ValueError: If no address is configured
        """
        address = override or os.environ.get("TESTIMONIUM_CONTRACT") or cls.get_network(network).get("testimonium")
        if not address:
            raise ValueError(
                f"No Testimonium deployment known for '{network}'; set TESTIMONIUM_CONTRACT"
            )
        return address

    @classmethod
    def get_explorer_url(cls, network: str) -> Optional[str]:
        return cls.get_network(network).get("explorer")

    @staticmethod
    def get_poll_interval() -> float:
        """Subscription poll period from ``TESTIMONIUM_POLL_INTERVAL``."""
        raw = os.environ.get("TESTIMONIUM_POLL_INTERVAL")
        if not raw:
            return DEFAULT_POLL_INTERVAL
        try:
            value = float(raw)
        except ValueError:
            raise ValueError(f"TESTIMONIUM_POLL_INTERVAL must be a number, got {raw!r}")
        if value <= 0:
            raise ValueError(f"TESTIMONIUM_POLL_INTERVAL must be positive, got {raw!r}")
        return value
