"""
Network configuration for the Lockdrop SDK.
"""
import json
import os
import importlib.resources
import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class NetworkConfig:
    """
    Destination network settings loaded from the packaged networks.json.

    RPC endpoints and the lockdrop contract can be overridden per network
    with <NETWORK>_RPC_URL and <NETWORK>_LOCKDROP_CONTRACT environment
    variables.
    """

    _networks_cache: Optional[Dict[str, Dict[str, Any]]] = None

    @classmethod
    def load_networks(cls) -> Dict[str, Dict[str, Any]]:
        """
        Load all network configurations (cached after the first call).

        Returns:
            Mapping of network name to configuration
        """
        if cls._networks_cache is None:
            path = importlib.resources.files("lockdrop_sdk").joinpath("networks.json")
            with path.open("r") as f:
                cls._networks_cache = json.load(f)
            logger.debug("Loaded %d network configurations", len(cls._networks_cache))
        return cls._networks_cache

    @classmethod
    def get_network(cls, network: str) -> Dict[str, Any]:
        """
        Get the configuration of a single network.

        Raises:
            ValueError: If the network is unknown
        """
        networks = cls.load_networks()
        if network not in networks:
            available = ", ".join(sorted(networks))
            raise ValueError(f"Unknown network: {network}. Available networks: {available}")
        return networks[network]

    @staticmethod
    def _env_name(network: str, suffix: str) -> str:
        return f"{network.upper().replace('-', '_')}_{suffix}"

    @classmethod
    def get_rpc_url(cls, network: str, override: Optional[str] = None) -> str:
        """RPC URL: explicit override, then environment, then networks.json"""
        if override:
            return override
        env_url = os.environ.get(cls._env_name(network, "RPC_URL"))
        if env_url:
            return env_url
        return cls.get_network(network)["rpc"]

    @classmethod
    def get_lockdrop_contract(cls, network: str, override: Optional[str] = None) -> Optional[str]:
        """Lockdrop contract address on the source chain, if configured"""
        if override:
            return override
        env_address = os.environ.get(cls._env_name(network, "LOCKDROP_CONTRACT"))
        if env_address:
            return env_address
        return cls.get_network(network).get("lockdropContract")

    @classmethod
    def get_ss58_format(cls, network: str) -> int:
        return int(cls.get_network(network)["ss58Format"])

    @classmethod
    def get_token_symbol(cls, network: str) -> str:
        return cls.get_network(network)["tokenSymbol"]

    @classmethod
    def get_lockdrop_start_block(cls, network: str) -> int:
        return int(cls.get_network(network).get("lockdropStartBlock", 0))

    @classmethod
    def get_poll_interval(cls, network: str) -> float:
        return float(cls.get_network(network).get("pollIntervalSeconds", 15))

    @classmethod
    def get_pow_difficulty(cls, network: str) -> int:
        return int(cls.get_network(network).get("powDifficulty", 1))

    @classmethod
    def get_pow_max_attempts(cls, network: str) -> int:
        return int(cls.get_network(network).get("powMaxAttempts", 1_000_000))
