"""
Configuration management for soneium-chain.

Provides centralized configuration for:
- Network endpoints (mainnet and Minato testnet)
- Account abstraction endpoints and contract addresses
- Timeout values
- Gas estimation parameters
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class NetworkType(str, Enum):
    """Supported Soneium networks."""
    MAINNET = "mainnet"
    TESTNET = "testnet"


# Standard ERC-4337 EntryPoint (v0.6)
ENTRY_POINT_ADDRESS = "0x5FF137D4b0FDCD49DcA30c7CF57E578a026d2789"
SIMPLE_ACCOUNT_FACTORY_ADDRESS = "0x9406Cc6185a346906296840746125a0E44976454"

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_GAS_BUFFER_PERCENTAGE = 20


@dataclass(frozen=True)
class NetworkConfig:
    """Configuration for a single Soneium network."""
    name: str
    chain_id: int
    rpc_url: str
    explorer_url: str
    native_token: str = "SON"
    native_decimals: int = 18
    is_testnet: bool = False

    def tx_url(self, tx_hash: str) -> str:
        """Explorer link for a transaction hash."""
        return f"{self.explorer_url.rstrip('/')}/tx/{tx_hash}"

    def address_url(self, address: str) -> str:
        return f"{self.explorer_url.rstrip('/')}/address/{address}"


@dataclass(frozen=True)
class AccountAbstractionConfig:
    """ERC-4337 endpoints and contract addresses."""
    bundler_url: str
    paymaster_url: str
    entry_point_address: str = ENTRY_POINT_ADDRESS
    factory_address: str = SIMPLE_ACCOUNT_FACTORY_ADDRESS
    paymaster_api_key: str = ""


@dataclass
class SoneiumConfig:
    """
    Master configuration for soneium-chain.

    Supports loading from environment variables prefixed with SONEIUM_.
    """
    networks: Dict[str, NetworkConfig] = field(default_factory=dict)
    account_abstraction: AccountAbstractionConfig = field(
        default_factory=lambda: AccountAbstractionConfig(
            bundler_url="https://bundler.scs.startale.com/rpc",
            paymaster_url="https://paymaster.scs.startale.com/api/sponsor",
        )
    )

    default_network: str = NetworkType.TESTNET.value
    default_timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    gas_buffer_percentage: int = DEFAULT_GAS_BUFFER_PERCENTAGE

    def get_network_config(self, network: str) -> NetworkConfig:
        """Get configuration for a specific network."""
        key = _network_key(network)
        if key not in self.networks:
            raise ValueError(f"Unknown network: {network}")
        return self.networks[key]

    def is_network_supported(self, network: str) -> bool:
        return _network_key(network) in self.networks


def _network_key(network: Any) -> str:
    if isinstance(network, NetworkType):
        return network.value
    return str(network).lower()


def _get_env(key: str, default: Any = None, prefix: str = "SONEIUM_") -> Any:
    """Get environment variable with prefix, treating empty values as unset."""
    value = os.getenv(f"{prefix}{key}")
    if value is None or value == "":
        return default
    return value


def _get_env_number(key: str, default: float, cast=float) -> Any:
    raw = _get_env(key)
    if raw is None:
        return default
    try:
        return cast(raw)
    except ValueError:
        logger.warning("Invalid value for SONEIUM_%s: %s", key, raw)
        return default


def build_default_config() -> SoneiumConfig:
    """Build default configuration with environment overrides."""
    networks = {
        NetworkType.MAINNET.value: NetworkConfig(
            name="Soneium Mainnet",
            chain_id=_get_env_number("MAIN_CHAIN_ID", 2852, cast=int),
            rpc_url=_get_env("MAIN_HTTPS", "https://soneium.rpc.scs.startale.com"),
            explorer_url="https://explorer.soneium.org",
        ),
        NetworkType.TESTNET.value: NetworkConfig(
            name="Soneium Minato",
            chain_id=_get_env_number("TEST_CHAIN_ID", 1946, cast=int),
            rpc_url=_get_env("TEST_HTTPS", "https://soneium-minato.rpc.scs.startale.com"),
            explorer_url="https://explorer.minato.soneium.org",
            is_testnet=True,
        ),
    }

    account_abstraction = AccountAbstractionConfig(
        bundler_url=_get_env("BUNDLER_URL", "https://bundler.scs.startale.com/rpc"),
        paymaster_url=_get_env("PAYMASTER_URL", "https://paymaster.scs.startale.com/api/sponsor"),
        entry_point_address=_get_env("ENTRY_POINT_ADDRESS", ENTRY_POINT_ADDRESS),
        factory_address=_get_env("SIMPLE_ACCOUNT_FACTORY", SIMPLE_ACCOUNT_FACTORY_ADDRESS),
        paymaster_api_key=_get_env("PAYMASTER_API_KEY", ""),
    )

    default_network = _network_key(_get_env("DEFAULT_NETWORK", NetworkType.TESTNET.value))
    if default_network not in networks:
        logger.warning("Unknown SONEIUM_DEFAULT_NETWORK %s, using testnet", default_network)
        default_network = NetworkType.TESTNET.value

    return SoneiumConfig(
        networks=networks,
        account_abstraction=account_abstraction,
        default_network=default_network,
        default_timeout_seconds=_get_env_number("TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS),
        gas_buffer_percentage=_get_env_number(
            "GAS_BUFFER_PERCENTAGE", DEFAULT_GAS_BUFFER_PERCENTAGE, cast=int
        ),
    )


# Global configuration instance
_global_config: Optional[SoneiumConfig] = None


def get_config() -> SoneiumConfig:
    """Get the global configuration instance."""
    global _global_config
    if _global_config is None:
        _global_config = build_default_config()
    return _global_config


def set_config(config: Optional[SoneiumConfig]) -> None:
    """Set (or with None, reset) the global configuration instance."""
    global _global_config
    _global_config = config


def get_network_config(network: str) -> NetworkConfig:
    """Convenience function to get network configuration."""
    return get_config().get_network_config(network)
