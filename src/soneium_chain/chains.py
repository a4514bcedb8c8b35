"""Chain definitions for the Soneium networks."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

from .config import NetworkConfig, NetworkType, get_config


@dataclass(frozen=True)
class NativeCurrency:
    name: str
    symbol: str
    decimals: int = 18


@dataclass(frozen=True)
class Chain:
    """EVM chain definition derived from a network configuration."""
    id: int
    name: str
    network: str
    native_currency: NativeCurrency
    rpc_urls: Dict[str, List[str]] = field(default_factory=dict)
    block_explorers: Dict[str, Dict[str, str]] = field(default_factory=dict)
    testnet: bool = False

    @property
    def default_rpc_url(self) -> str:
        return self.rpc_urls["default"][0]

    @property
    def explorer_url(self) -> str:
        return self.block_explorers["default"]["url"]


def define_chain(network: str, config: NetworkConfig) -> Chain:
    """Build a Chain from a NetworkConfig."""
    return Chain(
        id=config.chain_id,
        name=config.name,
        network=network,
        native_currency=NativeCurrency(
            name="Soneium",
            symbol=config.native_token,
            decimals=config.native_decimals,
        ),
        rpc_urls={
            "default": [config.rpc_url],
            "public": [config.rpc_url],
        },
        block_explorers={
            "default": {"name": "Soneium Explorer", "url": config.explorer_url},
        },
        testnet=config.is_testnet,
    )


def get_chain(network: str = NetworkType.TESTNET.value) -> Chain:
    """Get the Soneium chain for a network type ("mainnet" or "testnet")."""
    network_config = get_config().get_network_config(network)
    key = network.value if isinstance(network, NetworkType) else str(network).lower()
    return define_chain(key, network_config)


def soneium_mainnet() -> Chain:
    return get_chain(NetworkType.MAINNET.value)


def soneium_testnet() -> Chain:
    return get_chain(NetworkType.TESTNET.value)
