"""
JSON-RPC client for Soneium endpoints.

Features:
- Standard Ethereum JSON-RPC methods (blocks, balances, gas, calls, raw txs)
- Chain ID validation on connect
- Network switching without re-instantiation
- Wall-clock request timeouts
- Typed errors carrying the remote code and data
"""
from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from .config import NetworkConfig, get_config
from .errors import SoneiumError
from .logging_utils import mask_url
from .transport import HTTPTransport, parse_json

logger = logging.getLogger(__name__)

# 1 gwei
DEFAULT_BASE_FEE_WEI = 1_000_000_000


def to_quantity(value: int) -> str:
    """Encode an integer as a JSON-RPC hex quantity."""
    return hex(max(0, int(value)))


def from_quantity(value: Any) -> int:
    """Decode a JSON-RPC hex quantity (or decimal) into an int."""
    if value in (None, "", "0x"):
        return 0
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if text.startswith(("0x", "0X")):
        return int(text, 16)
    return int(text)


class RPCClient:
    """
    JSON-RPC client bound to one Soneium network at a time.

    ``set_network`` retargets subsequent calls; the underlying HTTP client is
    kept, only the endpoint changes.
    """

    def __init__(
        self,
        network_config: NetworkConfig,
        timeout_seconds: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        validate_chain_id_on_connect: bool = True,
    ):
        self._network = network_config
        self._timeout = (
            get_config().default_timeout_seconds if timeout_seconds is None else timeout_seconds
        )
        self._http = HTTPTransport(self._timeout, transport=transport)
        self._validate_chain_id = validate_chain_id_on_connect
        self._request_id = 0
        self._verified_chain_id: Optional[int] = None

        logger.debug("Initialized RPC client for %s at %s", network_config.name, mask_url(self.url))

    @property
    def url(self) -> str:
        return self._network.rpc_url

    @property
    def network(self) -> NetworkConfig:
        return self._network

    @property
    def timeout_seconds(self) -> float:
        return self._timeout

    def set_network(self, network_config: NetworkConfig) -> None:
        """Point subsequent calls at another network."""
        logger.debug("RPC client switching %s -> %s", self._network.name, network_config.name)
        self._network = network_config
        self._verified_chain_id = None

    async def connect(self) -> int:
        """
        Fetch the remote chain ID and validate it against the configured one.

        Returns the verified chain ID.
        """
        chain_id = await self.get_chain_id()
        if self._validate_chain_id and chain_id != self._network.chain_id:
            raise SoneiumError.rpc(
                f"Chain ID mismatch for {self._network.name}: "
                f"expected {self._network.chain_id}, got {chain_id}",
                url=self.url,
                method="eth_chainId",
            )
        self._verified_chain_id = chain_id
        logger.info("Chain ID validated for %s: %s", self._network.name, chain_id)
        return chain_id

    async def call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """
        Make a JSON-RPC call.

        Raises:
            SoneiumError(RPC_TIMEOUT): if the endpoint does not answer in time
            SoneiumError(RPC): on HTTP failures or JSON-RPC error objects
        """
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params or [],
        }
        url = self.url
        start_time = time.monotonic()

        try:
            response = await self._http.post_json(url, payload, method=method)
        except SoneiumError:
            raise
        except httpx.HTTPError as e:
            logger.warning("RPC call %s to %s failed: %s", method, mask_url(url), e)
            raise SoneiumError.rpc(str(e) or type(e).__name__, url=url, method=method) from e

        latency_ms = (time.monotonic() - start_time) * 1000
        body = parse_json(response)

        if response.status_code >= 400:
            raise SoneiumError.rpc(
                f"HTTP {response.status_code} from {method}",
                code=response.status_code,
                data=body,
                url=url,
                method=method,
            )
        if not isinstance(body, dict):
            raise SoneiumError.rpc(f"Invalid JSON-RPC response for {method}", data=body, url=url, method=method)

        error = body.get("error")
        if error:
            if isinstance(error, dict):
                raise SoneiumError.rpc(
                    str(error.get("message") or error),
                    code=error.get("code"),
                    data=error.get("data"),
                    url=url,
                    method=method,
                )
            raise SoneiumError.rpc(str(error), url=url, method=method)

        logger.debug("RPC call %s succeeded in %.0fms", method, latency_ms)
        return body.get("result")

    async def get_chain_id(self) -> int:
        if self._verified_chain_id is not None:
            return self._verified_chain_id
        return from_quantity(await self.call("eth_chainId"))

    async def get_block_number(self) -> int:
        return from_quantity(await self.call("eth_blockNumber"))

    async def get_block(
        self,
        block: int | str = "latest",
        include_transactions: bool = False,
    ) -> Optional[Dict[str, Any]]:
        if isinstance(block, int):
            block = hex(block)
        return await self.call("eth_getBlockByNumber", [block, include_transactions])

    async def get_base_fee(self) -> Optional[int]:
        """Base fee of the latest block, or None on pre-London blocks."""
        block = await self.get_block("latest")
        if block and block.get("baseFeePerGas") is not None:
            return from_quantity(block["baseFeePerGas"])
        return None

    async def get_balance(self, address: str, block: str = "latest") -> int:
        return from_quantity(await self.call("eth_getBalance", [address, block]))

    async def get_code(self, address: str, block: str = "latest") -> str:
        return await self.call("eth_getCode", [address, block]) or "0x"

    async def get_transaction_count(self, address: str, block: str = "pending") -> int:
        return from_quantity(await self.call("eth_getTransactionCount", [address, block]))

    async def get_gas_price(self) -> int:
        return from_quantity(await self.call("eth_gasPrice"))

    async def get_max_priority_fee(self) -> int:
        return from_quantity(await self.call("eth_maxPriorityFeePerGas"))

    async def estimate_gas(self, tx: Dict[str, Any]) -> int:
        """Estimate gas for a transaction dict (hex-encoded fields)."""
        return from_quantity(await self.call("eth_estimateGas", [_clean_tx(tx)]))

    async def eth_call(self, tx: Dict[str, Any], block: str = "latest") -> str:
        """Execute a call without creating a transaction."""
        return await self.call("eth_call", [_clean_tx(tx), block])

    async def send_raw_transaction(self, signed_tx: str) -> str:
        if not signed_tx.startswith("0x"):
            signed_tx = "0x" + signed_tx
        return await self.call("eth_sendRawTransaction", [signed_tx])

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        return await self.call("eth_getTransactionReceipt", [tx_hash])

    async def close(self) -> None:
        await self._http.close()

    async def __aenter__(self) -> "RPCClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


def _clean_tx(tx: Dict[str, Any]) -> Dict[str, Any]:
    """Drop unset fields and hex-encode integer quantities."""
    cleaned: Dict[str, Any] = {}
    for key, value in tx.items():
        if value is None:
            continue
        if isinstance(value, bool):
            cleaned[key] = value
        elif isinstance(value, int):
            cleaned[key] = to_quantity(value)
        elif isinstance(value, (bytes, bytearray)):
            cleaned[key] = "0x" + bytes(value).hex()
        else:
            cleaned[key] = value
    return cleaned
