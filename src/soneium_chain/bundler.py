"""ERC-4337 bundler JSON-RPC client."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Optional

import httpx

from .config import ENTRY_POINT_ADDRESS, get_config
from .errors import ErrorKind, SoneiumError, wrap_error
from .logging_utils import mask_url
from .rpc_client import from_quantity
from .transport import HTTPTransport, parse_json
from .user_operation import UserOperation

logger = logging.getLogger(__name__)

DEFAULT_RECEIPT_TIMEOUT_SECONDS = 180.0
DEFAULT_POLL_SECONDS = 2.0


def _error_message(body: Any) -> Optional[str]:
    """Remote message from a JSON-RPC error body or a plain error object."""
    if not isinstance(body, dict):
        return None
    error = body.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if isinstance(error, str) and error:
        return error
    if body.get("message"):
        return str(body["message"])
    return None


class BundlerClient:
    """
    Talks to a bundler for a single entry point.

    JSON-RPC error objects and HTTP error bodies surface as ``BUNDLER``
    errors whose ``response`` is the remote payload; deadline expiry surfaces
    as ``RPC_TIMEOUT``.
    """

    def __init__(
        self,
        url: str,
        entry_point_address: str = ENTRY_POINT_ADDRESS,
        timeout_seconds: Optional[float] = None,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.entry_point_address = entry_point_address
        self.timeout_seconds = (
            get_config().default_timeout_seconds if timeout_seconds is None else timeout_seconds
        )
        self._api_key = api_key
        self._http = HTTPTransport(self.timeout_seconds, transport=transport)
        self._request_id = 0

    async def _rpc(self, method: str, params: list[Any]) -> Any:
        self._request_id += 1
        payload = {"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params}
        headers = {"Authorization": f"Bearer {self._api_key}"} if self._api_key else None

        try:
            response = await self._http.post_json(
                self.url, payload, headers=headers, method=method
            )
        except Exception as e:
            logger.error("Bundler call %s to %s failed: %s", method, mask_url(self.url), e)
            raise wrap_error(
                e, ErrorKind.BUNDLER, f"Bundler request {method} failed", passthrough=(ErrorKind.RPC_TIMEOUT,)
            ) from e

        body = parse_json(response)
        if response.status_code >= 400:
            logger.error("Bundler %s returned HTTP %s", method, response.status_code)
            message = f"Bundler returned HTTP {response.status_code} for {method}"
            remote_message = _error_message(body)
            if remote_message:
                message = f"{message}: {remote_message}"
            raise SoneiumError.bundler(message, response=body)
        if not isinstance(body, dict):
            raise SoneiumError.bundler(f"Invalid bundler response for {method}", response=body)

        error = body.get("error")
        if error:
            remote_message = error.get("message") if isinstance(error, dict) else str(error)
            logger.error("Bundler %s error: %s", method, remote_message)
            raise SoneiumError.bundler(
                f"Bundler rejected {method}: {remote_message}", response=error
            )
        return body.get("result")

    async def send_user_operation(self, user_op: UserOperation) -> str:
        """Submit a signed op; returns its userOpHash."""
        result = await self._rpc(
            "eth_sendUserOperation", [user_op.to_rpc(), self.entry_point_address]
        )
        if not isinstance(result, str):
            raise SoneiumError.bundler("Bundler returned invalid user op hash", response=result)
        logger.info("User operation submitted: %s", result)
        return result

    async def estimate_user_operation_gas(self, user_op: UserOperation) -> dict[str, int]:
        result = await self._rpc(
            "eth_estimateUserOperationGas", [user_op.to_rpc(), self.entry_point_address]
        )
        if not isinstance(result, dict):
            raise SoneiumError.bundler("Bundler returned invalid gas estimate payload", response=result)
        return {
            "call_gas_limit": from_quantity(result.get("callGasLimit")),
            "verification_gas_limit": from_quantity(
                result.get("verificationGasLimit") or result.get("verificationGas")
            ),
            "pre_verification_gas": from_quantity(result.get("preVerificationGas")),
        }

    async def get_user_operation_receipt(self, user_op_hash: str) -> Optional[dict[str, Any]]:
        result = await self._rpc("eth_getUserOperationReceipt", [user_op_hash])
        if result is None:
            return None
        if not isinstance(result, dict):
            raise SoneiumError.bundler("Bundler returned invalid receipt payload", response=result)
        return result

    async def get_supported_entry_points(self) -> list[str]:
        result = await self._rpc("eth_supportedEntryPoints", [])
        return list(result or [])

    async def wait_for_receipt(
        self,
        user_op_hash: str,
        timeout_seconds: float = DEFAULT_RECEIPT_TIMEOUT_SECONDS,
        poll_seconds: float = DEFAULT_POLL_SECONDS,
    ) -> dict[str, Any]:
        """Poll until the op is included or ``timeout_seconds`` elapse."""
        deadline = time.monotonic() + timeout_seconds
        while True:
            receipt = await self.get_user_operation_receipt(user_op_hash)
            if receipt:
                return receipt
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            await asyncio.sleep(min(poll_seconds, remaining))
        raise SoneiumError.bundler(
            f"User operation {user_op_hash} not included within {timeout_seconds}s"
        )

    async def close(self) -> None:
        await self._http.close()

    async def __aenter__(self) -> "BundlerClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


def transaction_hash_from_receipt(receipt: dict[str, Any]) -> Optional[str]:
    """Transaction hash of the bundle that included a user operation."""
    inner = receipt.get("receipt")
    if isinstance(inner, dict) and inner.get("transactionHash"):
        return inner["transactionHash"]
    return receipt.get("transactionHash")
