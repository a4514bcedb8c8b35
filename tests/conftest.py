"""
Pytest configuration and fixtures for soneium-chain tests.

Network I/O is served by ``FakeNode``, an ``httpx.MockTransport`` handler that
plays the RPC node, the bundler and the paymaster, routing on the request host.
"""
from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Optional

import httpx
import pytest

from soneium_chain.config import (
    ENTRY_POINT_ADDRESS,
    SIMPLE_ACCOUNT_FACTORY_ADDRESS,
    AccountAbstractionConfig,
    NetworkConfig,
    SoneiumConfig,
    set_config,
)

TESTNET_HOST = "rpc-minato.test"
MAINNET_HOST = "rpc-mainnet.test"
BUNDLER_HOST = "bundler.test"
PAYMASTER_HOST = "paymaster.test"

TESTNET_RPC_URL = f"https://{TESTNET_HOST}/rpc"
MAINNET_RPC_URL = f"https://{MAINNET_HOST}/rpc"
BUNDLER_URL = f"https://{BUNDLER_HOST}/rpc"
PAYMASTER_URL = f"https://{PAYMASTER_HOST}/api/sponsor"

OWNER_KEY = "0x" + "11" * 32
SMART_ACCOUNT_ADDRESS = "0x" + "5a" * 20
RECIPIENT = "0x1234567890123456789012345678901234567890"

USER_OP_HASH = "0x" + "cd" * 32
BUNDLE_TX_HASH = "0x" + "ef" * 32
RAW_TX_HASH = "0x" + "ab" * 32
PAYMASTER_AND_DATA = "0x" + "ee" * 20 + "00" * 8

BASE_FEE = 2_000_000_000


@dataclass
class RPCErrorReply:
    """JSON-RPC error object returned instead of a result."""
    code: int
    message: str
    data: Any = None

    def to_json(self) -> dict[str, Any]:
        error: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            error["data"] = self.data
        return error


@dataclass
class RecordedRequest:
    host: str
    body: Any
    headers: httpx.Headers

    @property
    def method(self) -> Optional[str]:
        return self.body.get("method") if isinstance(self.body, dict) else None

    @property
    def params(self) -> list[Any]:
        return self.body.get("params", []) if isinstance(self.body, dict) else []


class FakeNode:
    """Scriptable RPC node, bundler and paymaster."""

    def __init__(self) -> None:
        self.rpc: dict[str, Any] = {
            "eth_chainId": hex(1946),
            "eth_blockNumber": hex(123),
            "eth_getBlockByNumber": {"number": hex(123), "baseFeePerGas": hex(BASE_FEE)},
            "eth_estimateGas": hex(50_000),
            "eth_getBalance": hex(10**18),
            "eth_getCode": "0x",
            "eth_getTransactionCount": "0x0",
            "eth_gasPrice": hex(BASE_FEE),
            "eth_sendRawTransaction": RAW_TX_HASH,
            "eth_call": self._eth_call,
        }
        self.bundler: dict[str, Any] = {
            "eth_sendUserOperation": USER_OP_HASH,
            "eth_estimateUserOperationGas": {
                "callGasLimit": hex(70_000),
                "verificationGasLimit": hex(150_000),
                "preVerificationGas": hex(45_000),
            },
            "eth_getUserOperationReceipt": {
                "userOpHash": USER_OP_HASH,
                "success": True,
                "receipt": {"transactionHash": BUNDLE_TX_HASH},
            },
            "eth_supportedEntryPoints": [ENTRY_POINT_ADDRESS],
        }
        self.paymaster_status = 200
        self.paymaster_body: Any = {"paymasterAndData": PAYMASTER_AND_DATA}
        self.delay_seconds = 0.0
        self.paymaster_delay_seconds = 0.0
        self.nonce = 0
        self.requests: list[RecordedRequest] = []

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def calls(self, method: str) -> list[RecordedRequest]:
        return [r for r in self.requests if r.method == method]

    def hosts(self) -> list[str]:
        return [r.host for r in self.requests]

    def paymaster_requests(self) -> list[RecordedRequest]:
        return [r for r in self.requests if r.host == PAYMASTER_HOST]

    def _eth_call(self, params: list[Any]) -> str:
        to = params[0]["to"].lower()
        if to == SIMPLE_ACCOUNT_FACTORY_ADDRESS.lower():
            return "0x" + "00" * 12 + SMART_ACCOUNT_ADDRESS[2:]
        if to == ENTRY_POINT_ADDRESS.lower():
            return "0x" + hex(self.nonce)[2:].rjust(64, "0")
        return "0x" + "00" * 31 + "2a"

    async def handle(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        delay = self.delay_seconds
        if host == PAYMASTER_HOST:
            delay = delay or self.paymaster_delay_seconds
        if delay:
            await asyncio.sleep(delay)

        body = json.loads(request.content or b"null")
        self.requests.append(RecordedRequest(host=host, body=body, headers=request.headers))

        if host == PAYMASTER_HOST:
            return httpx.Response(self.paymaster_status, json=self.paymaster_body)

        table = self.bundler if host == BUNDLER_HOST else self.rpc
        method = body["method"]
        if method not in table:
            reply: Any = RPCErrorReply(-32601, f"method {method} not found")
        else:
            reply = table[method]
        if callable(reply):
            reply = reply(body.get("params", []))

        if isinstance(reply, httpx.Response):
            return reply
        if isinstance(reply, RPCErrorReply):
            return httpx.Response(
                200, json={"jsonrpc": "2.0", "id": body.get("id"), "error": reply.to_json()}
            )
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body.get("id"), "result": reply})


def make_test_config(paymaster_api_key: str = "") -> SoneiumConfig:
    return SoneiumConfig(
        networks={
            "mainnet": NetworkConfig(
                name="Soneium Mainnet",
                chain_id=2852,
                rpc_url=MAINNET_RPC_URL,
                explorer_url="https://explorer.soneium.org",
            ),
            "testnet": NetworkConfig(
                name="Soneium Minato",
                chain_id=1946,
                rpc_url=TESTNET_RPC_URL,
                explorer_url="https://explorer.minato.soneium.org",
                is_testnet=True,
            ),
        },
        account_abstraction=AccountAbstractionConfig(
            bundler_url=BUNDLER_URL,
            paymaster_url=PAYMASTER_URL,
            paymaster_api_key=paymaster_api_key,
        ),
        default_timeout_seconds=5.0,
    )


@pytest.fixture(autouse=True)
def soneium_config():
    """Install a config pointing at the fake hosts; reset afterwards."""
    config = make_test_config()
    set_config(config)
    yield config
    set_config(None)


@pytest.fixture
def node() -> FakeNode:
    return FakeNode()


@pytest.fixture
def testnet_config(soneium_config) -> NetworkConfig:
    return soneium_config.networks["testnet"]


@pytest.fixture
def mainnet_config(soneium_config) -> NetworkConfig:
    return soneium_config.networks["mainnet"]


@pytest.fixture
def sample_tx_hash() -> str:
    return "0x" + "a" * 64
