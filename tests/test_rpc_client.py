"""
Tests for the JSON-RPC client.
"""
import httpx
import pytest

from conftest import MAINNET_HOST, TESTNET_HOST, RPCErrorReply
from soneium_chain.errors import ErrorKind, SoneiumError
from soneium_chain.rpc_client import RPCClient, from_quantity, to_quantity


class TestQuantities:
    def test_round_trip_examples(self):
        assert to_quantity(0) == "0x0"
        assert to_quantity(255) == "0xff"
        assert from_quantity("0xff") == 255
        assert from_quantity("42") == 42
        assert from_quantity(None) == 0
        assert from_quantity("0x") == 0


class TestRPCClient:
    @pytest.mark.asyncio
    async def test_request_shape(self, node, testnet_config):
        rpc = RPCClient(testnet_config, transport=node.transport)

        assert await rpc.get_block_number() == 123
        assert await rpc.get_balance("0x1234567890123456789012345678901234567890") == 10**18

        first, second = node.requests
        assert first.body["jsonrpc"] == "2.0"
        assert first.method == "eth_blockNumber"
        assert second.params == ["0x1234567890123456789012345678901234567890", "latest"]
        assert second.body["id"] == first.body["id"] + 1
        await rpc.close()

    @pytest.mark.asyncio
    async def test_connect_validates_chain_id(self, node, testnet_config):
        rpc = RPCClient(testnet_config, transport=node.transport)
        assert await rpc.connect() == 1946

    @pytest.mark.asyncio
    async def test_connect_chain_id_mismatch(self, node, mainnet_config):
        rpc = RPCClient(mainnet_config, transport=node.transport)

        with pytest.raises(SoneiumError) as exc_info:
            await rpc.connect()

        assert exc_info.value.kind is ErrorKind.RPC
        assert "Chain ID mismatch" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_json_rpc_error_carries_code_and_data(self, node, testnet_config):
        node.rpc["eth_call"] = RPCErrorReply(3, "execution reverted", data="0x08c379a0")
        rpc = RPCClient(testnet_config, transport=node.transport)

        with pytest.raises(SoneiumError) as exc_info:
            await rpc.eth_call({"to": "0x1234567890123456789012345678901234567890", "data": "0x"})

        error = exc_info.value
        assert error.kind is ErrorKind.RPC
        assert error.code == 3
        assert error.data == "0x08c379a0"
        assert error.method == "eth_call"
        assert error.message == "execution reverted"

    @pytest.mark.asyncio
    async def test_http_error_status(self, node, testnet_config):
        node.rpc["eth_blockNumber"] = httpx.Response(503, text="unavailable")
        rpc = RPCClient(testnet_config, transport=node.transport)

        with pytest.raises(SoneiumError) as exc_info:
            await rpc.get_block_number()

        assert exc_info.value.code == 503
        assert exc_info.value.data == "unavailable"

    @pytest.mark.asyncio
    async def test_connection_error(self, testnet_config):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        rpc = RPCClient(testnet_config, transport=httpx.MockTransport(refuse))

        with pytest.raises(SoneiumError) as exc_info:
            await rpc.get_block_number()

        assert exc_info.value.kind is ErrorKind.RPC
        assert "connection refused" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_timeout(self, node, testnet_config):
        node.delay_seconds = 1.0
        rpc = RPCClient(testnet_config, timeout_seconds=0.05, transport=node.transport)

        with pytest.raises(SoneiumError) as exc_info:
            await rpc.get_block_number()

        error = exc_info.value
        assert error.kind is ErrorKind.RPC_TIMEOUT
        assert error.details["timeout_ms"] == 50
        assert testnet_config.rpc_url in str(error)

    @pytest.mark.asyncio
    async def test_set_network_retargets(self, node, testnet_config, mainnet_config):
        rpc = RPCClient(testnet_config, transport=node.transport)
        await rpc.get_block_number()

        rpc.set_network(mainnet_config)
        await rpc.get_block_number()

        assert node.hosts() == [TESTNET_HOST, MAINNET_HOST]
        assert rpc.url == mainnet_config.rpc_url

    @pytest.mark.asyncio
    async def test_estimate_gas_hex_encodes_fields(self, node, testnet_config):
        rpc = RPCClient(testnet_config, transport=node.transport)

        await rpc.estimate_gas({"to": "0x1234567890123456789012345678901234567890", "value": 10, "data": None})

        sent = node.calls("eth_estimateGas")[0].params[0]
        assert sent == {"to": "0x1234567890123456789012345678901234567890", "value": "0xa"}

    @pytest.mark.asyncio
    async def test_base_fee_missing(self, node, testnet_config):
        node.rpc["eth_getBlockByNumber"] = {"number": "0x1"}
        rpc = RPCClient(testnet_config, transport=node.transport)
        assert await rpc.get_base_fee() is None
