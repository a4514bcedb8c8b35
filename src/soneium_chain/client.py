"""
High-level Soneium client.

Wraps the RPC client with an optional EOA wallet and exposes the account
abstraction helpers (user operations, paymaster, bundler, smart-account
transfers) behind one object.

Example:
    async with SoneiumClient("testnet") as client:
        client.connect_wallet(private_key)
        block = await client.get_block_number()
        tx_hash = await client.send_transaction(
            TransactionRequest(to=recipient, value=10**15)
        )
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

import httpx
from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3

from .account_abstraction import AAOptions, build_unsigned_user_operation, create_aa_client
from .bundler import BundlerClient
from .config import NetworkConfig, NetworkType, get_config
from .errors import ErrorKind, SoneiumError, wrap_error
from .gas_estimation import (
    DEFAULT_MAX_GAS_LIMIT,
    GasEstimationOptions,
    estimate_gas,
    get_current_gas_prices,
)
from .logging_utils import LogLevel, mask_url, resolve_logger, set_log_level
from .models import GasPrices, PaymasterResponse, SponsorType, TransactionRequest
from .paymaster import PaymasterClient
from .rpc_client import RPCClient
from .user_operation import UserOperation

USER_REJECTED_CODE = 4001


@dataclass
class ClientOptions:
    """Construction options for :class:`SoneiumClient`."""
    timeout_seconds: Optional[float] = None
    logger: Optional[logging.Logger] = None
    log_level: Optional[Union[LogLevel, str]] = None
    enable_logging: Optional[bool] = None
    transport: Optional[httpx.AsyncBaseTransport] = field(default=None, repr=False)


def _is_user_rejection(exc: BaseException) -> bool:
    if isinstance(exc, SoneiumError) and exc.code == USER_REJECTED_CODE:
        return True
    if getattr(exc, "code", None) == USER_REJECTED_CODE:
        return True
    return "user rejected" in str(exc).lower()


class SoneiumClient:
    """Client for one Soneium network at a time."""

    def __init__(
        self,
        network: Union[NetworkType, str] = NetworkType.TESTNET,
        options: Optional[ClientOptions] = None,
    ):
        opts = options or ClientOptions()
        self._options = opts
        self._owns_logger = opts.logger is None
        self._logger = resolve_logger(opts.logger, opts.log_level, opts.enable_logging)
        self._timeout = (
            get_config().default_timeout_seconds if opts.timeout_seconds is None else opts.timeout_seconds
        )
        self._account: Optional[LocalAccount] = None

        self._network = self._network_name(network)
        self._logger.info("Creating Soneium client for %s", self._network)
        try:
            network_config = get_config().get_network_config(self._network)
            self._rpc = RPCClient(network_config, timeout_seconds=self._timeout, transport=opts.transport)
        except Exception as e:
            self._logger.error("Failed to create public client: %s", e)
            raise wrap_error(e, ErrorKind.RPC, "Failed to create public client") from e
        self._logger.debug("Public client created for %s", mask_url(network_config.rpc_url))

    @staticmethod
    def _network_name(network: Union[NetworkType, str]) -> str:
        if isinstance(network, NetworkType):
            return network.value
        return str(network).lower()

    @property
    def rpc(self) -> RPCClient:
        return self._rpc

    @property
    def network_config(self) -> NetworkConfig:
        return self._rpc.network

    @property
    def account(self) -> Optional[LocalAccount]:
        return self._account

    @property
    def timeout_seconds(self) -> float:
        return self._timeout

    def _require_wallet(self) -> LocalAccount:
        if self._account is None:
            self._logger.error("Wallet not connected")
            raise SoneiumError.wallet("Wallet not connected. Call connect_wallet first.")
        return self._account

    def _gas_options(
        self,
        buffer_percentage: Optional[int] = None,
        max_gas_limit: Optional[int] = None,
    ) -> GasEstimationOptions:
        return GasEstimationOptions(
            buffer_percentage=(
                get_config().gas_buffer_percentage if buffer_percentage is None else buffer_percentage
            ),
            max_gas_limit=max_gas_limit or DEFAULT_MAX_GAS_LIMIT,
            logger=self._logger,
        )

    def _aa_options(self, gas_buffer_percentage: Optional[int] = None) -> AAOptions:
        return AAOptions(
            timeout_seconds=self._timeout,
            logger=self._logger,
            gas_buffer_percentage=gas_buffer_percentage,
            transport=self._options.transport,
        )

    # Wallet

    def connect_wallet(self, private_key: str) -> str:
        """Use ``private_key`` for signing; returns the EOA address."""
        self._logger.info("Connecting wallet")
        try:
            self._account = Account.from_key(private_key)
        except Exception as e:
            self._logger.error("Failed to connect wallet: %s", e)
            raise SoneiumError.wallet(f"Failed to connect wallet: {e}") from e

        self._logger.info("Wallet connected: %s", self._account.address)
        return self._account.address

    # Reads

    async def get_block_number(self) -> int:
        self._logger.debug("Getting block number")
        try:
            block_number = await self._rpc.get_block_number()
        except Exception as e:
            self._logger.error("Failed to get block number: %s", e)
            raise wrap_error(e, ErrorKind.RPC, "Failed to get block number", passthrough=(ErrorKind.RPC,)) from e
        self._logger.debug("Block number %s", block_number)
        return block_number

    async def get_balance(self, address: str) -> int:
        """Balance of ``address`` in wei."""
        self._logger.debug("Getting balance of %s", address)
        try:
            return await self._rpc.get_balance(address)
        except Exception as e:
            self._logger.error("Failed to get balance of %s: %s", address, e)
            raise wrap_error(
                e, ErrorKind.RPC, f"Failed to get balance for {address}", passthrough=(ErrorKind.RPC,)
            ) from e

    async def call(self, to: str, data: str) -> str:
        """Read-only contract call."""
        self._logger.debug("Calling %s", to)
        try:
            return await self._rpc.eth_call({"to": to, "data": data})
        except Exception as e:
            self._logger.error("Failed to make contract call: %s", e)
            raise wrap_error(
                e, ErrorKind.RPC, "Failed to make contract call", passthrough=(ErrorKind.RPC,)
            ) from e

    # EOA transactions

    async def send_transaction(self, tx: TransactionRequest) -> str:
        """
        Sign and broadcast an EIP-1559 transaction from the connected wallet.

        Gas is estimated when ``tx.gas_limit`` is not set.

        Raises:
            SoneiumError(WALLET): no wallet connected
            SoneiumError(TRANSACTION_REJECTED): the signer or node refused it
            SoneiumError(RPC): any other failure
        """
        account = self._require_wallet()
        self._logger.info("Sending transaction to %s (value %s)", tx.to, tx.value)

        try:
            gas = tx.gas_limit
            if not gas:
                self._logger.debug("Estimating gas for transaction")
                gas = await estimate_gas(
                    self._rpc,
                    {"from": account.address, "to": tx.to, "data": tx.data, "value": tx.value},
                    self._gas_options(),
                )

            nonce = await self._rpc.get_transaction_count(account.address)
            prices = await get_current_gas_prices(self._rpc, self._gas_options())
            unsigned: Dict[str, Any] = {
                "type": 2,
                "chainId": self._rpc.network.chain_id,
                "nonce": nonce,
                "to": Web3.to_checksum_address(tx.to),
                "value": tx.value or 0,
                "data": tx.data or "0x",
                "gas": gas,
                "maxFeePerGas": prices.max_fee_per_gas,
                "maxPriorityFeePerGas": prices.max_priority_fee_per_gas,
            }
            signed = account.sign_transaction(unsigned)
            tx_hash = await self._rpc.send_raw_transaction(signed.raw_transaction.hex())
        except Exception as e:
            self._logger.error("Failed to send transaction: %s", e)
            if _is_user_rejection(e):
                raise SoneiumError.transaction_rejected(
                    "Transaction rejected by user", reason=str(e)
                ) from e
            raise wrap_error(
                e,
                ErrorKind.RPC,
                "Failed to send transaction",
                passthrough=(ErrorKind.RPC_TIMEOUT, ErrorKind.GAS_ESTIMATION),
            ) from e

        self._logger.info("Transaction sent: %s", tx_hash)
        return tx_hash

    async def estimate_gas(
        self,
        tx: TransactionRequest,
        buffer_percentage: Optional[int] = None,
        max_gas_limit: Optional[int] = None,
    ) -> int:
        """Buffered gas limit for ``tx`` sent from the connected wallet."""
        account = self._require_wallet()
        return await estimate_gas(
            self._rpc,
            {"from": account.address, "to": tx.to, "data": tx.data, "value": tx.value},
            self._gas_options(buffer_percentage, max_gas_limit),
        )

    async def get_current_gas_prices(self, buffer_percentage: Optional[int] = None) -> GasPrices:
        return await get_current_gas_prices(self._rpc, self._gas_options(buffer_percentage))

    # Account abstraction

    async def create_user_operation(self, tx: TransactionRequest) -> UserOperation:
        """Unsigned user operation from the connected wallet, gas filled in."""
        account = self._require_wallet()
        self._logger.info("Creating user operation to %s", tx.to)
        user_op = await build_unsigned_user_operation(
            self._rpc,
            account.address,
            tx,
            gas_options=self._gas_options(),
        )
        self._logger.debug("User operation created for %s", user_op.sender)
        return user_op

    async def get_paymaster_signature(
        self,
        user_op: Union[UserOperation, Dict[str, Any]],
        sponsor_type: Union[SponsorType, str] = SponsorType.GASLESS,
        api_key: Optional[str] = None,
    ) -> PaymasterResponse:
        paymaster = PaymasterClient(timeout_seconds=self._timeout, transport=self._options.transport)
        return await paymaster.get_paymaster_signature(user_op, sponsor_type, api_key)

    async def send_user_operation(
        self,
        user_op: Union[UserOperation, Dict[str, Any]],
        api_key: Optional[str] = None,
    ) -> str:
        """Submit a signed user operation; returns the userOpHash."""
        self._logger.info("Sending user operation to bundler")
        if not isinstance(user_op, UserOperation):
            user_op = UserOperation.from_rpc(user_op)

        aa_config = get_config().account_abstraction
        async with BundlerClient(
            aa_config.bundler_url,
            entry_point_address=aa_config.entry_point_address,
            timeout_seconds=self._timeout,
            api_key=api_key,
            transport=self._options.transport,
        ) as bundler:
            return await bundler.send_user_operation(user_op)

    async def send_aa_transaction(
        self,
        tx: TransactionRequest,
        private_key: Optional[str] = None,
        gas_buffer_percentage: Optional[int] = None,
    ) -> str:
        """Send ``tx`` through the smart account owned by ``private_key``."""
        return await self._send_via_smart_account(
            tx, private_key, None, gas_buffer_percentage, "AA transactions"
        )

    async def send_sponsored_transaction(
        self,
        tx: TransactionRequest,
        api_key: str,
        private_key: Optional[str] = None,
        gas_buffer_percentage: Optional[int] = None,
    ) -> str:
        """Like :meth:`send_aa_transaction` with gas paid by the paymaster."""
        if not api_key:
            self._logger.error("API key is required for sponsored transactions")
            raise SoneiumError.paymaster("API key is required for sponsored transactions")
        return await self._send_via_smart_account(
            tx, private_key, api_key, gas_buffer_percentage, "sponsored transactions"
        )

    async def _send_via_smart_account(
        self,
        tx: TransactionRequest,
        private_key: Optional[str],
        api_key: Optional[str],
        gas_buffer_percentage: Optional[int],
        label: str,
    ) -> str:
        self._logger.info("Sending %s to %s (value %s)", label, tx.to, tx.value)
        if not private_key and self._account is None:
            self._logger.error("No wallet connected and no private key provided")
            raise SoneiumError.account_abstraction(
                "Wallet not connected. Call connect_wallet first or provide a private_key."
            )
        if not private_key:
            # the connected wallet's key is not retained
            self._logger.error("Private key must be provided for %s", label)
            raise SoneiumError.account_abstraction(
                f"Private key must be provided for {label} when using a connected wallet."
            )

        try:
            async with await create_aa_client(
                private_key,
                self._network,
                api_key is not None,
                api_key,
                self._aa_options(gas_buffer_percentage),
            ) as aa:
                tx_hash = await aa.smart_account_client.send_transaction(tx)
        except Exception as e:
            self._logger.error("Failed to send %s: %s", label, e)
            raise wrap_error(
                e,
                ErrorKind.ACCOUNT_ABSTRACTION,
                f"Failed to send {label}",
                passthrough=(ErrorKind.ACCOUNT_ABSTRACTION, ErrorKind.RPC),
            ) from e

        self._logger.info("%s sent: %s", label.capitalize(), tx_hash)
        return tx_hash

    # Network

    def get_network_type(self) -> NetworkType:
        return NetworkType(self._network)

    def switch_network(self, network: Union[NetworkType, str]) -> None:
        """Retarget this client (and its wallet) at another network."""
        name = self._network_name(network)
        self._logger.info("Switching network from %s to %s", self._network, name)
        try:
            network_config = get_config().get_network_config(name)
        except Exception as e:
            self._logger.error("Failed to switch network: %s", e)
            raise wrap_error(e, ErrorKind.RPC, "Failed to switch network") from e

        self._rpc.set_network(network_config)
        self._network = name
        self._logger.info("Network switched to %s", network_config.name)

    # Logging

    def get_logger(self) -> logging.Logger:
        return self._logger

    def set_log_level(self, level: Union[LogLevel, str]) -> None:
        if self._owns_logger:
            self._logger = resolve_logger(level=level)
        else:
            set_log_level(self._logger, level)

    # Lifecycle

    async def close(self) -> None:
        await self._rpc.close()

    async def __aenter__(self) -> "SoneiumClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
