"""
Account abstraction client composition for Soneium.

``create_aa_client`` wires the pieces in order: a public RPC client, a
SimpleAccount smart account, the user-operation middleware (gas estimation
always, sponsorship on request) and finally a :class:`SmartAccountClient`
that submits user operations through the bundler.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Union

import httpx
from web3 import Web3

from .bundler import BundlerClient, transaction_hash_from_receipt
from .chains import Chain, get_chain
from .config import NetworkType, get_config
from .errors import ErrorKind, SoneiumError, wrap_error
from .gas_estimation import (
    GasEstimationMiddleware,
    GasEstimationOptions,
    create_gas_estimation_middleware,
    estimate_user_operation_gas,
    get_current_gas_prices,
)
from .models import SentUserOperation, TransactionRequest
from .paymaster import SponsorshipMiddleware, create_sponsorship_middleware
from .rpc_client import RPCClient
from .smart_account import SimpleSmartAccount
from .user_operation import DUMMY_SIGNATURE, UserOperation

logger = logging.getLogger(__name__)

DEFAULT_RECEIPT_TIMEOUT_SECONDS = 180.0
DEFAULT_RECEIPT_POLL_SECONDS = 2.0

# Errors already typed at this layer and left untouched
AA_PASSTHROUGH = (ErrorKind.ACCOUNT_ABSTRACTION, ErrorKind.RPC)


@dataclass
class AAOptions:
    """Options shared by the AA helpers."""
    timeout_seconds: Optional[float] = None
    logger: Optional[logging.Logger] = None
    gas_buffer_percentage: Optional[int] = None
    receipt_timeout_seconds: float = DEFAULT_RECEIPT_TIMEOUT_SECONDS
    receipt_poll_seconds: float = DEFAULT_RECEIPT_POLL_SECONDS
    transport: Optional[httpx.AsyncBaseTransport] = field(default=None, repr=False)

    @property
    def log(self) -> logging.Logger:
        return self.logger or logger

    def gas_options(self) -> GasEstimationOptions:
        buffer = self.gas_buffer_percentage
        if buffer is None:
            buffer = get_config().gas_buffer_percentage
        return GasEstimationOptions(buffer_percentage=buffer, logger=self.log)


def create_public_client(
    network: Union[NetworkType, str] = NetworkType.TESTNET,
    timeout_seconds: Optional[float] = None,
    logger_: Optional[logging.Logger] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> RPCClient:
    """RPC client for the network's default endpoint."""
    log = logger_ or logger
    log.debug("Creating public client for %s", network)
    try:
        network_config = get_config().get_network_config(network)
        return RPCClient(network_config, timeout_seconds=timeout_seconds, transport=transport)
    except Exception as e:
        log.error("Failed to create public client: %s", e)
        raise wrap_error(e, ErrorKind.ACCOUNT_ABSTRACTION, "Failed to create public client") from e


def create_bundler_client(
    network: Union[NetworkType, str] = NetworkType.TESTNET,
    timeout_seconds: Optional[float] = None,
    logger_: Optional[logging.Logger] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    api_key: Optional[str] = None,
) -> BundlerClient:
    """Bundler client for the configured bundler URL and entry point."""
    log = logger_ or logger
    log.debug("Creating bundler client for %s", network)
    try:
        get_chain(network)
        aa_config = get_config().account_abstraction
        return BundlerClient(
            aa_config.bundler_url,
            entry_point_address=aa_config.entry_point_address,
            timeout_seconds=timeout_seconds,
            api_key=api_key,
            transport=transport,
        )
    except Exception as e:
        log.error("Failed to create bundler client: %s", e)
        raise wrap_error(e, ErrorKind.ACCOUNT_ABSTRACTION, "Failed to create bundler client") from e


async def create_smart_account(
    public_client: RPCClient,
    private_key: str,
    logger_: Optional[logging.Logger] = None,
) -> SimpleSmartAccount:
    """SimpleAccount for ``private_key`` with its counterfactual address resolved."""
    log = logger_ or logger
    log.debug("Creating smart account")
    try:
        aa_config = get_config().account_abstraction
        account = SimpleSmartAccount(
            private_key,
            factory_address=aa_config.factory_address,
            entry_point_address=aa_config.entry_point_address,
        )
        address = await account.get_address(public_client)
    except Exception as e:
        log.error("Failed to create smart account: %s", e)
        raise wrap_error(
            e,
            ErrorKind.ACCOUNT_ABSTRACTION,
            "Failed to create smart account",
            passthrough=(ErrorKind.ACCOUNT_ABSTRACTION,),
        ) from e

    log.debug("Smart account created at %s", address)
    return account


@dataclass
class Middleware:
    """User-operation hooks applied while preparing an op."""
    gas_estimator: GasEstimationMiddleware
    sponsorship: Optional[SponsorshipMiddleware] = None


class SmartAccountClient:
    """Send-capable client bound to one smart account."""

    def __init__(
        self,
        account: SimpleSmartAccount,
        public_client: RPCClient,
        bundler: BundlerClient,
        middleware: Middleware,
        chain: Chain,
        logger_: Optional[logging.Logger] = None,
        receipt_timeout_seconds: float = DEFAULT_RECEIPT_TIMEOUT_SECONDS,
        receipt_poll_seconds: float = DEFAULT_RECEIPT_POLL_SECONDS,
    ):
        self.account = account
        self.public_client = public_client
        self.bundler = bundler
        self.middleware = middleware
        self.chain = chain
        self._logger = logger_ or logger
        self._receipt_timeout = receipt_timeout_seconds
        self._receipt_poll = receipt_poll_seconds

    @property
    def address(self) -> str:
        return self.account.address

    async def prepare_user_operation(self, tx: TransactionRequest) -> UserOperation:
        """
        Build an unsigned user operation for ``tx``.

        The op carries the dummy signature until :meth:`sign_user_operation`.
        With sponsorship, gas is estimated against empty paymaster data and
        the sponsor is asked for the real data afterwards.
        """
        rpc = self.public_client
        sender = await self.account.get_address(rpc)
        nonce = await self.account.get_nonce(rpc)
        init_code = "0x" if await self.account.is_deployed(rpc) else self.account.get_init_code()

        user_op = UserOperation(
            sender=sender,
            nonce=nonce,
            init_code=init_code,
            call_data=self.account.encode_calls(tx.to, tx.value or 0, tx.data or b""),
            signature=DUMMY_SIGNATURE,
        )

        sponsorship = self.middleware.sponsorship
        if sponsorship is not None:
            user_op = user_op.with_updates(
                paymaster_and_data=await sponsorship.dummy_paymaster_and_data(user_op)
            )

        user_op = await self.middleware.gas_estimator(user_op)
        if tx.gas_limit:
            user_op = user_op.with_updates(call_gas_limit=tx.gas_limit)

        if sponsorship is not None:
            user_op = user_op.with_updates(
                paymaster_and_data=await sponsorship.paymaster_and_data(user_op)
            )

        self._logger.debug("Prepared user operation for %s (nonce %s)", sender, nonce)
        return user_op

    def sign_user_operation(self, user_op: UserOperation) -> UserOperation:
        return self.account.sign_user_operation(user_op, self.chain.id)

    async def send_user_operation(self, tx: TransactionRequest) -> str:
        """Prepare, sign and submit ``tx``; returns the userOpHash."""
        user_op = self.sign_user_operation(await self.prepare_user_operation(tx))
        return await self.bundler.send_user_operation(user_op)

    async def send_and_wait(self, tx: TransactionRequest) -> SentUserOperation:
        """Submit ``tx`` and poll the bundler until the op is included."""
        user_op_hash = await self.send_user_operation(tx)
        receipt = await self.bundler.wait_for_receipt(
            user_op_hash,
            timeout_seconds=self._receipt_timeout,
            poll_seconds=self._receipt_poll,
        )
        tx_hash = transaction_hash_from_receipt(receipt)
        if not tx_hash:
            raise SoneiumError.bundler(
                f"Receipt for {user_op_hash} has no transaction hash", response=receipt
            )
        return SentUserOperation(user_op_hash=user_op_hash, transaction_hash=tx_hash, receipt=receipt)

    async def send_transaction(self, tx: TransactionRequest) -> str:
        """Submit ``tx`` and wait for inclusion; returns the transaction hash."""
        sent = await self.send_and_wait(tx)
        return sent.transaction_hash

    async def close(self) -> None:
        await self.bundler.close()
        if self.middleware.sponsorship is not None:
            await self.middleware.sponsorship.close()


@dataclass
class AAClient:
    """Result of :func:`create_aa_client`."""
    smart_account_client: SmartAccountClient
    public_client: RPCClient
    address: str

    async def close(self) -> None:
        await self.smart_account_client.close()
        await self.public_client.close()

    async def __aenter__(self) -> "AAClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


async def create_aa_client(
    private_key: str,
    network: Union[NetworkType, str] = NetworkType.TESTNET,
    with_sponsorship: bool = False,
    api_key: Optional[str] = None,
    options: Optional[AAOptions] = None,
) -> AAClient:
    """
    Create a smart account client for Soneium.

    Args:
        private_key: Owner key of the SimpleAccount
        network: "mainnet" or "testnet"
        with_sponsorship: Route gas through the paymaster
        api_key: Paymaster API key, required with sponsorship
        options: Timeout, logger, gas buffer and transport overrides

    Raises:
        SoneiumError(PAYMASTER): sponsorship requested without an API key
        SoneiumError(ACCOUNT_ABSTRACTION): any other composition failure
    """
    opts = options or AAOptions()
    log = opts.log
    log.info("Creating AA client for %s%s", network, " with sponsorship" if with_sponsorship else "")

    if with_sponsorship and not api_key:
        log.error("API key is required for sponsorship")
        raise SoneiumError.paymaster("API key is required for sponsored transactions")

    public_client: Optional[RPCClient] = None
    try:
        chain = get_chain(network)
        public_client = create_public_client(
            network, timeout_seconds=opts.timeout_seconds, logger_=log, transport=opts.transport
        )
        account = await create_smart_account(public_client, private_key, logger_=log)

        middleware = Middleware(
            gas_estimator=create_gas_estimation_middleware(
                public_client, account.entry_point_address, opts.gas_options()
            )
        )
        if with_sponsorship:
            middleware.sponsorship = create_sponsorship_middleware(
                api_key, timeout_seconds=opts.timeout_seconds, transport=opts.transport
            )

        log.debug(
            "Creating smart account client for %s (sponsorship=%s)", account.address, with_sponsorship
        )
        smart_account_client = SmartAccountClient(
            account,
            public_client,
            create_bundler_client(
                network, timeout_seconds=opts.timeout_seconds, logger_=log, transport=opts.transport
            ),
            middleware,
            chain,
            logger_=log,
            receipt_timeout_seconds=opts.receipt_timeout_seconds,
            receipt_poll_seconds=opts.receipt_poll_seconds,
        )
    except Exception as e:
        log.error("Failed to create AA client: %s", e)
        if public_client is not None:
            await public_client.close()
        raise wrap_error(
            e, ErrorKind.ACCOUNT_ABSTRACTION, "Failed to create AA client", passthrough=AA_PASSTHROUGH
        ) from e

    return AAClient(
        smart_account_client=smart_account_client,
        public_client=public_client,
        address=account.address,
    )


async def build_unsigned_user_operation(
    public_client: RPCClient,
    sender: str,
    tx: TransactionRequest,
    nonce: int = 0,
    init_code: str = "0x",
    entry_point_address: Optional[str] = None,
    gas_options: Optional[GasEstimationOptions] = None,
) -> UserOperation:
    """
    Build an unsigned user operation with estimated gas and fees.

    No key is involved: ``sender`` is taken as given and ``tx.data`` is used
    as the op's call data. The result has empty paymaster data and signature.
    """
    entry_point = entry_point_address or get_config().account_abstraction.entry_point_address
    log = gas_options.logger if gas_options else logger
    try:
        user_op = UserOperation(
            sender=sender,
            nonce=nonce,
            init_code=init_code,
            call_data=tx.data or "0x",
        )
        gas = await estimate_user_operation_gas(public_client, entry_point, user_op, gas_options)
        prices = await get_current_gas_prices(public_client, gas_options)
    except Exception as e:
        log.error("Failed to create user operation: %s", e)
        raise wrap_error(
            e,
            ErrorKind.ACCOUNT_ABSTRACTION,
            "Failed to create user operation",
            passthrough=(ErrorKind.GAS_ESTIMATION, ErrorKind.ACCOUNT_ABSTRACTION),
        ) from e

    return user_op.with_updates(
        call_gas_limit=gas.call_gas_limit,
        verification_gas_limit=gas.verification_gas_limit,
        pre_verification_gas=gas.pre_verification_gas,
        max_fee_per_gas=prices.max_fee_per_gas,
        max_priority_fee_per_gas=prices.max_priority_fee_per_gas,
    )


def parse_ether(amount: Union[str, int, float, Decimal]) -> int:
    """Ether amount to wei."""
    try:
        wei = Web3.to_wei(Decimal(str(amount)), "ether")
    except Exception as e:
        raise ValueError(f"Invalid ether amount: {amount}") from e
    if wei < 0:
        raise ValueError(f"Invalid ether amount: {amount}")
    return wei


async def send_transaction(
    client: SmartAccountClient,
    to: str,
    amount_ether: Union[str, Decimal],
    logger_: Optional[logging.Logger] = None,
) -> str:
    """Send ``amount_ether`` to ``to`` through a smart account."""
    log = logger_ or logger
    log.info("Sending transaction to %s with amount %s", to, amount_ether)
    try:
        tx_hash = await client.send_transaction(
            TransactionRequest(to=to, value=parse_ether(amount_ether))
        )
    except Exception as e:
        log.error("Failed to send transaction: %s", e)
        raise wrap_error(
            e, ErrorKind.ACCOUNT_ABSTRACTION, "Failed to send transaction", passthrough=AA_PASSTHROUGH
        ) from e

    log.info("Transaction sent successfully: %s", tx_hash)
    return tx_hash


async def send_sponsored_transaction(
    private_key: str,
    to: str,
    amount_ether: Union[str, Decimal],
    api_key: str,
    network: Union[NetworkType, str] = NetworkType.TESTNET,
    options: Optional[AAOptions] = None,
) -> str:
    """One-shot sponsored transfer from the smart account of ``private_key``."""
    opts = options or AAOptions()
    log = opts.log
    log.info("Sending sponsored transaction to %s with amount %s on %s", to, amount_ether, network)

    if not api_key:
        log.error("API key is required for sponsorship")
        raise SoneiumError.paymaster("API key is required for sponsored transactions")

    try:
        async with await create_aa_client(private_key, network, True, api_key, opts) as aa:
            tx_hash = await aa.smart_account_client.send_transaction(
                TransactionRequest(to=to, value=parse_ether(amount_ether))
            )
    except Exception as e:
        log.error("Failed to send sponsored transaction: %s", e)
        raise wrap_error(
            e,
            ErrorKind.ACCOUNT_ABSTRACTION,
            "Failed to send sponsored transaction",
            passthrough=AA_PASSTHROUGH,
        ) from e

    log.info("Sponsored transaction sent successfully: %s", tx_hash)
    return tx_hash
