"""
Gas estimation for plain transactions and ERC-4337 user operations.

All limits are integers in gas units and all fees are in wei. Buffers are
applied with integer arithmetic: ``value + value * pct // 100``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol

from .errors import SoneiumError
from .logging_utils import format_log_data
from .models import GasPrices, UserOperationGas
from .rpc_client import DEFAULT_BASE_FEE_WEI, RPCClient
from .user_operation import UserOperation, hex_byte_length, is_empty_hex

logger = logging.getLogger(__name__)

DEFAULT_BUFFER_PERCENTAGE = 20
DEFAULT_MAX_GAS_LIMIT = 10_000_000

# Verification gas for an already-deployed account, plus the extra charged
# when the op also deploys the account through initCode.
BASE_VERIFICATION_GAS = 100_000
INIT_CODE_VERIFICATION_GAS = 100_000

# Bundler overhead: intrinsic tx cost plus a flat per-byte calldata charge
BASE_PRE_VERIFICATION_GAS = 21_000
PRE_VERIFICATION_GAS_PER_BYTE = 16

# 1.5 gwei
DEFAULT_PRIORITY_FEE_WEI = 1_500_000_000


@dataclass
class GasEstimationOptions:
    """Tuning for the gas helpers."""
    buffer_percentage: int = DEFAULT_BUFFER_PERCENTAGE
    max_gas_limit: int = DEFAULT_MAX_GAS_LIMIT
    logger: logging.Logger = field(default=logger, repr=False)

    def __post_init__(self) -> None:
        if self.buffer_percentage < 0:
            raise ValueError("buffer_percentage must be >= 0")
        if self.max_gas_limit <= 0:
            raise ValueError("max_gas_limit must be positive")


def _options(options: Optional[GasEstimationOptions]) -> GasEstimationOptions:
    return options or GasEstimationOptions()


def apply_buffer(value: int, buffer_percentage: int) -> int:
    """Add ``buffer_percentage`` percent to ``value`` (rounded down)."""
    return value + (value * buffer_percentage) // 100


def cap_gas_limit(gas_limit: int, max_gas_limit: int) -> int:
    return min(gas_limit, max_gas_limit)


def compute_verification_gas_limit(init_code: Optional[str], buffer_percentage: int) -> int:
    verification = BASE_VERIFICATION_GAS
    if not is_empty_hex(init_code):
        verification += INIT_CODE_VERIFICATION_GAS
    return apply_buffer(verification, buffer_percentage)


def compute_pre_verification_gas(
    call_data: Optional[str],
    init_code: Optional[str],
    buffer_percentage: int,
) -> int:
    """21000 + 16 gas per byte of callData and initCode, buffered."""
    pre_verification = (
        BASE_PRE_VERIFICATION_GAS
        + PRE_VERIFICATION_GAS_PER_BYTE * hex_byte_length(call_data)
        + PRE_VERIFICATION_GAS_PER_BYTE * hex_byte_length(init_code)
    )
    return apply_buffer(pre_verification, buffer_percentage)


def compute_max_fee_per_gas(base_fee_per_gas: int, buffer_percentage: int) -> int:
    return (base_fee_per_gas * (100 + buffer_percentage)) // 100


async def estimate_gas(
    client: RPCClient,
    tx: Dict[str, Any],
    options: Optional[GasEstimationOptions] = None,
) -> int:
    """
    Estimate a buffered, capped gas limit for a transaction.

    Args:
        client: RPC client used for ``eth_estimateGas``
        tx: Transaction fields (``from``, ``to``, ``data``, ``value``)
        options: Buffer and cap settings

    Returns:
        ``min(estimate + estimate * buffer // 100, max_gas_limit)``

    Raises:
        SoneiumError(GAS_ESTIMATION): on any underlying failure
    """
    opts = _options(options)
    log = opts.logger
    try:
        log.debug("Estimating gas for transaction %s", format_log_data(tx))
        gas_estimate = await client.estimate_gas(tx)
        log.debug("Raw gas estimate %s", gas_estimate)

        gas_limit = apply_buffer(gas_estimate, opts.buffer_percentage)
        if gas_limit > opts.max_gas_limit:
            log.warning(
                "Gas estimate %s exceeds max gas limit %s, capping", gas_limit, opts.max_gas_limit
            )
            gas_limit = opts.max_gas_limit

        log.debug("Final gas limit with buffer %s", gas_limit)
        return gas_limit
    except Exception as e:
        log.error("Gas estimation failed: %s", e)
        raise SoneiumError.gas_estimation(f"Failed to estimate gas: {_message(e)}") from e


async def estimate_user_operation_gas(
    client: RPCClient,
    entry_point_address: str,
    user_op: UserOperation,
    options: Optional[GasEstimationOptions] = None,
) -> UserOperationGas:
    """
    Estimate the three gas limits of a user operation.

    ``call_gas_limit`` simulates the account calling itself with the op's
    call data; verification and pre-verification gas are derived from the
    op's shape.
    """
    opts = _options(options)
    log = opts.logger
    try:
        log.debug(
            "Estimating gas for user operation from %s via entry point %s",
            user_op.sender,
            entry_point_address,
        )
        call_gas_limit = await estimate_gas(
            client,
            {"from": user_op.sender, "to": user_op.sender, "data": user_op.call_data},
            opts,
        )
        verification_gas_limit = compute_verification_gas_limit(
            user_op.init_code, opts.buffer_percentage
        )
        pre_verification_gas = compute_pre_verification_gas(
            user_op.call_data, user_op.init_code, opts.buffer_percentage
        )

        gas = UserOperationGas(
            call_gas_limit=call_gas_limit,
            verification_gas_limit=verification_gas_limit,
            pre_verification_gas=pre_verification_gas,
        )
        log.debug("Estimated gas parameters %s", format_log_data(gas.__dict__))
        return gas
    except Exception as e:
        log.error("User operation gas estimation failed: %s", e)
        raise SoneiumError.gas_estimation(
            f"Failed to estimate user operation gas: {_message(e)}"
        ) from e


async def get_current_gas_prices(
    client: RPCClient,
    options: Optional[GasEstimationOptions] = None,
) -> GasPrices:
    """Fee caps from the latest block's base fee (1 gwei when absent)."""
    opts = _options(options)
    log = opts.logger
    try:
        log.debug("Getting current gas prices")
        base_fee = await client.get_base_fee()
        if base_fee is None:
            base_fee = DEFAULT_BASE_FEE_WEI

        prices = GasPrices(
            max_fee_per_gas=compute_max_fee_per_gas(base_fee, opts.buffer_percentage),
            max_priority_fee_per_gas=DEFAULT_PRIORITY_FEE_WEI,
            base_fee_per_gas=base_fee,
        )
        log.debug("Current gas prices %s", format_log_data(prices.__dict__))
        return prices
    except Exception as e:
        log.error("Failed to get current gas prices: %s", e)
        raise SoneiumError.gas_estimation(f"Failed to get current gas prices: {_message(e)}") from e


class UserOperationMiddleware(Protocol):
    async def __call__(self, user_op: UserOperation) -> UserOperation: ...


class GasEstimationMiddleware:
    """Fills the gas limits and fee caps of a user operation."""

    def __init__(
        self,
        client: RPCClient,
        entry_point_address: str,
        options: Optional[GasEstimationOptions] = None,
    ):
        self._client = client
        self._entry_point = entry_point_address
        self._options = _options(options)

    @property
    def options(self) -> GasEstimationOptions:
        return self._options

    async def __call__(self, user_op: UserOperation) -> UserOperation:
        log = self._options.logger
        log.debug("Gas estimation middleware called for %s", user_op.sender)
        try:
            gas = await estimate_user_operation_gas(
                self._client, self._entry_point, user_op, self._options
            )
            prices = await get_current_gas_prices(self._client, self._options)
        except Exception as e:
            log.error("Gas estimation middleware failed: %s", e)
            raise SoneiumError.gas_estimation(
                f"Gas estimation middleware failed: {_message(e)}"
            ) from e

        return user_op.with_updates(
            call_gas_limit=gas.call_gas_limit,
            verification_gas_limit=gas.verification_gas_limit,
            pre_verification_gas=gas.pre_verification_gas,
            max_fee_per_gas=prices.max_fee_per_gas,
            max_priority_fee_per_gas=prices.max_priority_fee_per_gas,
        )


def create_gas_estimation_middleware(
    client: RPCClient,
    entry_point_address: str,
    options: Optional[GasEstimationOptions] = None,
) -> GasEstimationMiddleware:
    return GasEstimationMiddleware(client, entry_point_address, options)


def _message(exc: BaseException) -> str:
    return exc.message if isinstance(exc, SoneiumError) else str(exc)
