"""
Soneium chain client.

JSON-RPC access to Soneium mainnet and the Minato testnet, with ERC-4337
account abstraction on top: SimpleAccount smart accounts, a bundler client,
paymaster sponsorship and gas estimation for user operations.
"""

from .account_abstraction import (
    AAClient,
    AAOptions,
    Middleware,
    SmartAccountClient,
    build_unsigned_user_operation,
    create_aa_client,
    create_bundler_client,
    create_public_client,
    create_smart_account,
    parse_ether,
    send_sponsored_transaction,
    send_transaction,
)
from .bundler import BundlerClient
from .chains import Chain, define_chain, get_chain, soneium_mainnet, soneium_testnet
from .client import ClientOptions, SoneiumClient
from .config import (
    ENTRY_POINT_ADDRESS,
    SIMPLE_ACCOUNT_FACTORY_ADDRESS,
    AccountAbstractionConfig,
    NetworkConfig,
    NetworkType,
    SoneiumConfig,
    get_config,
    get_network_config,
    set_config,
)
from .errors import ErrorKind, SoneiumError
from .gas_estimation import (
    GasEstimationMiddleware,
    GasEstimationOptions,
    apply_buffer,
    create_gas_estimation_middleware,
    estimate_gas,
    estimate_user_operation_gas,
    get_current_gas_prices,
)
from .logging_utils import LogLevel, configure_logging, get_logger
from .models import (
    GasPrices,
    PaymasterResponse,
    SentUserOperation,
    SponsorType,
    TransactionRequest,
    UserOperationGas,
)
from .paymaster import PaymasterClient, SponsorshipMiddleware, create_sponsorship_middleware
from .rpc_client import RPCClient
from .smart_account import SimpleSmartAccount
from .user_operation import DUMMY_SIGNATURE, UserOperation

__version__ = "0.1.0"

__all__ = [
    # Client
    "SoneiumClient",
    "ClientOptions",
    # Configuration
    "NetworkType",
    "NetworkConfig",
    "AccountAbstractionConfig",
    "SoneiumConfig",
    "ENTRY_POINT_ADDRESS",
    "SIMPLE_ACCOUNT_FACTORY_ADDRESS",
    "get_config",
    "set_config",
    "get_network_config",
    # Chains
    "Chain",
    "define_chain",
    "get_chain",
    "soneium_mainnet",
    "soneium_testnet",
    # Errors
    "ErrorKind",
    "SoneiumError",
    # Logging
    "LogLevel",
    "configure_logging",
    "get_logger",
    # RPC
    "RPCClient",
    # Gas
    "GasEstimationOptions",
    "GasEstimationMiddleware",
    "apply_buffer",
    "estimate_gas",
    "estimate_user_operation_gas",
    "get_current_gas_prices",
    "create_gas_estimation_middleware",
    # Account abstraction
    "UserOperation",
    "DUMMY_SIGNATURE",
    "SimpleSmartAccount",
    "BundlerClient",
    "PaymasterClient",
    "SponsorshipMiddleware",
    "create_sponsorship_middleware",
    "Middleware",
    "SmartAccountClient",
    "AAClient",
    "AAOptions",
    "create_public_client",
    "create_bundler_client",
    "create_smart_account",
    "create_aa_client",
    "build_unsigned_user_operation",
    "send_transaction",
    "send_sponsored_transaction",
    "parse_ether",
    # Models
    "TransactionRequest",
    "GasPrices",
    "UserOperationGas",
    "SponsorType",
    "PaymasterResponse",
    "SentUserOperation",
]
