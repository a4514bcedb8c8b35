"""Request and result types shared across the client."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from eth_utils import is_address


@dataclass
class TransactionRequest:
    """A transaction intent supplied by the caller."""
    to: str
    data: Optional[str] = None
    value: Optional[int] = None  # wei
    gas_limit: Optional[int] = None

    def __post_init__(self) -> None:
        if not is_address(self.to):
            raise ValueError(f"Invalid recipient address: {self.to}")
        if self.value is not None and self.value < 0:
            raise ValueError("value must be non-negative")
        if self.gas_limit is not None and self.gas_limit < 0:
            raise ValueError("gas_limit must be non-negative")


@dataclass(frozen=True)
class GasPrices:
    """EIP-1559 fee caps, in wei."""
    max_fee_per_gas: int
    max_priority_fee_per_gas: int
    base_fee_per_gas: Optional[int] = None


@dataclass(frozen=True)
class UserOperationGas:
    """Gas limits for a user operation."""
    call_gas_limit: int
    verification_gas_limit: int
    pre_verification_gas: int


class SponsorType(str, Enum):
    GASLESS = "gasless"
    TOKEN = "token"


@dataclass
class PaymasterResponse:
    """Sponsor reply for a user operation."""
    paymaster_and_data: str
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "PaymasterResponse":
        result = data.get("result") if isinstance(data.get("result"), dict) else data
        return cls(
            paymaster_and_data=str(result.get("paymasterAndData") or "0x"),
            raw=data,
        )


@dataclass(frozen=True)
class SentUserOperation:
    """Outcome of submitting a user operation through a smart account."""
    user_op_hash: str
    transaction_hash: Optional[str] = None
    receipt: Optional[Dict[str, Any]] = None
