"""UserOperation primitives for ERC-4337 (EntryPoint v0.6)."""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from typing import Any, Mapping

from eth_abi import encode
from web3 import Web3

from .rpc_client import from_quantity, to_quantity

# SimpleAccount-compatible placeholder used while estimating gas; it has the
# length and shape of a real ECDSA signature so validation paths cost the same.
DUMMY_SIGNATURE = "0x" + "f" * 31 + "0" * 33 + "7" + "a" * 63 + "1c"

EXECUTE_SELECTOR = Web3.keccak(text="execute(address,uint256,bytes)")[:4]


def zero_hex() -> str:
    return "0x"


def hex_bytes(value: str | bytes | None) -> bytes:
    """Decode a 0x-prefixed hex string (or pass bytes through)."""
    if value is None:
        return b""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    text = value[2:] if value.startswith(("0x", "0X")) else value
    return bytes.fromhex(text)


def hex_byte_length(value: str | bytes | None) -> int:
    """Number of bytes encoded by a hex string."""
    return len(hex_bytes(value))


def is_empty_hex(value: str | bytes | None) -> bool:
    return hex_byte_length(value) == 0


@dataclass
class UserOperation:
    sender: str
    nonce: int = 0
    init_code: str = "0x"
    call_data: str = "0x"
    call_gas_limit: int = 0
    verification_gas_limit: int = 0
    pre_verification_gas: int = 0
    max_fee_per_gas: int = 0
    max_priority_fee_per_gas: int = 0
    paymaster_and_data: str = "0x"
    signature: str = "0x"

    def __post_init__(self) -> None:
        for name in (
            "nonce",
            "call_gas_limit",
            "verification_gas_limit",
            "pre_verification_gas",
            "max_fee_per_gas",
            "max_priority_fee_per_gas",
        ):
            if int(getattr(self, name)) < 0:
                raise ValueError(f"UserOperation.{name} must be non-negative")

    @staticmethod
    def encode_execute(to: str, value: int, data: bytes | str = b"") -> str:
        """Encode SimpleAccount execute(address,uint256,bytes) calldata."""
        encoded = encode(
            ["address", "uint256", "bytes"],
            [Web3.to_checksum_address(to), int(value), hex_bytes(data)],
        )
        return "0x" + (EXECUTE_SELECTOR + encoded).hex()

    def with_updates(self, **changes: Any) -> "UserOperation":
        return replace(self, **changes)

    def pack(self) -> bytes:
        """ABI-encode the op without its signature (hashed fields per v0.6)."""
        return encode(
            [
                "address",
                "uint256",
                "bytes32",
                "bytes32",
                "uint256",
                "uint256",
                "uint256",
                "uint256",
                "uint256",
                "bytes32",
            ],
            [
                Web3.to_checksum_address(self.sender),
                self.nonce,
                Web3.keccak(hex_bytes(self.init_code)),
                Web3.keccak(hex_bytes(self.call_data)),
                self.call_gas_limit,
                self.verification_gas_limit,
                self.pre_verification_gas,
                self.max_fee_per_gas,
                self.max_priority_fee_per_gas,
                Web3.keccak(hex_bytes(self.paymaster_and_data)),
            ],
        )

    def get_hash(self, entry_point: str, chain_id: int) -> bytes:
        """userOpHash as computed by EntryPoint.getUserOpHash."""
        return Web3.keccak(
            encode(
                ["bytes32", "address", "uint256"],
                [Web3.keccak(self.pack()), Web3.to_checksum_address(entry_point), chain_id],
            )
        )

    def to_rpc(self) -> dict[str, Any]:
        return {
            "sender": self.sender,
            "nonce": to_quantity(self.nonce),
            "initCode": self.init_code,
            "callData": self.call_data,
            "callGasLimit": to_quantity(self.call_gas_limit),
            "verificationGasLimit": to_quantity(self.verification_gas_limit),
            "preVerificationGas": to_quantity(self.pre_verification_gas),
            "maxFeePerGas": to_quantity(self.max_fee_per_gas),
            "maxPriorityFeePerGas": to_quantity(self.max_priority_fee_per_gas),
            "paymasterAndData": self.paymaster_and_data,
            "signature": self.signature,
        }

    @classmethod
    def from_rpc(cls, data: Mapping[str, Any]) -> "UserOperation":
        return cls(
            sender=data["sender"],
            nonce=from_quantity(data.get("nonce")),
            init_code=data.get("initCode") or "0x",
            call_data=data.get("callData") or "0x",
            call_gas_limit=from_quantity(data.get("callGasLimit")),
            verification_gas_limit=from_quantity(data.get("verificationGasLimit")),
            pre_verification_gas=from_quantity(data.get("preVerificationGas")),
            max_fee_per_gas=from_quantity(data.get("maxFeePerGas")),
            max_priority_fee_per_gas=from_quantity(data.get("maxPriorityFeePerGas")),
            paymaster_and_data=data.get("paymasterAndData") or "0x",
            signature=data.get("signature") or "0x",
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
