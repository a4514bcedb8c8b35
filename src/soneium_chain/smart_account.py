"""SimpleAccount (eth-infinitism) smart account helpers.

The account contract lives on chain; this module only derives its
counterfactual address, builds the factory init code, encodes calls and
signs user operations with the owner key.
"""

from __future__ import annotations

import logging
from typing import Optional

from eth_abi import decode, encode
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount
from web3 import Web3

from .config import ENTRY_POINT_ADDRESS, SIMPLE_ACCOUNT_FACTORY_ADDRESS
from .errors import SoneiumError
from .rpc_client import RPCClient
from .user_operation import UserOperation, hex_bytes

logger = logging.getLogger(__name__)

GET_ADDRESS_SELECTOR = Web3.keccak(text="getAddress(address,uint256)")[:4]
CREATE_ACCOUNT_SELECTOR = Web3.keccak(text="createAccount(address,uint256)")[:4]
GET_NONCE_SELECTOR = Web3.keccak(text="getNonce(address,uint192)")[:4]


class SimpleSmartAccount:
    """SimpleAccount owned by a single ECDSA key."""

    def __init__(
        self,
        owner_key: str | LocalAccount,
        factory_address: str = SIMPLE_ACCOUNT_FACTORY_ADDRESS,
        entry_point_address: str = ENTRY_POINT_ADDRESS,
        salt: int = 0,
    ):
        if isinstance(owner_key, LocalAccount):
            self._owner = owner_key
        else:
            try:
                self._owner = Account.from_key(owner_key)
            except Exception as e:
                raise SoneiumError.wallet(f"Invalid owner private key: {e}") from e

        self.factory_address = Web3.to_checksum_address(factory_address)
        self.entry_point_address = Web3.to_checksum_address(entry_point_address)
        self.salt = salt
        self._address: Optional[str] = None

    @property
    def owner(self) -> LocalAccount:
        return self._owner

    @property
    def owner_address(self) -> str:
        return self._owner.address

    @property
    def address(self) -> str:
        """Resolved account address; call ``get_address`` first."""
        if self._address is None:
            raise SoneiumError.account_abstraction("Smart account address not resolved yet")
        return self._address

    async def get_address(self, rpc: RPCClient) -> str:
        """Counterfactual address from the factory's ``getAddress(owner, salt)``."""
        if self._address is not None:
            return self._address

        call_data = GET_ADDRESS_SELECTOR + encode(
            ["address", "uint256"], [self.owner_address, self.salt]
        )
        result = await rpc.eth_call(
            {"to": self.factory_address, "data": "0x" + call_data.hex()}
        )
        raw = hex_bytes(result)
        if len(raw) < 32:
            raise SoneiumError.account_abstraction(
                f"Factory {self.factory_address} returned no address for owner {self.owner_address}"
            )
        (address,) = decode(["address"], raw[:32])
        self._address = Web3.to_checksum_address(address)
        logger.debug("Resolved smart account %s for owner %s", self._address, self.owner_address)
        return self._address

    def get_init_code(self) -> str:
        """Factory address followed by ``createAccount(owner, salt)`` calldata."""
        factory_call = CREATE_ACCOUNT_SELECTOR + encode(
            ["address", "uint256"], [self.owner_address, self.salt]
        )
        return "0x" + (hex_bytes(self.factory_address) + factory_call).hex()

    async def is_deployed(self, rpc: RPCClient) -> bool:
        code = await rpc.get_code(await self.get_address(rpc))
        return len(hex_bytes(code)) > 0

    async def get_nonce(self, rpc: RPCClient, key: int = 0) -> int:
        """Next nonce from ``EntryPoint.getNonce(sender, key)``."""
        sender = await self.get_address(rpc)
        call_data = GET_NONCE_SELECTOR + encode(["address", "uint192"], [sender, key])
        result = await rpc.eth_call(
            {"to": self.entry_point_address, "data": "0x" + call_data.hex()}
        )
        raw = hex_bytes(result)
        if not raw:
            return 0
        (nonce,) = decode(["uint256"], raw[:32])
        return nonce

    def encode_calls(self, to: str, value: int = 0, data: bytes | str = b"") -> str:
        return UserOperation.encode_execute(to, value, data)

    def sign_user_operation(self, user_op: UserOperation, chain_id: int) -> UserOperation:
        """Return ``user_op`` with an EIP-191 signature over its userOpHash."""
        op_hash = user_op.get_hash(self.entry_point_address, chain_id)
        signed = self._owner.sign_message(encode_defunct(primitive=op_hash))
        signature = signed.signature.hex()
        if not signature.startswith("0x"):
            signature = "0x" + signature
        return user_op.with_updates(signature=signature)
