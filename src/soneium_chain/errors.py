"""Error types for the Soneium client.

Every failure raised by this package is a :class:`SoneiumError` tagged with
an :class:`ErrorKind`. Kinds form a shallow tree (a timeout is an RPC error,
paymaster and bundler failures are account-abstraction errors), so callers
can match broadly or narrowly:

    try:
        await client.send_user_operation(op)
    except SoneiumError as e:
        if e.is_kind(ErrorKind.RPC_TIMEOUT):
            ...
        elif e.is_kind(ErrorKind.ACCOUNT_ABSTRACTION):
            ...

All errors have:
- kind: the closed category tag
- error_code: machine-readable code (the kind's value)
- message: human-readable message, prefixed with the category
- response: optional remote payload (paymaster / bundler bodies)
- details: optional additional context
- to_dict(): structured form for logs and API responses
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """Closed set of error categories."""
    RPC = "RPC_ERROR"
    RPC_TIMEOUT = "RPC_TIMEOUT"
    WALLET = "WALLET_ERROR"
    ACCOUNT_ABSTRACTION = "ACCOUNT_ABSTRACTION_ERROR"
    PAYMASTER = "PAYMASTER_ERROR"
    BUNDLER = "BUNDLER_ERROR"
    TRANSACTION_REJECTED = "TRANSACTION_REJECTED"
    GAS_ESTIMATION = "GAS_ESTIMATION_ERROR"

    @property
    def parent(self) -> Optional["ErrorKind"]:
        return _PARENTS.get(self)

    @property
    def label(self) -> str:
        return _LABELS[self]

    def lineage(self) -> tuple["ErrorKind", ...]:
        """This kind followed by its ancestors."""
        kinds = [self]
        while kinds[-1].parent is not None:
            kinds.append(kinds[-1].parent)
        return tuple(kinds)


_PARENTS = {
    ErrorKind.RPC_TIMEOUT: ErrorKind.RPC,
    ErrorKind.PAYMASTER: ErrorKind.ACCOUNT_ABSTRACTION,
    ErrorKind.BUNDLER: ErrorKind.ACCOUNT_ABSTRACTION,
}

_LABELS = {
    ErrorKind.RPC: "RPC Error",
    ErrorKind.RPC_TIMEOUT: "RPC Error",
    ErrorKind.WALLET: "Wallet Error",
    ErrorKind.ACCOUNT_ABSTRACTION: "Account Abstraction Error",
    ErrorKind.PAYMASTER: "Paymaster Error",
    ErrorKind.BUNDLER: "Bundler Error",
    ErrorKind.TRANSACTION_REJECTED: "Transaction Rejected",
    ErrorKind.GAS_ESTIMATION: "Gas Estimation Error",
}


class SoneiumError(Exception):
    """Base (and only) exception type for soneium-chain.

    Attributes:
        kind: Error category
        message: Message without the category prefix
        response: Remote response payload, if any
        details: Additional context (RPC code, URL, method, reason, ...)
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        response: Any = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.kind = kind
        self.message = message
        self.response = response
        self.details = details or {}
        super().__init__(f"{kind.label}: {message}")

    @property
    def error_code(self) -> str:
        return self.kind.value

    @property
    def code(self) -> Optional[int]:
        """Remote JSON-RPC / HTTP error code, when one was reported."""
        return self.details.get("code")

    @property
    def data(self) -> Any:
        return self.details.get("data")

    @property
    def url(self) -> Optional[str]:
        return self.details.get("url")

    @property
    def method(self) -> Optional[str]:
        return self.details.get("method")

    @property
    def reason(self) -> Optional[str]:
        return self.details.get("reason")

    def is_kind(self, *kinds: ErrorKind) -> bool:
        """True if this error's kind, or one of its ancestors, is in ``kinds``."""
        return any(k in kinds for k in self.kind.lineage())

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "error": self.error_code,
            "message": str(self),
        }
        if self.details:
            result["details"] = self.details
        if self.response is not None:
            result["response"] = self.response
        return result

    def __repr__(self) -> str:
        return f"SoneiumError(kind={self.kind.name}, message={self.message!r})"

    # Constructors, one per kind

    @classmethod
    def rpc(
        cls,
        message: str,
        *,
        code: Optional[int] = None,
        data: Any = None,
        url: Optional[str] = None,
        method: Optional[str] = None,
    ) -> "SoneiumError":
        details = {
            k: v
            for k, v in (("code", code), ("data", data), ("url", url), ("method", method))
            if v is not None
        }
        return cls(ErrorKind.RPC, message, details=details)

    @classmethod
    def timeout(cls, url: str, timeout_seconds: float, method: Optional[str] = None) -> "SoneiumError":
        timeout_ms = int(round(timeout_seconds * 1000))
        details: dict[str, Any] = {"url": url, "timeout_ms": timeout_ms}
        if method:
            details["method"] = method
        return cls(
            ErrorKind.RPC_TIMEOUT,
            f"Request to {url} timed out after {timeout_ms}ms",
            details=details,
        )

    @classmethod
    def wallet(cls, message: str) -> "SoneiumError":
        return cls(ErrorKind.WALLET, message)

    @classmethod
    def account_abstraction(cls, message: str) -> "SoneiumError":
        return cls(ErrorKind.ACCOUNT_ABSTRACTION, message)

    @classmethod
    def paymaster(cls, message: str, response: Any = None) -> "SoneiumError":
        return cls(ErrorKind.PAYMASTER, message, response=response)

    @classmethod
    def bundler(cls, message: str, response: Any = None) -> "SoneiumError":
        return cls(ErrorKind.BUNDLER, message, response=response)

    @classmethod
    def transaction_rejected(cls, message: str, reason: Optional[str] = None) -> "SoneiumError":
        details = {"reason": reason} if reason else None
        return cls(ErrorKind.TRANSACTION_REJECTED, message, details=details)

    @classmethod
    def gas_estimation(cls, message: str) -> "SoneiumError":
        return cls(ErrorKind.GAS_ESTIMATION, message)


def wrap_error(
    exc: BaseException,
    kind: ErrorKind,
    context: str,
    passthrough: tuple[ErrorKind, ...] = (),
) -> SoneiumError:
    """Map an exception onto a boundary's error kind.

    A ``SoneiumError`` whose kind (or ancestor) is listed in ``passthrough``
    is returned unchanged; anything else becomes a ``kind`` error carrying
    ``context`` and the original message.
    """
    if isinstance(exc, SoneiumError) and exc.is_kind(*passthrough):
        return exc
    original = exc.message if isinstance(exc, SoneiumError) else str(exc)
    return SoneiumError(kind, f"{context}: {original}")
