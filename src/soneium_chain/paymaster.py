"""Paymaster sponsorship for user operations.

Two entry points share one HTTP path:

* :class:`SponsorshipMiddleware` plugs into the smart account client and
  fills ``paymasterAndData`` (``"0x"`` during gas estimation, the sponsor's
  value afterwards).
* :class:`PaymasterClient` exposes the raw sponsor request for callers that
  build user operations themselves.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional, Union

import httpx

from .config import get_config
from .errors import ErrorKind, SoneiumError, wrap_error
from .logging_utils import mask_secret, mask_url
from .models import PaymasterResponse, SponsorType
from .transport import HTTPTransport, parse_json
from .user_operation import UserOperation

logger = logging.getLogger(__name__)

UserOpPayload = Union[UserOperation, Dict[str, Any]]


def _payload(user_op: UserOpPayload) -> Dict[str, Any]:
    if isinstance(user_op, UserOperation):
        return user_op.to_rpc()
    return dict(user_op)


def _remote_message(body: Any) -> str:
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    if isinstance(body, (dict, list)):
        return json.dumps(body)
    return str(body)


class _SponsorEndpoint:
    """Authenticated POSTs to the sponsor URL."""

    def __init__(
        self,
        api_key: str,
        url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        config = get_config()
        self.url = url or config.account_abstraction.paymaster_url
        self.timeout_seconds = config.default_timeout_seconds if timeout_seconds is None else timeout_seconds
        self._api_key = api_key
        self._http = HTTPTransport(self.timeout_seconds, transport=transport)

    async def post(self, body: Dict[str, Any]) -> Any:
        try:
            response = await self._http.post_json(
                self.url,
                body,
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
        except Exception as e:
            logger.error("Paymaster request to %s failed: %s", mask_url(self.url), e)
            raise wrap_error(
                e, ErrorKind.PAYMASTER, "Paymaster request failed", passthrough=(ErrorKind.RPC_TIMEOUT,)
            ) from e

        data = parse_json(response)
        if not response.is_success:
            logger.error("Paymaster request failed with HTTP %s", response.status_code)
            raise SoneiumError.paymaster(
                f"Paymaster request failed: {_remote_message(data)}", response=data
            )
        if not isinstance(data, dict):
            raise SoneiumError.paymaster("Paymaster returned a non-object response", response=data)
        return data

    async def close(self) -> None:
        await self._http.close()


class SponsorshipMiddleware(_SponsorEndpoint):
    """Fills ``paymasterAndData`` from the sponsor service."""

    async def dummy_paymaster_and_data(self, user_op: UserOperation) -> str:
        logger.debug("Using empty paymaster data for estimation of %s", user_op.sender)
        return "0x"

    async def paymaster_and_data(self, user_op: UserOperation) -> str:
        logger.debug("Requesting paymaster data for %s", user_op.sender)
        data = await self.post({"userOperation": _payload(user_op)})
        response = PaymasterResponse.from_json(data)
        if response.paymaster_and_data in ("", "0x"):
            logger.error("Paymaster response for %s has no paymasterAndData", user_op.sender)
            raise SoneiumError.paymaster("Paymaster response missing paymasterAndData", response=data)
        logger.debug("Received paymaster data %s", response.paymaster_and_data)
        return response.paymaster_and_data


def create_sponsorship_middleware(
    api_key: Optional[str] = None,
    url: Optional[str] = None,
    timeout_seconds: Optional[float] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> SponsorshipMiddleware:
    """
    Build the sponsorship middleware.

    Falls back to ``SONEIUM_PAYMASTER_API_KEY`` from the configuration.

    Raises:
        SoneiumError(PAYMASTER): if no API key is available
    """
    key = api_key or get_config().account_abstraction.paymaster_api_key
    if not key:
        logger.error("Paymaster API key is missing")
        raise SoneiumError.paymaster(
            "Paymaster API key is required. Provide it as a parameter "
            "or set SONEIUM_PAYMASTER_API_KEY"
        )
    logger.debug("Creating sponsorship middleware with key %s", mask_secret(key))
    return SponsorshipMiddleware(key, url=url, timeout_seconds=timeout_seconds, transport=transport)


class PaymasterClient:
    """Direct access to the sponsor API."""

    def __init__(
        self,
        url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def get_paymaster_signature(
        self,
        user_op: UserOpPayload,
        sponsor_type: SponsorType | str = SponsorType.GASLESS,
        api_key: Optional[str] = None,
    ) -> PaymasterResponse:
        """POST ``{userOp, sponsorType}`` and return the sponsor's reply."""
        if not api_key:
            logger.error("API key is required for paymaster")
            raise SoneiumError.paymaster("API key is required for paymaster operations")

        sponsor = SponsorType(sponsor_type)
        logger.info("Getting paymaster signature (%s)", sponsor.value)
        endpoint = _SponsorEndpoint(
            api_key, url=self.url, timeout_seconds=self.timeout_seconds, transport=self._transport
        )
        try:
            data = await endpoint.post({"userOp": _payload(user_op), "sponsorType": sponsor.value})
        finally:
            await endpoint.close()
        return PaymasterResponse.from_json(data)
