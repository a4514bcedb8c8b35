"""
Tests for SoneiumError and error kinds.
"""
import pytest

from soneium_chain.errors import ErrorKind, SoneiumError, wrap_error


class TestErrorKind:
    def test_parents(self):
        assert ErrorKind.RPC_TIMEOUT.parent is ErrorKind.RPC
        assert ErrorKind.PAYMASTER.parent is ErrorKind.ACCOUNT_ABSTRACTION
        assert ErrorKind.BUNDLER.parent is ErrorKind.ACCOUNT_ABSTRACTION
        assert ErrorKind.WALLET.parent is None

    def test_lineage(self):
        assert ErrorKind.BUNDLER.lineage() == (ErrorKind.BUNDLER, ErrorKind.ACCOUNT_ABSTRACTION)


class TestSoneiumError:
    def test_message_prefixed_with_category(self):
        error = SoneiumError.wallet("Wallet not connected")

        assert str(error) == "Wallet Error: Wallet not connected"
        assert error.message == "Wallet not connected"
        assert error.error_code == "WALLET_ERROR"

    def test_rpc_error_details(self):
        error = SoneiumError.rpc("execution reverted", code=3, data="0x08c379a0", method="eth_call")

        assert error.kind is ErrorKind.RPC
        assert error.code == 3
        assert error.data == "0x08c379a0"
        assert error.method == "eth_call"
        assert error.url is None

    def test_timeout_names_url_and_duration(self):
        error = SoneiumError.timeout("https://paymaster.test", 1.5)

        assert error.kind is ErrorKind.RPC_TIMEOUT
        assert str(error) == "RPC Error: Request to https://paymaster.test timed out after 1500ms"
        assert error.details["timeout_ms"] == 1500
        assert error.is_kind(ErrorKind.RPC)

    def test_children_match_parent(self):
        paymaster = SoneiumError.paymaster("denied", response={"message": "denied"})

        assert paymaster.is_kind(ErrorKind.ACCOUNT_ABSTRACTION)
        assert paymaster.is_kind(ErrorKind.PAYMASTER)
        assert not paymaster.is_kind(ErrorKind.BUNDLER)
        assert paymaster.response == {"message": "denied"}

    def test_transaction_rejected_reason(self):
        error = SoneiumError.transaction_rejected("Transaction rejected by user", reason="code 4001")
        assert error.reason == "code 4001"

    def test_to_dict(self):
        error = SoneiumError.bundler("AA21 didn't pay prefund", response={"code": -32500})

        data = error.to_dict()

        assert data["error"] == "BUNDLER_ERROR"
        assert data["message"] == "Bundler Error: AA21 didn't pay prefund"
        assert data["response"] == {"code": -32500}
        assert "details" not in data


class TestWrapError:
    def test_foreign_exception_wrapped(self):
        wrapped = wrap_error(ValueError("bad key"), ErrorKind.ACCOUNT_ABSTRACTION, "Failed to create smart account")

        assert wrapped.kind is ErrorKind.ACCOUNT_ABSTRACTION
        assert wrapped.message == "Failed to create smart account: bad key"

    def test_passthrough_kind_kept(self):
        original = SoneiumError.timeout("https://bundler.test", 2)

        assert wrap_error(original, ErrorKind.BUNDLER, "ctx", passthrough=(ErrorKind.RPC,)) is original

    def test_non_passthrough_kind_rewrapped(self):
        original = SoneiumError.gas_estimation("no estimate")

        wrapped = wrap_error(original, ErrorKind.ACCOUNT_ABSTRACTION, "Failed to send")

        assert wrapped.kind is ErrorKind.ACCOUNT_ABSTRACTION
        assert wrapped.message == "Failed to send: no estimate"

    def test_raises_as_exception(self):
        with pytest.raises(SoneiumError, match="Gas Estimation Error"):
            raise SoneiumError.gas_estimation("failed")
