"""
Tests for configuration, chain definitions and logging helpers.
"""
import logging

import pytest

from soneium_chain.chains import get_chain, soneium_mainnet, soneium_testnet
from soneium_chain.config import (
    ENTRY_POINT_ADDRESS,
    SIMPLE_ACCOUNT_FACTORY_ADDRESS,
    NetworkType,
    build_default_config,
    get_config,
    get_network_config,
    set_config,
)
from soneium_chain.logging_utils import (
    LogLevel,
    format_log_data,
    get_logger,
    mask_secret,
    mask_url,
    resolve_logger,
    set_log_level,
)


@pytest.fixture
def clean_env(monkeypatch):
    for key in (
        "MAIN_HTTPS",
        "TEST_HTTPS",
        "BUNDLER_URL",
        "PAYMASTER_URL",
        "PAYMASTER_API_KEY",
        "DEFAULT_NETWORK",
        "TIMEOUT_SECONDS",
        "GAS_BUFFER_PERCENTAGE",
        "SIMPLE_ACCOUNT_FACTORY",
        "ENTRY_POINT_ADDRESS",
        "MAIN_CHAIN_ID",
        "TEST_CHAIN_ID",
    ):
        monkeypatch.delenv(f"SONEIUM_{key}", raising=False)
    return monkeypatch


class TestDefaultConfig:
    def test_defaults(self, clean_env):
        config = build_default_config()

        assert config.default_network == "testnet"
        assert config.default_timeout_seconds == 30.0
        assert config.gas_buffer_percentage == 20
        assert config.networks["testnet"].chain_id == 1946
        assert config.networks["mainnet"].chain_id == 2852
        assert config.networks["testnet"].native_token == "SON"
        assert config.account_abstraction.entry_point_address == ENTRY_POINT_ADDRESS
        assert config.account_abstraction.factory_address == SIMPLE_ACCOUNT_FACTORY_ADDRESS
        assert config.account_abstraction.paymaster_api_key == ""

    def test_environment_overrides(self, clean_env):
        clean_env.setenv("SONEIUM_TEST_HTTPS", "https://custom-minato.example/rpc")
        clean_env.setenv("SONEIUM_PAYMASTER_API_KEY", "pm-key")
        clean_env.setenv("SONEIUM_DEFAULT_NETWORK", "MAINNET")
        clean_env.setenv("SONEIUM_TIMEOUT_SECONDS", "12.5")
        clean_env.setenv("SONEIUM_GAS_BUFFER_PERCENTAGE", "35")

        config = build_default_config()

        assert config.networks["testnet"].rpc_url == "https://custom-minato.example/rpc"
        assert config.account_abstraction.paymaster_api_key == "pm-key"
        assert config.default_network == "mainnet"
        assert config.default_timeout_seconds == 12.5
        assert config.gas_buffer_percentage == 35

    def test_empty_values_are_unset(self, clean_env):
        clean_env.setenv("SONEIUM_BUNDLER_URL", "")
        assert build_default_config().account_abstraction.bundler_url == "https://bundler.scs.startale.com/rpc"

    def test_invalid_number_falls_back(self, clean_env):
        clean_env.setenv("SONEIUM_TIMEOUT_SECONDS", "soon")
        assert build_default_config().default_timeout_seconds == 30.0

    def test_unknown_network(self):
        with pytest.raises(ValueError, match="Unknown network"):
            get_network_config("sepolia")

    def test_network_type_lookup(self, soneium_config):
        assert get_config().get_network_config(NetworkType.MAINNET).chain_id == 2852
        assert soneium_config.is_network_supported("TESTNET")

    def test_set_config_none_rebuilds(self, clean_env):
        set_config(None)
        assert get_config().default_timeout_seconds == 30.0

    def test_explorer_links(self, testnet_config):
        assert testnet_config.tx_url("0xabc") == "https://explorer.minato.soneium.org/tx/0xabc"
        assert testnet_config.address_url("0xdef") == "https://explorer.minato.soneium.org/address/0xdef"


class TestChains:
    def test_testnet_chain(self):
        chain = soneium_testnet()

        assert chain.id == 1946
        assert chain.testnet is True
        assert chain.native_currency.symbol == "SON"
        assert chain.native_currency.decimals == 18
        assert chain.default_rpc_url == get_network_config("testnet").rpc_url
        assert chain.rpc_urls["public"] == chain.rpc_urls["default"]

    def test_mainnet_chain(self):
        chain = soneium_mainnet()

        assert chain.id == 2852
        assert chain.testnet is False
        assert chain.explorer_url == "https://explorer.soneium.org"

    def test_get_chain_defaults_to_testnet(self):
        assert get_chain().id == 1946
        assert get_chain(NetworkType.MAINNET).network == "mainnet"


class TestLogging:
    def test_package_hierarchy(self):
        assert get_logger().name == "soneium_chain"
        assert get_logger("client").name == "soneium_chain.client"
        assert get_logger("soneium_chain.bundler").name == "soneium_chain.bundler"

    def test_explicit_logger_wins(self):
        custom = logging.getLogger("my-app")
        assert resolve_logger(custom, level=LogLevel.DEBUG, enabled=False) is custom

    def test_level_creates_child_logger(self):
        log = resolve_logger(level="warning", name="level-test")

        assert log.name == "soneium_chain.level-test"
        assert log.level == logging.WARNING

    def test_disabled_logger_is_silent(self, caplog):
        log = resolve_logger(enabled=False, name="quiet-test")

        with caplog.at_level(logging.DEBUG):
            log.error("should not appear")

        assert "should not appear" not in caplog.text

    def test_none_level_silences(self):
        log = resolve_logger(level=LogLevel.NONE, name="none-test")
        assert not log.isEnabledFor(logging.CRITICAL)

    @pytest.mark.parametrize(
        "level,expected",
        [
            (LogLevel.DEBUG, logging.DEBUG),
            (LogLevel.ERROR, logging.ERROR),
            ("info", logging.INFO),
            (logging.WARNING, logging.WARNING),
        ],
    )
    def test_set_log_level_accepts_enum_name_and_int(self, level, expected):
        log = logging.getLogger("soneium_chain.set-level-test")

        set_log_level(log, level)

        assert log.level == expected

    def test_set_log_level_rejects_unknown_name(self):
        with pytest.raises(ValueError):
            set_log_level(logging.getLogger("soneium_chain.set-level-test"), "chatty")

    def test_format_log_data(self):
        text = format_log_data({"gas": 2**60, "data": b"\x01\x02", "kind": NetworkType.TESTNET, "n": 5})

        assert '"gas": "1152921504606846976"' in text
        assert '"data": "0x0102"' in text
        assert '"kind": "testnet"' in text
        assert '"n": 5' in text

    def test_masking(self):
        assert mask_url("https://rpc.test/v1?apikey=secret") == "https://rpc.test/v1?<params_masked>"
        assert mask_secret("") == "<unset>"
        assert mask_secret("short") == "***"
        assert mask_secret("sk_live_1234567890abcdef") == "sk_l...cdef"
