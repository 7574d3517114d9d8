"""
Tests for network configuration, RPC URL resolution and gas tuning overrides.
"""
import pytest

from batch7702.adapters.evm.constants import (
    DEFAULT_NETWORK,
    GasTuning,
    get_chain_config,
    get_chain_config_by_id,
    get_rpc_url,
    supported_networks,
)
from batch7702.engine.exceptions import ConfigurationError


class TestChainConfig:

    def test_supported_networks(self):
        assert supported_networks() == ["holesky", "sepolia"]

    def test_sepolia(self):
        chain = get_chain_config("Sepolia")
        assert chain.chain_id == 11155111
        assert chain.batch_call_delegation_address.lower() == "0x6987e30398b2896b5118ad1076fb9f58825a6f1a"

    def test_default_network(self, monkeypatch):
        monkeypatch.delenv("BATCH_NETWORK", raising=False)
        assert get_chain_config().network == DEFAULT_NETWORK == "holesky"

    def test_network_from_env(self, monkeypatch):
        monkeypatch.setenv("BATCH_NETWORK", "sepolia")
        assert get_chain_config().chain_id == 11155111

    def test_unknown_network(self):
        with pytest.raises(ConfigurationError):
            get_chain_config("mainnet")

    def test_by_id(self):
        assert get_chain_config_by_id(17000).network == "holesky"
        with pytest.raises(ConfigurationError):
            get_chain_config_by_id(1)

    def test_tx_url(self):
        chain = get_chain_config("holesky")
        assert chain.tx_url("0xabc") == "https://holesky.etherscan.io/tx/0xabc"


class TestRpcUrl:

    def test_provider_template_with_key(self):
        chain = get_chain_config("sepolia")
        assert get_rpc_url(chain, "KEY123") == "https://eth-sepolia.g.alchemy.com/v2/KEY123"

    def test_public_rpc_without_key(self, monkeypatch):
        monkeypatch.delenv("EVM_RPC_KEY", raising=False)
        chain = get_chain_config("holesky")
        assert get_rpc_url(chain) == chain.public_rpc_url

    def test_key_from_env(self, monkeypatch):
        monkeypatch.setenv("EVM_RPC_KEY", "ENVKEY")
        assert get_rpc_url(get_chain_config("holesky")).endswith("/v2/ENVKEY")


class TestGasTuning:

    def test_defaults(self, monkeypatch):
        for name in ["BATCH_BASE_GAS", "BATCH_PER_CALL_GAS", "BATCH_SAFETY_MULTIPLIER", "BATCH_STRICT_SAFETY_MULTIPLIER"]:
            monkeypatch.delenv(name, raising=False)
        assert GasTuning.from_env() == GasTuning()

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("BATCH_BASE_GAS", "600000")
        monkeypatch.setenv("BATCH_SAFETY_MULTIPLIER", " 5 ")
        tuning = GasTuning.from_env()
        assert tuning.base_gas == 600_000
        assert tuning.safety_multiplier == 5
        assert tuning.per_call_gas == 100_000

    def test_non_integer_override(self, monkeypatch):
        monkeypatch.setenv("BATCH_PER_CALL_GAS", "lots")
        with pytest.raises(ConfigurationError):
            GasTuning.from_env()

    def test_out_of_range_override(self, monkeypatch):
        monkeypatch.setenv("BATCH_SAFETY_MULTIPLIER", "0")
        with pytest.raises(ConfigurationError):
            GasTuning.from_env()
