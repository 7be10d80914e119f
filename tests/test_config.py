"""Tests for registry configuration."""

import pytest
from pydantic import ValidationError

from paper_registry.config import RegistryConfig


def test_defaults():
    config = RegistryConfig()
    assert config.fee_bps == 1000
    assert config.identity_strategy == "content_uid"
    assert config.purchase_policy == "exact"
    assert config.settlement_mode == "ledger"
    assert config.platform_account is None
    assert config.enable_faucet is False


def test_from_env():
    config = RegistryConfig.from_env({
        "PAPER_REGISTRY_FEE_BPS": "250",
        "PAPER_REGISTRY_IDENTITY_STRATEGY": "counter",
        "PAPER_REGISTRY_SETTLEMENT_MODE": "delegated",
        "PAPER_REGISTRY_CORS_ORIGINS": "http://a.test, http://b.test",
        "PAPER_REGISTRY_PORT": "9000",
        "PAPER_REGISTRY_ENABLE_FAUCET": "true",
        "UNRELATED": "x",
    })
    assert config.fee_bps == 250
    assert config.identity_strategy == "counter"
    assert config.settlement_mode == "delegated"
    assert config.cors_origins == ["http://a.test", "http://b.test"]
    assert config.port == 9000
    assert config.enable_faucet is True


@pytest.mark.parametrize("field,value", [
    ("fee_bps", 10001),
    ("identity_strategy", "uuid"),
    ("purchase_policy", "free"),
    ("settlement_mode", "cash"),
])
def test_invalid_values(field, value):
    with pytest.raises(ValidationError):
        RegistryConfig(**{field: value})
