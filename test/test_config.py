import pytest
from pydantic import SecretStr, ValidationError

from liquidator.core.config import Settings, settings
from liquidator.core.config_validator import validate
from liquidator.core.errors import ConfigurationError


def test_default_flash_fee_tier_must_be_known():
    with pytest.raises(ValidationError):
        Settings(DEFAULT_FLASH_FEE_TIER=2500)
    assert Settings(DEFAULT_FLASH_FEE_TIER=3000).DEFAULT_FLASH_FEE_TIER == 3000


def test_validator_requires_sending_credentials(monkeypatch):
    monkeypatch.setattr(settings, "EXECUTOR_PRIVATE_KEY", None)
    with pytest.raises(ConfigurationError):
        validate()

    monkeypatch.setattr(settings, "EXECUTOR_PRIVATE_KEY", SecretStr("0x" + "11" * 32))
    monkeypatch.setattr(settings, "RPC_URL", SecretStr("http://127.0.0.1:8545"))
    monkeypatch.setattr(settings, "LIQUIDATOR_ADDRESS", "0x1111111111111111111111111111111111111111")
    validate()
