# /liquidator/core/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import SecretStr, field_validator

# Uniswap V3 fee tiers in hundredths of a basis point.
VALID_FLASH_FEE_TIERS = (100, 500, 3000, 10000)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Core Executor
    EXECUTOR_PRIVATE_KEY: SecretStr | None = None

    # RPC endpoint used by the operator client
    RPC_URL: SecretStr | None = None

    # Chain configuration
    chain_id: int = 1
    LIQUIDATOR_ADDRESS: str | None = None
    DEFAULT_FLASH_FEE_TIER: int = 500

    # Off-chain route discovery
    LIQUID_SWAP_API_URL: str = "https://api.liqd.ag"
    ROUTE_CACHE_TTL_SECONDS: float = 5.0
    ROUTE_SLIPPAGE_BPS: int = 50
    STABLECOINS: list[str] = []  # JSON list in the environment; picks low fee tiers first

    LOG_SIGNING_KEY: SecretStr | None = None
    SENTRY_DSN: SecretStr | None = None

    # Operational Settings
    LOG_LEVEL: str = "INFO"
    SESSION_DIR: str = "/tmp/flash_liquidator_session"  # For durable nonce/audit files
    REDIS_URL: str = "redis://localhost:6379/0"

    # GCP (optional, kill switch backend)
    GCP_PROJECT_ID: str | None = None
    GCP_REGION: str | None = None

    @field_validator("DEFAULT_FLASH_FEE_TIER")
    @classmethod
    def known_fee_tier(cls, value: int) -> int:
        if value not in VALID_FLASH_FEE_TIERS:
            raise ValueError(f"DEFAULT_FLASH_FEE_TIER must be one of {VALID_FLASH_FEE_TIERS}, got {value}")
        return value

    @property
    def rpc_url(self) -> str | None:
        return self.RPC_URL.get_secret_value() if self.RPC_URL else None


try:
    settings = Settings()
except Exception as e:
    # Late import to avoid circular dependency only for logging the failure
    try:
        from liquidator.core.logger import get_logger
        get_logger("FlashLiquidator.Config").critical("FAILED_TO_LOAD_SETTINGS", error=str(e))
    except Exception:
        print("FAILED_TO_LOAD_SETTINGS", e)
    raise SystemExit(1)
