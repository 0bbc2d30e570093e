# /liquidator/core/config_validator.py
# Run at operator-client startup to validate required configuration and secrets.
from liquidator.core.config import settings
from liquidator.core.errors import ConfigurationError
from liquidator.core.logger import log

REQUIRED_FOR_SENDING = ("EXECUTOR_PRIVATE_KEY", "RPC_URL", "LIQUIDATOR_ADDRESS")


def validate(required=REQUIRED_FOR_SENDING):
    log.info("CONFIG_VALIDATION_START")
    errors = [f"Missing required configuration: {var}" for var in required if not getattr(settings, var, None)]
    if errors:
        for error in errors:
            log.critical("CONFIG_VALIDATION_ERROR", error=error)
        raise ConfigurationError("System configuration is incomplete. Halting.")
    log.info("CONFIG_VALIDATION_PASSED")


if __name__ == "__main__":
    validate()
