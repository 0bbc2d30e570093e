# /liquidator/core/logger.py
import logging
import structlog
import sentry_sdk
from prometheus_client import Counter
from liquidator.core.config import settings
import json
import hmac
import hashlib
import os

# --- Prometheus Metrics ---
LIQUIDATIONS_EXECUTED = Counter("flash_liquidator_liquidations_executed_total", "Total number of liquidations committed", ["flash_source"])
LIQUIDATION_PROFIT = Counter("flash_liquidator_profit_units_total", "Debt-asset units retained as profit", ["flash_source"])
TRANSACTIONS_REVERTED = Counter("flash_liquidator_transactions_reverted_total", "Top-level transactions rolled back", ["error"])
ADAPTER_UPDATES = Counter("flash_liquidator_adapter_updates_total", "Adapter registry writes")
ERRORS_LOGGED = Counter("flash_liquidator_errors_logged_total", "Total number of errors logged", ["level"])
KILL_TRIGGERED = Counter("kill_triggered_total", "Times the kill switch has halted execution")

SIGNING_KEY = (
    settings.LOG_SIGNING_KEY.get_secret_value().encode()
    if settings.LOG_SIGNING_KEY
    else b"insecure"
)

# Tests monkeypatch this to redirect the audit trail.
AUDIT_FILE = os.path.join(settings.SESSION_DIR, "audit.log")


def sign_and_append(logger, method_name: str, event_dict: dict) -> dict:
    """Structlog processor that signs each rendered event and appends it to the audit log.

    Signature follows the processor contract expected by structlog:

        (logger, method_name, event_dict) -> event_dict
    """
    # Deterministic key order so the signature is reproducible.
    payload = json.dumps(event_dict, sort_keys=True, default=str)
    sig = hmac.new(SIGNING_KEY, payload.encode(), hashlib.sha256).hexdigest()

    audit_file = str(AUDIT_FILE)
    os.makedirs(os.path.dirname(audit_file), exist_ok=True)
    with open(audit_file, "a", encoding="utf-8") as f:
        f.write(payload + "|" + sig + "\n")

    event_dict["signature"] = sig
    return event_dict


def count_errors(logger, method_name: str, event_dict: dict) -> dict:
    if method_name in ("error", "critical", "exception"):
        ERRORS_LOGGED.labels(method_name).inc()
    return event_dict


def configure_logging():
    if settings.SENTRY_DSN:
        sentry_sdk.init(dsn=settings.SENTRY_DSN.get_secret_value(), traces_sample_rate=1.0)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            count_errors,
            sign_and_append,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(settings.LOG_LEVEL)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str):
    return structlog.get_logger(name)


configure_logging()
log = get_logger("FlashLiquidator.System")
