# /liquidator/core/decorators.py
# Reusable decorators for operational resilience and contract access control.
import functools
import logging

from tenacity import retry, stop_after_attempt, wait_exponential, before_sleep_log

from liquidator.core.errors import NotOwner, ReentrancyError
from liquidator.core.logger import get_logger

log = get_logger(__name__)

# Generic retry decorator for read-only network calls
retriable_network_call = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=5),
    before_sleep=before_sleep_log(log, logging.WARNING),
    reraise=True,  # Re-raise the last exception after retries are exhausted
)


def non_reentrant(fn):
    """Holds the contract-wide busy flag for the duration of the call."""
    @functools.wraps(fn)
    def wrapper(self, *args, **kwargs):
        if self.storage.get("locked"):
            raise ReentrancyError()
        self.storage["locked"] = True
        try:
            return fn(self, *args, **kwargs)
        finally:
            self.storage["locked"] = False
    return wrapper


def only_owner(fn):
    @functools.wraps(fn)
    def wrapper(self, *args, **kwargs):
        if self.msg_sender != self.owner:
            raise NotOwner(self.msg_sender)
        return fn(self, *args, **kwargs)
    return wrapper
