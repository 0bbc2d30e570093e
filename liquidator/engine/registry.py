# /liquidator/engine/registry.py
from typing import Dict, Optional

from liquidator.core.chain import ZERO_ADDRESS, Contract
from liquidator.core.config import VALID_FLASH_FEE_TIERS
from liquidator.core.errors import ConfigurationError, InvalidFeeTier, UnknownAdapter
from liquidator.core.logger import get_logger, ADAPTER_UPDATES

log = get_logger(__name__)


class LiquidatorConfig:
    """
    Owner-mutable configuration of a liquidator: the adapter registry
    (tag -> adapter address) and the default flash fee tier.

    Values live in the owning contract's storage so they roll back with the
    transaction that wrote them. Access control is the owner's job; this
    object only validates and audits.
    """
    def __init__(self, owner: Contract, default_flash_fee_tier: int):
        self._owner = owner
        self._owner.storage.setdefault("adapters", {})
        self.set_default_flash_fee_tier(default_flash_fee_tier)

    @property
    def _adapters(self) -> Dict[int, str]:
        return self._owner.storage["adapters"]

    @property
    def default_flash_fee_tier(self) -> int:
        return self._owner.storage["default_flash_fee_tier"]

    def adapter(self, tag: int) -> Optional[str]:
        return self._adapters.get(tag)

    def resolve(self, tag: int) -> str:
        """Adapter address for `tag`; raises UnknownAdapter if nothing is registered."""
        address = self._adapters.get(tag)
        if address is None or address == ZERO_ADDRESS:
            raise UnknownAdapter(tag)
        return address

    def set_adapter(self, tag: int, address: str):
        if not 0 <= tag <= 255:
            raise ConfigurationError(f"adapter tag {tag} does not fit in a uint8")
        previous = self._adapters.get(tag)
        self._adapters[tag] = address
        ADAPTER_UPDATES.inc()
        log.warning("ADAPTER_REGISTRY_UPDATED", tag=tag, adapter=address, previous=previous)

    def set_default_flash_fee_tier(self, tier: int):
        if tier not in VALID_FLASH_FEE_TIERS:
            raise InvalidFeeTier(tier)
        self._owner.storage["default_flash_fee_tier"] = tier
        log.info("DEFAULT_FLASH_FEE_TIER_SET", tier=tier)
