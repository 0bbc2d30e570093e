# /liquidator/core/types.py
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class FlashSource(str, Enum):
    """How the orchestrator borrows the debt asset. Fixed at construction."""
    DEX_FLASH_SWAP = "dex_flash_swap"
    LENDING_POOL_FLASH_LOAN = "lending_pool_flash_loan"


class FlashParams(BaseModel):
    """
    In-flight record for exactly one liquidation attempt.
    Written before the flash borrow is requested, read by the callback that
    borrow triggers, and deleted before the attempt returns.
    """
    model_config = ConfigDict(frozen=True)

    user: str
    collateral_asset: str
    debt_asset: str
    debt_to_cover: int
    min_amount_out: int
    routing_data: bytes

    # DEX flash-swap path
    flash_pool: Optional[str] = None
    debt_is_token0: bool = False

    # Lending-pool flash-loan path
    premium: int = 0

    # Filled in by the callback for the result event
    collateral_received: int = 0


class ReserveData(BaseModel):
    """The subset of a lending-pool reserve this system reads."""
    model_config = ConfigDict(frozen=True)

    a_token: str
    variable_debt_token: str
    liquidation_bonus_bps: int = 10500

