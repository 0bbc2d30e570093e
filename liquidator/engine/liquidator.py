# /liquidator/engine/liquidator.py
# The liquidation orchestrator.
# - Borrows the debt asset through the flash source fixed at construction.
# - Inside the flash callback: liquidates, swaps seized collateral back to the
#   debt asset through the registered adapter, and repays principal + fee.
# - Any failure propagates out of the callback and unwinds the whole attempt.

from typing import Optional

from structlog.contextvars import bound_contextvars

from liquidator.core.chain import MAX_UINT256, NATIVE_ASSET, ZERO_ADDRESS, Chain, Contract
from liquidator.core.config import settings
from liquidator.core.decorators import non_reentrant, only_owner
from liquidator.core.errors import (
    AssetMismatch,
    InsufficientRepayment,
    InvalidCallback,
    InvalidInitiator,
    NoPoolFound,
    SlippageExceeded,
)
from liquidator.core.logger import get_logger, LIQUIDATIONS_EXECUTED, LIQUIDATION_PROFIT
from liquidator.core.types import FlashParams, FlashSource
from liquidator.engine.registry import LiquidatorConfig
from liquidator.routing.codec import decode_envelope

log = get_logger(__name__)


class Liquidator(Contract):
    """
    Owner-operated flash liquidator for an AAVE V3 style lending pool.

    Passing a DEX factory selects Uniswap V3 flash swaps as the borrowing
    mechanism; without one, the lending pool's own flash loan is used. The
    choice cannot change after deployment.
    """
    label = "liquidator"

    def __init__(
        self,
        chain: Chain,
        owner: str,
        pool: str,
        wrapped_native: str,
        dex_factory: Optional[str] = None,
        default_flash_fee_tier: int = settings.DEFAULT_FLASH_FEE_TIER,
    ):
        super().__init__(chain)
        self._owner = owner
        self._pool = pool
        self._wrapped_native = wrapped_native
        self._dex_factory = dex_factory or ZERO_ADDRESS
        self._flash_source = (
            FlashSource.DEX_FLASH_SWAP if self._dex_factory != ZERO_ADDRESS else FlashSource.LENDING_POOL_FLASH_LOAN
        )
        self.storage["locked"] = False
        self.config = LiquidatorConfig(self, default_flash_fee_tier)
        log.info(
            "LIQUIDATOR_DEPLOYED",
            address=self.address,
            owner=owner,
            pool=pool,
            flash_source=self._flash_source.value,
        )

    # --- read-only accessors ---

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def pool(self) -> str:
        return self._pool

    @property
    def wrapped_native(self) -> str:
        return self._wrapped_native

    @property
    def dex_factory(self) -> str:
        return self._dex_factory

    @property
    def flash_source(self) -> FlashSource:
        return self._flash_source

    @property
    def default_flash_fee_tier(self) -> int:
        return self.config.default_flash_fee_tier

    @property
    def flash_params(self) -> Optional[FlashParams]:
        return self.storage.get("flash_params")

    def adapter(self, tag: int) -> str:
        return self.config.adapter(tag) or ZERO_ADDRESS

    # --- entry points ---

    @non_reentrant
    @only_owner
    def liquidate(self, user: str, collateral_asset: str, debt_asset: str, debt_amount: int, min_amount_out: int, routing_data: bytes) -> int:
        """
        Liquidates `user`'s position and returns the profit in debt-asset units.
        `debt_amount == MAX_UINT256` covers half of the outstanding variable debt.
        """
        return self._liquidate(
            user, collateral_asset, debt_asset, debt_amount, min_amount_out, routing_data,
            self.config.default_flash_fee_tier,
        )

    @non_reentrant
    @only_owner
    def liquidate_with_fee(self, user: str, collateral_asset: str, debt_asset: str, debt_amount: int, min_amount_out: int, routing_data: bytes, flash_fee_tier: int) -> int:
        """Same as liquidate, borrowing from the DEX pool at `flash_fee_tier`."""
        return self._liquidate(
            user, collateral_asset, debt_asset, debt_amount, min_amount_out, routing_data,
            flash_fee_tier,
        )

    @non_reentrant
    @only_owner
    def set_adapter_tag(self, tag: int, adapter: str):
        self.config.set_adapter(tag, adapter)
        self._emit("AdapterUpdated", tag=tag, adapter=adapter)

    @non_reentrant
    @only_owner
    def set_default_flash_fee_tier(self, tier: int):
        self.config.set_default_flash_fee_tier(tier)
        self._emit("DefaultFlashFeeTierUpdated", tier=tier)

    @non_reentrant
    @only_owner
    def rescue_asset(self, asset: str, amount: int, use_entire_balance: bool, recipient: str):
        """Withdraws stranded funds. `asset == NATIVE_ASSET` moves native currency."""
        if asset == NATIVE_ASSET:
            value = self.native_balance if use_entire_balance else amount
            self._send_native(recipient, value)
        else:
            value = self._balance(asset) if use_entire_balance else amount
            self._call(asset, "transfer", recipient, value)
        self._emit("AssetRescued", asset=asset, amount=value, recipient=recipient)
        log.warning("ASSET_RESCUED", asset=asset, amount=value, recipient=recipient)

    # --- flash callbacks ---

    def uniswap_v3_flash_callback(self, fee0: int, fee1: int, data: bytes):
        params = self.flash_params
        if params is None or params.flash_pool is None or self.msg_sender != params.flash_pool:
            raise InvalidCallback(self.msg_sender)

        fee = fee0 if params.debt_is_token0 else fee1
        self._execute_liquidation(params)

        owed = params.debt_to_cover + fee
        self._ensure_can_repay(params.debt_asset, owed)
        self._call(params.debt_asset, "transfer", params.flash_pool, owed)

    def execute_operation(self, asset: str, amount: int, premium: int, initiator: str, params_data: bytes) -> bool:
        if self.msg_sender != self.pool:
            raise InvalidCallback(self.msg_sender)
        if initiator != self.address:
            raise InvalidInitiator(initiator)
        params = self.flash_params
        if params is None:
            raise InvalidCallback(self.msg_sender)
        if asset != params.debt_asset:
            raise AssetMismatch(asset, params.debt_asset)

        params = params.model_copy(update={"premium": premium})
        self.storage["flash_params"] = params
        self._execute_liquidation(params)

        owed = amount + premium
        self._ensure_can_repay(asset, owed)
        # Pull-based repayment: the pool collects amount + premium after we return.
        self._call(asset, "approve", self.pool, owed)
        return True

    # --- internals ---

    def _liquidate(self, user, collateral_asset, debt_asset, debt_amount, min_amount_out, routing_data, flash_fee_tier) -> int:
        with bound_contextvars(user=user, debt_asset=debt_asset):
            if debt_amount == MAX_UINT256:
                debt_amount = self._half_variable_debt(user, debt_asset)
                log.info("MAX_DEBT_RESOLVED", debt_to_cover=debt_amount)

            params = FlashParams(
                user=user,
                collateral_asset=collateral_asset,
                debt_asset=debt_asset,
                debt_to_cover=debt_amount,
                min_amount_out=min_amount_out,
                routing_data=bytes(routing_data),
            )
            balance_before = self._balance(debt_asset)
            try:
                if self.flash_source is FlashSource.DEX_FLASH_SWAP:
                    self._borrow_with_flash_swap(params, flash_fee_tier)
                else:
                    self._borrow_with_flash_loan(params)
                collateral_received = self.flash_params.collateral_received
            finally:
                self.storage.pop("flash_params", None)

            balance_after = self._balance(debt_asset)
            profit = balance_after - balance_before if balance_after > balance_before else 0

            self._emit(
                "LiquidationExecuted",
                user=user,
                collateral_asset=collateral_asset,
                debt_asset=debt_asset,
                debt_to_cover=debt_amount,
                collateral_received=collateral_received,
                profit=profit,
            )
            LIQUIDATIONS_EXECUTED.labels(self.flash_source.value).inc()
            LIQUIDATION_PROFIT.labels(self.flash_source.value).inc(profit)
            log.info(
                "LIQUIDATION_EXECUTED",
                collateral_asset=collateral_asset,
                debt_to_cover=debt_amount,
                collateral_received=collateral_received,
                profit=profit,
            )
            return profit

    def _borrow_with_flash_swap(self, params: FlashParams, fee_tier: int):
        factory = self.dex_factory
        flash_pool = self._call(factory, "get_pool", params.collateral_asset, params.debt_asset, fee_tier)
        if flash_pool == ZERO_ADDRESS:
            flash_pool = self._call(factory, "get_pool", self.wrapped_native, params.debt_asset, fee_tier)
        if flash_pool == ZERO_ADDRESS:
            raise NoPoolFound(params.collateral_asset, params.debt_asset, fee_tier)

        debt_is_token0 = self._call(flash_pool, "token0") == params.debt_asset
        self.storage["flash_params"] = params.model_copy(update={"flash_pool": flash_pool, "debt_is_token0": debt_is_token0})

        amount0, amount1 = (params.debt_to_cover, 0) if debt_is_token0 else (0, params.debt_to_cover)
        log.debug("FLASH_SWAP_REQUESTED", flash_pool=flash_pool, fee_tier=fee_tier, amount=params.debt_to_cover)
        self._call(flash_pool, "flash", self.address, amount0, amount1, b"")

    def _borrow_with_flash_loan(self, params: FlashParams):
        self.storage["flash_params"] = params.model_copy(update={"premium": 0})
        log.debug("FLASH_LOAN_REQUESTED", pool=self.pool, amount=params.debt_to_cover)
        self._call(self.pool, "flash_loan_simple", self.address, params.debt_asset, params.debt_to_cover, b"", 0)

    def _execute_liquidation(self, params: FlashParams) -> int:
        """Liquidate, wrap native proceeds, swap collateral into the debt asset."""
        collateral, debt = params.collateral_asset, params.debt_asset

        self._call(debt, "approve", self.pool, MAX_UINT256)
        collateral_before = self._balance(collateral)
        if collateral == debt:
            outstanding_before = self._variable_debt_of(params.user, debt)
        self._call(self.pool, "liquidation_call", collateral, debt, params.user, params.debt_to_cover, False)

        native = self.native_balance
        if native > 0:
            self._call(self.wrapped_native, "deposit", value=native)

        collateral_balance = self._balance(collateral)
        if collateral == debt:
            # Same asset: the covered debt left the same balance the seized collateral landed in.
            covered = outstanding_before - self._variable_debt_of(params.user, debt)
            received = collateral_balance - collateral_before + covered
        else:
            received = collateral_balance - collateral_before
            if collateral_balance > 0:
                self._swap_collateral(params, collateral_balance)

        self.storage["flash_params"] = self.flash_params.model_copy(update={"collateral_received": received})
        return received

    def _swap_collateral(self, params: FlashParams, amount_in: int):
        envelope = decode_envelope(params.routing_data)
        adapter = self.config.resolve(envelope.adapter_tag)

        self._call(params.collateral_asset, "transfer", adapter, amount_in)
        amount_out = self._call(
            adapter, "swap",
            params.collateral_asset, params.debt_asset, amount_in, params.min_amount_out, envelope.payload,
        )
        if amount_out < params.min_amount_out:
            raise SlippageExceeded(amount_out, params.min_amount_out)
        log.debug("COLLATERAL_SWAPPED", adapter_tag=envelope.adapter_tag, amount_in=amount_in, amount_out=amount_out)

    def _half_variable_debt(self, user: str, debt_asset: str) -> int:
        return self._variable_debt_of(user, debt_asset) // 2

    def _variable_debt_of(self, user: str, debt_asset: str) -> int:
        reserve = self._call(self.pool, "get_reserve_data", debt_asset)
        return self._call(reserve.variable_debt_token, "balance_of", user)

    def _ensure_can_repay(self, asset: str, owed: int):
        balance = self._balance(asset)
        if balance < owed:
            raise InsufficientRepayment(balance, owed)

    def _balance(self, asset: str) -> int:
        return self._call(asset, "balance_of", self.address)
