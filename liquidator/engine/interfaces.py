# /liquidator/engine/interfaces.py
# Collaborator contracts the liquidation core consumes.
# The core only ever reaches these through Chain.call, so any object exposing
# the same function names works; these classes document the expected surface.

from liquidator.core.types import ReserveData


class Token:
    """Standard fungible token."""
    def balance_of(self, account: str) -> int:
        raise NotImplementedError

    def allowance(self, owner: str, spender: str) -> int:
        raise NotImplementedError

    def transfer(self, to: str, amount: int) -> bool:
        raise NotImplementedError

    def transfer_from(self, owner: str, to: str, amount: int) -> bool:
        raise NotImplementedError

    def approve(self, spender: str, amount: int) -> bool:
        raise NotImplementedError


class WrappedNative(Token):
    """ERC20 wrapper around the chain's native currency."""
    def deposit(self):
        """Mints msg_value wrapped units to the caller."""
        raise NotImplementedError

    def withdraw(self, amount: int):
        raise NotImplementedError


class LendingPool:
    """AAVE V3 style pool: reserve lookup, single-asset flash loan, liquidation."""
    def get_reserve_data(self, asset: str) -> ReserveData:
        raise NotImplementedError

    def flash_loan_simple(self, receiver: str, asset: str, amount: int, params: bytes, referral_code: int):
        """
        Sends `amount` of `asset` to `receiver`, calls
        receiver.execute_operation(asset, amount, premium, initiator, params)
        and then pulls amount + premium back from the receiver.
        """
        raise NotImplementedError

    def liquidation_call(self, collateral_asset: str, debt_asset: str, user: str, debt_to_cover: int, receive_a_token: bool):
        raise NotImplementedError


class DexFactory:
    def get_pool(self, token_a: str, token_b: str, fee: int) -> str:
        """Returns the pool address for the pair at `fee`, or the zero address."""
        raise NotImplementedError


class DexPool:
    """Uniswap V3 style pool exposing the flash primitive."""
    def token0(self) -> str:
        raise NotImplementedError

    def token1(self) -> str:
        raise NotImplementedError

    def fee(self) -> int:
        raise NotImplementedError

    def flash(self, recipient: str, amount0: int, amount1: int, data: bytes):
        """
        Sends the amounts to `recipient`, calls
        recipient.uniswap_v3_flash_callback(fee0, fee1, data) and checks its
        balances grew by at least the fees.
        """
        raise NotImplementedError


class SwapRouter:
    """Uniswap V3 SwapRouter exact-input entry points."""
    def exact_input_single(self, token_in: str, token_out: str, fee: int, recipient: str, amount_in: int, amount_out_minimum: int, sqrt_price_limit_x96: int = 0) -> int:
        raise NotImplementedError

    def exact_input(self, path: bytes, recipient: str, amount_in: int, amount_out_minimum: int) -> int:
        raise NotImplementedError


class LiquidSwapRouter:
    """Multi-router aggregator executing a split, multi-hop plan."""
    def execute_multi_hop_swap(self, tokens: list, amount_in: int, min_amount_out: int, hops: list) -> int:
        raise NotImplementedError
