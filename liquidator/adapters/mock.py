# /liquidator/adapters/mock.py
# - In-memory implementations of every collaborator the liquidation core talks to.
# - Enables "simulation-first" development: a full liquidation can be replayed on
#   a Chain without an RPC node, and every failure path can be forced.

from typing import Dict, List, Tuple

from web3 import AsyncWeb3, AsyncHTTPProvider

from liquidator.core.chain import MAX_UINT256, ZERO_ADDRESS, Chain, Contract
from liquidator.core.errors import Revert
from liquidator.core.kill import check, KillSwitchActiveError
from liquidator.core.logger import get_logger
from liquidator.core.tx import TransactionManager, TransactionKillSwitchError
from liquidator.core.types import ReserveData
from liquidator.engine.interfaces import DexFactory, DexPool, LendingPool, LiquidSwapRouter, SwapRouter, Token, WrappedNative
from liquidator.routing.codec import SwapAllocation, decode_path

log = get_logger(__name__)

PERCENTAGE_FACTOR = 10_000
FLASHLOAN_PREMIUM_TOTAL = 9  # 0.09%


# --- tokens ---

class MockERC20(Contract, Token):
    label = "erc20"

    def __init__(self, chain: Chain, symbol: str, decimals: int = 18):
        super().__init__(chain)
        self.symbol = symbol
        self.decimals = decimals
        self.storage.update(balances={}, allowances={}, total_supply=0)

    def balance_of(self, account: str) -> int:
        return self.storage["balances"].get(account, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self.storage["allowances"].get((owner, spender), 0)

    def total_supply(self) -> int:
        return self.storage["total_supply"]

    def transfer(self, to: str, amount: int) -> bool:
        self._move(self.msg_sender, to, amount)
        return True

    def transfer_from(self, owner: str, to: str, amount: int) -> bool:
        spender = self.msg_sender
        allowed = self.allowance(owner, spender)
        if allowed < amount:
            raise Revert(f"{self.symbol}: insufficient allowance {allowed} < {amount}")
        if allowed != MAX_UINT256:
            self.storage["allowances"][(owner, spender)] = allowed - amount
        self._move(owner, to, amount)
        return True

    def approve(self, spender: str, amount: int) -> bool:
        self.storage["allowances"][(self.msg_sender, spender)] = amount
        return True

    def mint(self, to: str, amount: int):
        balances = self.storage["balances"]
        balances[to] = balances.get(to, 0) + amount
        self.storage["total_supply"] += amount

    def burn(self, account: str, amount: int):
        balance = self.balance_of(account)
        if balance < amount:
            raise Revert(f"{self.symbol}: burn amount exceeds balance")
        self.storage["balances"][account] = balance - amount
        self.storage["total_supply"] -= amount

    def _move(self, sender: str, to: str, amount: int):
        balances = self.storage["balances"]
        balance = balances.get(sender, 0)
        if balance < amount:
            raise Revert(f"{self.symbol}: transfer amount {amount} exceeds balance {balance}")
        balances[sender] = balance - amount
        balances[to] = balances.get(to, 0) + amount


class MockWrappedNative(MockERC20, WrappedNative):
    label = "wrapped-native"

    def __init__(self, chain: Chain, symbol: str = "WETH"):
        super().__init__(chain, symbol, 18)

    def deposit(self):
        self.mint(self.msg_sender, self.msg_value)

    def withdraw(self, amount: int):
        self.burn(self.msg_sender, amount)
        self._send_native(self.msg_sender, amount)


# --- lending protocol ---

class MockLendingPool(Contract, LendingPool):
    """
    AAVE V3 style pool. Positions are opened directly by tests; liquidation pays
    debt_covered * bonus * debt_price / collateral_price of collateral, taken from
    the pool's own token balance (or native balance for native-paying reserves).
    """
    label = "lending-pool"

    def __init__(self, chain: Chain, flash_premium_bps: int = FLASHLOAN_PREMIUM_TOTAL):
        super().__init__(chain)
        self.storage.update(reserves={}, collateral={}, prices={}, native_collateral=set(), flash_premium_bps=flash_premium_bps)
        # Kept outside storage: counts attempts even when the transaction rolls back.
        self.liquidation_calls = 0

    def init_reserve(self, asset: str, liquidation_bonus_bps: int = 10500, price: int = 1) -> ReserveData:
        debt_token = MockERC20(self.chain, "variableDebt")
        a_token = MockERC20(self.chain, "aToken")
        reserve = ReserveData(a_token=a_token.address, variable_debt_token=debt_token.address, liquidation_bonus_bps=liquidation_bonus_bps)
        self.storage["reserves"][asset] = reserve
        self.storage["prices"][asset] = price
        return reserve

    def set_price(self, asset: str, price: int):
        self.storage["prices"][asset] = price

    def pay_collateral_in_native(self, asset: str):
        """Seized `asset` collateral is sent as native currency (e.g. a WETH reserve unwrapped on exit)."""
        self.storage["native_collateral"].add(asset)

    def open_position(self, user: str, collateral_asset: str, collateral_amount: int, debt_asset: str, debt_amount: int):
        key = (user, collateral_asset)
        self.storage["collateral"][key] = self.storage["collateral"].get(key, 0) + collateral_amount
        self._debt_token(debt_asset).mint(user, debt_amount)

    def collateral_of(self, user: str, asset: str) -> int:
        return self.storage["collateral"].get((user, asset), 0)

    def get_reserve_data(self, asset: str) -> ReserveData:
        reserve = self.storage["reserves"].get(asset)
        if reserve is None:
            raise Revert(f"reserve {asset} not listed")
        return reserve

    def flash_loan_simple(self, receiver: str, asset: str, amount: int, params: bytes, referral_code: int):
        initiator = self.msg_sender
        premium = (amount * self.storage["flash_premium_bps"] + PERCENTAGE_FACTOR // 2) // PERCENTAGE_FACTOR
        self._call(asset, "transfer", receiver, amount)
        ok = self._call(receiver, "execute_operation", asset, amount, premium, initiator, params)
        if not ok:
            raise Revert("INVALID_FLASHLOAN_EXECUTOR_RETURN")
        self._call(asset, "transfer_from", receiver, self.address, amount + premium)

    def liquidation_call(self, collateral_asset: str, debt_asset: str, user: str, debt_to_cover: int, receive_a_token: bool):
        self.liquidation_calls += 1
        liquidator = self.msg_sender
        debt_token = self._debt_token(debt_asset)
        outstanding = debt_token.balance_of(user)
        if outstanding == 0:
            raise Revert("SPECIFIED_CURRENCY_NOT_BORROWED_BY_USER")

        covered = min(debt_to_cover, outstanding)
        reserve = self.get_reserve_data(collateral_asset)
        prices = self.storage["prices"]
        seized = covered * prices[debt_asset] * reserve.liquidation_bonus_bps // (prices[collateral_asset] * PERCENTAGE_FACTOR)
        available = self.collateral_of(user, collateral_asset)
        if seized > available:
            seized = available

        self._call(debt_asset, "transfer_from", liquidator, self.address, covered)
        debt_token.burn(user, covered)
        self.storage["collateral"][(user, collateral_asset)] = available - seized

        if receive_a_token:
            self._call(reserve.a_token, "mint", liquidator, seized)
        elif collateral_asset in self.storage["native_collateral"]:
            self._send_native(liquidator, seized)
        else:
            self._call(collateral_asset, "transfer", liquidator, seized)
        self._emit("LiquidationCall", collateral_asset=collateral_asset, debt_asset=debt_asset, user=user,
                   debt_to_cover=covered, liquidated_collateral_amount=seized, liquidator=liquidator)

    def _debt_token(self, asset: str) -> MockERC20:
        return self.chain.contract_at(self.get_reserve_data(asset).variable_debt_token)


# --- DEX ---

def _pool_key(token_a: str, token_b: str, fee: int) -> Tuple[str, str, int]:
    token0, token1 = sorted((token_a, token_b), key=str.lower)
    return token0, token1, fee


class MockUniswapV3Factory(Contract, DexFactory):
    label = "v3-factory"

    def __init__(self, chain: Chain):
        super().__init__(chain)
        self.storage["pools"] = {}

    def create_pool(self, token_a: str, token_b: str, fee: int, pool_cls=None) -> "MockUniswapV3Pool":
        token0, token1, fee = _pool_key(token_a, token_b, fee)
        pool = (pool_cls or MockUniswapV3Pool)(self.chain, token0, token1, fee)
        self.storage["pools"][(token0, token1, fee)] = pool.address
        return pool

    def get_pool(self, token_a: str, token_b: str, fee: int) -> str:
        if token_a == token_b:
            return ZERO_ADDRESS
        return self.storage["pools"].get(_pool_key(token_a, token_b, fee), ZERO_ADDRESS)


class MockUniswapV3Pool(Contract, DexPool):
    label = "v3-pool"

    def __init__(self, chain: Chain, token0: str, token1: str, fee: int):
        super().__init__(chain)
        self.storage.update(token0=token0, token1=token1, fee=fee)

    def token0(self) -> str:
        return self.storage["token0"]

    def token1(self) -> str:
        return self.storage["token1"]

    def fee(self) -> int:
        return self.storage["fee"]

    def flash(self, recipient: str, amount0: int, amount1: int, data: bytes):
        fee0 = -(-amount0 * self.fee() // 1_000_000)
        fee1 = -(-amount1 * self.fee() // 1_000_000)
        balance0 = self._call(self.token0(), "balance_of", self.address)
        balance1 = self._call(self.token1(), "balance_of", self.address)

        if amount0 > 0:
            self._call(self.token0(), "transfer", recipient, amount0)
        if amount1 > 0:
            self._call(self.token1(), "transfer", recipient, amount1)

        self._call(self.msg_sender, "uniswap_v3_flash_callback", fee0, fee1, data)

        if self._call(self.token0(), "balance_of", self.address) < balance0 + fee0:
            raise Revert("F0")
        if self._call(self.token1(), "balance_of", self.address) < balance1 + fee1:
            raise Revert("F1")
        self._emit("Flash", sender=self.msg_sender, recipient=recipient, amount0=amount0, amount1=amount1)


class _RateBook:
    """Fixed conversion rates per (token_in, token_out), as numerator/denominator."""
    def __init__(self, contract: Contract):
        self._contract = contract
        contract.storage.setdefault("rates", {})

    def set(self, token_in: str, token_out: str, numerator: int, denominator: int = 1):
        self._contract.storage["rates"][(token_in, token_out)] = (numerator, denominator)

    def quote(self, token_in: str, token_out: str, amount_in: int) -> int:
        rate = self._contract.storage["rates"].get((token_in, token_out))
        if rate is None:
            raise Revert(f"no liquidity for {token_in} -> {token_out}")
        numerator, denominator = rate
        return amount_in * numerator // denominator


class MockSwapRouter(Contract, SwapRouter):
    """Uniswap V3 SwapRouter paying out of its own inventory at fixed rates."""
    label = "v3-router"

    def __init__(self, chain: Chain):
        super().__init__(chain)
        self.rates = _RateBook(self)

    def set_rate(self, token_in: str, token_out: str, numerator: int, denominator: int = 1):
        self.rates.set(token_in, token_out, numerator, denominator)

    def exact_input_single(self, token_in: str, token_out: str, fee: int, recipient: str, amount_in: int, amount_out_minimum: int, sqrt_price_limit_x96: int = 0) -> int:
        self._call(token_in, "transfer_from", self.msg_sender, self.address, amount_in)
        amount_out = self.rates.quote(token_in, token_out, amount_in)
        return self._pay(token_out, recipient, amount_out, amount_out_minimum)

    def exact_input(self, path: bytes, recipient: str, amount_in: int, amount_out_minimum: int) -> int:
        tokens, _ = decode_path(path)
        self._call(tokens[0], "transfer_from", self.msg_sender, self.address, amount_in)
        amount = amount_in
        for token_in, token_out in zip(tokens, tokens[1:]):
            amount = self.rates.quote(token_in, token_out, amount)
        return self._pay(tokens[-1], recipient, amount, amount_out_minimum)

    def _pay(self, token: str, recipient: str, amount_out: int, amount_out_minimum: int) -> int:
        if amount_out < amount_out_minimum:
            raise Revert("Too little received")
        self._call(token, "transfer", recipient, amount_out)
        return amount_out


class MockLiquidSwapRouter(Contract, LiquidSwapRouter):
    """
    Multi-router aggregator. The first hop must spend exactly the pulled
    amount; later hops split whatever the previous hop produced in the
    proportions their allocations were quoted with.
    """
    label = "liquid-swap-router"

    def __init__(self, chain: Chain):
        super().__init__(chain)
        self.rates = _RateBook(self)
        self.executed_hops: List[List[SwapAllocation]] = []

    def set_rate(self, token_in: str, token_out: str, numerator: int, denominator: int = 1):
        self.rates.set(token_in, token_out, numerator, denominator)

    def execute_multi_hop_swap(self, tokens: list, amount_in: int, min_amount_out: int, hops: list) -> int:
        self._call(tokens[0], "transfer_from", self.msg_sender, self.address, amount_in)
        if sum(a.amount_in for a in hops[0]) != amount_in:
            raise Revert("AMOUNT_MISMATCH")
        self.executed_hops = hops

        available: Dict[str, int] = {tokens[0]: amount_in}
        for index, hop in enumerate(hops):
            quoted: Dict[str, int] = {}
            for allocation in hop:
                quoted[allocation.token_in] = quoted.get(allocation.token_in, 0) + allocation.amount_in
            spendable = dict(available)
            produced: Dict[str, int] = {}
            for allocation in hop:
                if index == 0:
                    spend = allocation.amount_in
                else:
                    spend = allocation.amount_in * spendable.get(allocation.token_in, 0) // quoted[allocation.token_in]
                available[allocation.token_in] = available.get(allocation.token_in, 0) - spend
                out = self.rates.quote(allocation.token_in, allocation.token_out, spend)
                produced[allocation.token_out] = produced.get(allocation.token_out, 0) + out
            for token, amount in produced.items():
                available[token] = available.get(token, 0) + amount

        amount_out = available.get(tokens[-1], 0)
        if amount_out < min_amount_out:
            raise Revert("INSUFFICIENT_OUTPUT_AMOUNT")
        self._call(tokens[-1], "transfer", self.msg_sender, amount_out)
        return amount_out


# --- operator client ---

class MockTransactionManager(TransactionManager):
    """
    A mock TransactionManager for client tests. Records transactions instead
    of signing and broadcasting them.
    """
    def __init__(self, from_address: str = "0x000000000000000000000000000000000000dEaD", w3=None):
        self.w3 = w3 or AsyncWeb3(AsyncHTTPProvider("http://127.0.0.1:8545"))
        self.address = from_address
        self.nonce = 0
        self.sent_transactions: List[dict] = []
        self._must_fail = False
        log.info("MOCK_TRANSACTION_MANAGER_INITIALIZED", address=self.address)

    def set_next_call_to_fail(self, fail: bool = True):
        """Configure the mock to raise an exception on the next call."""
        self._must_fail = fail

    async def build_and_send_transaction(self, tx_params: dict) -> str:
        try:
            check()
        except KillSwitchActiveError:
            log.warning("MOCK_TX_BLOCKED_BY_KILL_SWITCH", params=tx_params)
            raise TransactionKillSwitchError("Kill switch is active.")

        if self._must_fail:
            self._must_fail = False
            log.error("MOCK_TX_FORCED_FAILURE", params=tx_params)
            raise ValueError("Forced failure for testing.")

        tx_hash = f"0xfake_tx_hash_{self.nonce}"
        self.sent_transactions.append({"hash": tx_hash, **tx_params})
        self.nonce += 1
        log.info("MOCK_TRANSACTION_SENT", tx_hash=tx_hash, to=tx_params.get("to"))
        return tx_hash
