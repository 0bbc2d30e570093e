# /test/conftest.py
# Shared fixtures: a fully deployed in-memory liquidation world.
import os
from types import SimpleNamespace

import pytest

from liquidator.adapters.mock import (
    MockERC20,
    MockLendingPool,
    MockLiquidSwapRouter,
    MockSwapRouter,
    MockUniswapV3Factory,
    MockWrappedNative,
)
from liquidator.core.chain import Chain
from liquidator.core.kill import KILL_SWITCH_FILE
from liquidator.engine.liquidator import Liquidator
from liquidator.routing.codec import AdapterTag, build_routing_data
from liquidator.swaps import DirectAdapter, LiquidSwapAdapter, UniswapV3Adapter

LIQUIDITY = 10**15
USER_DEBT = 2_000_000
USER_COLLATERAL = 3_000_000


@pytest.fixture(autouse=True)
def kill_switch_cleanup():
    yield
    if os.path.exists(KILL_SWITCH_FILE):
        os.remove(KILL_SWITCH_FILE)


@pytest.fixture
def chain():
    return Chain(chain_id=1)


@pytest.fixture
def world(chain):
    """
    Lending pool with an underwater USER (COLL collateral, USDC debt), a 5%
    liquidation bonus at 1:1 prices, a V3 router and a LiquidSwap router
    quoting COLL -> USDC at 1:1, and a V3 factory with no pools yet.
    """
    w = SimpleNamespace(chain=chain)
    w.owner = chain.new_address("owner")
    w.user = chain.new_address("user")
    w.attacker = chain.new_address("attacker")

    w.weth = MockWrappedNative(chain)
    w.usdc = MockERC20(chain, "USDC", 6)
    w.coll = MockERC20(chain, "COLL")

    w.pool = MockLendingPool(chain)
    for token in (w.usdc, w.coll, w.weth):
        w.pool.init_reserve(token.address, liquidation_bonus_bps=10500)
    w.usdc.mint(w.pool.address, LIQUIDITY)
    w.coll.mint(w.pool.address, LIQUIDITY)
    w.weth.mint(w.pool.address, LIQUIDITY)
    w.pool.open_position(w.user, w.coll.address, USER_COLLATERAL, w.usdc.address, USER_DEBT)

    w.router = MockSwapRouter(chain)
    w.router.set_rate(w.coll.address, w.usdc.address, 1)
    w.router.set_rate(w.weth.address, w.usdc.address, 1)
    w.usdc.mint(w.router.address, LIQUIDITY)

    w.liquid_router = MockLiquidSwapRouter(chain)
    w.liquid_router.set_rate(w.coll.address, w.usdc.address, 1)
    w.liquid_router.set_rate(w.coll.address, w.weth.address, 1)
    w.liquid_router.set_rate(w.weth.address, w.usdc.address, 1)
    w.usdc.mint(w.liquid_router.address, LIQUIDITY)
    w.weth.mint(w.liquid_router.address, LIQUIDITY)

    w.factory = MockUniswapV3Factory(chain)

    w.direct_adapter = DirectAdapter(chain)
    w.v3_adapter = UniswapV3Adapter(chain, w.router.address)
    w.liquid_adapter = LiquidSwapAdapter(chain, w.liquid_router.address)
    return w


def deploy_liquidator(w, dex: bool = False, register_adapters: bool = True) -> Liquidator:
    liquidator = Liquidator(
        w.chain,
        owner=w.owner,
        pool=w.pool.address,
        wrapped_native=w.weth.address,
        dex_factory=w.factory.address if dex else None,
        default_flash_fee_tier=500,
    )
    if register_adapters:
        for adapter in (w.liquid_adapter, w.v3_adapter, w.direct_adapter):
            w.chain.transact(w.owner, liquidator.address, "set_adapter_tag", int(adapter.tag), adapter.address)
    return liquidator


def create_flash_pool(w, token_a, token_b, fee: int = 500, pool_cls=None, liquidity: int = LIQUIDITY):
    pool = w.factory.create_pool(token_a.address, token_b.address, fee, pool_cls=pool_cls)
    token_a.mint(pool.address, liquidity)
    token_b.mint(pool.address, liquidity)
    return pool


@pytest.fixture
def lending_liquidator(world):
    return deploy_liquidator(world, dex=False)


@pytest.fixture
def dex_liquidator(world):
    return deploy_liquidator(world, dex=True)


@pytest.fixture
def v3_route(world):
    return build_routing_data(AdapterTag.UNISWAP_V3, tokens=[world.coll.address, world.usdc.address], fee=3000)
