# /test/test_swap_adapters.py
# - Exercises each swap backend directly, outside of a liquidation.

import pytest

from liquidator.core.errors import InsufficientOutput, InvalidRoutingData, Revert, TokenMismatch
from liquidator.routing.codec import (
    SwapAllocation,
    LiquidSwapRoute,
    UniswapV3MultiHop,
    UniswapV3SingleHop,
    encode_liquid_swap,
    encode_path,
    encode_uniswap_v3,
)
from liquidator.swaps.liquid_swap import reconcile_first_hop


def swap(w, adapter, token_in, token_out, amount_in, min_out, payload=b""):
    token_in.mint(adapter.address, amount_in)
    return w.chain.transact(
        w.owner, adapter.address, "swap",
        token_in.address, token_out.address, amount_in, min_out, payload,
    )


# --- DirectAdapter ---

def test_direct_adapter_passes_amount_through(world):
    out = swap(world, world.direct_adapter, world.usdc, world.usdc, 500, 500)
    assert out == 500
    assert world.usdc.balance_of(world.owner) == 500
    assert world.usdc.balance_of(world.direct_adapter.address) == 0


def test_direct_adapter_rejects_token_mismatch(world):
    with pytest.raises(TokenMismatch):
        swap(world, world.direct_adapter, world.coll, world.usdc, 500, 0)


def test_direct_adapter_enforces_min_out(world):
    with pytest.raises(InsufficientOutput):
        swap(world, world.direct_adapter, world.usdc, world.usdc, 500, 501)


def test_direct_adapter_rejects_payload(world):
    with pytest.raises(InvalidRoutingData):
        swap(world, world.direct_adapter, world.usdc, world.usdc, 500, 500, b"\x01")
    assert world.usdc.balance_of(world.owner) == 0


# --- UniswapV3Adapter ---

def test_uniswap_v3_single_hop(world):
    world.router.set_rate(world.coll.address, world.usdc.address, 2)
    payload = encode_uniswap_v3(UniswapV3SingleHop(fee=3000))

    out = swap(world, world.v3_adapter, world.coll, world.usdc, 1_000, 2_000, payload)

    assert out == 2_000
    assert world.usdc.balance_of(world.owner) == 2_000
    assert world.coll.balance_of(world.router.address) == 1_000


def test_uniswap_v3_multi_hop(world):
    world.router.set_rate(world.coll.address, world.weth.address, 3)
    world.weth.mint(world.router.address, 10**9)
    path = encode_path([world.coll.address, world.weth.address, world.usdc.address], [500, 3000])
    payload = encode_uniswap_v3(UniswapV3MultiHop(path=path))

    out = swap(world, world.v3_adapter, world.coll, world.usdc, 1_000, 0, payload)

    assert out == 3_000


def test_uniswap_v3_path_must_match_tokens(world):
    path = encode_path([world.weth.address, world.usdc.address], [500])
    payload = encode_uniswap_v3(UniswapV3MultiHop(path=path))

    with pytest.raises(InvalidRoutingData):
        swap(world, world.v3_adapter, world.coll, world.usdc, 1_000, 0, payload)
    assert world.coll.balance_of(world.router.address) == 0


def test_uniswap_v3_min_out_reverts_without_moving_funds(world):
    """
    GIVEN a router quoting COLL -> USDC at 1:1
    WHEN 1,000 COLL is swapped with a 1,001 USDC floor
    THEN the swap reverts and the caller, adapter and router balances are untouched
    """
    payload = encode_uniswap_v3(UniswapV3SingleHop(fee=3000))
    router_usdc = world.usdc.balance_of(world.router.address)

    with pytest.raises(Revert, match="Too little received"):
        swap(world, world.v3_adapter, world.coll, world.usdc, 1_000, 1_001, payload)

    assert world.usdc.balance_of(world.owner) == 0
    assert world.coll.balance_of(world.v3_adapter.address) == 1_000
    assert world.coll.balance_of(world.router.address) == 0
    assert world.usdc.balance_of(world.router.address) == router_usdc


# --- LiquidSwapAdapter ---

def alloc(w, token_in, token_out, amount, router_index=0):
    return SwapAllocation(
        token_in=token_in.address, token_out=token_out.address,
        router_index=router_index, fee=0, amount_in=amount,
    )


def test_liquid_swap_multi_hop_split(world):
    """
    GIVEN a two-hop plan COLL -> WETH -> USDC with the second hop split across routers
    WHEN 1,000 COLL is swapped
    THEN every unit of WETH produced is forwarded and 1,000 USDC comes out
    """
    route = LiquidSwapRoute(
        tokens=[world.coll.address, world.weth.address, world.usdc.address],
        hops=[
            [alloc(world, world.coll, world.weth, 1_000)],
            [alloc(world, world.weth, world.usdc, 600, 0), alloc(world, world.weth, world.usdc, 400, 1)],
        ],
    )

    out = swap(world, world.liquid_adapter, world.coll, world.usdc, 1_000, 1_000, encode_liquid_swap(route))

    assert out == 1_000
    assert world.usdc.balance_of(world.owner) == 1_000


def test_liquid_swap_min_out_reverts_without_moving_funds(world):
    """
    GIVEN a single-hop COLL -> USDC plan at 1:1
    WHEN 1,000 COLL is swapped with a 1,001 USDC floor
    THEN the aggregator reverts and no balance moves
    """
    route = LiquidSwapRoute(
        tokens=[world.coll.address, world.usdc.address],
        hops=[[alloc(world, world.coll, world.usdc, 1_000)]],
    )
    router_usdc = world.usdc.balance_of(world.liquid_router.address)

    with pytest.raises(Revert, match="INSUFFICIENT_OUTPUT_AMOUNT"):
        swap(world, world.liquid_adapter, world.coll, world.usdc, 1_000, 1_001, encode_liquid_swap(route))

    assert world.usdc.balance_of(world.owner) == 0
    assert world.coll.balance_of(world.liquid_adapter.address) == 1_000
    assert world.coll.balance_of(world.liquid_router.address) == 0
    assert world.usdc.balance_of(world.liquid_router.address) == router_usdc


def test_liquid_swap_route_endpoints_checked(world):
    route = LiquidSwapRoute(
        tokens=[world.weth.address, world.usdc.address],
        hops=[[alloc(world, world.weth, world.usdc, 1_000)]],
    )
    with pytest.raises(InvalidRoutingData):
        swap(world, world.liquid_adapter, world.coll, world.usdc, 1_000, 0, encode_liquid_swap(route))


def test_reconcile_first_hop_adjusts_copy_only(world):
    hops = [[alloc(world, world.coll, world.usdc, 700), alloc(world, world.coll, world.usdc, 300)]]

    smaller = reconcile_first_hop(hops, 990)
    larger = reconcile_first_hop(hops, 1_005)

    assert [a.amount_in for a in smaller[0]] == [690, 300]
    assert [a.amount_in for a in larger[0]] == [705, 300]
    assert [a.amount_in for a in hops[0]] == [700, 300]
    assert reconcile_first_hop(hops, 1_000) is hops


def test_reconcile_first_hop_rejects_impossible_plans(world):
    with pytest.raises(InvalidRoutingData):
        reconcile_first_hop([], 100)
    with pytest.raises(InvalidRoutingData):
        reconcile_first_hop([[alloc(world, world.coll, world.usdc, 10), alloc(world, world.coll, world.usdc, 500)]], 100)
