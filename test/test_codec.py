# /test/test_codec.py
import pytest
from eth_abi import encode

from liquidator.core.errors import InvalidRoutingData
from liquidator.routing.codec import (
    AdapterTag,
    LiquidSwapRoute,
    RoutingEnvelope,
    SwapAllocation,
    UniswapV3MultiHop,
    UniswapV3SingleHop,
    build_routing_data,
    decode_direct,
    decode_envelope,
    decode_liquid_swap,
    decode_path,
    decode_uniswap_v3,
    default_adapter_for_chain,
    encode_envelope,
    encode_liquid_swap,
    encode_path,
    encode_uniswap_v3,
)

WETH = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
USDC = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
WBTC = "0x2260FAC5E5542a773Aa44fBCfeDf7C193bc2C599"


def test_envelope_round_trip_puts_tag_first():
    data = encode_envelope(RoutingEnvelope(adapter_tag=1, payload=b"\x01\x02"))

    assert decode_envelope(data) == RoutingEnvelope(adapter_tag=1, payload=b"\x01\x02")
    assert int.from_bytes(data[:32], "big") == 1


def test_liquid_swap_round_trip():
    route = LiquidSwapRoute(
        tokens=[WBTC, WETH, USDC],
        hops=[
            [SwapAllocation(token_in=WBTC, token_out=WETH, router_index=0, fee=3000, amount_in=10**8)],
            [
                SwapAllocation(token_in=WETH, token_out=USDC, router_index=1, fee=500, amount_in=7 * 10**18, stable=False),
                SwapAllocation(token_in=WETH, token_out=USDC, router_index=2, fee=0, amount_in=3 * 10**18, stable=True),
            ],
        ],
    )
    assert decode_liquid_swap(encode_liquid_swap(route)) == route


def test_uniswap_v3_single_and_multi_hop_round_trip():
    single = UniswapV3SingleHop(fee=500)
    multi = UniswapV3MultiHop(path=encode_path([WBTC, WETH, USDC], [3000, 500]))

    assert decode_uniswap_v3(encode_uniswap_v3(single)) == single
    assert decode_uniswap_v3(encode_uniswap_v3(multi)) == multi


def test_packed_path_layout():
    path = encode_path([WETH, USDC], [500])

    assert len(path) == 20 + 3 + 20
    assert path[:20] == bytes.fromhex(WETH[2:])
    assert path[20:23] == (500).to_bytes(3, "big")
    assert decode_path(path) == ([WETH, USDC], [500])


def test_lowercase_addresses_are_normalized():
    alloc = SwapAllocation(token_in=WETH.lower(), token_out=USDC.lower(), router_index=0, fee=0, amount_in=1)
    assert (alloc.token_in, alloc.token_out) == (WETH, USDC)


@pytest.mark.parametrize("data", [b"", b"\x00" * 31, b"\xff" * 64])
def test_malformed_envelope_is_invalid_routing_data(data):
    with pytest.raises(InvalidRoutingData):
        decode_envelope(data)


def test_malformed_payloads_are_invalid_routing_data():
    with pytest.raises(InvalidRoutingData):
        decode_path(b"\x00" * 30)
    with pytest.raises(InvalidRoutingData):
        decode_uniswap_v3(encode(["bool", "bytes"], [True, b"\x00" * 30]))
    with pytest.raises(InvalidRoutingData):
        decode_liquid_swap(b"\x01\x02")
    with pytest.raises(InvalidRoutingData):
        decode_direct(b"\x00")


@pytest.mark.parametrize(
    "chain_id, expected",
    [(999, AdapterTag.LIQUID_SWAP), (42161, AdapterTag.UNISWAP_V3), (8453, AdapterTag.UNISWAP_V3), (1, AdapterTag.LIQUID_SWAP)],
)
def test_default_adapter_for_chain(chain_id, expected):
    assert default_adapter_for_chain(chain_id) == expected


def test_build_routing_data_shapes():
    direct = decode_envelope(build_routing_data(AdapterTag.DIRECT))
    assert (direct.adapter_tag, direct.payload) == (AdapterTag.DIRECT, b"")

    single = decode_envelope(build_routing_data(AdapterTag.UNISWAP_V3, tokens=[WETH, USDC], fee=500))
    assert decode_uniswap_v3(single.payload) == UniswapV3SingleHop(fee=500)

    multi = decode_envelope(build_routing_data(AdapterTag.UNISWAP_V3, tokens=[WBTC, WETH, USDC]))
    assert decode_path(decode_uniswap_v3(multi.payload).path) == ([WBTC, WETH, USDC], [3000, 3000])


def test_liquid_swap_route_without_hops_is_refused():
    with pytest.raises(InvalidRoutingData):
        build_routing_data(AdapterTag.LIQUID_SWAP, tokens=[WETH, USDC])
    with pytest.raises(InvalidRoutingData):
        build_routing_data(AdapterTag.LIQUID_SWAP, tokens=[WETH, USDC], hops=[[]])
