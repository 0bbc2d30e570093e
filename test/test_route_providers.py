# /test/test_route_providers.py
# - LiquidSwap API client against a local aiohttp server, Uniswap V3 fee-tier
#   selection with stubbed quotes, and registry fallback between providers.

from contextlib import asynccontextmanager

import pytest
from aiohttp import test_utils, web
from web3 import AsyncWeb3, AsyncHTTPProvider
from web3.exceptions import ContractLogicError

from liquidator.core.errors import RouteUnavailable
from liquidator.routing.codec import AdapterTag, decode_envelope, decode_liquid_swap, decode_uniswap_v3
from liquidator.routing.providers import (
    LiquidSwapRouteProvider,
    RouteProvider,
    RouteProviderRegistry,
    SwapRequest,
    UniswapV3RouteProvider,
    bucket_amount,
    fee_tiers_for_pair,
    format_amount,
)

WETH = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
USDC = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
USDT = "0xdAC17F958D2ee523a2206206994597C13D831ec7"
HYPE = "0x5555555555555555555555555555555555555555"

ROUTE_RESPONSE = {
    "success": True,
    "averagePriceImpact": "0.12%",
    "execution": {
        "to": "0x744489ee3d540777a66f2cf297479745e0852f7a",
        "calldata": "0xabcd",
        "details": {
            "path": [WETH.lower(), HYPE.lower(), USDC.lower()],
            "amountIn": "1.5",
            "amountOut": "3010000",
            "minAmountOut": "2995000",
            "hopSwaps": [
                [{"tokenIn": WETH.lower(), "tokenOut": HYPE.lower(), "routerIndex": 0, "fee": 3000, "amountIn": "1500000000000000000", "stable": False}],
                [
                    {"tokenIn": HYPE.lower(), "tokenOut": USDC.lower(), "routerIndex": 1, "fee": 500, "amountIn": "600", "stable": False},
                    {"tokenIn": HYPE.lower(), "tokenOut": USDC.lower(), "routerIndex": 2, "fee": 0, "amountIn": "400", "stable": True},
                ],
            ],
        },
    },
}


@asynccontextmanager
async def liquid_swap_api(payload, status=200):
    """Serves `payload` from /v2/route and records each query string."""
    queries = []

    async def route(request):
        queries.append(dict(request.query))
        return web.json_response(payload, status=status)

    app = web.Application()
    app.router.add_get("/v2/route", route)
    async with test_utils.TestServer(app) as server:
        yield f"http://{server.host}:{server.port}", queries


def request(amount=1_500_000_000_000_000_000, **overrides):
    return SwapRequest(token_in=WETH, token_out=USDC, amount_in=amount, **overrides)


# --- LiquidSwap ---

@pytest.mark.asyncio
async def test_liquid_swap_route_is_converted_from_api_response():
    """
    GIVEN an API answer with a two-hop plan whose second hop is split across routers
    WHEN a route is requested for 1.5 WETH
    THEN the hops, token path and quoted amounts come back ready to encode
    """
    async with liquid_swap_api(ROUTE_RESPONSE) as (url, queries):
        provider = LiquidSwapRouteProvider(base_url=url)
        route = await provider.get_route(request())

    assert queries == [{"tokenIn": WETH.lower(), "tokenOut": USDC.lower(), "amountIn": "1.5", "multiHop": "true"}]
    assert route.adapter_tag is AdapterTag.LIQUID_SWAP
    assert route.tokens == [WETH, HYPE, USDC]
    assert [[a.router_index for a in hop] for hop in route.hops] == [[0], [1, 2]]
    assert route.hops[1][1].stable is True
    assert (route.expected_output, route.min_output, route.price_impact) == (3_010_000, 2_995_000, 0.12)
    assert route.total_allocations == 3

    envelope = decode_envelope(route.to_routing_data())
    assert envelope.adapter_tag == AdapterTag.LIQUID_SWAP
    assert decode_liquid_swap(envelope.payload).hops == route.hops


@pytest.mark.asyncio
async def test_liquid_swap_routes_are_cached_per_amount_bucket():
    async with liquid_swap_api(ROUTE_RESPONSE) as (url, queries):
        provider = LiquidSwapRouteProvider(base_url=url, cache_ttl=60)
        first = await provider.get_route_cached(request(1_500_000_000_000_000_000))
        nearby = await provider.get_route_cached(request(1_510_000_000_000_000_000))
        larger = await provider.get_route_cached(request(15_000_000_000_000_000_000))

    assert len(queries) == 2
    assert provider.cache_size == 2
    assert nearby.amount_in == 1_510_000_000_000_000_000
    assert nearby.hops == first.hops
    assert larger.amount_in == 15_000_000_000_000_000_000


@pytest.mark.asyncio
async def test_expired_routes_are_fetched_again():
    async with liquid_swap_api(ROUTE_RESPONSE) as (url, queries):
        provider = LiquidSwapRouteProvider(base_url=url, cache_ttl=0)
        await provider.get_route_cached(request())
        await provider.get_route_cached(request())
        provider.cleanup_cache()

    assert len(queries) == 2
    assert provider.cache_size == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload, status",
    [
        ({"success": False, "message": "no route"}, 200),
        ({"success": True}, 200),
        ({"success": True, "execution": {"details": {"amountOut": "0", "minAmountOut": "0", "hopSwaps": []}}}, 200),
        ({"error": "boom"}, 500),
    ],
)
async def test_liquid_swap_api_failures_raise_route_unavailable(payload, status):
    async with liquid_swap_api(payload, status) as (url, _):
        provider = LiquidSwapRouteProvider(base_url=url)
        with pytest.raises(RouteUnavailable):
            await provider.get_route(request())
    assert provider.cache_size == 0


def test_amount_helpers():
    assert format_amount(1_500_000, 6) == "1.5"
    assert format_amount(10**18, 18) == "1"
    assert format_amount(5 * 10**17, 18) == "0.5"
    assert format_amount(1_000_001, 6) == "1.000001"
    assert abs(bucket_amount(1_000_000) - bucket_amount(1_010_000)) < 5
    assert bucket_amount(10_000_000) > bucket_amount(1_000_000)
    assert bucket_amount(0) == 0


# --- Uniswap V3 ---

class StubQuoter(UniswapV3RouteProvider):
    """Quotes from a table; missing fee tiers behave like a reverting QuoterV2 call."""

    def __init__(self, quotes, stablecoins=()):
        super().__init__(AsyncWeb3(AsyncHTTPProvider("http://127.0.0.1:8545")), 42161, stablecoins=stablecoins)
        self.quotes = quotes
        self.asked = []

    async def quote(self, token_in, token_out, amount_in, fee):
        self.asked.append(fee)
        if fee not in self.quotes:
            raise ContractLogicError("execution reverted")
        return self.quotes[fee]


def test_fee_tier_order():
    assert fee_tiers_for_pair(True)[0] == 100
    assert fee_tiers_for_pair(False) == [3000, 500, 10000, 100]


@pytest.mark.asyncio
async def test_uniswap_v3_picks_best_quote_and_caches_fee():
    provider = StubQuoter({500: 1_990_000, 3000: 1_980_000})

    route = await provider.get_route(request(10**18, slippage_bps=100))

    assert provider.asked == [3000, 500, 10000, 100]
    assert route.adapter_tag is AdapterTag.UNISWAP_V3
    assert route.hops[0][0].fee == 500
    assert (route.expected_output, route.min_output) == (1_990_000, 1_970_100)
    assert decode_uniswap_v3(decode_envelope(route.to_routing_data()).payload).fee == 500

    provider.asked.clear()
    reverse = SwapRequest(token_in=USDC, token_out=WETH, amount_in=10**6)
    await provider.get_route(reverse)
    assert provider.asked == [500]


@pytest.mark.asyncio
async def test_stable_pairs_quote_lowest_tier_first():
    provider = StubQuoter({100: 999_900}, stablecoins=[USDC, USDT])

    route = await provider.get_route(SwapRequest(token_in=USDC, token_out=USDT, amount_in=10**6))

    assert provider.asked == [100, 500, 3000]
    assert route.hops[0][0].stable is True


@pytest.mark.asyncio
async def test_no_liquidity_at_any_tier():
    provider = StubQuoter({})
    with pytest.raises(RouteUnavailable):
        await provider.get_route(request())


def test_uniswap_v3_supports_only_configured_chains():
    w3 = AsyncWeb3(AsyncHTTPProvider("http://127.0.0.1:8545"))
    assert UniswapV3RouteProvider(w3, 8453).supports_chain(8453)
    assert not UniswapV3RouteProvider(w3, 1).supports_chain(1)


# --- registry ---

class CannedProvider(RouteProvider):
    def __init__(self, provider_id, adapter_tag, chains, route=None):
        self.provider_id = provider_id
        self.adapter_tag = adapter_tag
        self.supported_chains = chains
        self.route = route
        self.calls = 0

    async def get_route(self, request):
        self.calls += 1
        if self.route is None:
            raise RouteUnavailable(f"{self.provider_id} has no route")
        return self.route


@pytest.mark.asyncio
async def test_registry_falls_back_to_next_provider():
    quoted = await StubQuoter({3000: 5}).get_route(request())
    failing = CannedProvider("first", AdapterTag.UNISWAP_V3, (42161,))
    working = CannedProvider("second", AdapterTag.UNISWAP_V3, (42161,), quoted)
    registry = RouteProviderRegistry().register(failing).register(working)

    assert registry.provider_for_chain(42161) is failing
    assert await registry.get_route_with_fallback(42161, request()) is quoted
    assert (failing.calls, working.calls) == (1, 1)


@pytest.mark.asyncio
async def test_registry_filters_by_adapter_and_reports_last_error():
    liquid = CannedProvider("liquid", AdapterTag.LIQUID_SWAP, (999,))
    registry = RouteProviderRegistry().register(liquid)

    with pytest.raises(RouteUnavailable, match="liquid has no route"):
        await registry.get_route_with_fallback(999, request())
    with pytest.raises(RouteUnavailable, match="no route provider"):
        await registry.get_route_with_fallback(999, request(), adapter_tag=AdapterTag.UNISWAP_V3)
    with pytest.raises(RouteUnavailable, match="no route provider"):
        await registry.get_route_with_fallback(1, request())
