# /liquidator/routing/providers.py
"""
Off-chain route discovery for the operator client.

A route provider turns (token_in, token_out, amount_in) into the hop
allocations a swap adapter executes on-chain:

    LiquidSwapRouteProvider   asks the LiquidSwap API for a split, multi-hop plan
    UniswapV3RouteProvider    picks a fee tier by quoting candidates on QuoterV2

RouteProviderRegistry holds the providers per chain and falls through to the
next one when a provider cannot produce a route.
"""
import math
import time
from typing import Dict, List, Optional, Sequence, Tuple

import aiohttp
from eth_utils import to_checksum_address
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from web3 import AsyncWeb3, AsyncHTTPProvider
from web3.exceptions import Web3Exception

from liquidator.abis.uniswap_v3_quoter import QUOTER_V2_ABI, QUOTER_V2_ADDRESSES
from liquidator.core.config import settings
from liquidator.core.errors import RouteUnavailable
from liquidator.core.logger import get_logger
from liquidator.routing.codec import AdapterTag, SwapAllocation, build_routing_data

log = get_logger(__name__)

HYPERLIQUID_CHAIN_IDS = (998, 999)
BPS = 10_000
# A failed quote means the fee tier has no pool or the RPC is unreachable.
QUOTE_ERRORS = (Web3Exception, aiohttp.ClientError, ValueError)


class SwapRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    token_in: str
    token_out: str
    amount_in: int = Field(gt=0)
    decimals_in: int = Field(default=18, ge=0, le=77)
    multi_hop: bool = True
    slippage_bps: int = Field(default=50, ge=0, le=BPS)

    @field_validator("token_in", "token_out")
    @classmethod
    def normalize_tokens(cls, value: str) -> str:
        return to_checksum_address(value)


class SwapRoute(BaseModel):
    """A quoted route, ready to be encoded for the adapter named by `adapter_tag`."""
    model_config = ConfigDict(frozen=True)

    adapter_tag: AdapterTag
    token_in: str
    token_out: str
    amount_in: int
    expected_output: int
    min_output: int
    tokens: List[str]
    hops: List[List[SwapAllocation]]
    price_impact: Optional[float] = None

    @property
    def total_allocations(self) -> int:
        return sum(len(hop) for hop in self.hops)

    def to_routing_data(self) -> bytes:
        if self.adapter_tag is AdapterTag.LIQUID_SWAP:
            return build_routing_data(self.adapter_tag, tokens=self.tokens, hops=self.hops)
        return build_routing_data(self.adapter_tag, tokens=self.tokens, fee=self.hops[0][0].fee)


class RouteProvider:
    """Interface every route source implements."""
    provider_id: str = ""
    adapter_tag: AdapterTag
    supported_chains: Tuple[int, ...] = ()

    def supports_chain(self, chain_id: int) -> bool:
        return chain_id in self.supported_chains

    async def get_route(self, request: SwapRequest) -> SwapRoute:
        raise NotImplementedError

    async def get_route_cached(self, request: SwapRequest) -> SwapRoute:
        return await self.get_route(request)


# --- LiquidSwap ---

class _ApiAllocation(BaseModel):
    token_in: str = Field(alias="tokenIn")
    token_out: str = Field(alias="tokenOut")
    router_index: int = Field(alias="routerIndex")
    fee: int
    amount_in: int = Field(alias="amountIn")
    stable: bool = False


class _ApiExecutionDetails(BaseModel):
    amount_out: int = Field(alias="amountOut")
    min_amount_out: int = Field(alias="minAmountOut")
    hop_swaps: List[List[_ApiAllocation]] = Field(alias="hopSwaps")


class _ApiExecution(BaseModel):
    calldata: str = ""
    details: _ApiExecutionDetails


class LiquidSwapApiResponse(BaseModel):
    success: bool
    average_price_impact: Optional[str] = Field(default=None, alias="averagePriceImpact")
    execution: Optional[_ApiExecution] = None
    message: Optional[str] = None


def bucket_amount(amount: int) -> int:
    """Hundredths of a decade; amounts within ~2% share a cache slot."""
    if amount <= 0:
        return 0
    return int(math.log10(amount) * 100)


def format_amount(amount: int, decimals: int) -> str:
    """Raw token units to the decimal string the LiquidSwap API expects."""
    whole, frac = divmod(amount, 10 ** decimals)
    if frac == 0:
        return str(whole)
    return f"{whole}.{str(frac).rjust(decimals, '0').rstrip('0')}"


def _parse_price_impact(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value.rstrip("%"))
    except ValueError:
        return None


class LiquidSwapRouteProvider(RouteProvider):
    """LiquidSwap aggregator API client with a short-lived route cache."""
    provider_id = "liquid-swap"
    adapter_tag = AdapterTag.LIQUID_SWAP

    def __init__(
        self,
        base_url: str = settings.LIQUID_SWAP_API_URL,
        cache_ttl: float = settings.ROUTE_CACHE_TTL_SECONDS,
        supported_chains: Sequence[int] = HYPERLIQUID_CHAIN_IDS,
        timeout: float = 10.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.cache_ttl = cache_ttl
        self.supported_chains = tuple(supported_chains)
        self.timeout = timeout
        self._cache: Dict[Tuple[str, str, int], Tuple[SwapRoute, float]] = {}
        log.info("LIQUID_SWAP_ROUTE_PROVIDER_INITIALIZED", base_url=self.base_url, cache_ttl=cache_ttl)

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def cleanup_cache(self):
        now = time.monotonic()
        self._cache = {k: v for k, v in self._cache.items() if now - v[1] < self.cache_ttl}

    async def get_route(self, request: SwapRequest) -> SwapRoute:
        return await self._fetch_route(request)

    async def get_route_cached(self, request: SwapRequest) -> SwapRoute:
        key = (request.token_in, request.token_out, bucket_amount(request.amount_in))
        cached = self._cache.get(key)
        if cached is not None:
            route, cached_at = cached
            age = time.monotonic() - cached_at
            if age < self.cache_ttl:
                log.debug("ROUTE_CACHE_HIT", token_in=request.token_in, token_out=request.token_out, age_s=round(age, 3))
                # Hop amounts stay as quoted; the adapter moves the difference onto the first allocation.
                return route.model_copy(update={"amount_in": request.amount_in})

        route = await self._fetch_route(request)
        self._cache[key] = (route, time.monotonic())
        return route

    async def _fetch_route(self, request: SwapRequest) -> SwapRoute:
        query = {
            "tokenIn": request.token_in.lower(),
            "tokenOut": request.token_out.lower(),
            "amountIn": format_amount(request.amount_in, request.decimals_in),
            "multiHop": "true" if request.multi_hop else "false",
        }
        log.debug("LIQUID_SWAP_ROUTE_REQUESTED", **query)
        try:
            async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout)) as session:
                async with session.get(f"{self.base_url}/v2/route", params=query) as response:
                    response.raise_for_status()
                    payload = LiquidSwapApiResponse.model_validate(await response.json())
        except (aiohttp.ClientError, ValidationError, ValueError) as e:
            log.error("LIQUID_SWAP_ROUTE_FETCH_FAILED", token_in=request.token_in, token_out=request.token_out, error=str(e))
            raise RouteUnavailable(f"LiquidSwap API request failed: {e}") from e
        return self._convert(request, payload)

    def _convert(self, request: SwapRequest, response: LiquidSwapApiResponse) -> SwapRoute:
        if not response.success:
            raise RouteUnavailable(f"LiquidSwap API returned error: {response.message or 'unknown error'}")
        if response.execution is None:
            raise RouteUnavailable("LiquidSwap API response has no execution details")
        details = response.execution.details
        if not details.hop_swaps or not details.hop_swaps[0]:
            raise RouteUnavailable("LiquidSwap API returned no hops")

        tokens = [request.token_in]
        hops = []
        for api_hop in details.hop_swaps:
            try:
                hop = [
                    SwapAllocation(
                        token_in=a.token_in,
                        token_out=a.token_out,
                        router_index=a.router_index,
                        fee=a.fee,
                        amount_in=a.amount_in,
                        stable=a.stable,
                    )
                    for a in api_hop
                ]
            except ValidationError as e:
                raise RouteUnavailable(f"LiquidSwap API returned an invalid allocation: {e}") from e
            for allocation in hop:
                if allocation.token_out not in tokens:
                    tokens.append(allocation.token_out)
            hops.append(hop)
        if tokens[-1] != request.token_out:
            raise RouteUnavailable(f"LiquidSwap route ends in {tokens[-1]}, not {request.token_out}")

        route = SwapRoute(
            adapter_tag=self.adapter_tag,
            token_in=request.token_in,
            token_out=request.token_out,
            amount_in=request.amount_in,
            expected_output=details.amount_out,
            min_output=details.min_amount_out,
            tokens=tokens,
            hops=hops,
            price_impact=_parse_price_impact(response.average_price_impact),
        )
        log.info("LIQUID_SWAP_ROUTE_FETCHED", hops=len(hops), allocations=route.total_allocations, expected_output=route.expected_output)
        return route


# --- Uniswap V3 ---

def fee_tiers_for_pair(is_stable_pair: bool) -> List[int]:
    """Fee tiers to quote, most likely first."""
    if is_stable_pair:
        return [100, 500, 3000]
    return [3000, 500, 10000, 100]


class UniswapV3RouteProvider(RouteProvider):
    """Single-hop Uniswap V3 routes at the fee tier with the best QuoterV2 quote."""
    provider_id = "uniswap-v3"
    adapter_tag = AdapterTag.UNISWAP_V3

    def __init__(self, w3: AsyncWeb3, chain_id: int, quoter: Optional[str] = None, stablecoins: Sequence[str] = ()):
        quoter = quoter or QUOTER_V2_ADDRESSES.get(chain_id)
        self.chain_id = chain_id
        self.supported_chains = (chain_id,) if quoter else ()
        self.quoter = w3.eth.contract(address=to_checksum_address(quoter), abi=QUOTER_V2_ABI) if quoter else None
        self.stablecoins = {to_checksum_address(s) for s in stablecoins}
        self._fee_cache: Dict[Tuple[str, str], int] = {}
        if quoter:
            log.info("UNISWAP_V3_ROUTE_PROVIDER_INITIALIZED", chain_id=chain_id, quoter=quoter)
        else:
            log.warning("UNISWAP_V3_NOT_CONFIGURED_FOR_CHAIN", chain_id=chain_id)

    def is_stable_pair(self, token_in: str, token_out: str) -> bool:
        return token_in in self.stablecoins and token_out in self.stablecoins

    def cached_fee(self, token_in: str, token_out: str) -> Optional[int]:
        return self._fee_cache.get((token_in, token_out), self._fee_cache.get((token_out, token_in)))

    async def quote(self, token_in: str, token_out: str, amount_in: int, fee: int) -> int:
        amount_out, _, _, _ = await self.quoter.functions.quoteExactInputSingle(
            (token_in, token_out, amount_in, fee, 0)
        ).call()
        return amount_out

    async def find_best_fee(self, token_in: str, token_out: str, amount_in: int) -> Tuple[int, int]:
        fee = self.cached_fee(token_in, token_out)
        if fee is not None:
            try:
                return fee, await self.quote(token_in, token_out, amount_in, fee)
            except QUOTE_ERRORS as e:
                raise RouteUnavailable(f"quote at cached fee tier {fee} failed: {e}") from e

        best_fee, best_quote = 0, 0
        for fee in fee_tiers_for_pair(self.is_stable_pair(token_in, token_out)):
            try:
                quoted = await self.quote(token_in, token_out, amount_in, fee)
            except QUOTE_ERRORS as e:
                log.debug("UNISWAP_V3_FEE_TIER_UNAVAILABLE", fee=fee, error=str(e))
                continue
            if quoted > best_quote:
                best_fee, best_quote = fee, quoted

        if best_quote == 0:
            raise RouteUnavailable(f"no Uniswap V3 liquidity for {token_in} -> {token_out}")
        self._fee_cache[(token_in, token_out)] = best_fee
        return best_fee, best_quote

    async def get_route(self, request: SwapRequest) -> SwapRoute:
        if self.quoter is None:
            raise RouteUnavailable(f"no QuoterV2 configured for chain {self.chain_id}")
        fee, expected = await self.find_best_fee(request.token_in, request.token_out, request.amount_in)
        stable = self.is_stable_pair(request.token_in, request.token_out)
        log.info("UNISWAP_V3_ROUTE_QUOTED", fee=fee, expected_output=expected)
        return SwapRoute(
            adapter_tag=self.adapter_tag,
            token_in=request.token_in,
            token_out=request.token_out,
            amount_in=request.amount_in,
            expected_output=expected,
            min_output=expected * (BPS - request.slippage_bps) // BPS,
            tokens=[request.token_in, request.token_out],
            hops=[[SwapAllocation(
                token_in=request.token_in, token_out=request.token_out,
                router_index=0, fee=fee, amount_in=request.amount_in, stable=stable,
            )]],
        )


# --- registry ---

class RouteProviderRegistry:
    def __init__(self, default: Optional[RouteProvider] = None):
        self._providers: Dict[int, List[RouteProvider]] = {}
        self.default = default

    def register(self, provider: RouteProvider) -> "RouteProviderRegistry":
        for chain_id in provider.supported_chains:
            self._providers.setdefault(chain_id, []).append(provider)
        return self

    def providers_for_chain(self, chain_id: int, adapter_tag: Optional[AdapterTag] = None) -> List[RouteProvider]:
        providers = self._providers.get(chain_id, [])
        if adapter_tag is not None:
            providers = [p for p in providers if p.adapter_tag == adapter_tag]
        return list(providers)

    def provider_for_chain(self, chain_id: int) -> Optional[RouteProvider]:
        providers = self.providers_for_chain(chain_id)
        return providers[0] if providers else self.default

    async def get_route_with_fallback(
        self, chain_id: int, request: SwapRequest, adapter_tag: Optional[AdapterTag] = None
    ) -> SwapRoute:
        """Tries each provider for the chain in registration order; the first route wins."""
        providers = self.providers_for_chain(chain_id, adapter_tag)
        if not providers:
            if self.default is not None and (adapter_tag is None or self.default.adapter_tag == adapter_tag):
                return await self.default.get_route(request)
            raise RouteUnavailable(f"no route provider for chain {chain_id}")

        last_error: Optional[RouteUnavailable] = None
        for provider in providers:
            try:
                return await provider.get_route_cached(request)
            except RouteUnavailable as e:
                log.warning("ROUTE_PROVIDER_FAILED", provider=provider.provider_id, chain_id=chain_id, error=str(e))
                last_error = e
        raise last_error


def build_route_registry(chain_id: int, w3: Optional[AsyncWeb3] = None) -> RouteProviderRegistry:
    """Providers for `chain_id` from settings; Uniswap V3 quoting needs an RPC endpoint."""
    registry = RouteProviderRegistry().register(LiquidSwapRouteProvider())
    if w3 is None and settings.rpc_url:
        w3 = AsyncWeb3(AsyncHTTPProvider(settings.rpc_url))
    if w3 is not None:
        registry.register(UniswapV3RouteProvider(w3, chain_id, stablecoins=settings.STABLECOINS))
    return registry
