# /liquidator/routing/codec.py
"""
Wire format for the `routing_data` argument of `liquidate`.

Outer envelope:   abi.encode(uint8 adapterTag, bytes payload)

Inner payloads, by tag:
    0  LiquidSwap   abi.encode(address[] tokens, SwapAlloc[][] hops)
    1  Uniswap V3   abi.encode(bool isMultiHop, bytes pathOrFee)
                    single hop: pathOrFee = abi.encode(uint24 fee)
                    multi hop:  pathOrFee = token(20) | fee(3) | token(20) | ...
    2  Direct       empty

The tag is always the first field decoded, so the orchestrator can route
without knowing anything about the payload.
"""
from enum import IntEnum
from typing import List, Optional, Sequence, Union

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import is_address, to_checksum_address
from pydantic import BaseModel, ConfigDict, Field, field_validator

from liquidator.core.errors import InvalidRoutingData

SWAP_ALLOC_TYPE = "(address,address,uint8,uint24,uint256,bool)"
ENVELOPE_TYPES = ["uint8", "bytes"]
LIQUID_SWAP_TYPES = ["address[]", f"{SWAP_ALLOC_TYPE}[][]"]
UNISWAP_V3_TYPES = ["bool", "bytes"]

ADDRESS_SIZE = 20
FEE_SIZE = 3
DEFAULT_UNISWAP_FEE = 3000


class AdapterTag(IntEnum):
    LIQUID_SWAP = 0
    UNISWAP_V3 = 1
    DIRECT = 2


def _checksum(value: str) -> str:
    if not is_address(value):
        raise ValueError(f"not an address: {value!r}")
    return to_checksum_address(value)


class RoutingEnvelope(BaseModel):
    model_config = ConfigDict(frozen=True)

    adapter_tag: int = Field(ge=0, le=255)
    payload: bytes = b""


class SwapAllocation(BaseModel):
    """One slice of a LiquidSwap hop, routed through a single underlying router."""
    model_config = ConfigDict(frozen=True)

    token_in: str
    token_out: str
    router_index: int = Field(ge=0, le=255)
    fee: int = Field(ge=0, lt=2**24)
    amount_in: int = Field(ge=0, lt=2**256)
    stable: bool = False

    @field_validator("token_in", "token_out")
    @classmethod
    def normalize_tokens(cls, value: str) -> str:
        return _checksum(value)


class LiquidSwapRoute(BaseModel):
    model_config = ConfigDict(frozen=True)

    tokens: List[str]
    hops: List[List[SwapAllocation]]

    @field_validator("tokens")
    @classmethod
    def normalize_tokens(cls, value: List[str]) -> List[str]:
        return [_checksum(t) for t in value]


class UniswapV3SingleHop(BaseModel):
    model_config = ConfigDict(frozen=True)

    fee: int = Field(ge=0, lt=2**24)


class UniswapV3MultiHop(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: bytes


UniswapV3Route = Union[UniswapV3SingleHop, UniswapV3MultiHop]


# --- outer envelope ---

def encode_envelope(envelope: RoutingEnvelope) -> bytes:
    return encode(ENVELOPE_TYPES, [envelope.adapter_tag, envelope.payload])


def decode_envelope(data: bytes) -> RoutingEnvelope:
    try:
        tag, payload = decode(ENVELOPE_TYPES, bytes(data))
    except (DecodingError, ValueError, TypeError) as e:
        raise InvalidRoutingData(f"malformed routing envelope: {e}") from e
    return RoutingEnvelope(adapter_tag=tag, payload=payload)


def wrap(tag: int, payload: bytes) -> bytes:
    return encode_envelope(RoutingEnvelope(adapter_tag=int(tag), payload=payload))


# --- LiquidSwap ---

def encode_liquid_swap(route: LiquidSwapRoute) -> bytes:
    hops = [
        [(a.token_in, a.token_out, a.router_index, a.fee, a.amount_in, a.stable) for a in hop]
        for hop in route.hops
    ]
    return encode(LIQUID_SWAP_TYPES, [route.tokens, hops])


def decode_liquid_swap(payload: bytes) -> LiquidSwapRoute:
    try:
        tokens, hops = decode(LIQUID_SWAP_TYPES, bytes(payload))
    except (DecodingError, ValueError, TypeError) as e:
        raise InvalidRoutingData(f"malformed LiquidSwap payload: {e}") from e
    return LiquidSwapRoute(
        tokens=list(tokens),
        hops=[
            [
                SwapAllocation(token_in=t_in, token_out=t_out, router_index=idx, fee=fee, amount_in=amount, stable=stable)
                for t_in, t_out, idx, fee, amount, stable in hop
            ]
            for hop in hops
        ],
    )


# --- Uniswap V3 ---

def encode_path(tokens: Sequence[str], fees: Sequence[int]) -> bytes:
    """Packs [token0, fee0, token1, fee1, token2, ...] the way the V3 router expects."""
    if len(tokens) < 2 or len(fees) != len(tokens) - 1:
        raise InvalidRoutingData(f"path needs n tokens and n-1 fees, got {len(tokens)} tokens and {len(fees)} fees")
    packed = b""
    for i, token in enumerate(tokens):
        packed += bytes.fromhex(_checksum(token)[2:])
        if i < len(fees):
            packed += int(fees[i]).to_bytes(FEE_SIZE, "big")
    return packed


def decode_path(path: bytes) -> tuple:
    """Returns (tokens, fees) from a packed path."""
    step = ADDRESS_SIZE + FEE_SIZE
    if len(path) < step + ADDRESS_SIZE or (len(path) - ADDRESS_SIZE) % step:
        raise InvalidRoutingData(f"packed path has invalid length {len(path)}")
    tokens, fees = [], []
    offset = 0
    while True:
        tokens.append(to_checksum_address("0x" + path[offset:offset + ADDRESS_SIZE].hex()))
        offset += ADDRESS_SIZE
        if offset == len(path):
            break
        fees.append(int.from_bytes(path[offset:offset + FEE_SIZE], "big"))
        offset += FEE_SIZE
    return tokens, fees


def encode_uniswap_v3(route: UniswapV3Route) -> bytes:
    if isinstance(route, UniswapV3SingleHop):
        return encode(UNISWAP_V3_TYPES, [False, encode(["uint24"], [route.fee])])
    return encode(UNISWAP_V3_TYPES, [True, route.path])


def decode_uniswap_v3(payload: bytes) -> UniswapV3Route:
    try:
        is_multi_hop, path_or_fee = decode(UNISWAP_V3_TYPES, bytes(payload))
        if is_multi_hop:
            decode_path(path_or_fee)
            return UniswapV3MultiHop(path=path_or_fee)
        (fee,) = decode(["uint24"], path_or_fee)
    except (DecodingError, ValueError, TypeError) as e:
        raise InvalidRoutingData(f"malformed Uniswap V3 payload: {e}") from e
    return UniswapV3SingleHop(fee=fee)


# --- Direct ---

def encode_direct() -> bytes:
    return b""


def decode_direct(payload: bytes) -> None:
    if payload:
        raise InvalidRoutingData("direct adapter takes no payload")


# --- builders ---

def default_adapter_for_chain(chain_id: int) -> AdapterTag:
    """The swap backend a chain is routed through when the caller does not choose one."""
    if chain_id in (998, 999):  # HyperLiquid
        return AdapterTag.LIQUID_SWAP
    if chain_id in (9745, 42220, 42161, 8453, 10):
        return AdapterTag.UNISWAP_V3
    return AdapterTag.LIQUID_SWAP


def build_routing_data(
    adapter: AdapterTag,
    tokens: Sequence[str] = (),
    fee: Optional[int] = None,
    hops: Optional[List[List[SwapAllocation]]] = None,
) -> bytes:
    """
    Builds a complete routing envelope for `adapter`.

    Uniswap V3 routes with two tokens become single-hop swaps at `fee`; longer
    token lists become a packed multi-hop path using `fee` for every leg. When
    no fee is given the first LiquidSwap allocation's fee is used, then 3000.
    """
    adapter = AdapterTag(adapter)
    if adapter is AdapterTag.DIRECT:
        return wrap(adapter, encode_direct())
    if adapter is AdapterTag.LIQUID_SWAP:
        if not hops or not hops[0]:
            raise InvalidRoutingData("LiquidSwap route needs hop allocations; fetch them from a route provider")
        return wrap(adapter, encode_liquid_swap(LiquidSwapRoute(tokens=list(tokens), hops=hops)))

    if fee is None:
        fee = hops[0][0].fee if hops and hops[0] else DEFAULT_UNISWAP_FEE
    if len(tokens) == 2:
        route: UniswapV3Route = UniswapV3SingleHop(fee=fee)
    else:
        route = UniswapV3MultiHop(path=encode_path(tokens, [fee] * (len(tokens) - 1)))
    return wrap(adapter, encode_uniswap_v3(route))
