# /liquidator/swaps/liquid_swap.py
from typing import List

from liquidator.core.chain import Chain
from liquidator.core.errors import InvalidRoutingData
from liquidator.core.logger import get_logger
from liquidator.routing.codec import AdapterTag, SwapAllocation, decode_liquid_swap
from liquidator.swaps.base import SwapAdapter

log = get_logger(__name__)


def reconcile_first_hop(hops: List[List[SwapAllocation]], amount_in: int) -> List[List[SwapAllocation]]:
    """
    Returns a copy of `hops` whose first allocation absorbs the difference
    between the amount actually received and the amounts the route was quoted for.
    """
    if not hops or not hops[0]:
        raise InvalidRoutingData("LiquidSwap route has no hops")
    quoted = sum(allocation.amount_in for allocation in hops[0])
    delta = amount_in - quoted
    if delta == 0:
        return hops
    first = hops[0][0]
    adjusted = first.amount_in + delta
    if adjusted < 0:
        raise InvalidRoutingData(f"received {amount_in} cannot cover quoted first hop of {quoted}")
    log.debug("LIQUID_SWAP_FIRST_HOP_ADJUSTED", quoted=quoted, actual=amount_in, delta=delta)
    return [[first.model_copy(update={"amount_in": adjusted}), *hops[0][1:]], *hops[1:]]


class LiquidSwapAdapter(SwapAdapter):
    """Executes a split, multi-hop plan across several routers via the LiquidSwap aggregator."""
    label = "liquid-swap-adapter"
    tag = AdapterTag.LIQUID_SWAP

    def __init__(self, chain: Chain, router: str):
        super().__init__(chain)
        self.storage["router"] = router
        log.info("LIQUID_SWAP_ADAPTER_INITIALIZED", address=self.address, router=router)

    @property
    def router(self) -> str:
        return self.storage["router"]

    def _swap(self, token_in: str, token_out: str, amount_in: int, min_amount_out: int, data: bytes) -> int:
        route = decode_liquid_swap(data)
        if not route.tokens or route.tokens[0] != token_in or route.tokens[-1] != token_out:
            raise InvalidRoutingData(f"route tokens {route.tokens} do not swap {token_in} -> {token_out}")
        hops = reconcile_first_hop(route.hops, amount_in)

        self._call(token_in, "approve", self.router, amount_in)
        return self._call(self.router, "execute_multi_hop_swap", route.tokens, amount_in, min_amount_out, hops)
