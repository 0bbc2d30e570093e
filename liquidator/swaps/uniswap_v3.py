# /liquidator/swaps/uniswap_v3.py
from liquidator.core.chain import Chain
from liquidator.core.errors import InvalidRoutingData
from liquidator.core.logger import get_logger
from liquidator.routing.codec import AdapterTag, UniswapV3SingleHop, decode_path, decode_uniswap_v3
from liquidator.swaps.base import SwapAdapter

log = get_logger(__name__)


class UniswapV3Adapter(SwapAdapter):
    """
    Routes through a Uniswap V3 SwapRouter. The payload picks a single pool by
    fee tier or a packed multi-hop path; the router enforces the slippage floor
    as amount_out_minimum and the adapter checks it again on the way out.
    """
    label = "uniswap-v3-adapter"
    tag = AdapterTag.UNISWAP_V3

    def __init__(self, chain: Chain, router: str):
        super().__init__(chain)
        self.storage["router"] = router
        log.info("UNISWAP_V3_ADAPTER_INITIALIZED", address=self.address, router=router)

    @property
    def router(self) -> str:
        return self.storage["router"]

    def _swap(self, token_in: str, token_out: str, amount_in: int, min_amount_out: int, data: bytes) -> int:
        route = decode_uniswap_v3(data)
        self._call(token_in, "approve", self.router, amount_in)

        if isinstance(route, UniswapV3SingleHop):
            return self._call(
                self.router, "exact_input_single",
                token_in, token_out, route.fee, self.address, amount_in, min_amount_out, 0,
            )

        tokens, fees = decode_path(route.path)
        if tokens[0] != token_in or tokens[-1] != token_out:
            raise InvalidRoutingData(f"path {tokens[0]}..{tokens[-1]} does not swap {token_in} -> {token_out}")
        log.debug("UNISWAP_V3_MULTI_HOP", hops=len(fees))
        return self._call(self.router, "exact_input", route.path, self.address, amount_in, min_amount_out)
