# /liquidator/swaps/direct.py
from liquidator.core.errors import TokenMismatch
from liquidator.routing.codec import AdapterTag, decode_direct
from liquidator.swaps.base import SwapAdapter


class DirectAdapter(SwapAdapter):
    """Passthrough for seized collateral that already is the debt asset."""
    label = "direct-adapter"
    tag = AdapterTag.DIRECT

    def _swap(self, token_in: str, token_out: str, amount_in: int, min_amount_out: int, data: bytes) -> int:
        decode_direct(data)
        if token_in != token_out:
            raise TokenMismatch(token_in, token_out)
        return amount_in
