# /liquidator/swaps/base.py
# - Defines the swap capability every adapter implements.
# - The caller moves amount_in of token_in to the adapter first; the adapter
#   pays amount_out of token_out back to the caller before returning.

from liquidator.core.chain import Contract
from liquidator.core.errors import InsufficientOutput
from liquidator.core.logger import get_logger
from liquidator.routing.codec import AdapterTag

log = get_logger(__name__)


class SwapAdapter(Contract):
    """
    Interface every swap backend must implement. Adapters are registered with
    the liquidator under a small integer tag and selected per liquidation by
    the routing envelope.
    """
    label = "swap-adapter"
    tag: AdapterTag

    def swap(self, token_in: str, token_out: str, amount_in: int, min_amount_out: int, data: bytes) -> int:
        recipient = self.msg_sender
        amount_out = self._swap(token_in, token_out, amount_in, min_amount_out, data)
        if amount_out < min_amount_out:
            raise InsufficientOutput(amount_out, min_amount_out)
        self._call(token_out, "transfer", recipient, amount_out)
        log.info(
            "ADAPTER_SWAP_EXECUTED",
            adapter=type(self).__name__,
            token_in=token_in,
            token_out=token_out,
            amount_in=amount_in,
            amount_out=amount_out,
        )
        return amount_out

    def _swap(self, token_in: str, token_out: str, amount_in: int, min_amount_out: int, data: bytes) -> int:
        """Performs the conversion and leaves amount_out of token_out on the adapter."""
        raise NotImplementedError
