from liquidator.swaps.base import SwapAdapter
from liquidator.swaps.direct import DirectAdapter
from liquidator.swaps.liquid_swap import LiquidSwapAdapter
from liquidator.swaps.uniswap_v3 import UniswapV3Adapter

__all__ = ["SwapAdapter", "DirectAdapter", "LiquidSwapAdapter", "UniswapV3Adapter"]
