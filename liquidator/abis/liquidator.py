# /liquidator/abis/liquidator.py
def _inputs(*pairs):
    return [{"internalType": t, "name": n, "type": t} for n, t in pairs]


_LIQUIDATE_INPUTS = _inputs(
    ("user", "address"),
    ("collateralAsset", "address"),
    ("debtAsset", "address"),
    ("debtToCover", "uint256"),
    ("minAmountOut", "uint256"),
    ("routingData", "bytes"),
)

LIQUIDATOR_ABI = [
    {"inputs": _LIQUIDATE_INPUTS, "name": "liquidate", "outputs": [], "stateMutability": "nonpayable", "type": "function"},
    {"inputs": _LIQUIDATE_INPUTS + _inputs(("flashFeeTier", "uint24")), "name": "liquidateWithFee", "outputs": [], "stateMutability": "nonpayable", "type": "function"},
    {"inputs": _inputs(("adapterType", "uint8"), ("adapter", "address")), "name": "setAdapter", "outputs": [], "stateMutability": "nonpayable", "type": "function"},
    {"inputs": _inputs(("fee", "uint24")), "name": "setDefaultFlashFeeTier", "outputs": [], "stateMutability": "nonpayable", "type": "function"},
    {"inputs": _inputs(("token", "address"), ("amount", "uint256"), ("maxTransfer", "bool"), ("recipient", "address")), "name": "rescueTokens", "outputs": [], "stateMutability": "nonpayable", "type": "function"},
    {"inputs": _inputs(("adapterType", "uint8")), "name": "adapters", "outputs": _inputs(("", "address")), "stateMutability": "view", "type": "function"},
    {"inputs": [], "name": "owner", "outputs": _inputs(("", "address")), "stateMutability": "view", "type": "function"},
    {"inputs": [], "name": "defaultFlashFeeTier", "outputs": _inputs(("", "uint24")), "stateMutability": "view", "type": "function"},
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "internalType": "address", "name": "user", "type": "address"},
            {"indexed": True, "internalType": "address", "name": "collateralAsset", "type": "address"},
            {"indexed": True, "internalType": "address", "name": "debtAsset", "type": "address"},
            {"indexed": False, "internalType": "uint256", "name": "debtToCover", "type": "uint256"},
            {"indexed": False, "internalType": "uint256", "name": "liquidatedCollateralAmount", "type": "uint256"},
            {"indexed": False, "internalType": "uint256", "name": "profit", "type": "uint256"},
        ],
        "name": "LiquidationExecuted",
        "type": "event",
    },
]
