# /liquidator/abis/uniswap_v3_quoter.py
QUOTER_V2_ABI = [
    {
        "inputs": [
            {
                "components": [
                    {"internalType": "address", "name": "tokenIn", "type": "address"},
                    {"internalType": "address", "name": "tokenOut", "type": "address"},
                    {"internalType": "uint256", "name": "amountIn", "type": "uint256"},
                    {"internalType": "uint24", "name": "fee", "type": "uint24"},
                    {"internalType": "uint160", "name": "sqrtPriceLimitX96", "type": "uint160"},
                ],
                "internalType": "struct IQuoterV2.QuoteExactInputSingleParams",
                "name": "params",
                "type": "tuple",
            }
        ],
        "name": "quoteExactInputSingle",
        "outputs": [
            {"internalType": "uint256", "name": "amountOut", "type": "uint256"},
            {"internalType": "uint160", "name": "sqrtPriceX96After", "type": "uint160"},
            {"internalType": "uint32", "name": "initializedTicksCrossed", "type": "uint32"},
            {"internalType": "uint256", "name": "gasEstimate", "type": "uint256"},
        ],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]

# QuoterV2 deployments by chain id.
QUOTER_V2_ADDRESSES = {
    9745: "0xaa52bB8110fE38D0d2d2AF0B85C3A3eE622CA455",  # Plasma
    42161: "0x61fFE014bA17989E743c5F6cB21bF9697530B21e",  # Arbitrum
    8453: "0x3d4e44Eb1374240CE5F1B871ab261CD16335B76a",  # Base
    10: "0x61fFE014bA17989E743c5F6cB21bF9697530B21e",  # Optimism
    42220: "0x82825d0554fA07f7FC52Ab63c961F330fdEFa8E8",  # Celo
}
