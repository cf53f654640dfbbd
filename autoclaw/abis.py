"""
Minimal contract ABIs for the Mento Broker, BiPoolManager and ERC-20 tokens
"""
from typing import Dict, List

BROKER_ABI: List[Dict] = [
    {
        "inputs": [
            {"internalType": "address", "name": "exchangeProvider", "type": "address"},
            {"internalType": "bytes32", "name": "exchangeId", "type": "bytes32"},
            {"internalType": "address", "name": "tokenIn", "type": "address"},
            {"internalType": "address", "name": "tokenOut", "type": "address"},
            {"internalType": "uint256", "name": "amountIn", "type": "uint256"}
        ],
        "name": "getAmountOut",
        "outputs": [{"internalType": "uint256", "name": "amountOut", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [
            {"internalType": "address", "name": "exchangeProvider", "type": "address"},
            {"internalType": "bytes32", "name": "exchangeId", "type": "bytes32"},
            {"internalType": "address", "name": "tokenIn", "type": "address"},
            {"internalType": "address", "name": "tokenOut", "type": "address"},
            {"internalType": "uint256", "name": "amountIn", "type": "uint256"},
            {"internalType": "uint256", "name": "amountOutMin", "type": "uint256"}
        ],
        "name": "swapIn",
        "outputs": [{"internalType": "uint256", "name": "amountOut", "type": "uint256"}],
        "stateMutability": "nonpayable",
        "type": "function"
    }
]

BIPOOL_MANAGER_ABI: List[Dict] = [
    {
        "inputs": [],
        "name": "getExchanges",
        "outputs": [
            {
                "components": [
                    {"internalType": "bytes32", "name": "exchangeId", "type": "bytes32"},
                    {"internalType": "address[]", "name": "assets", "type": "address[]"}
                ],
                "internalType": "struct IExchangeProvider.Exchange[]",
                "name": "",
                "type": "tuple[]"
            }
        ],
        "stateMutability": "view",
        "type": "function"
    }
]

ERC20_ABI: List[Dict] = [
    {
        "constant": True,
        "inputs": [{"name": "account", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "constant": True,
        "inputs": [
            {"name": "owner", "type": "address"},
            {"name": "spender", "type": "address"}
        ],
        "name": "allowance",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [
            {"name": "spender", "type": "address"},
            {"name": "amount", "type": "uint256"}
        ],
        "name": "approve",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "nonpayable",
        "type": "function"
    }
]

# Function signatures used when encoding call data directly
SWAP_IN_SIGNATURE = "swapIn(address,bytes32,address,address,uint256,uint256)"
APPROVE_SIGNATURE = "approve(address,uint256)"
