"""
ABI fragments for the contracts the service talks to.
"""
from typing import Any, Dict, List

# Read-only part of the ERC20 interface used by the chain reader
ERC20_ABI: List[Dict[str, Any]] = [
    {
        "inputs": [{"internalType": "address", "name": "account", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [
            {"internalType": "address", "name": "owner", "type": "address"},
            {"internalType": "address", "name": "spender", "type": "address"}
        ],
        "name": "allowance",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    }
]

# Argument types of every function the call builder encodes
DISPERSE_ETH_ARGS = ["address[]", "uint256[]"]
DISPERSE_ERC20_ARGS = ["address", "address", "address[]", "uint256[]"]
COLLECT_ERC20_ARGS = ["address", "address", "address[]", "uint256[]"]
ERC20_TRANSFER_ARGS = ["address", "uint256"]
ERC20_APPROVE_ARGS = ["address", "uint256"]

DISPERSE_ETH_SIGNATURE = f"disperseEth({','.join(DISPERSE_ETH_ARGS)})"
DISPERSE_ERC20_SIGNATURE = f"disperseERC20({','.join(DISPERSE_ERC20_ARGS)})"
COLLECT_ERC20_SIGNATURE = f"collectERC20({','.join(COLLECT_ERC20_ARGS)})"
ERC20_TRANSFER_SIGNATURE = f"transfer({','.join(ERC20_TRANSFER_ARGS)})"
ERC20_APPROVE_SIGNATURE = f"approve({','.join(ERC20_APPROVE_ARGS)})"
