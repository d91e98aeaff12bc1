"""ABI fragments for the registry contracts read by ``ChainAttestationReader``.

Only the view functions used here are included.
"""

from __future__ import annotations

from typing import Any

_ADDRESS_IN = [{"name": "_user", "type": "address", "internalType": "address"}]

NATIONALITY_REGISTRY_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "isUserVerified",
        "inputs": _ADDRESS_IN,
        "outputs": [{"name": "", "type": "bool", "internalType": "bool"}],
        "stateMutability": "view",
    },
    {
        "type": "function",
        "name": "getNationalityRecord",
        "inputs": _ADDRESS_IN,
        "outputs": [
            {
                "name": "",
                "type": "tuple",
                "internalType": "struct NationalityRecord",
                "components": [
                    {"name": "nationality", "type": "string", "internalType": "string"},
                    {"name": "isValidNationality", "type": "bool", "internalType": "bool"},
                    {"name": "verifiedAt", "type": "uint256", "internalType": "uint256"},
                    {"name": "isActive", "type": "bool", "internalType": "bool"},
                ],
            }
        ],
        "stateMutability": "view",
    },
]

AGE_REGISTRY_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "isUserAgeVerified",
        "inputs": _ADDRESS_IN,
        "outputs": [{"name": "", "type": "bool", "internalType": "bool"}],
        "stateMutability": "view",
    },
    {
        "type": "function",
        "name": "getAgeRecord",
        "inputs": _ADDRESS_IN,
        "outputs": [
            {
                "name": "",
                "type": "tuple",
                "internalType": "struct OpenbandsV2AgeRegistry.AgeRecord",
                "components": [
                    {"name": "isAgeVerified", "type": "bool", "internalType": "bool"},
                    {"name": "verifiedAt", "type": "uint256", "internalType": "uint256"},
                    {"name": "isActive", "type": "bool", "internalType": "bool"},
                ],
            }
        ],
        "stateMutability": "view",
    },
]

ZK_JWT_PROOF_MANAGER_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "getPublicInputsOfAllProofs",
        "inputs": [],
        "outputs": [
            {
                "name": "",
                "type": "tuple[]",
                "internalType": "struct DataType.PublicInput[]",
                "components": [
                    {"name": "domain", "type": "string", "internalType": "string"},
                    {"name": "nullifierHash", "type": "bytes32", "internalType": "bytes32"},
                    {"name": "emailHash", "type": "bytes32", "internalType": "bytes32"},
                    {"name": "walletAddress", "type": "address", "internalType": "address"},
                    {"name": "createdAt", "type": "string", "internalType": "string"},
                ],
            }
        ],
        "stateMutability": "view",
    },
]
