"""Minimal contract ABIs for the calls the relay makes."""

from __future__ import annotations

ERC721_ABI = [
    {
        "type": "function",
        "name": "tokenURI",
        "stateMutability": "view",
        "inputs": [{"name": "tokenId", "type": "uint256"}],
        "outputs": [{"name": "", "type": "string"}],
    },
    {
        "type": "function",
        "name": "safeTransferFrom",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "from", "type": "address"},
            {"name": "to", "type": "address"},
            {"name": "tokenId", "type": "uint256"},
        ],
        "outputs": [],
    },
]

WRAPPER_ABI = [
    {
        "type": "function",
        "name": "wrapNFT",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "originContract", "type": "address"},
            {"name": "tokenId", "type": "uint256"},
            {"name": "tokenUri", "type": "string"},
        ],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "setUnwrapFee",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "fee", "type": "uint256"}],
        "outputs": [],
    },
]

# Argument types of the unwrap event payload: (originRecipient, burner, tokenId).
# Only the event name is configurable, the layout is fixed.
UNWRAP_EVENT_TYPES = ["address", "address", "uint256"]


def event_arg_types(signature: str) -> list[str]:
    """Argument types of a flat event signature such as ``Foo(address,uint256)``."""
    name, sep, rest = signature.replace(" ", "").partition("(")
    if not name or not sep or not rest.endswith(")"):
        raise ValueError(f"malformed event signature: {signature!r}")
    args = rest[:-1]
    return args.split(",") if args else []
