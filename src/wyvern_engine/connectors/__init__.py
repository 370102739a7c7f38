"""Chain, signer and contract connectors for the order engine."""

from .abis import (
    ERC1155_ABI,
    ERC20_ABI,
    ERC721_ABI,
    PROXY_REGISTRY_ABI,
    WYVERN_EXCHANGE_ABI,
)
from .chain import ChainClient
from .exchange import ExchangeContract, order_addresses, order_uints
from .signer import LocalAccountSigner, Signer

__all__ = [
    "ChainClient",
    "ERC1155_ABI",
    "ERC20_ABI",
    "ERC721_ABI",
    "ExchangeContract",
    "LocalAccountSigner",
    "PROXY_REGISTRY_ABI",
    "Signer",
    "WYVERN_EXCHANGE_ABI",
    "order_addresses",
    "order_uints",
]
