"""Protocol constants and the mainnet contract addresses."""

from __future__ import annotations

INVERSE_BASIS_POINT = 10_000
NULL_ADDRESS = "0x0000000000000000000000000000000000000000"
NULL_BLOCK_HASH = b"\x00" * 32
MAX_UINT256 = 2**256 - 1

MIN_EXPIRATION_SECONDS = 10
ORDER_MATCHING_LATENCY_SECONDS = 60 * 60 * 24 * 7
LISTING_TIME_LATENCY_SECONDS = 100

ETHER_DECIMALS = 18

# Mainnet deployment of the Wyvern v2 exchange used by the marketplace.
MAINNET_EXCHANGE_ADDRESS = "0x7be8076f4ea4a4ad08075c2508e481d6c946d12b"
MAINNET_PROXY_REGISTRY_ADDRESS = "0xa5409ec958c83c3f309868babaca7c86dcb077c1"
MAINNET_TOKEN_TRANSFER_PROXY = "0xe5c783ee536cf5e63e792988335c4255169be4e1"
MAINNET_FEE_RECIPIENT = "0x5b3256965e7c3cf26e11fcaf296dfc8807c01073"
MAINNET_WETH_ADDRESS = "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2"

DEFAULT_BUYER_FEE_BASIS_POINTS = 0
DEFAULT_SELLER_FEE_BASIS_POINTS = 250
MARKETPLACE_SELLER_BOUNTY_BASIS_POINTS = 100
