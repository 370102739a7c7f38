"""Canonical order hash, identical to the exchange contract's ``hashOrder``."""

from __future__ import annotations

import logging
from typing import Any, List, Tuple

from eth_abi.packed import encode_packed
from eth_utils import keccak

from .errors import InvalidOrder
from .orders import HashedOrder, UnhashedOrder, normalize_address

logger = logging.getLogger(__name__)

# (field, solidity type) in the exact order the exchange packs them.
ORDER_HASH_LAYOUT: Tuple[Tuple[str, str], ...] = (
    ("exchange", "address"),
    ("maker", "address"),
    ("taker", "address"),
    ("maker_relayer_fee", "uint256"),
    ("taker_relayer_fee", "uint256"),
    ("maker_protocol_fee", "uint256"),
    ("taker_protocol_fee", "uint256"),
    ("fee_recipient", "address"),
    ("fee_method", "uint8"),
    ("side", "uint8"),
    ("sale_kind", "uint8"),
    ("target", "address"),
    ("how_to_call", "uint8"),
    ("calldata", "bytes"),
    ("replacement_pattern", "bytes"),
    ("static_target", "address"),
    ("static_extradata", "bytes"),
    ("payment_token", "address"),
    ("base_price", "uint256"),
    ("extra", "uint256"),
    ("listing_time", "uint256"),
    ("expiration_time", "uint256"),
    ("salt", "uint256"),
)


def _canonical(value: Any, solidity_type: str) -> Any:
    if solidity_type == "address":
        return normalize_address(value)
    if solidity_type == "uint8":
        # Enum members are reparsed from their string form so that IntEnum,
        # int and numeric-string inputs all pack identically.
        return int(str(int(value)))
    if solidity_type == "bytes":
        return bytes(value)
    return int(value)


def order_hash_preimage(order: UnhashedOrder) -> bytes:
    """Packed (non length-prefixed) encoding of the hash-relevant fields."""
    types: List[str] = []
    values: List[Any] = []
    for name, solidity_type in ORDER_HASH_LAYOUT:
        types.append(solidity_type)
        values.append(_canonical(getattr(order, name), solidity_type))
    return encode_packed(types, values)


def get_order_hash(order: UnhashedOrder) -> bytes:
    return keccak(order_hash_preimage(order))


def hash_order(order: UnhashedOrder) -> HashedOrder:
    """Attach the canonical hash, producing the next order stage."""
    order_hash = get_order_hash(order)
    logger.debug("Hashed order for maker %s: 0x%s", order.maker, order_hash.hex())
    return order.with_hash(order_hash)


def verify_order_hash(order: HashedOrder) -> HashedOrder:
    """Recompute an ingested order's hash and reject it when it disagrees."""
    expected = get_order_hash(order)
    if expected != order.hash:
        raise InvalidOrder(
            f"Order hash mismatch: received 0x{order.hash.hex()}, computed 0x{expected.hex()}"
        )
    return order


__all__ = [
    "ORDER_HASH_LAYOUT",
    "get_order_hash",
    "hash_order",
    "order_hash_preimage",
    "verify_order_hash",
]
