"""JSON-friendly conversion of orders, plus the marketplace API's order payload."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Union

from .errors import OrderValidationError
from .hashing import verify_order_hash
from .orders import (
    Asset,
    ECSignature,
    HashedOrder,
    OrderMetadata,
    SignedOrder,
    UnhashedOrder,
    to_bytes,
)
from .schemas import get_schema

OrderLike = Union[UnhashedOrder, HashedOrder, SignedOrder]

_BYTES_FIELDS = ("calldata", "replacement_pattern", "static_extradata")
_ENUM_FIELDS = ("fee_method", "side", "sale_kind", "how_to_call")
_BIG_INT_FIELDS = (
    "maker_relayer_fee",
    "taker_relayer_fee",
    "maker_protocol_fee",
    "taker_protocol_fee",
    "maker_referrer_fee",
    "base_price",
    "extra",
    "listing_time",
    "expiration_time",
    "salt",
    "quantity",
)
_PLAIN_FIELDS = (
    "exchange",
    "maker",
    "taker",
    "fee_recipient",
    "target",
    "static_target",
    "payment_token",
)


def _hex(value: bytes) -> str:
    return "0x" + bytes(value).hex()


def metadata_to_dict(metadata: OrderMetadata) -> Dict[str, Any]:
    return {
        "asset": {
            "address": metadata.asset.contract_address,
            "id": str(metadata.asset.token_id),
            "quantity": str(metadata.asset.quantity),
        },
        "schema": metadata.schema.value,
        "referrer_address": metadata.referrer_address,
    }


def metadata_from_dict(payload: Mapping[str, Any]) -> OrderMetadata:
    try:
        asset_payload = payload["asset"]
        schema = get_schema(payload.get("schema")).name
        asset = Asset(
            contract_address=asset_payload["address"],
            token_id=asset_payload["id"],
            quantity=asset_payload.get("quantity") or 1,
            schema_name=schema,
        )
    except (KeyError, TypeError) as exc:
        raise OrderValidationError("Invalid order metadata") from exc
    return OrderMetadata(asset=asset, schema=schema, referrer_address=payload.get("referrer_address"))


def order_to_dict(order: OrderLike) -> Dict[str, Any]:
    """
    Snake_case mapping safe for ``json.dumps``.

    Integers that can exceed 2**53 are written as decimal strings and byte
    fields as ``0x`` hex.
    """
    payload: Dict[str, Any] = {name: getattr(order, name) for name in _PLAIN_FIELDS}
    payload.update({name: str(getattr(order, name)) for name in _BIG_INT_FIELDS})
    payload.update({name: int(getattr(order, name)) for name in _ENUM_FIELDS})
    payload.update({name: _hex(getattr(order, name)) for name in _BYTES_FIELDS})
    payload["waiting_for_best_counter_order"] = order.waiting_for_best_counter_order
    payload["english_auction_reserve_price"] = (
        str(order.english_auction_reserve_price)
        if order.english_auction_reserve_price is not None
        else None
    )
    payload["metadata"] = metadata_to_dict(order.metadata) if order.metadata is not None else None
    if isinstance(order, HashedOrder):
        payload["hash"] = _hex(order.hash)
    if isinstance(order, SignedOrder):
        payload["v"] = order.signature.v
        payload["r"] = _hex(order.signature.r)
        payload["s"] = _hex(order.signature.s)
    return payload


def _signature_from(payload: Mapping[str, Any]) -> Optional[ECSignature]:
    v = payload.get("v")
    if v in (None, 0, "0"):
        return None
    if payload.get("r") is None or payload.get("s") is None:
        raise OrderValidationError("Signature is missing its r or s component")
    return ECSignature(v=v, r=payload["r"], s=payload["s"])


def _finish(order: UnhashedOrder, order_hash: Any, signature: Optional[ECSignature]) -> OrderLike:
    if order_hash is None:
        if signature is not None:
            raise OrderValidationError("A signed order must carry its hash")
        return order
    hashed = order.with_hash(to_bytes(order_hash))
    if signature is None:
        return hashed
    return hashed.with_signature(signature)


def order_from_dict(payload: Mapping[str, Any]) -> OrderLike:
    """Inverse of :func:`order_to_dict`; the stage follows the ``hash``/``v`` keys present."""
    kwargs: Dict[str, Any] = {}
    try:
        for name in _PLAIN_FIELDS + _BIG_INT_FIELDS + _ENUM_FIELDS + _BYTES_FIELDS:
            if name in payload:
                kwargs[name] = payload[name]
        kwargs["waiting_for_best_counter_order"] = bool(
            payload.get("waiting_for_best_counter_order", False)
        )
        kwargs["english_auction_reserve_price"] = payload.get("english_auction_reserve_price")
        if payload.get("metadata"):
            kwargs["metadata"] = metadata_from_dict(payload["metadata"])
        order = UnhashedOrder(**kwargs)
    except OrderValidationError:
        raise
    except (TypeError, ValueError) as exc:
        raise OrderValidationError(f"Malformed order payload: {exc}") from exc
    return _finish(order, payload.get("hash"), _signature_from(payload))


def _address_of(value: Any) -> Any:
    if isinstance(value, Mapping):
        return value.get("address")
    return value


def order_from_api(payload: Mapping[str, Any], *, verify_hash: bool = False) -> OrderLike:
    """
    Build an order from the marketplace API's order shape.

    Account fields arrive as ``{"address": ...}`` objects and the hash as
    ``order_hash``. With ``verify_hash`` the hash is recomputed and compared.
    """
    converted = dict(payload)
    for name in ("maker", "taker", "fee_recipient"):
        if name in converted:
            converted[name] = _address_of(converted[name])
    order_hash = converted.pop("order_hash", None)
    converted.setdefault("hash", order_hash)
    order = order_from_dict(converted)
    if verify_hash and isinstance(order, HashedOrder):
        verify_order_hash(order)
    return order


__all__ = [
    "metadata_from_dict",
    "metadata_to_dict",
    "order_from_api",
    "order_from_dict",
    "order_to_dict",
]
