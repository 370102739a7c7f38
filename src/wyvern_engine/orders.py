"""Order, asset and signature data types.

Orders move through three stages, each a distinct frozen dataclass:
``UnhashedOrder`` → ``HashedOrder`` → ``SignedOrder``. A later stage is
only ever produced from the previous one (``with_hash`` / ``with_signature``)
so a signature cannot be read from an order that was never signed.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import IntEnum
from typing import Any, Dict, Optional, Union

from eth_utils import is_address

from .constants import NULL_ADDRESS, NULL_BLOCK_HASH
from .errors import OrderValidationError, UnsupportedAssetSchema
from .schemas import SchemaName


class OrderSide(IntEnum):
    BUY = 0
    SELL = 1


class SaleKind(IntEnum):
    FIXED_PRICE = 0
    DUTCH_AUCTION = 1


class HowToCall(IntEnum):
    CALL = 0
    DELEGATE_CALL = 1


class FeeMethod(IntEnum):
    PROTOCOL_FEE = 0
    SPLIT_FEE = 1


def normalize_address(value: Any) -> str:
    """Lowercase hex form of an address given as text or raw bytes."""
    if isinstance(value, (bytes, bytearray)):
        value = "0x" + bytes(value).hex()
    text = str(value).strip().lower()
    if not is_address(text):
        raise OrderValidationError(f"Invalid address: {value!r}")
    return text


def to_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if text.lower().startswith("0x"):
        return int(text, 16)
    return int(text)


def to_bytes(value: Any) -> bytes:
    if value is None:
        return b""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    text = str(value).strip()
    if text.lower().startswith("0x"):
        text = text[2:]
    return bytes.fromhex(text)


@dataclass(frozen=True)
class FeeSchedule:
    """Marketplace and collection fees for an asset, in basis points.

    Collection fees are the developer fees set on the token contract plus
    any set on the collection itself.
    """

    marketplace_buyer_fee_basis_points: int = 0
    marketplace_seller_fee_basis_points: int = 250
    collection_buyer_fee_basis_points: int = 0
    collection_seller_fee_basis_points: int = 0


@dataclass(frozen=True)
class Asset:
    """A specific token unit on a token contract."""

    contract_address: str
    token_id: int
    quantity: int = 1
    schema_name: SchemaName = SchemaName.ERC721
    fee_schedule: Optional[FeeSchedule] = field(default=None, compare=False)
    transfer_fee: Optional[int] = field(default=None, compare=False)
    transfer_fee_token: Optional[str] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "contract_address", normalize_address(self.contract_address))
        object.__setattr__(self, "token_id", to_int(self.token_id))
        quantity = to_int(self.quantity)
        if quantity < 1:
            raise OrderValidationError(f"Asset quantity must be at least 1, got {quantity}")
        object.__setattr__(self, "quantity", quantity)
        try:
            object.__setattr__(self, "schema_name", SchemaName(self.schema_name))
        except ValueError as exc:
            raise UnsupportedAssetSchema(
                f"Trading for this asset ({self.schema_name}) is not yet supported."
            ) from exc
        if self.transfer_fee_token is not None:
            object.__setattr__(self, "transfer_fee_token", normalize_address(self.transfer_fee_token))


@dataclass(frozen=True)
class OrderMetadata:
    asset: Asset
    schema: SchemaName
    referrer_address: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "schema", SchemaName(self.schema))
        if self.referrer_address is not None:
            object.__setattr__(self, "referrer_address", normalize_address(self.referrer_address))


@dataclass(frozen=True)
class ECSignature:
    v: int
    r: bytes
    s: bytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "v", to_int(self.v))
        object.__setattr__(self, "r", to_bytes(self.r).rjust(32, b"\x00"))
        object.__setattr__(self, "s", to_bytes(self.s).rjust(32, b"\x00"))

    @classmethod
    def null(cls) -> "ECSignature":
        return cls(v=0, r=NULL_BLOCK_HASH, s=NULL_BLOCK_HASH)

    def to_bytes(self) -> bytes:
        return self.r + self.s + bytes([self.v])


_ADDRESS_FIELDS = (
    "exchange",
    "maker",
    "taker",
    "fee_recipient",
    "target",
    "static_target",
    "payment_token",
)
_UINT_FIELDS = (
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


@dataclass(frozen=True, kw_only=True)
class UnhashedOrder:
    """Full parameter set of an exchange order."""

    exchange: str
    maker: str
    taker: str = NULL_ADDRESS
    maker_relayer_fee: int
    taker_relayer_fee: int
    maker_protocol_fee: int = 0
    taker_protocol_fee: int = 0
    maker_referrer_fee: int = 0
    fee_recipient: str
    fee_method: FeeMethod = FeeMethod.SPLIT_FEE
    side: OrderSide
    sale_kind: SaleKind = SaleKind.FIXED_PRICE
    target: str
    how_to_call: HowToCall = HowToCall.CALL
    calldata: bytes
    replacement_pattern: bytes
    static_target: str = NULL_ADDRESS
    static_extradata: bytes = b""
    payment_token: str = NULL_ADDRESS
    base_price: int
    extra: int = 0
    listing_time: int
    expiration_time: int
    salt: int
    waiting_for_best_counter_order: bool = False
    metadata: Optional[OrderMetadata] = None
    quantity: int = 1
    english_auction_reserve_price: Optional[int] = None

    def __post_init__(self) -> None:
        for name in _ADDRESS_FIELDS:
            object.__setattr__(self, name, normalize_address(getattr(self, name)))
        for name in _UINT_FIELDS:
            value = to_int(getattr(self, name))
            if value < 0:
                raise OrderValidationError(f"Order field '{name}' must be non-negative, got {value}")
            object.__setattr__(self, name, value)
        object.__setattr__(self, "fee_method", FeeMethod(to_int(self.fee_method)))
        object.__setattr__(self, "side", OrderSide(to_int(self.side)))
        object.__setattr__(self, "sale_kind", SaleKind(to_int(self.sale_kind)))
        object.__setattr__(self, "how_to_call", HowToCall(to_int(self.how_to_call)))
        for name in ("calldata", "replacement_pattern", "static_extradata"):
            object.__setattr__(self, name, to_bytes(getattr(self, name)))
        if len(self.replacement_pattern) != len(self.calldata):
            raise OrderValidationError(
                "Replacement pattern must be as long as the calldata "
                f"({len(self.replacement_pattern)} != {len(self.calldata)} bytes)"
            )
        if self.english_auction_reserve_price is not None:
            object.__setattr__(
                self, "english_auction_reserve_price", to_int(self.english_auction_reserve_price)
            )

    def order_fields(self) -> Dict[str, Any]:
        """Values of the fields shared by every order stage."""
        return {item.name: getattr(self, item.name) for item in fields(UnhashedOrder)}

    def with_hash(self, order_hash: bytes) -> "HashedOrder":
        return HashedOrder(**self.order_fields(), hash=order_hash)


@dataclass(frozen=True, kw_only=True)
class HashedOrder(UnhashedOrder):
    hash: bytes

    def __post_init__(self) -> None:
        super().__post_init__()
        order_hash = to_bytes(self.hash)
        if len(order_hash) != 32:
            raise OrderValidationError(f"Order hash must be 32 bytes, got {len(order_hash)}")
        object.__setattr__(self, "hash", order_hash)

    def with_signature(self, signature: ECSignature) -> "SignedOrder":
        return SignedOrder(**self.order_fields(), hash=self.hash, signature=signature)


@dataclass(frozen=True, kw_only=True)
class SignedOrder(HashedOrder):
    signature: ECSignature


AnyOrder = Union[HashedOrder, SignedOrder]


def signature_of(order: HashedOrder) -> ECSignature:
    """The order's signature, or the null signature for on-chain approved orders."""
    if isinstance(order, SignedOrder):
        return order.signature
    return ECSignature.null()


@dataclass(frozen=True)
class OrderPair:
    buy: HashedOrder
    sell: HashedOrder


@dataclass(frozen=True)
class FeeBreakdown:
    """Gas units a user will spend on proxy, approvals and the match."""

    proxy_fees: str = "0"
    approval_fees: str = "0"
    gas_fees: str = "0"
    total_fees: str = "0"


__all__ = [
    "AnyOrder",
    "Asset",
    "ECSignature",
    "FeeBreakdown",
    "FeeMethod",
    "FeeSchedule",
    "HashedOrder",
    "HowToCall",
    "OrderMetadata",
    "OrderPair",
    "OrderSide",
    "SaleKind",
    "SignedOrder",
    "UnhashedOrder",
    "normalize_address",
    "signature_of",
    "to_bytes",
    "to_int",
]
