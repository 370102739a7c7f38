"""Assemble complete unsigned orders from asset, price, timing and fee inputs."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from .authorizer import generate_pseudo_random_salt
from .config import EngineConfig
from .constants import (
    ETHER_DECIMALS,
    LISTING_TIME_LATENCY_SECONDS,
    MIN_EXPIRATION_SECONDS,
    NULL_ADDRESS,
    ORDER_MATCHING_LATENCY_SECONDS,
)
from .encoding import encode_buy, encode_sell
from .errors import OrderValidationError
from .fees import compute_fees, get_buy_fee_parameters, get_sell_fee_parameters
from .hashing import hash_order
from .orders import (
    Asset,
    HashedOrder,
    HowToCall,
    OrderMetadata,
    OrderPair,
    OrderSide,
    SaleKind,
    UnhashedOrder,
    normalize_address,
)
from .schemas import get_schema

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimeParameters:
    listing_time: int
    expiration_time: int


@dataclass(frozen=True)
class PriceParameters:
    base_price: int
    extra: int
    payment_token: str
    reserve_price: Optional[int] = None


def _now(now: Optional[int]) -> int:
    return int(time.time()) if now is None else int(now)


def get_time_parameters(
    expiration_time: Any,
    listing_time: Optional[int] = None,
    waiting_for_best_counter_order: bool = False,
    *,
    now: Optional[int] = None,
) -> TimeParameters:
    """
    Validate and fill in an order's listing and expiration times.

    ``expiration_time == 0`` means the order never expires. English auctions
    list at their intended close and expire one matching window later so
    the counter-order can still be settled after the close.
    """
    current = _now(now)
    if isinstance(expiration_time, bool) or not isinstance(expiration_time, (int, float)):
        raise OrderValidationError("Expiration timestamp must be a whole number of seconds")
    if isinstance(expiration_time, float):
        if not expiration_time.is_integer():
            raise OrderValidationError("Expiration timestamp must be a whole number of seconds")
        expiration_time = int(expiration_time)

    if expiration_time != 0 and expiration_time < current + MIN_EXPIRATION_SECONDS:
        raise OrderValidationError(
            f"Expiration time must be at least {MIN_EXPIRATION_SECONDS} seconds from now, "
            "or zero (non-expiring)."
        )
    if listing_time and listing_time < current:
        raise OrderValidationError("Listing time cannot be in the past.")
    if listing_time and expiration_time != 0 and listing_time >= expiration_time:
        raise OrderValidationError("Listing time must be before the expiration time.")
    if waiting_for_best_counter_order and expiration_time == 0:
        raise OrderValidationError("English auctions must have an expiration time.")
    if waiting_for_best_counter_order and listing_time:
        raise OrderValidationError("Cannot schedule an English auction for the future.")

    if waiting_for_best_counter_order:
        return TimeParameters(
            listing_time=expiration_time,
            expiration_time=expiration_time + ORDER_MATCHING_LATENCY_SECONDS,
        )
    return TimeParameters(
        listing_time=int(listing_time or current - LISTING_TIME_LATENCY_SECONDS),
        expiration_time=expiration_time,
    )


def _to_decimal(amount: Any, label: str) -> Decimal:
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError) as exc:
        raise OrderValidationError(f"{label} must be a number >= 0") from exc
    if not value.is_finite():
        raise OrderValidationError(f"{label} must be a number >= 0")
    return value


def to_base_units(amount: Any, decimals: int = ETHER_DECIMALS) -> int:
    value = _to_decimal(amount, "Amount")
    scaled = value.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise OrderValidationError(f"Invalid unit amount: {amount} - Too many decimal places")
    return int(scaled)


def get_price_parameters(
    side: OrderSide,
    payment_token: str,
    expiration_time: int,
    start_amount: Any,
    end_amount: Any = None,
    waiting_for_best_counter_order: bool = False,
    english_auction_reserve_price: Any = None,
    *,
    weth_address: Optional[str] = None,
) -> PriceParameters:
    """
    Convert human-readable amounts into ``base_price``/``extra`` base units.

    Only the native asset and its wrapped form are priceable; both use 18
    decimals.
    """
    token = normalize_address(payment_token)
    is_native = token == NULL_ADDRESS

    if start_amount is None:
        raise OrderValidationError("Starting price must be a number >= 0")
    start = _to_decimal(start_amount, "Starting price")
    if start < 0:
        raise OrderValidationError("Starting price must be a number >= 0")
    end = _to_decimal(end_amount, "End price") if end_amount is not None else None
    price_diff = start - end if end is not None else Decimal(0)
    reserve = (
        _to_decimal(english_auction_reserve_price, "Reserve price")
        if english_auction_reserve_price is not None
        else None
    )

    if is_native and waiting_for_best_counter_order:
        raise OrderValidationError("English auctions must use wrapped ETH or an ERC-20 token.")
    if is_native and side == OrderSide.BUY:
        raise OrderValidationError("Offers must use wrapped ETH or an ERC-20 token.")
    if price_diff < 0:
        raise OrderValidationError("End price must be less than or equal to the start price.")
    if price_diff > 0 and expiration_time == 0:
        raise OrderValidationError("Expiration time must be set if order will change in price.")
    if reserve and not waiting_for_best_counter_order:
        raise OrderValidationError("Reserve prices may only be set on English auctions.")
    if reserve and reserve < start:
        raise OrderValidationError("Reserve price must be greater than or equal to the start amount.")

    priceable = {NULL_ADDRESS}
    if weth_address:
        priceable.add(normalize_address(weth_address))
    if token not in priceable:
        raise OrderValidationError(
            f"Pricing in token {token} is not supported. Use ETH or wrapped ETH."
        )

    return PriceParameters(
        base_price=to_base_units(start),
        extra=to_base_units(price_diff),
        payment_token=token,
        reserve_price=to_base_units(reserve) if reserve else None,
    )


def build_sell_order(
    asset: Asset,
    account: str,
    start_amount: Any,
    end_amount: Any = None,
    *,
    wait_for_highest_bid: bool = False,
    expiration_time: int = 0,
    listing_time: Optional[int] = None,
    payment_token: str = NULL_ADDRESS,
    buyer_address: str = NULL_ADDRESS,
    english_auction_reserve_price: Any = None,
    extra_bounty_basis_points: int = 0,
    referrer_address: Optional[str] = None,
    config: Optional[EngineConfig] = None,
    now: Optional[int] = None,
) -> UnhashedOrder:
    config = config or EngineConfig()
    account = normalize_address(account)
    schema = get_schema(asset.schema_name)

    times = get_time_parameters(
        expiration_time, listing_time, wait_for_highest_bid, now=now
    )
    computed = compute_fees(asset, OrderSide.SELL, extra_bounty_basis_points, config.fees)
    encoded = encode_sell(schema, asset, account)
    # Dutch prices are extrapolated against the caller's expiration, not the
    # English-auction matching window.
    prices = get_price_parameters(
        OrderSide.SELL,
        payment_token,
        expiration_time,
        start_amount,
        end_amount,
        wait_for_highest_bid,
        english_auction_reserve_price,
        weth_address=config.weth_address,
    )
    sale_kind = SaleKind.DUTCH_AUCTION if prices.extra > 0 else SaleKind.FIXED_PRICE
    fees = get_sell_fee_parameters(
        computed.total_buyer_fee_basis_points,
        computed.total_seller_fee_basis_points,
        wait_for_highest_bid,
        computed.seller_bounty_basis_points,
        fee_recipient=config.fee_recipient,
    )

    order = UnhashedOrder(
        exchange=config.exchange_address,
        maker=account,
        taker=buyer_address,
        maker_relayer_fee=fees.maker_relayer_fee,
        taker_relayer_fee=fees.taker_relayer_fee,
        maker_protocol_fee=fees.maker_protocol_fee,
        taker_protocol_fee=fees.taker_protocol_fee,
        maker_referrer_fee=fees.maker_referrer_fee,
        fee_recipient=fees.fee_recipient,
        fee_method=fees.fee_method,
        side=OrderSide.SELL,
        sale_kind=sale_kind,
        target=encoded.target,
        how_to_call=HowToCall.CALL,
        calldata=encoded.calldata,
        replacement_pattern=encoded.replacement_pattern,
        payment_token=prices.payment_token,
        base_price=prices.base_price,
        extra=prices.extra,
        listing_time=times.listing_time,
        expiration_time=times.expiration_time,
        salt=generate_pseudo_random_salt(),
        waiting_for_best_counter_order=wait_for_highest_bid,
        metadata=OrderMetadata(asset=asset, schema=schema.name, referrer_address=referrer_address),
        quantity=asset.quantity,
        english_auction_reserve_price=prices.reserve_price,
    )
    logger.debug(
        "Built %s sell order for %s #%s at %s wei",
        sale_kind.name,
        asset.contract_address,
        asset.token_id,
        order.base_price,
    )
    return order


def build_buy_order(
    asset: Asset,
    account: str,
    start_amount: Any,
    *,
    expiration_time: int = 0,
    sell_order: Optional[UnhashedOrder] = None,
    payment_token: Optional[str] = None,
    referrer_address: Optional[str] = None,
    config: Optional[EngineConfig] = None,
    now: Optional[int] = None,
) -> UnhashedOrder:
    """An offer on ``asset``, optionally bound to one existing sell order."""
    config = config or EngineConfig()
    account = normalize_address(account)
    schema = get_schema(asset.schema_name)
    token = payment_token or config.weth_address

    computed = compute_fees(asset, OrderSide.BUY, 0, config.fees)
    fees = get_buy_fee_parameters(
        computed.total_buyer_fee_basis_points,
        computed.total_seller_fee_basis_points,
        sell_order,
        fee_recipient=config.fee_recipient,
    )
    encoded = encode_buy(schema, asset, account)
    prices = get_price_parameters(
        OrderSide.BUY,
        token,
        expiration_time,
        start_amount,
        weth_address=config.weth_address,
    )
    times = get_time_parameters(expiration_time, now=now)

    return UnhashedOrder(
        exchange=config.exchange_address,
        maker=account,
        taker=sell_order.maker if sell_order is not None else NULL_ADDRESS,
        maker_relayer_fee=fees.maker_relayer_fee,
        taker_relayer_fee=fees.taker_relayer_fee,
        maker_protocol_fee=fees.maker_protocol_fee,
        taker_protocol_fee=fees.taker_protocol_fee,
        maker_referrer_fee=fees.maker_referrer_fee,
        fee_recipient=fees.fee_recipient,
        fee_method=fees.fee_method,
        side=OrderSide.BUY,
        sale_kind=SaleKind.FIXED_PRICE,
        target=encoded.target,
        how_to_call=HowToCall.CALL,
        calldata=encoded.calldata,
        replacement_pattern=encoded.replacement_pattern,
        payment_token=prices.payment_token,
        base_price=prices.base_price,
        extra=prices.extra,
        listing_time=times.listing_time,
        expiration_time=times.expiration_time,
        salt=generate_pseudo_random_salt(),
        metadata=OrderMetadata(asset=asset, schema=schema.name, referrer_address=referrer_address),
        quantity=asset.quantity,
    )


def build_matching_order(
    order: UnhashedOrder,
    account: str,
    recipient: Optional[str] = None,
    offer: Optional[int] = None,
    *,
    config: Optional[EngineConfig] = None,
    now: Optional[int] = None,
) -> HashedOrder:
    """
    Structural counter-order to ``order``, taken by ``account``.

    ``offer`` overrides the base price in base units; otherwise the existing
    order's base price is used.
    """
    config = config or EngineConfig()
    account = normalize_address(account)
    recipient = normalize_address(recipient or account)
    if order.metadata is None:
        raise OrderValidationError("Invalid order metadata")

    schema = get_schema(order.metadata.schema)
    asset = order.metadata.asset
    if order.side == OrderSide.BUY:
        encoded = encode_sell(schema, asset, recipient)
    else:
        encoded = encode_buy(schema, asset, recipient)

    current = _now(now)
    # Matching orders must carry a fee recipient exactly when the order lacks one.
    fee_recipient = config.fee_recipient if order.fee_recipient == NULL_ADDRESS else NULL_ADDRESS

    matching = UnhashedOrder(
        exchange=order.exchange,
        maker=account,
        taker=order.maker,
        maker_relayer_fee=order.maker_relayer_fee,
        taker_relayer_fee=order.taker_relayer_fee,
        maker_protocol_fee=order.maker_protocol_fee,
        taker_protocol_fee=order.taker_protocol_fee,
        maker_referrer_fee=order.maker_referrer_fee,
        fee_recipient=fee_recipient,
        fee_method=order.fee_method,
        side=OrderSide((order.side + 1) % 2),
        sale_kind=order.sale_kind,
        target=encoded.target,
        how_to_call=order.how_to_call,
        calldata=encoded.calldata,
        replacement_pattern=encoded.replacement_pattern,
        payment_token=order.payment_token,
        base_price=offer if offer is not None else order.base_price,
        extra=0,
        listing_time=current - LISTING_TIME_LATENCY_SECONDS,
        expiration_time=current + ORDER_MATCHING_LATENCY_SECONDS,
        salt=generate_pseudo_random_salt(),
        metadata=order.metadata,
        quantity=order.quantity,
    )
    return hash_order(matching)


def assign_orders_to_sides(order: HashedOrder, matching_order: HashedOrder) -> OrderPair:
    """
    Place the pair into buy/sell slots.

    Each order keeps its own stage: the caller's order keeps its signature
    and the counter-order stays unsigned until its maker signs it.
    """
    if order.side == OrderSide.SELL:
        return OrderPair(buy=matching_order, sell=order)
    return OrderPair(buy=order, sell=matching_order)


__all__ = [
    "PriceParameters",
    "TimeParameters",
    "assign_orders_to_sides",
    "build_buy_order",
    "build_matching_order",
    "build_sell_order",
    "get_price_parameters",
    "get_time_parameters",
    "to_base_units",
]
