"""Fee derivation for sell and buy orders, plus dutch-auction pricing."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .config import FeeDefaults
from .constants import INVERSE_BASIS_POINT, MAINNET_FEE_RECIPIENT, NULL_ADDRESS
from .errors import BountyExceedsCap, InvalidFeeRange
from .orders import Asset, FeeMethod, OrderSide, SaleKind, UnhashedOrder

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ComputedFees:
    marketplace_buyer_fee_basis_points: int
    marketplace_seller_fee_basis_points: int
    collection_buyer_fee_basis_points: int
    collection_seller_fee_basis_points: int
    total_buyer_fee_basis_points: int
    total_seller_fee_basis_points: int
    seller_bounty_basis_points: int
    transfer_fee: int = 0
    transfer_fee_token: Optional[str] = None


@dataclass(frozen=True)
class FeeParameters:
    fee_method: FeeMethod
    fee_recipient: str
    maker_relayer_fee: int
    taker_relayer_fee: int
    maker_protocol_fee: int = 0
    taker_protocol_fee: int = 0
    maker_referrer_fee: int = 0


def compute_fees(
    asset: Optional[Asset],
    side: OrderSide,
    extra_bounty_basis_points: int = 0,
    defaults: Optional[FeeDefaults] = None,
) -> ComputedFees:
    """
    Compute the fee totals for an order on ``asset``.

    The seller bounty is capped by the asset's marketplace seller fee: the
    bounty plus the marketplace's own referrer bounty may not exceed it.
    """
    defaults = defaults or FeeDefaults()
    marketplace_buyer = defaults.buyer_fee_basis_points
    marketplace_seller = defaults.seller_fee_basis_points
    collection_buyer = 0
    collection_seller = 0
    max_total_bounty = defaults.seller_fee_basis_points
    transfer_fee = 0
    transfer_fee_token = None

    if asset is not None and asset.fee_schedule is not None:
        schedule = asset.fee_schedule
        marketplace_buyer = schedule.marketplace_buyer_fee_basis_points
        marketplace_seller = schedule.marketplace_seller_fee_basis_points
        collection_buyer = schedule.collection_buyer_fee_basis_points
        collection_seller = schedule.collection_seller_fee_basis_points
        max_total_bounty = marketplace_seller

    if side == OrderSide.SELL and asset is not None:
        transfer_fee = asset.transfer_fee or 0
        transfer_fee_token = asset.transfer_fee_token

    seller_bounty = extra_bounty_basis_points if side == OrderSide.SELL else 0
    marketplace_bounty = defaults.marketplace_seller_bounty_basis_points
    if seller_bounty > 0 and seller_bounty + marketplace_bounty > max_total_bounty:
        message = (
            f"Total bounty exceeds the maximum for this asset type ({max_total_bounty / 100}%)."
        )
        if max_total_bounty >= marketplace_bounty:
            message += (
                f" Remember that the marketplace will add {marketplace_bounty / 100}% "
                "for referrers with marketplace accounts!"
            )
        raise BountyExceedsCap(message)

    fees = ComputedFees(
        marketplace_buyer_fee_basis_points=marketplace_buyer,
        marketplace_seller_fee_basis_points=marketplace_seller,
        collection_buyer_fee_basis_points=collection_buyer,
        collection_seller_fee_basis_points=collection_seller,
        total_buyer_fee_basis_points=marketplace_buyer + collection_buyer,
        total_seller_fee_basis_points=marketplace_seller + collection_seller,
        seller_bounty_basis_points=seller_bounty,
        transfer_fee=transfer_fee,
        transfer_fee_token=transfer_fee_token,
    )
    validate_fees(fees.total_buyer_fee_basis_points, fees.total_seller_fee_basis_points)
    return fees


def validate_fees(total_buyer_fee_basis_points: int, total_seller_fee_basis_points: int) -> None:
    max_fee_percent = INVERSE_BASIS_POINT / 100
    if (
        total_buyer_fee_basis_points > INVERSE_BASIS_POINT
        or total_seller_fee_basis_points > INVERSE_BASIS_POINT
    ):
        raise InvalidFeeRange(f"Invalid buyer/seller fees: must be less than {max_fee_percent}%")
    if total_buyer_fee_basis_points < 0 or total_seller_fee_basis_points < 0:
        raise InvalidFeeRange("Invalid buyer/seller fees: must be at least 0%")


def get_sell_fee_parameters(
    total_buyer_fee_basis_points: int,
    total_seller_fee_basis_points: int,
    wait_for_highest_bid: bool,
    seller_bounty_basis_points: int = 0,
    *,
    fee_recipient: str = MAINNET_FEE_RECIPIENT,
) -> FeeParameters:
    """
    Relayer fees for a sell order.

    English-auction sell orders are takers at match time, so they carry no
    fee recipient and their maker/taker relayer fees are swapped.
    """
    validate_fees(total_buyer_fee_basis_points, total_seller_fee_basis_points)
    if wait_for_highest_bid:
        return FeeParameters(
            fee_method=FeeMethod.SPLIT_FEE,
            fee_recipient=NULL_ADDRESS,
            maker_relayer_fee=total_buyer_fee_basis_points,
            taker_relayer_fee=total_seller_fee_basis_points,
            maker_referrer_fee=seller_bounty_basis_points,
        )
    return FeeParameters(
        fee_method=FeeMethod.SPLIT_FEE,
        fee_recipient=fee_recipient,
        maker_relayer_fee=total_seller_fee_basis_points,
        taker_relayer_fee=total_buyer_fee_basis_points,
        maker_referrer_fee=seller_bounty_basis_points,
    )


def get_buy_fee_parameters(
    total_buyer_fee_basis_points: int,
    total_seller_fee_basis_points: int,
    sell_order: Optional[UnhashedOrder] = None,
    *,
    fee_recipient: str = MAINNET_FEE_RECIPIENT,
) -> FeeParameters:
    """
    Relayer fees for a buy order.

    Against an existing sell order the fees are copied from it so that only
    that sell order can accept the buy. They are swapped unless the sell
    order is an English auction, whose fees are already in taker layout.
    """
    validate_fees(total_buyer_fee_basis_points, total_seller_fee_basis_points)
    if sell_order is not None:
        if sell_order.waiting_for_best_counter_order:
            maker_relayer_fee = sell_order.maker_relayer_fee
            taker_relayer_fee = sell_order.taker_relayer_fee
        else:
            maker_relayer_fee = sell_order.taker_relayer_fee
            taker_relayer_fee = sell_order.maker_relayer_fee
    else:
        maker_relayer_fee = total_buyer_fee_basis_points
        taker_relayer_fee = total_seller_fee_basis_points

    return FeeParameters(
        fee_method=FeeMethod.SPLIT_FEE,
        fee_recipient=fee_recipient,
        maker_relayer_fee=maker_relayer_fee,
        taker_relayer_fee=taker_relayer_fee,
    )


def current_price(order: UnhashedOrder, now: int) -> int:
    """Price the exchange's ``calculateFinalPrice`` would settle at ``now``."""
    if order.sale_kind == SaleKind.FIXED_PRICE:
        return order.base_price
    duration = order.expiration_time - order.listing_time
    if duration <= 0:
        return order.base_price
    elapsed = min(max(now - order.listing_time, 0), duration)
    diff = order.extra * elapsed // duration
    if order.side == OrderSide.SELL:
        return order.base_price - diff
    return order.base_price + diff


def required_payment(sell_order: UnhashedOrder, now: int) -> int:
    """Native value to attach when filling ``sell_order``, taker relayer fee included."""
    price = current_price(sell_order, now)
    return price + price * sell_order.taker_relayer_fee // INVERSE_BASIS_POINT


__all__ = [
    "ComputedFees",
    "FeeParameters",
    "compute_fees",
    "current_price",
    "get_buy_fee_parameters",
    "get_sell_fee_parameters",
    "required_payment",
    "validate_fees",
]
