"""Typed wrappers around the exchange contract's entry points."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..constants import NULL_BLOCK_HASH
from ..orders import HashedOrder, UnhashedOrder, signature_of
from .abis import WYVERN_EXCHANGE_ABI
from .chain import ChainClient

logger = logging.getLogger(__name__)


def order_addresses(order: UnhashedOrder) -> List[str]:
    return [
        order.exchange,
        order.maker,
        order.taker,
        order.fee_recipient,
        order.target,
        order.static_target,
        order.payment_token,
    ]


def order_uints(order: UnhashedOrder) -> List[int]:
    return [
        order.maker_relayer_fee,
        order.taker_relayer_fee,
        order.maker_protocol_fee,
        order.taker_protocol_fee,
        order.base_price,
        order.extra,
        order.listing_time,
        order.expiration_time,
        order.salt,
    ]


def order_arguments(order: UnhashedOrder) -> List[Any]:
    """Argument prefix shared by the single-order entry points."""
    return [
        order_addresses(order),
        order_uints(order),
        int(order.fee_method),
        int(order.side),
        int(order.sale_kind),
        int(order.how_to_call),
        order.calldata,
        order.replacement_pattern,
        order.static_extradata,
    ]


def signature_arguments(order: HashedOrder) -> List[Any]:
    signature = signature_of(order)
    return [signature.v, signature.r, signature.s]


def match_arguments(buy: UnhashedOrder, sell: UnhashedOrder) -> List[Any]:
    return [
        order_addresses(buy) + order_addresses(sell),
        order_uints(buy) + order_uints(sell),
        [
            int(buy.fee_method),
            int(buy.side),
            int(buy.sale_kind),
            int(buy.how_to_call),
            int(sell.fee_method),
            int(sell.side),
            int(sell.sale_kind),
            int(sell.how_to_call),
        ],
        buy.calldata,
        sell.calldata,
        buy.replacement_pattern,
        sell.replacement_pattern,
        buy.static_extradata,
        sell.static_extradata,
    ]


def atomic_match_arguments(
    buy: HashedOrder,
    sell: HashedOrder,
    metadata: bytes = NULL_BLOCK_HASH,
) -> List[Any]:
    buy_signature = signature_of(buy)
    sell_signature = signature_of(sell)
    return match_arguments(buy, sell) + [
        [buy_signature.v, sell_signature.v],
        [buy_signature.r, buy_signature.s, sell_signature.r, sell_signature.s, metadata],
    ]


class ExchangeContract:
    """The deployed exchange, seen through one chain client."""

    def __init__(self, chain: ChainClient, address: str) -> None:
        self.chain = chain
        self.address = address.lower()

    async def _call(self, fn_name: str, *args: Any) -> Any:
        return await self.chain.call(self.address, WYVERN_EXCHANGE_ABI, fn_name, *args)

    async def validate_order_parameters(self, order: UnhashedOrder) -> bool:
        return bool(await self._call("validateOrderParameters_", *order_arguments(order)))

    async def validate_order(self, order: HashedOrder) -> bool:
        return bool(
            await self._call("validateOrder_", *order_arguments(order), *signature_arguments(order))
        )

    async def orders_can_match(self, buy: UnhashedOrder, sell: UnhashedOrder) -> bool:
        return bool(await self._call("ordersCanMatch_", *match_arguments(buy, sell)))

    async def order_calldata_can_match(self, buy: UnhashedOrder, sell: UnhashedOrder) -> bool:
        return bool(
            await self._call(
                "orderCalldataCanMatch",
                buy.calldata,
                buy.replacement_pattern,
                sell.calldata,
                sell.replacement_pattern,
            )
        )

    async def estimate_atomic_match(self, buy: HashedOrder, sell: HashedOrder, value: int = 0) -> int:
        return await self.chain.estimate_gas(
            self.address,
            WYVERN_EXCHANGE_ABI,
            "atomicMatch_",
            *atomic_match_arguments(buy, sell),
            value=value,
        )

    async def atomic_match(
        self,
        buy: HashedOrder,
        sell: HashedOrder,
        *,
        value: int = 0,
        gas: Optional[int] = None,
    ) -> Dict[str, Any]:
        return await self.chain.send(
            self.address,
            WYVERN_EXCHANGE_ABI,
            "atomicMatch_",
            *atomic_match_arguments(buy, sell),
            value=value,
            gas=gas,
        )

    async def estimate_cancel_order(self, order: HashedOrder) -> int:
        return await self.chain.estimate_gas(
            self.address,
            WYVERN_EXCHANGE_ABI,
            "cancelOrder_",
            *order_arguments(order),
            *signature_arguments(order),
        )

    async def cancel_order(self, order: HashedOrder, *, gas: Optional[int] = None) -> Dict[str, Any]:
        return await self.chain.send(
            self.address,
            WYVERN_EXCHANGE_ABI,
            "cancelOrder_",
            *order_arguments(order),
            *signature_arguments(order),
            gas=gas,
        )

    async def estimate_approve_order(self, order: UnhashedOrder) -> int:
        return await self.chain.estimate_gas(
            self.address,
            WYVERN_EXCHANGE_ABI,
            "approveOrder_",
            *order_arguments(order),
            True,
        )

    async def approve_order(
        self,
        order: UnhashedOrder,
        *,
        include_in_order_book: bool = True,
        gas: Optional[int] = None,
    ) -> Dict[str, Any]:
        return await self.chain.send(
            self.address,
            WYVERN_EXCHANGE_ABI,
            "approveOrder_",
            *order_arguments(order),
            include_in_order_book,
            gas=gas,
        )


__all__ = [
    "ExchangeContract",
    "atomic_match_arguments",
    "match_arguments",
    "order_addresses",
    "order_arguments",
    "order_uints",
    "signature_arguments",
]
