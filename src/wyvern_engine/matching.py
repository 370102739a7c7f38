"""Buy/sell compatibility checks and atomic match submission."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

from .config import EngineConfig
from .connectors.abis import ERC20_ABI
from .connectors.chain import ChainClient
from .connectors.exchange import ExchangeContract
from .constants import NULL_ADDRESS
from .encoding import calldata_can_match
from .errors import (
    InsufficientBalance,
    InvalidOrder,
    OrdersIncompatible,
    TransientRpcError,
)
from .fees import current_price, required_payment
from .gas import GasEstimator
from .orders import HashedOrder, OrderPair, OrderSide, UnhashedOrder
from .proxy import ProxyManager

logger = logging.getLogger(__name__)


def _can_settle(listing_time: int, expiration_time: int, now: int) -> bool:
    return listing_time < now and (expiration_time == 0 or now < expiration_time)


def order_match_problems(buy: UnhashedOrder, sell: UnhashedOrder, now: int) -> List[str]:
    """Reasons the exchange's ``ordersCanMatch_`` and calldata check would reject the pair."""
    problems: List[str] = []
    sides_ok = buy.side == OrderSide.BUY and sell.side == OrderSide.SELL
    if not sides_ok:
        problems.append(f"sides are {buy.side.name}/{sell.side.name}, expected BUY/SELL")
    if buy.fee_method != sell.fee_method:
        problems.append("fee methods differ")
    if buy.payment_token != sell.payment_token:
        problems.append("payment tokens differ")
    if sell.taker not in (NULL_ADDRESS, buy.maker):
        problems.append("sell order is reserved for another taker")
    if buy.taker not in (NULL_ADDRESS, sell.maker):
        problems.append("buy order is reserved for another taker")
    if (sell.fee_recipient == NULL_ADDRESS) == (buy.fee_recipient == NULL_ADDRESS):
        problems.append("exactly one order must carry a fee recipient")
    if buy.target != sell.target:
        problems.append("targets differ")
    if buy.how_to_call != sell.how_to_call:
        problems.append("call types differ")
    if not _can_settle(buy.listing_time, buy.expiration_time, now):
        problems.append("buy order is outside its listing window")
    if not _can_settle(sell.listing_time, sell.expiration_time, now):
        problems.append("sell order is outside its listing window")
    if sides_ok and current_price(buy, now) < current_price(sell, now):
        problems.append("buy price is below the sell price")
    if not calldata_can_match(
        buy.calldata, buy.replacement_pattern, sell.calldata, sell.replacement_pattern
    ):
        problems.append("calldata does not match under the replacement patterns")
    return problems


def check_orders_can_match(buy: UnhashedOrder, sell: UnhashedOrder, now: Optional[int] = None) -> None:
    now = int(time.time()) if now is None else now
    problems = order_match_problems(buy, sell, now)
    if problems:
        raise OrdersIncompatible(
            "Unable to match offer data with auction data: " + "; ".join(problems)
        )


def match_value(buy: UnhashedOrder, sell: UnhashedOrder, now: Optional[int] = None) -> int:
    """Native value sent with the match: price plus taker relayer fee when paying in ETH."""
    if buy.payment_token != NULL_ADDRESS:
        return 0
    now = int(time.time()) if now is None else now
    return required_payment(sell, now)


class MatchEngine:
    """Validates buy/sell pairs and submits ``atomicMatch_`` for the chain client's account."""

    def __init__(
        self,
        chain: ChainClient,
        exchange: ExchangeContract,
        proxies: ProxyManager,
        gas: GasEstimator,
        config: Optional[EngineConfig] = None,
    ) -> None:
        self.chain = chain
        self.exchange = exchange
        self.proxies = proxies
        self.gas = gas
        self.config = config or EngineConfig()

    async def validate_match(self, buy: HashedOrder, sell: HashedOrder, now: Optional[int] = None) -> bool:
        check_orders_can_match(buy, sell, now)
        retries = self.config.retry.match_validation_retries
        for attempt in range(retries + 1):
            try:
                can_match = await self.exchange.orders_can_match(buy, sell)
                calldata_matches = await self.exchange.order_calldata_can_match(buy, sell)
            except TransientRpcError as exc:
                if attempt < retries:
                    logger.warning("Match validation failed (attempt %d/%d): %s", attempt + 1, retries + 1, exc)
                    await asyncio.sleep(self.config.retry.match_retry_delay_seconds)
                    continue
                logger.error("Match validation failed after %d attempts", attempt + 1)
                raise OrdersIncompatible(
                    f"Error matching this listing: {exc}. Please contact the maker or try again later!"
                ) from exc
            logger.debug("Orders matching: %s, calldata matching: %s", can_match, calldata_matches)
            if not (can_match and calldata_matches):
                raise OrdersIncompatible(
                    "Unable to match offer data with auction data. "
                    "Please contact the maker or try again later!"
                )
            return True
        raise AssertionError("unreachable")  # pragma: no cover

    async def sell_order_validation_and_approvals(self, order: UnhashedOrder) -> bool:
        """Ownership, proxy and approve-all for the sold asset, then parameter validation."""
        assets = [order.metadata.asset] if order.metadata is not None else []
        await self.proxies.approve_all(assets)
        if not await self.exchange.validate_order_parameters(order):
            raise InvalidOrder(
                "Failed to validate sell order parameters. Make sure you're on the right network!"
            )
        return True

    async def buy_order_validation_and_approvals(
        self,
        order: HashedOrder,
        counter_order: Optional[HashedOrder] = None,
        now: Optional[int] = None,
    ) -> bool:
        """
        Payment balance and allowance for the buyer, then full order validation.

        Taking a sell order requires its current price plus the taker fee,
        which can exceed the buy order's own base price.
        """
        token = order.payment_token
        if token != NULL_ADDRESS:
            balance = int(await self.chain.call(token, ERC20_ABI, "balanceOf", self.chain.account))
            minimum_amount = order.base_price
            if (
                counter_order is not None
                and counter_order.side == OrderSide.SELL
                and counter_order.fee_recipient != NULL_ADDRESS
            ):
                current = int(time.time()) if now is None else now
                minimum_amount = max(minimum_amount, required_payment(counter_order, current))
            if balance < minimum_amount:
                if token == self.config.weth_address:
                    raise InsufficientBalance("Insufficient balance. You may need to wrap Ether.")
                raise InsufficientBalance("Insufficient balance.")
            await self.proxies.approve_fungible_token(token, minimum_amount)

        if not await self.exchange.validate_order(order):
            raise InvalidOrder(
                "Failed to validate buy order parameters. Make sure you're on the right network!"
            )
        return True

    async def atomic_match(
        self,
        buy: HashedOrder,
        sell: HashedOrder,
        now: Optional[int] = None,
    ) -> Dict[str, Any]:
        account = self.chain.account
        if sell.maker == account:
            await self.sell_order_validation_and_approvals(sell)
        elif buy.maker == account:
            await self.buy_order_validation_and_approvals(buy, sell, now)

        value = match_value(buy, sell, now)
        await self.validate_match(buy, sell, now)
        estimate = await self.gas.estimate(
            lambda: self.exchange.estimate_atomic_match(buy, sell, value),
            self.config.gas_limits.atomic_match,
            label="atomicMatch_",
        )
        receipt = await self.exchange.atomic_match(buy, sell, value=value, gas=estimate.limit)
        logger.info("Matched buy 0x%s with sell 0x%s", buy.hash.hex(), sell.hash.hex())
        return receipt

    async def cancel_order(self, order: HashedOrder) -> bool:
        """
        Cancel ``order`` and confirm it no longer validates.

        Cancelling an already filled or cancelled order is a silent no-op
        on-chain, so success is judged by the order's validity afterwards.
        """
        if order.maker != self.chain.account:
            raise InvalidOrder(f"Only the maker {order.maker} can cancel this order")
        estimate = await self.gas.estimate(
            lambda: self.exchange.estimate_cancel_order(order),
            self.config.gas_limits.cancel_order,
            label="cancelOrder_",
        )
        await self.exchange.cancel_order(order, gas=estimate.limit)
        cancelled = not await self.exchange.validate_order(order)
        if cancelled:
            logger.info("Cancelled order 0x%s", order.hash.hex())
        else:
            logger.warning("Order 0x%s still validates after cancellation", order.hash.hex())
        return cancelled

    async def estimate_atomic_match_gas(
        self,
        order: HashedOrder,
        counter_order: HashedOrder,
        now: Optional[int] = None,
    ) -> int:
        if order.side == OrderSide.BUY:
            pair = OrderPair(buy=order, sell=counter_order)
        else:
            pair = OrderPair(buy=counter_order, sell=order)
        value = match_value(pair.buy, pair.sell, now)
        estimate = await self.gas.estimate(
            lambda: self.exchange.estimate_atomic_match(pair.buy, pair.sell, value),
            self.config.gas_limits.atomic_match,
            label="atomicMatch_",
        )
        return estimate.limit


__all__ = [
    "MatchEngine",
    "check_orders_can_match",
    "match_value",
    "order_match_problems",
]
