"""High-level flows: list, offer, fulfill, cancel and fee estimation."""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional, Union

from .authorizer import Authorizer
from .builder import (
    assign_orders_to_sides,
    build_buy_order,
    build_matching_order,
    build_sell_order,
)
from .config import EngineConfig
from .connectors.chain import ChainClient
from .connectors.exchange import ExchangeContract
from .connectors.signer import LocalAccountSigner
from .constants import NULL_ADDRESS
from .errors import AuthorizationDeclined, ConfigError, InvalidOrder, OrderValidationError
from .fees import current_price
from .gas import GasEstimator
from .hashing import hash_order
from .matching import MatchEngine
from .orders import (
    AnyOrder,
    Asset,
    FeeBreakdown,
    HashedOrder,
    OrderPair,
    OrderSide,
    SaleKind,
)
from .proxy import ProxyManager

logger = logging.getLogger(__name__)


class WyvernClient:
    """Composes builder, proxy, authorizer and match engine for one account."""

    def __init__(
        self,
        config: EngineConfig,
        chain: ChainClient,
        *,
        exchange: Optional[ExchangeContract] = None,
        gas: Optional[GasEstimator] = None,
        proxies: Optional[ProxyManager] = None,
        authorizer: Optional[Authorizer] = None,
        matcher: Optional[MatchEngine] = None,
    ) -> None:
        self.config = config
        self.chain = chain
        self.exchange = exchange or ExchangeContract(chain, config.exchange_address)
        self.gas = gas or GasEstimator(
            config.retry.gas_estimation_retries,
            config.retry.gas_retry_delay_seconds,
        )
        self.proxies = proxies or ProxyManager(chain, config, self.gas)
        self.authorizer = authorizer or Authorizer(chain, self.exchange, self.gas, config)
        self.matcher = matcher or MatchEngine(chain, self.exchange, self.proxies, self.gas, config)

    @classmethod
    def from_config(cls, config: EngineConfig, private_key: Optional[str] = None) -> "WyvernClient":
        if not config.rpc_url:
            raise ConfigError("An RPC URL is required (rpc_url in config or WYVERN_RPC_URL).")
        signer = LocalAccountSigner(private_key) if private_key else None
        chain = ChainClient.from_rpc_url(
            config.rpc_url,
            signer,
            chain_id=config.chain_id,
            receipt_timeout_seconds=config.retry.receipt_timeout_seconds,
        )
        return cls(config, chain)

    @property
    def account(self) -> str:
        return self.chain.account

    async def _authorize(self, order: HashedOrder, declined_message: str) -> AnyOrder:
        try:
            return await self.authorizer.sign_order(order)
        except AuthorizationDeclined as exc:
            logger.warning("Authorization declined for order 0x%s: %s", order.hash.hex(), exc)
            raise AuthorizationDeclined(declined_message) from exc

    async def create_sell_order(
        self,
        asset: Asset,
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
        now: Optional[int] = None,
    ) -> AnyOrder:
        """
        List ``asset`` for sale.

        Builds the order, makes sure the proxy exists and may move the asset,
        validates the parameters on-chain, then hashes and authorizes it.
        """
        order = build_sell_order(
            asset,
            self.account,
            start_amount,
            end_amount,
            wait_for_highest_bid=wait_for_highest_bid,
            expiration_time=expiration_time,
            listing_time=listing_time,
            payment_token=payment_token,
            buyer_address=buyer_address,
            english_auction_reserve_price=english_auction_reserve_price,
            extra_bounty_basis_points=extra_bounty_basis_points,
            referrer_address=referrer_address,
            config=self.config,
            now=now,
        )
        await self.matcher.sell_order_validation_and_approvals(order)
        hashed = hash_order(order)
        signed = await self._authorize(hashed, "You declined to authorize your auction")
        logger.info(
            "Created %s sell order 0x%s for %s #%s",
            signed.sale_kind.name,
            signed.hash.hex(),
            asset.contract_address,
            asset.token_id,
        )
        return signed

    async def create_buy_order(
        self,
        asset: Asset,
        start_amount: Any,
        *,
        expiration_time: int = 0,
        sell_order: Optional[HashedOrder] = None,
        payment_token: Optional[str] = None,
        referrer_address: Optional[str] = None,
        now: Optional[int] = None,
    ) -> AnyOrder:
        """Make an offer on ``asset``; offers are priced in an ERC-20, wrapped ETH by default."""
        order = build_buy_order(
            asset,
            self.account,
            start_amount,
            expiration_time=expiration_time,
            sell_order=sell_order,
            payment_token=payment_token,
            referrer_address=referrer_address,
            config=self.config,
            now=now,
        )
        hashed = hash_order(order)
        signed = await self._authorize(hashed, "You declined to authorize your offer")
        await self.matcher.buy_order_validation_and_approvals(signed, sell_order, now)
        logger.info("Created offer 0x%s on %s #%s", signed.hash.hex(), asset.contract_address, asset.token_id)
        return signed

    async def create_matching_orders(
        self,
        order: HashedOrder,
        *,
        recipient: Optional[str] = None,
        offer: Optional[int] = None,
        now: Optional[int] = None,
    ) -> OrderPair:
        """
        Counter-order for ``order`` taken by this account, paired by side.

        The counter-order is authorized here and both orders are checked with
        ``validateOrder_`` before anything is submitted.
        """
        matching = build_matching_order(
            order, self.account, recipient, offer, config=self.config, now=now
        )
        signed_matching = await self._authorize(matching, "You declined to authorize the trade")
        pair = assign_orders_to_sides(order, signed_matching)

        if not await self.exchange.validate_order(pair.sell):
            raise InvalidOrder("Sell order is invalid")
        if not await self.exchange.validate_order(pair.buy):
            raise InvalidOrder("Buy order is invalid")
        return pair

    async def fulfill_order(
        self,
        order: HashedOrder,
        *,
        recipient: Optional[str] = None,
        offer: Optional[int] = None,
        now: Optional[int] = None,
    ) -> Union[Dict[str, Any], AnyOrder]:
        """
        Take ``order``.

        English auctions cannot be matched until they close, so for those the
        validated bid is returned for posting. Every other order is settled
        with ``atomicMatch_`` and the receipt returned.
        """
        current = int(time.time()) if now is None else now
        if offer is None and order.side == OrderSide.SELL and order.sale_kind == SaleKind.DUTCH_AUCTION:
            offer = current_price(order, current)

        pair = await self.create_matching_orders(order, recipient=recipient, offer=offer, now=current)
        if order.waiting_for_best_counter_order:
            await self.matcher.buy_order_validation_and_approvals(pair.buy, pair.sell, current)
            logger.info("Bid 0x%s ready to post for English auction 0x%s", pair.buy.hash.hex(), order.hash.hex())
            return pair.buy
        return await self.matcher.atomic_match(pair.buy, pair.sell, current)

    async def cancel_listing(self, order: HashedOrder) -> bool:
        return await self.matcher.cancel_order(order)

    async def calculate_gas_fees(
        self,
        order: HashedOrder,
        counter_order: Optional[HashedOrder] = None,
    ) -> FeeBreakdown:
        """
        Gas units needed to list (sell) or take (buy) an order.

        Where a step cannot be estimated because an earlier step has not
        happened yet, the static safe value from the gas limit config is used.
        """
        limits = self.config.gas_limits
        proxy_fees = approval_fees = gas_fees = 0
        if order.side == OrderSide.SELL:
            proxy_fees = await self.proxies.estimate_proxy_fees()
            if proxy_fees == 0:
                approval_fees = await self.proxies.estimate_approval_fees(order)
            else:
                approval_fees = limits.approval_when_no_proxy
        else:
            if order.payment_token != NULL_ADDRESS:
                approval_fees = await self.proxies.estimate_payment_approval_fees(order)
            if approval_fees == 0:
                if counter_order is None:
                    raise OrderValidationError("A counter-order is required to estimate match gas")
                gas_fees = await self.matcher.estimate_atomic_match_gas(order, counter_order)
            else:
                gas_fees = limits.match_when_unapproved
        total = proxy_fees + approval_fees + gas_fees
        return FeeBreakdown(
            proxy_fees=str(proxy_fees),
            approval_fees=str(approval_fees),
            gas_fees=str(gas_fees),
            total_fees=str(total),
        )


__all__ = ["WyvernClient"]
