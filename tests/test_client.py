import pytest
from unittest.mock import AsyncMock, MagicMock

from wyvern_engine.builder import build_sell_order
from wyvern_engine.client import WyvernClient
from wyvern_engine.config import EngineConfig
from wyvern_engine.constants import MAINNET_WETH_ADDRESS
from wyvern_engine.errors import (
    AuthorizationDeclined,
    ConfigError,
    InvalidOrder,
    OrderValidationError,
)
from wyvern_engine.fees import current_price
from wyvern_engine.hashing import get_order_hash, hash_order
from wyvern_engine.orders import Asset, OrderSide

NOW = 1_700_000_000
SELLER = "0x1111111111111111111111111111111111111111"
BUYER = "0x2222222222222222222222222222222222222222"
TOKEN = "0x3333333333333333333333333333333333333333"


@pytest.fixture
def config():
    return EngineConfig()


@pytest.fixture
def asset():
    return Asset(contract_address=TOKEN, token_id=11)


@pytest.fixture
def chain():
    chain = MagicMock()
    chain.account = BUYER
    return chain


@pytest.fixture
def exchange():
    exchange = MagicMock()
    exchange.validate_order = AsyncMock(return_value=True)
    return exchange


@pytest.fixture
def proxies():
    proxies = MagicMock()
    proxies.estimate_proxy_fees = AsyncMock(return_value=0)
    proxies.estimate_approval_fees = AsyncMock(return_value=46_000)
    proxies.estimate_payment_approval_fees = AsyncMock(return_value=0)
    return proxies


@pytest.fixture
def authorizer():
    authorizer = MagicMock()
    authorizer.sign_order = AsyncMock(side_effect=lambda order: order)
    return authorizer


@pytest.fixture
def matcher():
    matcher = MagicMock()
    matcher.sell_order_validation_and_approvals = AsyncMock(return_value=True)
    matcher.buy_order_validation_and_approvals = AsyncMock(return_value=True)
    matcher.atomic_match = AsyncMock(return_value={"status": 1})
    matcher.cancel_order = AsyncMock(return_value=True)
    matcher.estimate_atomic_match_gas = AsyncMock(return_value=205_000)
    return matcher


@pytest.fixture
def client(config, chain, exchange, proxies, authorizer, matcher):
    return WyvernClient(
        config,
        chain,
        exchange=exchange,
        proxies=proxies,
        authorizer=authorizer,
        matcher=matcher,
    )


@pytest.fixture
def listing(asset, config):
    return hash_order(build_sell_order(asset, SELLER, "1", config=config, now=NOW))


def test_from_config_requires_rpc_url():
    with pytest.raises(ConfigError, match="RPC URL"):
        WyvernClient.from_config(EngineConfig())


class TestCreateOrders:

    @pytest.mark.asyncio
    async def test_create_sell_order(self, client, chain, matcher, authorizer, asset):
        chain.account = SELLER
        order = await client.create_sell_order(asset, "0.5", now=NOW)
        assert order.side is OrderSide.SELL
        assert order.maker == SELLER
        assert order.base_price == 5 * 10**17
        assert order.hash == get_order_hash(order)
        matcher.sell_order_validation_and_approvals.assert_awaited_once()
        authorizer.sign_order.assert_awaited_once_with(order)

    @pytest.mark.asyncio
    async def test_declined_listing(self, client, authorizer, asset):
        authorizer.sign_order.side_effect = AuthorizationDeclined("User denied message signature")
        with pytest.raises(AuthorizationDeclined, match="declined to authorize your auction"):
            await client.create_sell_order(asset, 1, now=NOW)

    @pytest.mark.asyncio
    async def test_create_offer(self, client, matcher, asset):
        offer = await client.create_buy_order(asset, "0.25", now=NOW)
        assert offer.side is OrderSide.BUY
        assert offer.payment_token == MAINNET_WETH_ADDRESS
        matcher.buy_order_validation_and_approvals.assert_awaited_once_with(offer, None, NOW)

    @pytest.mark.asyncio
    async def test_declined_offer(self, client, authorizer, matcher, asset):
        authorizer.sign_order.side_effect = AuthorizationDeclined("denied")
        with pytest.raises(AuthorizationDeclined, match="declined to authorize your offer"):
            await client.create_buy_order(asset, 1, now=NOW)
        matcher.buy_order_validation_and_approvals.assert_not_awaited()


class TestMatchingOrders:

    @pytest.mark.asyncio
    async def test_pair_for_listing(self, client, exchange, listing):
        pair = await client.create_matching_orders(listing, now=NOW)
        assert pair.sell is listing
        assert pair.buy.maker == BUYER
        assert pair.buy.taker == SELLER
        assert exchange.validate_order.await_count == 2

    @pytest.mark.asyncio
    async def test_invalid_sell(self, client, exchange, listing):
        exchange.validate_order.return_value = False
        with pytest.raises(InvalidOrder, match="Sell order is invalid"):
            await client.create_matching_orders(listing, now=NOW)

    @pytest.mark.asyncio
    async def test_invalid_buy(self, client, exchange, listing):
        exchange.validate_order.side_effect = [True, False]
        with pytest.raises(InvalidOrder, match="Buy order is invalid"):
            await client.create_matching_orders(listing, now=NOW)

    @pytest.mark.asyncio
    async def test_declined_trade(self, client, authorizer, listing):
        authorizer.sign_order.side_effect = AuthorizationDeclined("denied")
        with pytest.raises(AuthorizationDeclined, match="declined to authorize the trade"):
            await client.create_matching_orders(listing, now=NOW)


class TestFulfill:

    @pytest.mark.asyncio
    async def test_fixed_price_is_matched(self, client, matcher, listing):
        receipt = await client.fulfill_order(listing, now=NOW)
        assert receipt == {"status": 1}
        buy, sell, now = matcher.atomic_match.await_args.args
        assert sell is listing
        assert buy.maker == BUYER
        assert buy.base_price == listing.base_price
        assert now == NOW

    @pytest.mark.asyncio
    async def test_dutch_auction_pays_current_price(self, client, matcher, asset, config):
        dutch = hash_order(
            build_sell_order(asset, SELLER, 2, 1, expiration_time=NOW + 86_400, config=config, now=NOW)
        )
        await client.fulfill_order(dutch, now=NOW)
        buy = matcher.atomic_match.await_args.args[0]
        assert buy.base_price == current_price(dutch, NOW)
        assert buy.base_price < dutch.base_price

    @pytest.mark.asyncio
    async def test_english_auction_returns_bid(self, client, matcher, asset, config):
        auction = hash_order(
            build_sell_order(
                asset,
                SELLER,
                1,
                wait_for_highest_bid=True,
                expiration_time=NOW + 86_400,
                payment_token=MAINNET_WETH_ADDRESS,
                config=config,
                now=NOW,
            )
        )
        bid = await client.fulfill_order(auction, now=NOW)
        assert bid.side is OrderSide.BUY
        assert bid.fee_recipient == config.fee_recipient
        matcher.buy_order_validation_and_approvals.assert_awaited_once()
        matcher.atomic_match.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cancel_listing(self, client, matcher, listing):
        assert await client.cancel_listing(listing)
        matcher.cancel_order.assert_awaited_once_with(listing)


class TestGasFees:

    @pytest.mark.asyncio
    async def test_sell_with_proxy(self, client, listing):
        fees = await client.calculate_gas_fees(listing)
        assert fees.proxy_fees == "0"
        assert fees.approval_fees == "46000"
        assert fees.total_fees == "46000"

    @pytest.mark.asyncio
    async def test_sell_without_proxy(self, client, proxies, config, listing):
        proxies.estimate_proxy_fees.return_value = 410_000
        fees = await client.calculate_gas_fees(listing)
        assert fees.approval_fees == str(config.gas_limits.approval_when_no_proxy)
        assert fees.total_fees == str(410_000 + config.gas_limits.approval_when_no_proxy)
        proxies.estimate_approval_fees.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_buy_with_allowance(self, client, matcher, asset, listing):
        offer = await client.create_buy_order(asset, 1, now=NOW)
        fees = await client.calculate_gas_fees(offer, listing)
        assert fees.gas_fees == "205000"
        assert fees.total_fees == "205000"
        matcher.estimate_atomic_match_gas.assert_awaited_once_with(offer, listing)

    @pytest.mark.asyncio
    async def test_buy_without_allowance(self, client, proxies, config, asset):
        proxies.estimate_payment_approval_fees.return_value = 46_000
        offer = await client.create_buy_order(asset, 1, now=NOW)
        fees = await client.calculate_gas_fees(offer)
        assert fees.gas_fees == str(config.gas_limits.match_when_unapproved)

    @pytest.mark.asyncio
    async def test_buy_needs_counter_order(self, client, asset):
        offer = await client.create_buy_order(asset, 1, now=NOW)
        with pytest.raises(OrderValidationError, match="counter-order"):
            await client.calculate_gas_fees(offer)
