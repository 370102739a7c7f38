import dataclasses

import pytest

from wyvern_engine.builder import (
    assign_orders_to_sides,
    build_buy_order,
    build_matching_order,
    build_sell_order,
    get_price_parameters,
    get_time_parameters,
    to_base_units,
)
from wyvern_engine.config import EngineConfig
from wyvern_engine.constants import (
    MAINNET_FEE_RECIPIENT,
    MAINNET_WETH_ADDRESS,
    NULL_ADDRESS,
    ORDER_MATCHING_LATENCY_SECONDS,
)
from wyvern_engine.encoding import calldata_can_match
from wyvern_engine.errors import OrderValidationError
from wyvern_engine.hashing import get_order_hash, hash_order
from wyvern_engine.orders import Asset, HashedOrder, OrderSide, SaleKind

NOW = 1_700_000_000
SELLER = "0x1111111111111111111111111111111111111111"
BUYER = "0x2222222222222222222222222222222222222222"
TOKEN = "0x3333333333333333333333333333333333333333"
OTHER_TOKEN = "0x4444444444444444444444444444444444444444"


@pytest.fixture
def config():
    return EngineConfig()


@pytest.fixture
def asset():
    return Asset(contract_address=TOKEN, token_id=9)


class TestTimeParameters:

    def test_defaults_list_slightly_in_the_past(self):
        times = get_time_parameters(0, now=NOW)
        assert times.listing_time == NOW - 100
        assert times.expiration_time == 0

    def test_future_listing_is_kept(self):
        times = get_time_parameters(NOW + 1_000, NOW + 500, now=NOW)
        assert (times.listing_time, times.expiration_time) == (NOW + 500, NOW + 1_000)

    def test_english_auction_lists_at_close(self):
        times = get_time_parameters(NOW + 3_600, None, True, now=NOW)
        assert times.listing_time == NOW + 3_600
        assert times.expiration_time == NOW + 3_600 + ORDER_MATCHING_LATENCY_SECONDS

    @pytest.mark.parametrize(
        "expiration,listing,waiting",
        [
            (NOW - 1, None, False),
            (NOW + 5, None, False),
            (0, NOW - 10, False),
            (NOW + 100, NOW + 200, False),
            (0, None, True),
            (NOW + 3_600, NOW + 60, True),
            (1.5, None, False),
            ("soon", None, False),
        ],
    )
    def test_rejected_timings(self, expiration, listing, waiting):
        with pytest.raises(OrderValidationError):
            get_time_parameters(expiration, listing, waiting, now=NOW)


class TestPriceParameters:

    def test_base_units(self):
        assert to_base_units("1.5") == 15 * 10**17
        assert to_base_units(0) == 0
        with pytest.raises(OrderValidationError, match="Too many decimal places"):
            to_base_units("0.0000000000000000001")

    def test_dutch_extra(self):
        prices = get_price_parameters(OrderSide.SELL, NULL_ADDRESS, NOW + 3_600, 2, 1)
        assert prices.base_price == 2 * 10**18
        assert prices.extra == 10**18

    @pytest.mark.parametrize(
        "kwargs",
        [
            dict(side=OrderSide.SELL, payment_token=NULL_ADDRESS, expiration_time=0, start_amount=-1),
            dict(side=OrderSide.SELL, payment_token=NULL_ADDRESS, expiration_time=0, start_amount=None),
            dict(side=OrderSide.SELL, payment_token=NULL_ADDRESS, expiration_time=NOW, start_amount=1, end_amount=2),
            dict(side=OrderSide.SELL, payment_token=NULL_ADDRESS, expiration_time=0, start_amount=2, end_amount=1),
            dict(side=OrderSide.BUY, payment_token=NULL_ADDRESS, expiration_time=0, start_amount=1),
            dict(
                side=OrderSide.SELL,
                payment_token=NULL_ADDRESS,
                expiration_time=NOW,
                start_amount=1,
                waiting_for_best_counter_order=True,
            ),
            dict(
                side=OrderSide.SELL,
                payment_token=NULL_ADDRESS,
                expiration_time=0,
                start_amount=1,
                english_auction_reserve_price=2,
            ),
            dict(side=OrderSide.SELL, payment_token=OTHER_TOKEN, expiration_time=0, start_amount=1),
        ],
    )
    def test_rejected_prices(self, kwargs):
        with pytest.raises(OrderValidationError):
            get_price_parameters(weth_address=MAINNET_WETH_ADDRESS, **kwargs)

    def test_reserve_below_start(self):
        with pytest.raises(OrderValidationError, match="Reserve price"):
            get_price_parameters(
                OrderSide.SELL,
                MAINNET_WETH_ADDRESS,
                NOW + 3_600,
                2,
                waiting_for_best_counter_order=True,
                english_auction_reserve_price=1,
                weth_address=MAINNET_WETH_ADDRESS,
            )


class TestBuildSellOrder:

    def test_fixed_price(self, asset, config):
        order = build_sell_order(asset, SELLER, "1.5", config=config, now=NOW)
        assert order.side is OrderSide.SELL
        assert order.sale_kind is SaleKind.FIXED_PRICE
        assert order.maker == SELLER
        assert order.taker == NULL_ADDRESS
        assert order.base_price == 15 * 10**17
        assert order.extra == 0
        assert order.fee_recipient == MAINNET_FEE_RECIPIENT
        assert (order.maker_relayer_fee, order.taker_relayer_fee) == (250, 0)
        assert order.listing_time == NOW - 100
        assert order.expiration_time == 0
        assert order.exchange == config.exchange_address
        assert order.target == TOKEN
        assert order.metadata.asset == asset
        assert len(order.replacement_pattern) == len(order.calldata)

    def test_dutch_auction(self, asset, config):
        order = build_sell_order(asset, SELLER, 2, 1, expiration_time=NOW + 3_600, config=config, now=NOW)
        assert order.sale_kind is SaleKind.DUTCH_AUCTION
        assert order.extra == 10**18
        assert order.expiration_time == NOW + 3_600

    def test_english_auction(self, asset, config):
        order = build_sell_order(
            asset,
            SELLER,
            1,
            wait_for_highest_bid=True,
            expiration_time=NOW + 3_600,
            payment_token=MAINNET_WETH_ADDRESS,
            english_auction_reserve_price=2,
            config=config,
            now=NOW,
        )
        assert order.waiting_for_best_counter_order
        assert order.fee_recipient == NULL_ADDRESS
        assert (order.maker_relayer_fee, order.taker_relayer_fee) == (0, 250)
        assert order.listing_time == NOW + 3_600
        assert order.english_auction_reserve_price == 2 * 10**18

    def test_english_auction_in_eth_rejected(self, asset, config):
        with pytest.raises(OrderValidationError):
            build_sell_order(
                asset, SELLER, 1, wait_for_highest_bid=True, expiration_time=NOW + 3_600, config=config, now=NOW
            )

    def test_salts_are_unique(self, asset, config):
        first = build_sell_order(asset, SELLER, 1, config=config, now=NOW)
        second = build_sell_order(asset, SELLER, 1, config=config, now=NOW)
        assert first.salt != second.salt
        assert get_order_hash(first) != get_order_hash(second)


class TestBuildBuyOrder:

    def test_offer_defaults_to_weth(self, asset, config):
        order = build_buy_order(asset, BUYER, "0.5", config=config, now=NOW)
        assert order.side is OrderSide.BUY
        assert order.payment_token == MAINNET_WETH_ADDRESS
        assert order.fee_recipient == MAINNET_FEE_RECIPIENT
        assert order.taker == NULL_ADDRESS
        assert order.base_price == 5 * 10**17

    def test_offer_in_eth_rejected(self, asset, config):
        with pytest.raises(OrderValidationError, match="Offers must use wrapped ETH"):
            build_buy_order(asset, BUYER, 1, payment_token=NULL_ADDRESS, config=config, now=NOW)

    def test_offer_on_sell_order_swaps_fees(self, asset, config):
        sell = build_sell_order(asset, SELLER, 1, payment_token=MAINNET_WETH_ADDRESS, config=config, now=NOW)
        order = build_buy_order(asset, BUYER, 1, sell_order=sell, config=config, now=NOW)
        assert order.taker == SELLER
        assert (order.maker_relayer_fee, order.taker_relayer_fee) == (0, 250)


class TestMatchingOrder:

    def test_counter_order_for_sell(self, asset, config):
        sell = hash_order(build_sell_order(asset, SELLER, 1, config=config, now=NOW))
        buy = build_matching_order(sell, BUYER, config=config, now=NOW)

        assert isinstance(buy, HashedOrder)
        assert buy.hash == get_order_hash(buy)
        assert buy.side is OrderSide.BUY
        assert buy.maker == BUYER
        assert buy.taker == SELLER
        assert buy.fee_recipient == NULL_ADDRESS
        assert buy.base_price == sell.base_price
        assert buy.extra == 0
        assert buy.listing_time == NOW - 100
        assert buy.expiration_time == NOW + ORDER_MATCHING_LATENCY_SECONDS
        assert (buy.maker_relayer_fee, buy.taker_relayer_fee) == (
            sell.maker_relayer_fee,
            sell.taker_relayer_fee,
        )
        assert calldata_can_match(
            buy.calldata, buy.replacement_pattern, sell.calldata, sell.replacement_pattern
        )

    def test_counter_order_for_english_auction_carries_recipient(self, asset, config):
        sell = hash_order(
            build_sell_order(
                asset,
                SELLER,
                1,
                wait_for_highest_bid=True,
                expiration_time=NOW + 3_600,
                payment_token=MAINNET_WETH_ADDRESS,
                config=config,
                now=NOW,
            )
        )
        buy = build_matching_order(sell, BUYER, offer=3 * 10**18, config=config, now=NOW)
        assert buy.fee_recipient == config.fee_recipient
        assert buy.base_price == 3 * 10**18

    def test_counter_order_for_offer(self, asset, config):
        offer = hash_order(build_buy_order(asset, BUYER, 1, config=config, now=NOW))
        sell = build_matching_order(offer, SELLER, config=config, now=NOW)
        assert sell.side is OrderSide.SELL
        assert sell.taker == BUYER
        assert calldata_can_match(
            offer.calldata, offer.replacement_pattern, sell.calldata, sell.replacement_pattern
        )

    def test_missing_metadata(self, asset, config):
        sell = hash_order(build_sell_order(asset, SELLER, 1, config=config, now=NOW))
        bare = dataclasses.replace(sell, metadata=None)
        with pytest.raises(OrderValidationError, match="Invalid order metadata"):
            build_matching_order(bare, BUYER, config=config, now=NOW)

    def test_assign_orders_to_sides(self, asset, config):
        sell = hash_order(build_sell_order(asset, SELLER, 1, config=config, now=NOW))
        buy = build_matching_order(sell, BUYER, config=config, now=NOW)
        pair = assign_orders_to_sides(sell, buy)
        assert pair.buy is buy and pair.sell is sell
        pair = assign_orders_to_sides(buy, sell)
        assert pair.buy is buy and pair.sell is sell
