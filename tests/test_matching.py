import dataclasses

import pytest
from unittest.mock import AsyncMock, MagicMock

from wyvern_engine.builder import build_matching_order, build_sell_order
from wyvern_engine.config import EngineConfig, RetryConfig
from wyvern_engine.constants import MAINNET_WETH_ADDRESS
from wyvern_engine.errors import (
    InsufficientBalance,
    InvalidOrder,
    OrdersIncompatible,
    TransientRpcError,
)
from wyvern_engine.gas import GasEstimator
from wyvern_engine.hashing import hash_order
from wyvern_engine.matching import (
    MatchEngine,
    check_orders_can_match,
    match_value,
    order_match_problems,
)
from wyvern_engine.orders import Asset

NOW = 1_700_000_000
SELLER = "0x1111111111111111111111111111111111111111"
BUYER = "0x2222222222222222222222222222222222222222"
STRANGER = "0x5555555555555555555555555555555555555555"
TOKEN = "0x3333333333333333333333333333333333333333"


@pytest.fixture
def config():
    return EngineConfig(retry=RetryConfig(match_retry_delay_seconds=0))


@pytest.fixture
def asset():
    return Asset(contract_address=TOKEN, token_id=8)


@pytest.fixture
def sell(asset, config):
    return hash_order(build_sell_order(asset, SELLER, 1, config=config, now=NOW))


@pytest.fixture
def buy(sell, config):
    return build_matching_order(sell, BUYER, config=config, now=NOW)


@pytest.fixture
def chain():
    chain = MagicMock()
    chain.account = BUYER
    chain.call = AsyncMock(return_value=0)
    return chain


@pytest.fixture
def exchange():
    exchange = MagicMock()
    exchange.orders_can_match = AsyncMock(return_value=True)
    exchange.order_calldata_can_match = AsyncMock(return_value=True)
    exchange.validate_order = AsyncMock(return_value=True)
    exchange.validate_order_parameters = AsyncMock(return_value=True)
    exchange.estimate_atomic_match = AsyncMock(return_value=210_000)
    exchange.atomic_match = AsyncMock(return_value={"status": 1})
    exchange.estimate_cancel_order = AsyncMock(return_value=60_000)
    exchange.cancel_order = AsyncMock(return_value={"status": 1})
    return exchange


@pytest.fixture
def proxies():
    proxies = MagicMock()
    proxies.approve_all = AsyncMock(return_value=[None])
    proxies.approve_fungible_token = AsyncMock(return_value=None)
    return proxies


@pytest.fixture
def engine(chain, exchange, proxies, config):
    return MatchEngine(chain, exchange, proxies, GasEstimator(retries=0), config)


class TestLocalMatchCheck:

    def test_valid_pair(self, buy, sell):
        assert order_match_problems(buy, sell, NOW) == []
        check_orders_can_match(buy, sell, NOW)

    def test_two_sells(self, sell):
        with pytest.raises(OrdersIncompatible, match="expected BUY/SELL"):
            check_orders_can_match(sell, sell, NOW)

    def test_buy_below_sell_price(self, buy, sell):
        cheap = dataclasses.replace(buy, base_price=sell.base_price - 1)
        assert "buy price is below the sell price" in order_match_problems(cheap, sell, NOW)

    def test_reserved_for_another_taker(self, buy, sell):
        reserved = dataclasses.replace(sell, taker=STRANGER)
        assert "sell order is reserved for another taker" in order_match_problems(buy, reserved, NOW)

    def test_both_fee_recipients(self, buy, sell):
        both = dataclasses.replace(buy, fee_recipient=sell.fee_recipient)
        assert "exactly one order must carry a fee recipient" in order_match_problems(both, sell, NOW)

    def test_expired_sell(self, buy, sell):
        expired = dataclasses.replace(sell, expiration_time=NOW - 1)
        assert "sell order is outside its listing window" in order_match_problems(buy, expired, NOW)

    def test_calldata_mismatch(self, buy, sell):
        other = build_sell_order(Asset(contract_address=TOKEN, token_id=9), SELLER, 1, now=NOW)
        mismatched = dataclasses.replace(sell, calldata=other.calldata)
        problems = order_match_problems(buy, mismatched, NOW)
        assert "calldata does not match under the replacement patterns" in problems


class TestMatchValue:

    def test_eth_payment(self, buy, sell):
        assert match_value(buy, sell, NOW) == sell.base_price

    def test_taker_fee_included(self, buy, sell):
        with_fee = dataclasses.replace(sell, taker_relayer_fee=100)
        assert match_value(buy, with_fee, NOW) == sell.base_price + sell.base_price // 100

    def test_erc20_payment(self, buy, sell):
        weth_buy = dataclasses.replace(buy, payment_token=MAINNET_WETH_ADDRESS)
        assert match_value(weth_buy, sell, NOW) == 0


class TestValidateMatch:

    @pytest.mark.asyncio
    async def test_local_mismatch_skips_rpc(self, engine, exchange, sell):
        with pytest.raises(OrdersIncompatible):
            await engine.validate_match(sell, sell, NOW)
        exchange.orders_can_match.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_retries_once_on_transient_error(self, engine, exchange, buy, sell):
        exchange.orders_can_match.side_effect = [TransientRpcError("timeout"), True]
        assert await engine.validate_match(buy, sell, NOW)
        assert exchange.orders_can_match.await_count == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_retry(self, engine, exchange, buy, sell):
        exchange.orders_can_match.side_effect = TransientRpcError("timeout")
        with pytest.raises(OrdersIncompatible, match="Error matching this listing"):
            await engine.validate_match(buy, sell, NOW)
        assert exchange.orders_can_match.await_count == 2

    @pytest.mark.asyncio
    async def test_chain_rejection_is_final(self, engine, exchange, buy, sell):
        exchange.order_calldata_can_match.return_value = False
        with pytest.raises(OrdersIncompatible):
            await engine.validate_match(buy, sell, NOW)
        assert exchange.orders_can_match.await_count == 1


class TestSideValidation:

    @pytest.mark.asyncio
    async def test_sell_validation_approves_asset(self, engine, proxies, sell, asset):
        assert await engine.sell_order_validation_and_approvals(sell)
        proxies.approve_all.assert_awaited_once_with([asset])

    @pytest.mark.asyncio
    async def test_sell_parameters_rejected(self, engine, exchange, sell):
        exchange.validate_order_parameters.return_value = False
        with pytest.raises(InvalidOrder, match="right network"):
            await engine.sell_order_validation_and_approvals(sell)

    @pytest.mark.asyncio
    async def test_eth_buy_needs_no_allowance(self, engine, chain, proxies, buy):
        assert await engine.buy_order_validation_and_approvals(buy)
        chain.call.assert_not_awaited()
        proxies.approve_fungible_token.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_weth_balance_too_low(self, engine, chain, buy):
        weth_buy = dataclasses.replace(buy, payment_token=MAINNET_WETH_ADDRESS)
        chain.call.return_value = weth_buy.base_price - 1
        with pytest.raises(InsufficientBalance, match="wrap Ether"):
            await engine.buy_order_validation_and_approvals(weth_buy)

    @pytest.mark.asyncio
    async def test_weth_allowance_requested(self, engine, chain, proxies, buy, sell):
        weth_buy = dataclasses.replace(buy, payment_token=MAINNET_WETH_ADDRESS)
        weth_sell = dataclasses.replace(sell, payment_token=MAINNET_WETH_ADDRESS, taker_relayer_fee=100)
        chain.call.return_value = 2 * 10**18
        await engine.buy_order_validation_and_approvals(weth_buy, weth_sell, NOW)
        proxies.approve_fungible_token.assert_awaited_once_with(
            MAINNET_WETH_ADDRESS, sell.base_price + sell.base_price // 100
        )

    @pytest.mark.asyncio
    async def test_invalid_buy(self, engine, exchange, buy):
        exchange.validate_order.return_value = False
        with pytest.raises(InvalidOrder, match="buy order"):
            await engine.buy_order_validation_and_approvals(buy)


class TestAtomicMatch:

    @pytest.mark.asyncio
    async def test_buyer_fills_listing(self, engine, exchange, proxies, buy, sell):
        receipt = await engine.atomic_match(buy, sell, NOW)
        assert receipt == {"status": 1}
        exchange.atomic_match.assert_awaited_once_with(buy, sell, value=sell.base_price, gas=210_000)
        proxies.approve_all.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_seller_accepts_offer(self, engine, chain, proxies, buy, sell, asset):
        chain.account = SELLER
        await engine.atomic_match(buy, sell, NOW)
        proxies.approve_all.assert_awaited_once_with([asset])

    @pytest.mark.asyncio
    async def test_gas_fallback(self, engine, exchange, config, buy, sell):
        exchange.estimate_atomic_match.side_effect = RuntimeError("quorum not met")
        await engine.atomic_match(buy, sell, NOW)
        assert exchange.atomic_match.await_args.kwargs["gas"] == config.gas_limits.atomic_match

    @pytest.mark.asyncio
    async def test_estimate_gas_for_either_order(self, engine, exchange, buy, sell):
        assert await engine.estimate_atomic_match_gas(sell, buy, NOW) == 210_000
        assert exchange.estimate_atomic_match.await_args.args[:2] == (buy, sell)


class TestCancel:

    @pytest.mark.asyncio
    async def test_cancel_confirmed(self, engine, chain, exchange, sell):
        chain.account = SELLER
        exchange.validate_order.return_value = False
        assert await engine.cancel_order(sell)
        exchange.cancel_order.assert_awaited_once_with(sell, gas=60_000)

    @pytest.mark.asyncio
    async def test_cancel_not_effective(self, engine, chain, exchange, sell):
        chain.account = SELLER
        assert not await engine.cancel_order(sell)

    @pytest.mark.asyncio
    async def test_only_maker_can_cancel(self, engine, exchange, sell):
        with pytest.raises(InvalidOrder):
            await engine.cancel_order(sell)
        exchange.cancel_order.assert_not_awaited()
