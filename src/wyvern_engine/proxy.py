"""Per-account proxy discovery, registration and token approvals."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from .config import EngineConfig
from .connectors.abis import ERC1155_ABI, ERC20_ABI, ERC721_ABI, PROXY_REGISTRY_ABI, ABI
from .connectors.chain import ChainClient
from .constants import MAX_UINT256, NULL_ADDRESS
from .errors import (
    ApprovalError,
    ContractCallReverted,
    OwnershipError,
    ProxyInitializationFailed,
    TransactionFailed,
    TransactionWillRevert,
    TransientRpcError,
    UnsupportedAssetSchema,
)
from .gas import GasEstimator
from .orders import Asset, UnhashedOrder, normalize_address
from .schemas import ERC1155Schema, OwnershipCheck, Schema, get_schema

logger = logging.getLogger(__name__)


class ProxyState(Enum):
    NO_PROXY = "no_proxy"
    REGISTERING = "registering"
    HAS_PROXY = "has_proxy"


def token_abi(schema: Schema) -> ABI:
    return ERC1155_ABI if isinstance(schema, ERC1155Schema) else ERC721_ABI


class ApprovalLedger:
    """
    Approve-all bookkeeping shared by the tasks of one batch.

    Each token contract gets its own lock so concurrent assets on the same
    contract submit at most one ``setApprovalForAll``.
    """

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}
        self._approved: set[str] = set()

    def lock_for(self, token_address: str) -> asyncio.Lock:
        return self._locks.setdefault(token_address.lower(), asyncio.Lock())

    def is_approved(self, token_address: str) -> bool:
        return token_address.lower() in self._approved

    def mark_approved(self, token_address: str) -> None:
        self._approved.add(token_address.lower())

    def __contains__(self, token_address: object) -> bool:
        return isinstance(token_address, str) and self.is_approved(token_address)


class ProxyManager:
    """Discovers or registers the account's proxy and grants it approvals."""

    def __init__(
        self,
        chain: ChainClient,
        config: Optional[EngineConfig] = None,
        gas: Optional[GasEstimator] = None,
    ) -> None:
        self.chain = chain
        self.config = config or EngineConfig()
        self.gas = gas or GasEstimator(
            self.config.retry.gas_estimation_retries,
            self.config.retry.gas_retry_delay_seconds,
        )
        self.state = ProxyState.NO_PROXY
        self.proxy_address: Optional[str] = None

    @property
    def registry(self) -> str:
        return self.config.proxy_registry_address

    async def get_proxy(self, account: Optional[str] = None, retries: int = 0) -> Optional[str]:
        """Registered proxy of ``account``, polling ``retries`` extra times; ``None`` if absent."""
        owner = normalize_address(account or self.chain.account)
        for attempt in range(retries + 1):
            try:
                proxy = await self.chain.call(self.registry, PROXY_REGISTRY_ABI, "proxies", owner)
            except TransientRpcError as exc:
                if attempt >= retries:
                    raise
                logger.warning("Proxy lookup for %s failed (attempt %d/%d): %s", owner, attempt + 1, retries + 1, exc)
                await asyncio.sleep(self.config.retry.proxy_poll_interval_seconds)
                continue
            if proxy and proxy.lower() != NULL_ADDRESS:
                proxy = proxy.lower()
                if account is None:
                    self.proxy_address = proxy
                    self.state = ProxyState.HAS_PROXY
                return proxy
            if attempt < retries:
                await asyncio.sleep(self.config.retry.proxy_poll_interval_seconds)
        return None

    async def initialize_proxy(self) -> str:
        logger.info("Registering proxy for %s", self.chain.account)
        self.state = ProxyState.REGISTERING
        try:
            estimate = await self.gas.estimate(
                lambda: self.chain.estimate_gas(self.registry, PROXY_REGISTRY_ABI, "registerProxy"),
                self.config.gas_limits.register_proxy,
                label="registerProxy",
            )
            await self.chain.send(
                self.registry, PROXY_REGISTRY_ABI, "registerProxy", gas=estimate.limit
            )
        except Exception:
            self.state = ProxyState.NO_PROXY
            raise

        failure: Optional[TransientRpcError] = None
        try:
            proxy = await self.get_proxy(retries=self.config.retry.proxy_poll_retries)
        except TransientRpcError as exc:
            proxy, failure = None, exc
        if not proxy:
            self.state = ProxyState.NO_PROXY
            logger.error("Proxy registration confirmed but no proxy found for %s", self.chain.account)
            raise ProxyInitializationFailed(
                "Failed to initialize your account :( Please restart your wallet and try again!"
            ) from failure
        logger.info("Proxy %s registered for %s", proxy, self.chain.account)
        return proxy

    async def ensure_proxy(self) -> str:
        if self.state is ProxyState.HAS_PROXY and self.proxy_address:
            return self.proxy_address
        return await self.get_proxy() or await self.initialize_proxy()

    async def get_asset_balance(self, account: str, asset: Asset) -> int:
        """Units of ``asset`` held by ``account``, retrying transient read failures."""
        schema = get_schema(asset.schema_name)
        if schema.ownership_check is OwnershipCheck.NONE:
            raise UnsupportedAssetSchema("Missing ownership schema for this asset type")
        account = normalize_address(account)
        retries = self.config.retry.ownership_retries

        for attempt in range(retries + 1):
            try:
                if schema.ownership_check is OwnershipCheck.BALANCE_OF:
                    return int(
                        await self.chain.call(
                            asset.contract_address, ERC1155_ABI, "balanceOf", account, asset.token_id
                        )
                    )
                owner = await self.chain.call(
                    asset.contract_address, ERC721_ABI, "ownerOf", asset.token_id
                )
                return 1 if owner and owner.lower() == account else 0
            except ContractCallReverted:
                # ownerOf reverts for tokens that do not exist.
                return 0
            except TransientRpcError as exc:
                if attempt < retries:
                    logger.warning("Ownership read for %s failed, retrying: %s", asset.contract_address, exc)
                    await asyncio.sleep(self.config.retry.ownership_retry_delay_seconds)
                    continue
                logger.error("Ownership read for %s failed after %d attempts", asset.contract_address, attempt + 1)
                raise OwnershipError("Unable to get current owner from smart contract") from exc
        raise AssertionError("unreachable")  # pragma: no cover

    async def owns_asset_on_chain(
        self,
        account: str,
        asset: Asset,
        proxy: Optional[str] = None,
    ) -> bool:
        """The account or its proxy holds at least ``asset.quantity`` units."""
        if await self.get_asset_balance(account, asset) >= asset.quantity:
            return True
        proxy = proxy or await self.get_proxy(account)
        if proxy:
            return await self.get_asset_balance(proxy, asset) >= asset.quantity
        return False

    async def _is_approved_for_all(self, token: str, abi: ABI, account: str, proxy: str) -> bool:
        retries = self.config.retry.ownership_retries
        for attempt in range(retries + 1):
            try:
                return bool(await self.chain.call(token, abi, "isApprovedForAll", account, proxy))
            except ContractCallReverted as exc:
                raise ApprovalError(
                    f"Couldn't read approvals from {token}. Its contract might not be "
                    "implemented correctly. Please contact the developer!"
                ) from exc
            except TransientRpcError as exc:
                if attempt < retries:
                    logger.warning("Approval read for %s failed, retrying: %s", token, exc)
                    await asyncio.sleep(self.config.retry.ownership_retry_delay_seconds)
                    continue
                logger.error("Approval read for %s failed after %d attempts", token, attempt + 1)
                raise ApprovalError(f"Unable to check approvals on {token}. Please try again later.") from exc
        raise AssertionError("unreachable")  # pragma: no cover

    async def approve_token(
        self,
        asset: Asset,
        proxy: str,
        ledger: Optional[ApprovalLedger] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Approve ``proxy`` for every token of the asset's contract.

        Returns the receipt when a transaction was sent, ``None`` when the
        contract was already approved.
        """
        ledger = ledger or ApprovalLedger()
        schema = get_schema(asset.schema_name)
        if not schema.supports_approve_all:
            raise UnsupportedAssetSchema(f"{schema.name.value} assets cannot be approved for all")
        abi = token_abi(schema)
        account = self.chain.account
        token = asset.contract_address

        async with ledger.lock_for(token):
            if ledger.is_approved(token):
                return None
            if await self._is_approved_for_all(token, abi, account, proxy):
                logger.debug("Proxy %s already approved for %s", proxy, token)
                ledger.mark_approved(token)
                return None

            try:
                estimate = await self.gas.estimate(
                    lambda: self.chain.estimate_gas(token, abi, "setApprovalForAll", proxy, True),
                    self.config.gas_limits.set_approval_for_all,
                    label="setApprovalForAll",
                )
                receipt = await self.chain.send(
                    token, abi, "setApprovalForAll", proxy, True, gas=estimate.limit
                )
            except (TransactionFailed, TransactionWillRevert, ContractCallReverted) as exc:
                raise ApprovalError(
                    "Couldn't get permission to approve these tokens for trading. Their contract "
                    "might not be implemented correctly. Please contact the developer!"
                ) from exc

            if not await self._is_approved_for_all(token, abi, account, proxy):
                raise ApprovalError(
                    f"Approval of {token} for proxy {proxy} was confirmed but is not in effect."
                )
            ledger.mark_approved(token)
            logger.info("Approved proxy %s for all tokens of %s", proxy, token)
            return receipt

    async def _approve_one(self, asset: Asset, proxy: str, ledger: ApprovalLedger) -> Optional[Dict[str, Any]]:
        account = self.chain.account
        try:
            is_owner = await self.owns_asset_on_chain(account, asset, proxy)
        except UnsupportedAssetSchema as exc:
            logger.warning(
                "Skipping ownership check for %s #%s: %s", asset.contract_address, asset.token_id, exc
            )
            is_owner = True
        if not is_owner:
            logger.error(
                "Failed on-chain ownership check: %s on %s #%s",
                account,
                asset.contract_address,
                asset.token_id,
            )
            raise OwnershipError(
                f"You don't own enough to do that ({asset.quantity} base units of "
                f"{asset.contract_address} token {asset.token_id})"
            )
        return await self.approve_token(asset, proxy, ledger)

    async def approve_all(
        self,
        assets: Sequence[Asset],
        proxy: Optional[str] = None,
        ledger: Optional[ApprovalLedger] = None,
    ) -> List[Optional[Dict[str, Any]]]:
        """
        Verify ownership of each asset and approve its contract once.

        Every approval runs to completion before the first failure, if any,
        is raised.
        """
        proxy = proxy or await self.ensure_proxy()
        ledger = ledger or ApprovalLedger()
        results = await asyncio.gather(
            *(self._approve_one(asset, proxy, ledger) for asset in assets),
            return_exceptions=True,
        )
        failures = [result for result in results if isinstance(result, BaseException)]
        if failures:
            if len(failures) > 1:
                logger.warning("%d of %d approvals failed", len(failures), len(results))
            raise failures[0]
        return list(results)

    async def approve_fungible_token(
        self,
        token_address: str,
        minimum_amount: int,
        spender: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """Make sure the payment proxy may spend ``minimum_amount`` of an ERC-20."""
        spender = spender or self.config.token_transfer_proxy
        account = self.chain.account
        allowance = int(await self.chain.call(token_address, ERC20_ABI, "allowance", account, spender))
        if allowance >= minimum_amount:
            logger.debug("Allowance of %s already covers %d", token_address, minimum_amount)
            return None

        logger.info("Approving %s for the token transfer proxy", token_address)
        estimate = await self.gas.estimate(
            lambda: self.chain.estimate_gas(token_address, ERC20_ABI, "approve", spender, MAX_UINT256),
            self.config.gas_limits.approve_fungible,
            label="approve",
        )
        try:
            return await self.chain.send(
                token_address, ERC20_ABI, "approve", spender, MAX_UINT256, gas=estimate.limit
            )
        except TransactionFailed as exc:
            raise ApprovalError(f"Failed to approve {token_address} for trading.") from exc

    async def estimate_proxy_fees(self) -> int:
        if await self.get_proxy():
            return 0
        estimate = await self.gas.estimate(
            lambda: self.chain.estimate_gas(self.registry, PROXY_REGISTRY_ABI, "registerProxy"),
            self.config.gas_limits.register_proxy,
            label="registerProxy",
        )
        return estimate.limit

    async def estimate_approval_fees(self, order: UnhashedOrder) -> int:
        proxy = await self.get_proxy()
        if not proxy:
            return self.config.gas_limits.approval_when_no_proxy
        schema = get_schema(order.metadata.schema if order.metadata else None)
        abi = token_abi(schema)
        if await self.chain.call(order.target, abi, "isApprovedForAll", self.chain.account, proxy):
            return 0
        estimate = await self.gas.estimate(
            lambda: self.chain.estimate_gas(order.target, abi, "setApprovalForAll", proxy, True),
            self.config.gas_limits.set_approval_for_all,
            label="setApprovalForAll",
        )
        return estimate.limit

    async def estimate_payment_approval_fees(self, order: UnhashedOrder) -> int:
        if order.payment_token == NULL_ADDRESS:
            return 0
        spender = self.config.token_transfer_proxy
        allowance = int(
            await self.chain.call(order.payment_token, ERC20_ABI, "allowance", order.maker, spender)
        )
        if allowance >= order.base_price:
            return 0
        estimate = await self.gas.estimate(
            lambda: self.chain.estimate_gas(order.payment_token, ERC20_ABI, "approve", spender, MAX_UINT256),
            self.config.gas_limits.payment_approval,
            label="approve",
        )
        return estimate.limit


__all__ = [
    "ApprovalLedger",
    "ProxyManager",
    "ProxyState",
    "token_abi",
]
