"""Order authorization: off-chain signatures, or on-chain approval for contract wallets."""

from __future__ import annotations

import logging
import secrets
from typing import TYPE_CHECKING, Any, Dict, Optional, Union

from .errors import AuthorizationDeclined, OrderValidationError
from .orders import ECSignature, HashedOrder, SignedOrder, UnhashedOrder

if TYPE_CHECKING:  # pragma: no cover
    from .config import EngineConfig
    from .connectors.chain import ChainClient
    from .connectors.exchange import ExchangeContract
    from .connectors.signer import Signer
    from .gas import GasEstimator

logger = logging.getLogger(__name__)

SALT_BITS = 256


def generate_pseudo_random_salt() -> int:
    """Random 256-bit salt; it only keeps identical orders from sharing a hash."""
    return secrets.randbits(SALT_BITS)


def split_signature(signature: bytes) -> ECSignature:
    """Split a 65-byte ``r || s || v`` signature, normalizing ``v`` to 27/28."""
    signature = bytes(signature)
    if len(signature) != 65:
        raise OrderValidationError(f"Signature must be 65 bytes, got {len(signature)}")
    v = signature[64]
    if v < 27:
        v += 27
    return ECSignature(v=v, r=signature[:32], s=signature[32:64])


async def sign_order_hash(signer: "Signer", order_hash: bytes) -> ECSignature:
    try:
        raw = await signer.sign_message(order_hash)
    except Exception as exc:
        raise AuthorizationDeclined(f"Signer declined to sign order 0x{order_hash.hex()}: {exc}") from exc
    return split_signature(raw)


async def is_contract_address(chain: "ChainClient", address: str) -> bool:
    return len(await chain.get_code(address)) > 0


class Authorizer:
    """Authorizes orders for the chain client's account."""

    def __init__(
        self,
        chain: "ChainClient",
        exchange: "ExchangeContract",
        gas: "GasEstimator",
        config: "EngineConfig",
    ) -> None:
        self.chain = chain
        self.exchange = exchange
        self.gas = gas
        self.config = config

    async def approve_order(self, order: UnhashedOrder) -> Dict[str, Any]:
        """Approve ``order`` on-chain instead of signing it, and list it in the order book."""
        estimate = await self.gas.estimate(
            lambda: self.exchange.estimate_approve_order(order),
            self.config.gas_limits.approve_order,
            label="approveOrder_",
        )
        receipt = await self.exchange.approve_order(order, gas=estimate.limit)
        logger.info("Order by %s approved on-chain", order.maker)
        return receipt

    async def authorize_order(self, order: HashedOrder) -> Optional[ECSignature]:
        """
        Signature over the order hash, or ``None`` when the maker is a contract.

        Contract wallets cannot produce an ECDSA signature, so their orders
        are approved through ``approveOrder_`` and carry the null signature.
        """
        if await is_contract_address(self.chain, order.maker):
            logger.info("Maker %s is a contract; approving order on-chain", order.maker)
            await self.approve_order(order)
            return None
        if self.chain.signer is None:
            raise AuthorizationDeclined("No signer is available to authorize the order")
        return await sign_order_hash(self.chain.signer, order.hash)

    async def sign_order(self, order: HashedOrder) -> Union[HashedOrder, SignedOrder]:
        signature = await self.authorize_order(order)
        if signature is None:
            return order
        return order.with_signature(signature)


__all__ = [
    "Authorizer",
    "generate_pseudo_random_salt",
    "is_contract_address",
    "sign_order_hash",
    "split_signature",
]
