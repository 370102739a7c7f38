"""Async JSON-RPC access to the chain, with web3 errors translated at the boundary."""

from __future__ import annotations

import asyncio
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional, Sequence

import aiohttp
from eth_utils import is_hex_address, to_checksum_address
from hexbytes import HexBytes
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import (
    BadFunctionCallOutput,
    ContractLogicError,
    ProviderConnectionError,
    TimeExhausted,
    Web3RPCError,
)

from ..errors import (
    ApprovalError,
    AuthorizationDeclined,
    ContractCallReverted,
    TransactionFailed,
    TransientRpcError,
)
from .abis import ABI
from .signer import Signer

logger = logging.getLogger(__name__)


def _checksum_args(value: Any) -> Any:
    """Checksum every address argument; web3 rejects lowercase addresses."""
    if isinstance(value, str) and is_hex_address(value):
        return to_checksum_address(value)
    if isinstance(value, (list, tuple)):
        return [_checksum_args(item) for item in value]
    return value


@contextmanager
def _translate_errors(label: str) -> Iterator[None]:
    try:
        yield
    except ContractLogicError as exc:
        raise ContractCallReverted(f"{label} reverted: {exc}") from exc
    except BadFunctionCallOutput as exc:
        raise TransientRpcError(
            f"{label} returned no data. Is the node connected to the right network?"
        ) from exc
    except TimeExhausted as exc:
        raise TransactionFailed(f"{label} was not confirmed in time: {exc}") from exc
    except (Web3RPCError, ProviderConnectionError, aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
        raise TransientRpcError(f"{label} failed: {exc}") from exc


class ChainClient:
    """Contract reads, gas estimates and signed sends for one account."""

    def __init__(
        self,
        web3: AsyncWeb3,
        signer: Optional[Signer] = None,
        *,
        chain_id: Optional[int] = None,
        receipt_timeout_seconds: float = 120.0,
    ) -> None:
        self.web3 = web3
        self.signer = signer
        self.chain_id = chain_id
        self.receipt_timeout_seconds = receipt_timeout_seconds
        # Nonce lookup and submission must not interleave for one account.
        self._send_lock = asyncio.Lock()

    @classmethod
    def from_rpc_url(
        cls,
        rpc_url: str,
        signer: Optional[Signer] = None,
        *,
        chain_id: Optional[int] = None,
        receipt_timeout_seconds: float = 120.0,
    ) -> "ChainClient":
        web3 = AsyncWeb3(AsyncHTTPProvider(rpc_url))
        return cls(
            web3,
            signer,
            chain_id=chain_id,
            receipt_timeout_seconds=receipt_timeout_seconds,
        )

    @property
    def account(self) -> str:
        if self.signer is None:
            raise ApprovalError("No account is configured. Provide a private key to sign and send.")
        return self.signer.address.lower()

    def _function(self, address: str, abi: ABI, fn_name: str, args: Sequence[Any]):
        contract = self.web3.eth.contract(address=to_checksum_address(address), abi=abi)
        return contract.get_function_by_name(fn_name)(*_checksum_args(list(args)))

    def _tx_params(self, value: int) -> Dict[str, Any]:
        params: Dict[str, Any] = {"value": int(value)}
        if self.signer is not None:
            params["from"] = to_checksum_address(self.account)
        return params

    async def call(self, address: str, abi: ABI, fn_name: str, *args: Any) -> Any:
        label = f"{fn_name} on {address}"
        with _translate_errors(label):
            result = await self._function(address, abi, fn_name, args).call(self._tx_params(0))
        if isinstance(result, str) and is_hex_address(result):
            return result.lower()
        return result

    async def estimate_gas(
        self,
        address: str,
        abi: ABI,
        fn_name: str,
        *args: Any,
        value: int = 0,
    ) -> int:
        label = f"gas estimate for {fn_name} on {address}"
        with _translate_errors(label):
            return int(
                await self._function(address, abi, fn_name, args).estimate_gas(self._tx_params(value))
            )

    async def send(
        self,
        address: str,
        abi: ABI,
        fn_name: str,
        *args: Any,
        value: int = 0,
        gas: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Sign and submit a contract call, then wait for a successful receipt."""
        if self.signer is None:
            raise ApprovalError("No account is configured. Provide a private key to sign and send.")
        label = f"{fn_name} on {address}"
        params = self._tx_params(value)
        if gas is not None:
            params["gas"] = int(gas)
        if self.chain_id is not None:
            params["chainId"] = self.chain_id

        async with self._send_lock:
            with _translate_errors(label):
                params["nonce"] = await self.web3.eth.get_transaction_count(params["from"], "pending")
                transaction = await self._function(address, abi, fn_name, args).build_transaction(params)
            try:
                raw = await self.signer.sign_transaction(dict(transaction))
            except Exception as exc:
                raise AuthorizationDeclined(f"Signer declined to sign {label}: {exc}") from exc
            with _translate_errors(label):
                tx_hash = await self.web3.eth.send_raw_transaction(raw)
        logger.info("Submitted %s: %s", label, HexBytes(tx_hash).to_0x_hex())

        with _translate_errors(label):
            receipt = await self.web3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.receipt_timeout_seconds
            )
        if receipt.get("status") != 1:
            raise TransactionFailed(f"{label} reverted in transaction {HexBytes(tx_hash).to_0x_hex()}")
        return dict(receipt)

    async def get_code(self, address: str) -> bytes:
        with _translate_errors(f"get_code for {address}"):
            return bytes(await self.web3.eth.get_code(to_checksum_address(address)))


__all__ = ["ChainClient"]
