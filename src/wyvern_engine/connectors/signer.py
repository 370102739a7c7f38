"""Signing capability injected into the engine."""

from __future__ import annotations

from typing import Any, Dict, Protocol, runtime_checkable

from eth_account import Account
from eth_account.messages import encode_defunct


@runtime_checkable
class Signer(Protocol):
    """Anything that can sign order hashes and transactions for one account."""

    @property
    def address(self) -> str:
        ...

    async def sign_message(self, message_hash: bytes) -> bytes:
        """Personal-sign the raw 32-byte hash; returns the 65-byte ``r || s || v`` signature."""
        ...

    async def sign_transaction(self, transaction: Dict[str, Any]) -> bytes:
        """Return the raw signed transaction bytes."""
        ...


class LocalAccountSigner:
    """Signer backed by a private key held in process."""

    def __init__(self, private_key: str) -> None:
        self._account = Account.from_key(private_key)

    @property
    def address(self) -> str:
        return self._account.address.lower()

    async def sign_message(self, message_hash: bytes) -> bytes:
        signed = self._account.sign_message(encode_defunct(primitive=bytes(message_hash)))
        return bytes(signed.signature)

    async def sign_transaction(self, transaction: Dict[str, Any]) -> bytes:
        signed = self._account.sign_transaction(transaction)
        return bytes(signed.raw_transaction)


__all__ = ["LocalAccountSigner", "Signer"]
