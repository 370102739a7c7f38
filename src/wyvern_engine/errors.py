"""Exception hierarchy shared across the order engine."""

from __future__ import annotations


class WyvernError(Exception):
    """Base class for every error raised by the engine."""


class ConfigError(WyvernError, ValueError):
    """Raised when configuration values are malformed."""


class ConfigNotFoundError(WyvernError, FileNotFoundError):
    """Raised when an expected configuration file is missing."""


class OrderValidationError(WyvernError, ValueError):
    """Bad timing, price or fee parameters, rejected before any chain call."""


class InvalidFeeRange(OrderValidationError):
    """Buyer or seller fee total outside ``[0, 10000]`` basis points."""


class BountyExceedsCap(OrderValidationError):
    """Seller bounty plus the marketplace bounty exceeds the asset's maximum."""


class UnsupportedAssetSchema(WyvernError):
    """The asset's token standard has no encoding or ownership support."""


class UnsupportedDynamicReplacement(WyvernError):
    """A replaceable calldata parameter has a dynamic ABI type."""


class AmbiguousReplacementTarget(WyvernError):
    """A buy-side transfer does not have exactly one replaceable destination."""


class OwnershipError(WyvernError):
    """The account does not hold enough of the asset."""


class InsufficientBalance(OwnershipError):
    """The account's payment-token balance is below the order price."""


class ApprovalError(WyvernError):
    """An approval transaction failed or the token contract is non-compliant."""


class ProxyInitializationFailed(ApprovalError):
    """The proxy registration confirmed but no proxy address could be resolved."""


class AuthorizationDeclined(WyvernError):
    """The signer refused to authorize an order. The caller may retry."""


class InvalidOrder(WyvernError):
    """The exchange contract reports an order as invalid."""


class OrdersIncompatible(WyvernError):
    """A buy/sell pair cannot be matched."""


class GasEstimationFailure(WyvernError):
    """Gas estimation failed; the caller falls back to a static limit."""


class TransactionWillRevert(WyvernError):
    """Gas estimation shows the transaction would revert on-chain."""


class TransientRpcError(WyvernError):
    """Node or transport failure that may succeed when retried."""


class ContractCallReverted(WyvernError):
    """A contract call or estimate reverted during execution."""


class TransactionFailed(WyvernError):
    """A submitted transaction reverted or was never confirmed."""


__all__ = [
    "AmbiguousReplacementTarget",
    "ApprovalError",
    "AuthorizationDeclined",
    "BountyExceedsCap",
    "ConfigError",
    "ConfigNotFoundError",
    "ContractCallReverted",
    "GasEstimationFailure",
    "InsufficientBalance",
    "InvalidFeeRange",
    "InvalidOrder",
    "OrderValidationError",
    "OrdersIncompatible",
    "OwnershipError",
    "ProxyInitializationFailed",
    "TransactionFailed",
    "TransactionWillRevert",
    "TransientRpcError",
    "UnsupportedAssetSchema",
    "UnsupportedDynamicReplacement",
    "WyvernError",
]
