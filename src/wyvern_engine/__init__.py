"""Order construction, authorization and settlement against a Wyvern v2 exchange."""

from .authorizer import Authorizer
from .builder import (
    assign_orders_to_sides,
    build_buy_order,
    build_matching_order,
    build_sell_order,
)
from .client import WyvernClient
from .config import EngineConfig, load_engine_config
from .encoding import calldata_can_match, encode_buy, encode_sell
from .errors import WyvernError
from .fees import compute_fees
from .gas import GasEstimator
from .hashing import get_order_hash, hash_order
from .matching import MatchEngine
from .orders import (
    Asset,
    ECSignature,
    FeeBreakdown,
    HashedOrder,
    OrderPair,
    OrderSide,
    SaleKind,
    SignedOrder,
    UnhashedOrder,
)
from .proxy import ProxyManager
from .schemas import SchemaName, get_schema

__all__ = [
    "Asset",
    "Authorizer",
    "ECSignature",
    "EngineConfig",
    "FeeBreakdown",
    "GasEstimator",
    "HashedOrder",
    "MatchEngine",
    "OrderPair",
    "OrderSide",
    "ProxyManager",
    "SaleKind",
    "SchemaName",
    "SignedOrder",
    "UnhashedOrder",
    "WyvernClient",
    "WyvernError",
    "assign_orders_to_sides",
    "build_buy_order",
    "build_matching_order",
    "build_sell_order",
    "calldata_can_match",
    "compute_fees",
    "encode_buy",
    "encode_sell",
    "get_order_hash",
    "get_schema",
    "hash_order",
    "load_engine_config",
]
