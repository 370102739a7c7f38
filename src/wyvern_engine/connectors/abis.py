"""ABI fragments for the contracts the engine talks to."""

from __future__ import annotations

from typing import Any, Dict, List

ABI = List[Dict[str, Any]]


def _io(name: str, type_: str) -> Dict[str, str]:
    return {"name": name, "type": type_}


def _fn(
    name: str,
    inputs: List[Dict[str, str]],
    outputs: List[Dict[str, str]],
    mutability: str = "view",
) -> Dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "inputs": inputs,
        "outputs": outputs,
        "stateMutability": mutability,
        "constant": mutability in ("view", "pure"),
        "payable": mutability == "payable",
    }


PROXY_REGISTRY_ABI: ABI = [
    _fn("proxies", [_io("", "address")], [_io("", "address")]),
    _fn("registerProxy", [], [_io("proxy", "address")], "nonpayable"),
]

ERC20_ABI: ABI = [
    _fn("balanceOf", [_io("owner", "address")], [_io("", "uint256")]),
    _fn("allowance", [_io("owner", "address"), _io("spender", "address")], [_io("", "uint256")]),
    _fn(
        "approve",
        [_io("spender", "address"), _io("value", "uint256")],
        [_io("", "bool")],
        "nonpayable",
    ),
]

_APPROVE_ALL: ABI = [
    _fn(
        "isApprovedForAll",
        [_io("owner", "address"), _io("operator", "address")],
        [_io("", "bool")],
    ),
    _fn(
        "setApprovalForAll",
        [_io("operator", "address"), _io("approved", "bool")],
        [],
        "nonpayable",
    ),
]

ERC721_ABI: ABI = [
    _fn("ownerOf", [_io("tokenId", "uint256")], [_io("", "address")]),
    *_APPROVE_ALL,
]

ERC1155_ABI: ABI = [
    _fn("balanceOf", [_io("account", "address"), _io("id", "uint256")], [_io("", "uint256")]),
    *_APPROVE_ALL,
]

_ORDER_INPUTS = [
    _io("addrs", "address[7]"),
    _io("uints", "uint256[9]"),
    _io("feeMethod", "uint8"),
    _io("side", "uint8"),
    _io("saleKind", "uint8"),
    _io("howToCall", "uint8"),
    _io("calldata", "bytes"),
    _io("replacementPattern", "bytes"),
    _io("staticExtradata", "bytes"),
]
_SIGNATURE_INPUTS = [_io("v", "uint8"), _io("r", "bytes32"), _io("s", "bytes32")]
_MATCH_INPUTS = [
    _io("addrs", "address[14]"),
    _io("uints", "uint256[18]"),
    _io("feeMethodsSidesKindsHowToCalls", "uint8[8]"),
    _io("calldataBuy", "bytes"),
    _io("calldataSell", "bytes"),
    _io("replacementPatternBuy", "bytes"),
    _io("replacementPatternSell", "bytes"),
    _io("staticExtradataBuy", "bytes"),
    _io("staticExtradataSell", "bytes"),
]

WYVERN_EXCHANGE_ABI: ABI = [
    _fn("validateOrderParameters_", list(_ORDER_INPUTS), [_io("", "bool")]),
    _fn("validateOrder_", _ORDER_INPUTS + _SIGNATURE_INPUTS, [_io("", "bool")]),
    _fn("ordersCanMatch_", list(_MATCH_INPUTS), [_io("", "bool")]),
    _fn(
        "orderCalldataCanMatch",
        [
            _io("buyCalldata", "bytes"),
            _io("buyReplacementPattern", "bytes"),
            _io("sellCalldata", "bytes"),
            _io("sellReplacementPattern", "bytes"),
        ],
        [_io("", "bool")],
        "pure",
    ),
    _fn(
        "atomicMatch_",
        _MATCH_INPUTS + [_io("vs", "uint8[2]"), _io("rssMetadata", "bytes32[5]")],
        [],
        "payable",
    ),
    _fn("cancelOrder_", _ORDER_INPUTS + _SIGNATURE_INPUTS, [], "nonpayable"),
    _fn(
        "approveOrder_",
        _ORDER_INPUTS + [_io("orderbookInclusionDesired", "bool")],
        [],
        "nonpayable",
    ),
]


__all__ = [
    "ERC1155_ABI",
    "ERC20_ABI",
    "ERC721_ABI",
    "PROXY_REGISTRY_ABI",
    "WYVERN_EXCHANGE_ABI",
]
