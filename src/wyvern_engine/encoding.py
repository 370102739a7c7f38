"""Calldata and replacement-pattern encoding for asset transfers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Sequence

from eth_abi import encode as abi_encode

from .errors import AmbiguousReplacementTarget, UnsupportedDynamicReplacement
from .orders import Asset
from .schemas import FunctionInput, InputKind, Schema, TransferFunction

logger = logging.getLogger(__name__)

METHOD_ID_BYTES = 4
WORD_BYTES = 32


@dataclass(frozen=True)
class EncodedTransfer:
    calldata: bytes
    replacement_pattern: bytes
    target: str


def encode_call(transfer: TransferFunction, parameters: Sequence[Any]) -> bytes:
    """Method selector followed by the ABI-encoded arguments."""
    return transfer.selector + abi_encode(transfer.types, list(parameters))


def _input_value(item: FunctionInput) -> Any:
    return item.value if item.value is not None else item.type.default


def encode_replacement_pattern(
    transfer: TransferFunction,
    replace_kind: InputKind = InputKind.REPLACEABLE,
) -> bytes:
    """
    Build the byte mask marking which calldata bytes a counter-order may overwrite.

    The mask mirrors the ABI layout of ``encode_call``: the 4 selector bytes are
    zero, each head word is ``0xff`` when its input has ``replace_kind`` and
    ``0x00`` otherwise, and the tails of dynamic inputs follow all heads as zero
    bytes.
    """
    heads: List[bytes] = []
    tails: List[bytes] = []
    for item in transfer.inputs:
        bitmask = 0xFF if item.kind is replace_kind else 0x00
        if item.type.is_dynamic:
            if bitmask:
                raise UnsupportedDynamicReplacement(
                    f"Replacement is not supported for dynamic parameter '{item.name}' "
                    f"({item.type.value}) of {transfer.signature}."
                )
            encoded = abi_encode([item.type.value], [_input_value(item)])
            heads.append(bytes(WORD_BYTES))
            tails.append(bytes(len(encoded) - WORD_BYTES))
            continue
        heads.append(bytes([bitmask]) * WORD_BYTES)
    return bytes(METHOD_ID_BYTES) + b"".join(heads) + b"".join(tails)


def encode_default_call(transfer: TransferFunction, owner_address: str) -> bytes:
    parameters = []
    for item in transfer.inputs:
        if item.kind is InputKind.REPLACEABLE:
            parameters.append(item.type.default)
        elif item.kind is InputKind.OWNER:
            parameters.append(owner_address)
        else:
            parameters.append(_input_value(item))
    return encode_call(transfer, parameters)


def encode_sell(schema: Schema, asset: Asset, address: str) -> EncodedTransfer:
    """Transfer out of ``address``; the destination is left for the buyer to fill."""
    transfer = schema.transfer_function(asset)
    return EncodedTransfer(
        calldata=encode_default_call(transfer, address),
        replacement_pattern=encode_replacement_pattern(transfer, InputKind.REPLACEABLE),
        target=transfer.target,
    )


def encode_buy(schema: Schema, asset: Asset, address: str) -> EncodedTransfer:
    """Transfer into ``address``; the owner slot is left for the seller to fill."""
    transfer = schema.transfer_function(asset)
    replaceables = transfer.inputs_of_kind(InputKind.REPLACEABLE)
    if len(replaceables) != 1:
        raise AmbiguousReplacementTarget(
            f"Only 1 input can match transfer destination, but instead {len(replaceables)} did"
        )

    parameters = []
    for item in transfer.inputs:
        if item.kind is InputKind.REPLACEABLE:
            parameters.append(address)
        elif item.kind is InputKind.OWNER:
            parameters.append(item.type.default)
        else:
            parameters.append(_input_value(item))
    calldata = encode_call(transfer, parameters)

    if transfer.inputs_of_kind(InputKind.OWNER):
        replacement_pattern = encode_replacement_pattern(transfer, InputKind.OWNER)
    else:
        replacement_pattern = bytes(len(calldata))

    return EncodedTransfer(
        calldata=calldata,
        replacement_pattern=replacement_pattern,
        target=transfer.target,
    )


def guarded_array_replace(array: bytes, desired: bytes, mask: bytes) -> bytes:
    """Overwrite the bytes of ``array`` selected by ``mask`` with ``desired``."""
    if not (len(array) == len(desired) == len(mask)):
        raise ValueError("Array, desired and mask must have equal lengths")
    return bytes((a & ~m & 0xFF) | (d & m) for a, d, m in zip(array, desired, mask))


def calldata_can_match(
    buy_calldata: bytes,
    buy_replacement_pattern: bytes,
    sell_calldata: bytes,
    sell_replacement_pattern: bytes,
) -> bool:
    """Local evaluation of the exchange's ``orderCalldataCanMatch``."""
    if len(buy_calldata) != len(sell_calldata):
        return False
    try:
        if buy_replacement_pattern:
            buy_calldata = guarded_array_replace(buy_calldata, sell_calldata, buy_replacement_pattern)
        if sell_replacement_pattern:
            sell_calldata = guarded_array_replace(sell_calldata, buy_calldata, sell_replacement_pattern)
    except ValueError:
        logger.debug("Replacement pattern length differs from calldata length")
        return False
    return buy_calldata == sell_calldata


def iter_replaceable_ranges(pattern: bytes) -> Iterable[range]:
    """Contiguous byte ranges marked replaceable in ``pattern``."""
    start = None
    for index, value in enumerate(pattern):
        if value and start is None:
            start = index
        elif not value and start is not None:
            yield range(start, index)
            start = None
    if start is not None:
        yield range(start, len(pattern))


__all__ = [
    "EncodedTransfer",
    "calldata_can_match",
    "encode_buy",
    "encode_call",
    "encode_default_call",
    "encode_replacement_pattern",
    "encode_sell",
    "guarded_array_replace",
    "iter_replaceable_ranges",
]
