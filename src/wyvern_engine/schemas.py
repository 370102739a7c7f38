"""Token-standard schemas describing how an asset transfer is encoded.

Every supported schema exposes the same capability surface:

* ``transfer_function(asset)`` returns the annotated transfer call whose
  inputs are tagged as owner, asset or replaceable slots,
* ``supports_approve_all`` tells the proxy manager whether a single
  ``setApprovalForAll`` covers every token of the contract,
* ``ownership_check`` selects the read used to verify holdings.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple, Union

from eth_utils import function_signature_to_4byte_selector

from .constants import NULL_ADDRESS
from .errors import UnsupportedAssetSchema

if TYPE_CHECKING:  # pragma: no cover
    from .orders import Asset


class SolidityType(str, Enum):
    """Elementary ABI types that can appear in a transfer call."""

    ADDRESS = "address"
    BYTES20 = "bytes20"
    BYTES32 = "bytes32"
    BOOL = "bool"
    UINT8 = "uint8"
    UINT16 = "uint16"
    UINT32 = "uint32"
    UINT64 = "uint64"
    UINT256 = "uint256"
    BYTES = "bytes"
    STRING = "string"

    @property
    def is_dynamic(self) -> bool:
        return self in (SolidityType.BYTES, SolidityType.STRING)

    @property
    def default(self) -> Any:
        return _DEFAULT_VALUES[self]


# The null address is used instead of a random placeholder: the exchange
# merges calldata with a bitwise replace, so placeholder bytes must be zero.
_DEFAULT_VALUES: Dict[SolidityType, Any] = {
    SolidityType.ADDRESS: NULL_ADDRESS,
    SolidityType.BYTES20: b"\x00" * 20,
    SolidityType.BYTES32: b"\x00" * 32,
    SolidityType.BOOL: False,
    SolidityType.UINT8: 0,
    SolidityType.UINT16: 0,
    SolidityType.UINT32: 0,
    SolidityType.UINT64: 0,
    SolidityType.UINT256: 0,
    SolidityType.BYTES: b"",
    SolidityType.STRING: "",
}


class InputKind(Enum):
    """Role of a transfer input when building sell and buy calldata."""

    OWNER = "owner"
    ASSET = "asset"
    REPLACEABLE = "replaceable"


class OwnershipCheck(Enum):
    OWNER_OF = "ownerOf"
    BALANCE_OF = "balanceOf"
    NONE = "none"


class SchemaName(str, Enum):
    ERC721 = "ERC721"
    ERC721V3 = "ERC721v3"
    ERC1155 = "ERC1155"
    LEGACY_ENJIN = "LegacyEnjin"


@dataclass(frozen=True)
class FunctionInput:
    name: str
    type: SolidityType
    kind: InputKind
    value: Any = None


@dataclass(frozen=True)
class TransferFunction:
    """A contract call with role-tagged inputs."""

    name: str
    target: str
    inputs: Tuple[FunctionInput, ...]

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(item.type.value for item in self.inputs)})"

    @property
    def selector(self) -> bytes:
        return function_signature_to_4byte_selector(self.signature)

    @property
    def types(self) -> list[str]:
        return [item.type.value for item in self.inputs]

    def inputs_of_kind(self, kind: InputKind) -> list[FunctionInput]:
        return [item for item in self.inputs if item.kind is kind]


class Schema(ABC):
    """Capability interface implemented by every supported token standard."""

    name: SchemaName
    supports_approve_all: bool = True
    ownership_check: OwnershipCheck = OwnershipCheck.NONE

    @abstractmethod
    def transfer_function(self, asset: "Asset") -> TransferFunction:
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name.value})"


class ERC721Schema(Schema):
    name = SchemaName.ERC721
    ownership_check = OwnershipCheck.OWNER_OF

    def transfer_function(self, asset: "Asset") -> TransferFunction:
        return TransferFunction(
            name="transferFrom",
            target=asset.contract_address,
            inputs=(
                FunctionInput("_from", SolidityType.ADDRESS, InputKind.OWNER),
                FunctionInput("_to", SolidityType.ADDRESS, InputKind.REPLACEABLE),
                FunctionInput("_tokenId", SolidityType.UINT256, InputKind.ASSET, asset.token_id),
            ),
        )


class ERC721v3Schema(ERC721Schema):
    name = SchemaName.ERC721V3

    def transfer_function(self, asset: "Asset") -> TransferFunction:
        base = super().transfer_function(asset)
        return TransferFunction(name="safeTransferFrom", target=base.target, inputs=base.inputs)


class ERC1155Schema(Schema):
    name = SchemaName.ERC1155
    ownership_check = OwnershipCheck.BALANCE_OF

    def transfer_function(self, asset: "Asset") -> TransferFunction:
        return TransferFunction(
            name="safeTransferFrom",
            target=asset.contract_address,
            inputs=(
                FunctionInput("_from", SolidityType.ADDRESS, InputKind.OWNER),
                FunctionInput("_to", SolidityType.ADDRESS, InputKind.REPLACEABLE),
                FunctionInput("_id", SolidityType.UINT256, InputKind.ASSET, asset.token_id),
                FunctionInput("_value", SolidityType.UINT256, InputKind.ASSET, asset.quantity),
                FunctionInput("_data", SolidityType.BYTES, InputKind.ASSET, b""),
            ),
        )


class LegacyEnjinSchema(ERC1155Schema):
    """Enjin multi-tokens predating ERC-1155: same transfer, no balance read."""

    name = SchemaName.LEGACY_ENJIN
    ownership_check = OwnershipCheck.NONE


_SCHEMAS: Dict[SchemaName, Schema] = {
    schema.name: schema
    for schema in (ERC721Schema(), ERC721v3Schema(), ERC1155Schema(), LegacyEnjinSchema())
}


def get_schema(name: Optional[Union[SchemaName, str]] = None) -> Schema:
    """Resolve a schema by name, defaulting to ERC-721."""
    if name is None:
        return _SCHEMAS[SchemaName.ERC721]
    try:
        key = SchemaName(name)
    except ValueError as exc:
        raise UnsupportedAssetSchema(
            f"Trading for this asset ({name}) is not yet supported. "
            "Please contact us or check back later!"
        ) from exc
    return _SCHEMAS[key]


__all__ = [
    "ERC1155Schema",
    "ERC721Schema",
    "ERC721v3Schema",
    "FunctionInput",
    "InputKind",
    "LegacyEnjinSchema",
    "OwnershipCheck",
    "Schema",
    "SchemaName",
    "SolidityType",
    "TransferFunction",
    "get_schema",
]
