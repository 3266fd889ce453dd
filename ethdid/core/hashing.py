"""
ethdid/core/hashing.py

Canonical Hash Function — EIP-712.

    digest     = keccak256(0x19 || 0x01 || domainSeparator || hashStruct(message))
    hashStruct = keccak256(typeHash || encodeData)
    typeHash   = keccak256(encodeType)

encodeType lists the primary type first, then every record type it
references in name order. Element types with no definition (the
"undefined" of an empty array) are not dependencies: they appear in the
field's type string and nowhere else.

encodeData, per field:
    record            → hashStruct(value)
    T[]               → keccak256(concat(encodeData(T, item)))   ([] → keccak256(""))
    string / bytes    → keccak256(value)
    bool / address /
    int256 / uint256  → ABI-encoded 32-byte word

The result is wrapped in an eth_account SignableMessage, so signing and
recovery go through eth_account unchanged.
"""

from typing import Any, Dict, Set, Tuple

from eth_abi import encode
from eth_account.messages import SignableMessage
from eth_utils import keccak, to_checksum_address

from ethdid.core.exceptions import ValidationError
from ethdid.core.typed_data import (
    DOMAIN_FIELDS,
    EIP712_DOMAIN_TYPE,
    FieldDescriptor,
    TypedData,
    array_element_type,
    base_type,
)

Types = Dict[str, Tuple[FieldDescriptor, ...]]

_DOMAIN_TYPES: Types = {EIP712_DOMAIN_TYPE: DOMAIN_FIELDS}

_WORD_TYPES = frozenset({"bool", "int256", "uint256"})


# ─────────────────────────────────────────────────────────────
# Type encoding
# ─────────────────────────────────────────────────────────────

def _collect_dependencies(type_tag: str, types: Types, found: Set[str]) -> None:
    name = base_type(type_tag)
    if name in found or name not in types:
        return
    found.add(name)
    for f in types[name]:
        _collect_dependencies(f.type, types, found)


def encode_type(primary_type: str, types: Types) -> str:
    """EIP-712 encodeType, e.g. 'Mail(Person from,string body)Person(string name)'."""
    found: Set[str] = set()
    _collect_dependencies(primary_type, types, found)
    found.discard(primary_type)

    return "".join(
        f"{name}({','.join(f'{f.type} {f.name}' for f in types[name])})"
        for name in [primary_type] + sorted(found)
    )


def type_hash(primary_type: str, types: Types) -> bytes:
    return keccak(text=encode_type(primary_type, types))


# ─────────────────────────────────────────────────────────────
# Data encoding
# ─────────────────────────────────────────────────────────────

def _encode_field(type_tag: str, value: Any, types: Types) -> bytes:
    if type_tag in types:
        return hash_struct(type_tag, value, types)

    if type_tag.endswith("[]"):
        inner = array_element_type(type_tag)
        return keccak(b"".join(_encode_field(inner, item, types) for item in value))

    if type_tag == "string":
        return keccak(text=value)
    if type_tag == "bytes":
        return keccak(bytes(value))
    if type_tag == "address":
        return encode(["address"], [to_checksum_address(value)])
    if type_tag in _WORD_TYPES:
        return encode([type_tag], [value])

    raise ValidationError(
        f"Cannot encode a value of type '{type_tag}'",
        {"value": repr(value)[:64]},
    )


def hash_struct(type_name: str, data: Dict[str, Any], types: Types) -> bytes:
    encoded = b"".join(
        _encode_field(f.type, data[f.name], types) for f in types[type_name]
    )
    return keccak(type_hash(type_name, types) + encoded)


def domain_separator(domain_name: str) -> bytes:
    return hash_struct(EIP712_DOMAIN_TYPE, {"name": domain_name}, _DOMAIN_TYPES)


# ─────────────────────────────────────────────────────────────
# Public API
# ─────────────────────────────────────────────────────────────

def encode_typed_data_message(typed_data: TypedData) -> SignableMessage:
    """EIP-191 version 0x01 signable message for typed_data."""
    return SignableMessage(
        version=b"\x01",
        header=domain_separator(typed_data.domain_name),
        body=hash_struct(typed_data.primary_type, typed_data.message, typed_data.types),
    )


def compute_typed_data_hash(typed_data: TypedData) -> bytes:
    """
    The 32-byte digest that is actually signed.

    Identical to the message hash eth_account signs for the same
    SignableMessage.
    """
    signable = encode_typed_data_message(typed_data)
    return keccak(b"\x19" + signable.version + signable.header + signable.body)
