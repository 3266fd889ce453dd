"""
ethdid/core/kinds.py

Value Classifier.

classify(value) maps any Python value onto a closed set of Kinds.
Anything outside the set is Kind.UNSUPPORTED — the schema builder turns
that into UnsupportedTypeError, so no value is ever silently dropped.

Kind table:
    bool                                   → BOOL      (checked before int)
    str matching ADDRESS_RE                → ADDRESS
    str                                    → STRING
    UInt                                   → UINT
    int                                    → INT
    float                                  → FLOAT     (needs a float policy)
    bytes / bytearray / memoryview         → BYTES
    list / tuple                           → SEQUENCE
    Mapping                                → RECORD
    TypedRecord / dataclass / NamedTuple   → NAMED_RECORD
    anything else                          → UNSUPPORTED
"""

import dataclasses
import re
from collections.abc import Mapping
from enum import Enum
from typing import Any, Dict


# Canonical address literal: 0x + 20 bytes of hex, any letter case.
ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


class Kind(Enum):
    BOOL         = "bool"
    STRING       = "string"
    ADDRESS      = "address"
    INT          = "int"
    UINT         = "uint"
    FLOAT        = "float"
    BYTES        = "bytes"
    SEQUENCE     = "sequence"
    RECORD       = "record"
    NAMED_RECORD = "named_record"
    UNSUPPORTED  = "unsupported"


class UInt(int):
    """
    An integer whose source type is unsigned.

    Python has a single int type, so unsigned-ness has to be carried
    explicitly. UInt values are typed uint256; plain ints are int256.

    repr() stays int's: JSON encoders emit it verbatim.
    """

    def __new__(cls, value=0):
        obj = super().__new__(cls, value)
        if obj < 0:
            raise ValueError(f"UInt cannot be negative: {int(obj)}")
        return obj


class TypedRecord:
    """
    Explicit serialization contract for fixed-shape records.

    Subclasses return their members as a mapping of field name to value.
    Field names are used verbatim as EIP-712 field names.
    """

    def to_typed_record(self) -> Mapping:
        raise NotImplementedError


def _is_named_tuple(value: Any) -> bool:
    return isinstance(value, tuple) and hasattr(value, "_fields")


def classify(value: Any) -> Kind:
    """Return the Kind of value. Total: never raises."""
    if isinstance(value, bool):
        return Kind.BOOL
    if isinstance(value, str):
        return Kind.ADDRESS if ADDRESS_RE.match(value) else Kind.STRING
    if isinstance(value, UInt):
        return Kind.UINT
    if isinstance(value, int):
        return Kind.INT
    if isinstance(value, float):
        return Kind.FLOAT
    if isinstance(value, (bytes, bytearray, memoryview)):
        return Kind.BYTES
    if isinstance(value, TypedRecord) or _is_named_tuple(value):
        return Kind.NAMED_RECORD
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return Kind.NAMED_RECORD
    if isinstance(value, (list, tuple)):
        return Kind.SEQUENCE
    if isinstance(value, Mapping):
        return Kind.RECORD
    return Kind.UNSUPPORTED


def record_fields(value: Any) -> Dict[Any, Any]:
    """
    Enumerate the members of a RECORD or NAMED_RECORD value.

    Dataclass members are read shallowly (dataclasses.asdict would
    recurse and copy nested values, losing their kinds).
    """
    if isinstance(value, TypedRecord):
        return dict(value.to_typed_record())
    if _is_named_tuple(value):
        return dict(value._asdict())
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}
    if isinstance(value, Mapping):
        return dict(value)
    raise TypeError(f"not a record: {type(value).__name__}")
