"""
ethdid/core/schema.py

Type Schema Builder + Message Rewriter.

Conversion runs in two passes over the value:
    1. infer    value → shape + rewritten message   (nothing registered yet)
    2. emit     shape → type tags, registering every record type

Array elements are inferred one by one and their shapes unified before
anything is registered, so a record type is always registered once with
the shape shared by every element.

NAMING
    root record              → <primary type>
    nested record at "a.b"   → <primary type>.a.b
    records inside array "x" → <parent>.x   (index-free, shared by all elements)

ORDERING
    Keys are visited in lexicographic order at every record level.
    Field order feeds the EIP-712 type string, so two conversions of
    logically equal data (whatever their dict insertion order) must
    produce identical field lists — otherwise the hash changes.

COERCIONS
    address-pattern strings  → address, value unchanged
    UInt                     → uint256   (0 .. 2**256-1)
    int                      → int256    (-2**255 .. 2**255-1)
    float                    → float_policy(f) → uint256 if >= 0 else int256
    bytes-like               → bytes (never an array of small ints)
    empty array              → undefined[]

ARRAY ELEMENT UNIFICATION
    identical shapes         → that shape
    {int256, uint256}        → int256
    {string, address}        → string
    undefined[] with T[]     → T[]
    records, same keys       → field-by-field unification
    arrays                   → element-type unification
    anything else            → InconsistentArrayElementTypeError
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Union

from ethdid.core.config import FloatPolicy
from ethdid.core.exceptions import (
    InconsistentArrayElementTypeError,
    InvalidDomainError,
    InvalidPrimaryTypeError,
    NumericPolicyRejectedError,
    TypeSchemaConflictError,
    UnsupportedTypeError,
)
from ethdid.core.kinds import Kind, classify, record_fields
from ethdid.core.typed_data import (
    DOMAIN_FIELDS,
    EIP712_DOMAIN_TYPE,
    UNDEFINED_TYPE,
    FieldDescriptor,
    TypedData,
)

logger = logging.getLogger(__name__)

Fields = Tuple[FieldDescriptor, ...]

_SCALAR_TAGS = {
    Kind.BOOL:    "bool",
    Kind.STRING:  "string",
    Kind.ADDRESS: "address",
    Kind.INT:     "int256",
    Kind.UINT:    "uint256",
    Kind.BYTES:   "bytes",
}

# Tag pairs that widen instead of failing when mixed in one array.
_WIDENING = {
    frozenset({"int256", "uint256"}): "int256",
    frozenset({"string", "address"}): "string",
}

_INTEGER_RANGES = {
    "int256":  (-(2 ** 255), 2 ** 255 - 1),
    "uint256": (0, 2 ** 256 - 1),
}


# ─────────────────────────────────────────────────────────────
# Shapes
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class _ArrayShape:
    element: Optional["Shape"]      # None: no element seen yet


@dataclass(frozen=True)
class _RecordShape:
    fields: Tuple[Tuple[str, "Shape"], ...]

    def names(self) -> Tuple[str, ...]:
        return tuple(name for name, _ in self.fields)


# A scalar shape is its type tag.
Shape = Union[str, _ArrayShape, _RecordShape]


def _unify(a: Shape, b: Shape, path: str) -> Shape:
    """Smallest shape describing both a and b."""
    if a == b:
        return a

    if isinstance(a, str) and isinstance(b, str):
        widened = _WIDENING.get(frozenset({a, b}))
        if widened is None:
            raise InconsistentArrayElementTypeError(
                "Array elements have incompatible types",
                {"path": path, "types": sorted({a, b})},
            )
        return widened

    if isinstance(a, _ArrayShape) and isinstance(b, _ArrayShape):
        if a.element is None:
            return b
        if b.element is None:
            return a
        return _ArrayShape(_unify(a.element, b.element, path))

    if isinstance(a, _RecordShape) and isinstance(b, _RecordShape):
        if a.names() != b.names():
            raise InconsistentArrayElementTypeError(
                "Array elements have different record shapes",
                {"path": path, "keys": [list(a.names()), list(b.names())]},
            )
        return _RecordShape(tuple(
            (name, _unify(left, right, f"{path}.{name}"))
            for (name, left), (_, right) in zip(a.fields, b.fields)
        ))

    raise InconsistentArrayElementTypeError(
        "Array mixes records, arrays and scalar values",
        {"path": path},
    )


# ─────────────────────────────────────────────────────────────
# Type Registry
# ─────────────────────────────────────────────────────────────

class TypeRegistry:
    """
    Composite type definitions for ONE conversion call.

    Pre-seeded with the fixed EIP712Domain entry, so no record can be
    registered under that name. Registering an identical definition twice
    is a no-op; a different definition under a known name is a conflict.
    """

    def __init__(self) -> None:
        self._types: Dict[str, Fields] = {EIP712_DOMAIN_TYPE: DOMAIN_FIELDS}

    def register(self, name: str, fields: Fields) -> None:
        existing = self._types.get(name)
        if existing is None:
            self._types[name] = fields
            logger.debug("registered type %s (%d fields)", name, len(fields))
            return
        if existing != fields:
            raise TypeSchemaConflictError(
                f"Type '{name}' registered with two different field lists",
                {
                    "existing": [f"{f.name}:{f.type}" for f in existing],
                    "new":      [f"{f.name}:{f.type}" for f in fields],
                },
            )

    def message_types(self) -> Dict[str, Fields]:
        """Every registered type except EIP712Domain, in registration order."""
        return {
            name: fields
            for name, fields in self._types.items()
            if name != EIP712_DOMAIN_TYPE
        }


# ─────────────────────────────────────────────────────────────
# Walker
# ─────────────────────────────────────────────────────────────

class _TypedDataWalker:
    """Single-use: one instance per convert_to_typed_data() call."""

    def __init__(self, float_policy: FloatPolicy) -> None:
        self.float_policy = float_policy
        self.registry     = TypeRegistry()

    # ── Pass 1: infer ─────────────────────────────────────────

    def infer(self, value: Any, path: str) -> Tuple[Shape, Any]:
        """Return (shape, rewritten value) for the value found at path."""
        kind = classify(value)

        if kind in _SCALAR_TAGS or kind is Kind.FLOAT:
            return self.infer_scalar(kind, value, path)

        if kind in (Kind.RECORD, Kind.NAMED_RECORD):
            return self.infer_record(value, path)

        if kind is Kind.SEQUENCE:
            return self.infer_sequence(value, path)

        raise UnsupportedTypeError(
            f"Unsupported value of type {type(value).__name__}",
            {"path": path},
        )

    def infer_record(self, value: Any, path: str) -> Tuple[_RecordShape, Dict[str, Any]]:
        members = record_fields(value)
        for key in members:
            if not isinstance(key, str):
                raise UnsupportedTypeError(
                    "Record keys must be strings",
                    {"path": path, "key": repr(key)},
                )

        fields:  List[Tuple[str, Shape]] = []
        message: Dict[str, Any]          = {}
        for key in sorted(members):
            shape, rewritten = self.infer(members[key], f"{path}.{key}")
            fields.append((key, shape))
            message[key] = rewritten
        return _RecordShape(tuple(fields)), message

    def infer_sequence(self, items: Any, path: str) -> Tuple[_ArrayShape, List[Any]]:
        element:   Optional[Shape] = None
        rewritten: List[Any]       = []
        for index, item in enumerate(items):
            shape, value = self.infer(item, f"{path}[{index}]")
            element = shape if element is None else _unify(element, shape, f"{path}[{index}]")
            rewritten.append(value)
        return _ArrayShape(element), rewritten

    def infer_scalar(self, kind: Kind, value: Any, path: str) -> Tuple[str, Any]:
        if kind is Kind.FLOAT:
            converted = self.float_policy(value)
            if isinstance(converted, bool) or not isinstance(converted, int):
                raise NumericPolicyRejectedError(
                    "Float policy must return an int",
                    {"path": path, "got": type(converted).__name__},
                )
            tag = "uint256" if converted >= 0 else "int256"
            return tag, _check_range(tag, int(converted), path)
        if kind in (Kind.INT, Kind.UINT):
            tag = _SCALAR_TAGS[kind]
            return tag, _check_range(tag, int(value), path)
        if kind is Kind.BYTES:
            return "bytes", bytes(value)
        return _SCALAR_TAGS[kind], value

    # ── Pass 2: emit ──────────────────────────────────────────

    def emit(self, shape: Shape, type_name: str) -> str:
        """
        Type tag for shape. Records are registered under type_name; array
        elements reuse the array's own name.
        """
        if isinstance(shape, str):
            return shape
        if isinstance(shape, _ArrayShape):
            if shape.element is None:
                return f"{UNDEFINED_TYPE}[]"
            return f"{self.emit(shape.element, type_name)}[]"
        fields = tuple(
            FieldDescriptor(name=name, type=self.emit(child, f"{type_name}.{name}"))
            for name, child in shape.fields
        )
        self.registry.register(type_name, fields)
        return type_name


def _check_range(tag: str, value: int, path: str) -> int:
    low, high = _INTEGER_RANGES[tag]
    if not low <= value <= high:
        raise UnsupportedTypeError(
            f"Integer out of range for {tag}",
            {"path": path, "value": str(value)},
        )
    return value


# ─────────────────────────────────────────────────────────────
# Public Entrypoint
# ─────────────────────────────────────────────────────────────

def convert_to_typed_data(
    domain_name:  str,
    data:         Any,
    primary_type: str,
    float_policy: FloatPolicy,
) -> TypedData:
    """
    Convert an arbitrary record into EIP-712 typed data.

    Args:
        domain_name:  Value of domain.name. Must be non-empty.
        data:         Root record — a Mapping, dataclass, NamedTuple or
                      TypedRecord. May be empty.
        primary_type: Name of the root type. Must be non-empty.
        float_policy: Called once per float encountered; returns an int
                      or raises. Its exception propagates unchanged.

    Raises:
        InvalidDomainError, InvalidPrimaryTypeError, UnsupportedTypeError,
        NumericPolicyRejectedError, InconsistentArrayElementTypeError,
        TypeSchemaConflictError — or whatever float_policy raises.
        Nothing is returned on error.
    """
    if not domain_name:
        raise InvalidDomainError("Domain name must be non-empty")
    if not primary_type:
        raise InvalidPrimaryTypeError("Primary type name must be non-empty")
    if primary_type == EIP712_DOMAIN_TYPE:
        raise InvalidPrimaryTypeError(
            f"'{EIP712_DOMAIN_TYPE}' is reserved for the domain descriptor"
        )

    if classify(data) not in (Kind.RECORD, Kind.NAMED_RECORD):
        raise UnsupportedTypeError(
            f"Root value must be a record, got {type(data).__name__}",
            {"path": primary_type},
        )

    walker         = _TypedDataWalker(float_policy)
    shape, message = walker.infer_record(data, primary_type)
    walker.emit(shape, primary_type)

    return TypedData(
        primary_type= primary_type,
        domain_name=  domain_name,
        types=        walker.registry.message_types(),
        message=      message,
    )
