"""
ethdid/core/typed_data.py

Typed Data Assembler — the exported artifact of one conversion.

INTERCHANGE FORM (to_dict / to_json)
    {
        "EIP712Domain": [{"name": "name", "type": "string"}],
        "types":        {<type name>: [{"name": ..., "type": ...}, ...]},
        "primaryType":  <primary type name>,
        "domain":       {"name": <domain name>},
        "message":      <message tree>
    }

    bytes leaves travel as 0x-prefixed lowercase hex and are restored
    from the type schema on the way back in (from_dict / from_json).

EIP-712 FORM (to_eip712_message)
    The layout hashing.py and eth_account consume: the domain type lives inside
    "types" under "EIP712Domain", bytes leaves stay bytes.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

from ethdid.core.canonical import canonicalize
from ethdid.core.exceptions import ValidationError


EIP712_DOMAIN_TYPE = "EIP712Domain"

# Element marker for an empty array with nothing to infer from.
UNDEFINED_TYPE = "undefined"

# Leaf tags the builder emits. Every other base tag names a record type.
PRIMITIVE_TYPES = frozenset({"bool", "string", "address", "bytes", "int256", "uint256"})


@dataclass(frozen=True)
class FieldDescriptor:
    name: str
    type: str

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "type": self.type}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FieldDescriptor":
        if not isinstance(data, dict) or set(data) != {"name", "type"}:
            raise ValidationError(
                "Field descriptor must be an object with exactly 'name' and 'type'",
                {"got": data},
            )
        if not isinstance(data["name"], str) or not isinstance(data["type"], str):
            raise ValidationError(
                "Field descriptor name and type must be strings",
                {"got": data},
            )
        return cls(name=data["name"], type=data["type"])


DOMAIN_FIELDS: Tuple[FieldDescriptor, ...] = (
    FieldDescriptor(name="name", type="string"),
)


def array_element_type(type_tag: str) -> str:
    """'a.b[]' → 'a.b'. Caller checks the suffix."""
    return type_tag[:-2]


def base_type(type_tag: str) -> str:
    """'a.b[][]' → 'a.b'."""
    while type_tag.endswith("[]"):
        type_tag = array_element_type(type_tag)
    return type_tag


def _check_references(types: Dict[str, Tuple[FieldDescriptor, ...]]) -> None:
    for name, fields in types.items():
        for f in fields:
            base = base_type(f.type)
            if base in PRIMITIVE_TYPES or base in types:
                continue
            if base == UNDEFINED_TYPE and f.type != UNDEFINED_TYPE:
                continue
            raise ValidationError(
                f"Field type '{f.type}' references no known type",
                {"type": name, "field": f.name},
            )


@dataclass(frozen=True)
class TypedData:
    """
    One immutable conversion result.

    types excludes the EIP712Domain entry; it is fixed and injected on
    export. Each type's field tuple is in the order the builder emitted.
    """

    primary_type: str
    domain_name:  str
    types:        Dict[str, Tuple[FieldDescriptor, ...]]
    message:      Dict[str, Any]

    # ── Export ────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            EIP712_DOMAIN_TYPE: [f.to_dict() for f in DOMAIN_FIELDS],
            "types": {
                name: [f.to_dict() for f in fields]
                for name, fields in self.types.items()
            },
            "primaryType": self.primary_type,
            "domain":      {"name": self.domain_name},
            "message":     _to_json_value(self.message),
        }

    def to_json(self) -> str:
        """RFC 8785 canonical JSON of to_dict()."""
        return canonicalize(self.to_dict()).decode("utf-8")

    def to_eip712_message(self) -> Dict[str, Any]:
        types: Dict[str, List[Dict[str, str]]] = {
            EIP712_DOMAIN_TYPE: [f.to_dict() for f in DOMAIN_FIELDS],
        }
        for name, fields in self.types.items():
            types[name] = [f.to_dict() for f in fields]
        return {
            "types":       types,
            "primaryType": self.primary_type,
            "domain":      {"name": self.domain_name},
            "message":     self.message,
        }

    # ── Import ────────────────────────────────────────────────

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TypedData":
        """
        Rebuild a TypedData from its interchange form.

        Raises ValidationError on a missing key, a non-standard
        EIP712Domain entry, a field type naming no known type, an
        unregistered primaryType, or a message that does not match its
        declared types.
        """
        expected_keys = {EIP712_DOMAIN_TYPE, "types", "primaryType", "domain", "message"}
        if not isinstance(data, dict) or set(data) != expected_keys:
            raise ValidationError(
                "Typed data must have exactly the keys "
                f"{sorted(expected_keys)}",
                {"got": sorted(data) if isinstance(data, dict) else type(data).__name__},
            )

        domain_fields = tuple(
            FieldDescriptor.from_dict(f) for f in data[EIP712_DOMAIN_TYPE]
        )
        if domain_fields != DOMAIN_FIELDS:
            raise ValidationError(
                f"{EIP712_DOMAIN_TYPE} must be exactly [name: string]",
                {"got": data[EIP712_DOMAIN_TYPE]},
            )

        raw_types = data["types"]
        if not isinstance(raw_types, dict):
            raise ValidationError("'types' must be an object")
        types = {
            name: tuple(FieldDescriptor.from_dict(f) for f in fields)
            for name, fields in raw_types.items()
        }
        if EIP712_DOMAIN_TYPE in types:
            raise ValidationError(f"'types' must not redefine {EIP712_DOMAIN_TYPE}")
        _check_references(types)

        primary_type = data["primaryType"]
        if primary_type not in types:
            raise ValidationError(
                "primaryType is not a registered type",
                {"primaryType": primary_type},
            )

        domain = data["domain"]
        if (
            not isinstance(domain, dict)
            or set(domain) != {"name"}
            or not isinstance(domain["name"], str)
            or not domain["name"]
        ):
            raise ValidationError(
                "domain must be an object with a single non-empty 'name'",
                {"got": domain},
            )

        message = _restore(primary_type, data["message"], types, primary_type)
        return cls(
            primary_type= primary_type,
            domain_name=  domain["name"],
            types=        types,
            message=      message,
        )

    @classmethod
    def from_json(cls, text: str) -> "TypedData":
        try:
            data = json.loads(text)
        except ValueError as exc:
            raise ValidationError(f"Typed data is not valid JSON: {exc}") from exc
        return cls.from_dict(data)


# ─────────────────────────────────────────────────────────────
# Message codec helpers
# ─────────────────────────────────────────────────────────────

def _to_json_value(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _to_json_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_to_json_value(v) for v in value]
    if isinstance(value, bytes):
        return "0x" + value.hex()
    return value


def _restore(
    type_tag: str,
    value:    Any,
    types:    Dict[str, Tuple[FieldDescriptor, ...]],
    path:     str,
) -> Any:
    if type_tag in types:
        if not isinstance(value, dict):
            raise ValidationError(
                f"Expected an object for type '{type_tag}'", {"path": path}
            )
        fields = types[type_tag]
        names = {f.name for f in fields}
        if set(value) != names:
            raise ValidationError(
                f"Message keys do not match type '{type_tag}'",
                {
                    "path":     path,
                    "missing":  sorted(names - set(value)),
                    "extra":    sorted(set(value) - names),
                },
            )
        return {
            f.name: _restore(f.type, value[f.name], types, f"{path}.{f.name}")
            for f in fields
        }

    if type_tag.endswith("[]"):
        if not isinstance(value, list):
            raise ValidationError(
                f"Expected an array for type '{type_tag}'", {"path": path}
            )
        inner = array_element_type(type_tag)
        return [
            _restore(inner, item, types, f"{path}[{i}]")
            for i, item in enumerate(value)
        ]

    if type_tag == UNDEFINED_TYPE:
        raise ValidationError(
            f"'{UNDEFINED_TYPE}[]' arrays must be empty", {"path": path}
        )

    if type_tag == "bytes":
        if not isinstance(value, str):
            raise ValidationError("Expected hex string for bytes", {"path": path})
        hex_part = value[2:] if value.startswith("0x") else value
        try:
            return bytes.fromhex(hex_part)
        except ValueError as exc:
            raise ValidationError(
                f"Invalid hex for bytes: {exc}", {"path": path}
            ) from exc

    return value
