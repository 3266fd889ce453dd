"""
ethdid/core/block.py

Content-addressed data block.

    raw_data = CBOR(payload)                  (canonical: sorted map keys, shortest forms)
    cid      = SHA-256(raw_data) as hex

CBOR keeps the distinctions the typed-data builder cares about: byte
strings stay bytes, and integers carry their sign in the major type.
Decoding maps major type 0 (non-negative) to UInt, so it is typed
uint256, and major type 1 (negative) to a plain int (int256). A signer
that built its typed data from the decoded payload therefore hashes
exactly what the verifier hashes.
"""

from dataclasses import dataclass
from typing import Any

import cbor2

from ethdid.core.canonical import content_id
from ethdid.core.exceptions import BlockDecodeError, IntegrityError
from ethdid.core.kinds import UInt


def _mark_unsigned(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return UInt(value) if value >= 0 else value
    if isinstance(value, dict):
        return {k: _mark_unsigned(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_mark_unsigned(v) for v in value]
    return value


@dataclass(frozen=True)
class Block:
    raw_data: bytes
    cid:      str

    @classmethod
    def wrap(cls, payload: Any) -> "Block":
        """Encode payload and derive its cid."""
        try:
            raw = cbor2.dumps(payload, canonical=True)
        except cbor2.CBOREncodeError as exc:
            raise BlockDecodeError(
                f"Payload is not encodable as CBOR: {exc}"
            ) from exc
        return cls(raw_data=raw, cid=content_id(raw))

    @classmethod
    def from_raw(cls, raw_data: bytes, cid: str) -> "Block":
        """
        Rebuild a block received from storage.
        Raises IntegrityError if cid is not the digest of raw_data.
        """
        actual = content_id(raw_data)
        if actual != cid:
            raise IntegrityError(
                "Block cid does not match its data",
                {"expected": cid[:16] + "...", "actual": actual[:16] + "..."},
            )
        return cls(raw_data=raw_data, cid=cid)

    def decode(self) -> Any:
        try:
            payload = cbor2.loads(self.raw_data)
        except cbor2.CBORDecodeError as exc:
            raise BlockDecodeError(
                f"Block payload is not valid CBOR: {exc}",
                {"cid": self.cid[:16] + "..."},
            ) from exc
        return _mark_unsigned(payload)
