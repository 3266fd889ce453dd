"""
ethdid/core/did.py

did:pkh Ethereum DIDs and signature verification.

    did = "did:pkh:eip155:1:" + address

Verification protocol — verify(block, signature_hex):
    1. payload   = block.decode()
    2. typed     = convert_to_typed_data(domain, payload, primary_type, float_policy)
    3. recovered = ecrecover(EIP-712 digest of typed, signature)
    4. return recovered == address   (case-insensitive)

Result vs error:
    valid signature, this key        → True
    valid signature, another key     → False
    undecodable block                → BlockDecodeError
    unconvertible payload            → conversion error (see schema.py)
    malformed / unrecoverable sig    → SignatureRecoveryFailedError
"""

import logging
from dataclasses import dataclass
from typing import Optional

from eth_account import Account
from eth_keys.exceptions import BadSignature
from eth_keys.exceptions import ValidationError as KeyValidationError

from ethdid.core.block import Block
from ethdid.core.config import DIDConfig
from ethdid.core.exceptions import MalformedDIDError, SignatureRecoveryFailedError
from ethdid.core.hashing import compute_typed_data_hash, encode_typed_data_message
from ethdid.core.schema import convert_to_typed_data

logger = logging.getLogger(__name__)


ETH_DID_PREFIX = "did:pkh:eip155:1:"

_SIGNATURE_LENGTH = 65

# Recovery id offset. Signatures may carry v as 0/1 (raw recovery id)
# or 27/28 (Ethereum convention); both are accepted.
_V_OFFSET = 27


def _decode_signature(signature_hex: str) -> bytes:
    if not isinstance(signature_hex, str):
        raise SignatureRecoveryFailedError(
            f"Signature must be a hex string, got {type(signature_hex).__name__}"
        )
    hex_part = signature_hex[2:] if signature_hex.startswith("0x") else signature_hex
    try:
        raw = bytes.fromhex(hex_part)
    except ValueError as exc:
        raise SignatureRecoveryFailedError(f"Signature is not valid hex: {exc}") from exc
    if len(raw) != _SIGNATURE_LENGTH:
        raise SignatureRecoveryFailedError(
            f"Signature must be {_SIGNATURE_LENGTH} bytes, got {len(raw)}"
        )
    v = raw[-1]
    if v < _V_OFFSET:
        raw = raw[:-1] + bytes([v + _V_OFFSET])
    return raw


@dataclass(frozen=True)
class EthDID:
    value: str

    @classmethod
    def new(cls, address: str) -> "EthDID":
        """No address validation here; a bad address simply never verifies."""
        return cls(ETH_DID_PREFIX + address)

    @classmethod
    def parse(cls, did: str) -> "EthDID":
        """Raises MalformedDIDError without the prefix or an address."""
        if not isinstance(did, str) or not did.startswith(ETH_DID_PREFIX):
            raise MalformedDIDError(
                f"DID must start with '{ETH_DID_PREFIX}'", {"did": did}
            )
        if not did[len(ETH_DID_PREFIX):]:
            raise MalformedDIDError("DID has no address", {"did": did})
        return cls(did)

    def __str__(self) -> str:
        return self.value

    @property
    def address(self) -> str:
        if not self.value.startswith(ETH_DID_PREFIX):
            raise MalformedDIDError(
                f"DID must start with '{ETH_DID_PREFIX}'", {"did": self.value}
            )
        return self.value[len(ETH_DID_PREFIX):]

    def verify(
        self,
        block:         Block,
        signature_hex: str,
        config:        Optional[DIDConfig] = None,
    ) -> bool:
        """
        True iff signature_hex was produced by this DID's key over the
        EIP-712 digest of block's payload. See module docstring for errors.
        """
        config  = config or DIDConfig()
        address = self.address
        payload = block.decode()

        typed_data = convert_to_typed_data(
            config.domain_name,
            payload,
            config.primary_type,
            config.float_policy,
        )
        signature = _decode_signature(signature_hex)
        signable  = encode_typed_data_message(typed_data)

        try:
            recovered = Account.recover_message(signable, signature=signature)
        except (BadSignature, KeyValidationError, ValueError) as exc:
            raise SignatureRecoveryFailedError(
                f"Could not recover signer: {exc}",
                {"cid": block.cid[:16] + "..."},
            ) from exc

        is_valid = recovered.lower() == address.lower()
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "verify %s digest=%s recovered=%s valid=%s",
                self.value,
                compute_typed_data_hash(typed_data).hex(),
                recovered,
                is_valid,
            )
        return is_valid
