"""
ethdid/core/crypto.py

secp256k1 Signing Provider.

Key contracts:
    address                 : @property → EIP-55 checksummed 0x address
    did                     : @property → EthDID for address
    sign_typed_data(td)     : TypedData → 65-byte r||s||v signature, lowercase hex, no 0x
    sign(data, config)      : convert with config, then sign_typed_data()

Persistence uses PKCS8 PEM (cryptography) so keys interoperate with
standard tooling. Only SECP256K1 keys are accepted on load.
"""

from pathlib import Path
from typing import Any, Optional

from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    load_pem_private_key,
)
from eth_account import Account
from eth_account.signers.local import LocalAccount

from ethdid.core.config import DIDConfig
from ethdid.core.did import EthDID
from ethdid.core.hashing import encode_typed_data_message
from ethdid.core.schema import convert_to_typed_data
from ethdid.core.typed_data import TypedData


_PRIVATE_KEY_LENGTH = 32


class EthProvider:
    """
    Ethereum signing provider over one managed private key.

    Public surface:
        EthProvider.generate()                 → new random key
        EthProvider.from_private_bytes(seed)   → load from raw 32-byte key
        EthProvider.from_file(path)            → load PEM private key
        provider.save(path)                    → write PEM private key
    """

    def __init__(self, account: LocalAccount) -> None:
        self._account: LocalAccount = account

    # ── Construction ──────────────────────────────────────────

    @classmethod
    def generate(cls) -> "EthProvider":
        return cls(Account.create())

    @classmethod
    def from_private_bytes(cls, seed: bytes) -> "EthProvider":
        """Raises ValueError if seed is not exactly 32 bytes."""
        if len(seed) != _PRIVATE_KEY_LENGTH:
            raise ValueError(
                f"secp256k1 private key must be {_PRIVATE_KEY_LENGTH} bytes, got {len(seed)}"
            )
        return cls(Account.from_key(seed))

    @classmethod
    def from_file(cls, path: Path) -> "EthProvider":
        """
        Load a secp256k1 private key from a PEM file.
        Raises FileNotFoundError if path does not exist.
        Raises ValueError if the file is not a valid secp256k1 PEM key.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Key file not found: {path}")
        try:
            private_key = load_pem_private_key(path.read_bytes(), password=None)
        except (ValueError, TypeError) as exc:
            raise ValueError(
                f"Failed to load secp256k1 key from {path}: {exc}"
            ) from exc
        if not (
            isinstance(private_key, ec.EllipticCurvePrivateKey)
            and isinstance(private_key.curve, ec.SECP256K1)
        ):
            raise ValueError(f"Key file {path} does not contain a secp256k1 private key")
        seed = private_key.private_numbers().private_value.to_bytes(
            _PRIVATE_KEY_LENGTH, "big"
        )
        return cls.from_private_bytes(seed)

    # ── Identity ──────────────────────────────────────────────

    @property
    def address(self) -> str:
        return self._account.address

    @property
    def did(self) -> EthDID:
        return EthDID.new(self._account.address)

    # ── Signing ───────────────────────────────────────────────

    def sign_typed_data(self, typed_data: TypedData) -> str:
        """
        Sign the EIP-712 digest of typed_data.

        Returns:
            130 hex chars: r (32) || s (32) || v (1, 27 or 28).
        """
        signed = self._account.sign_message(encode_typed_data_message(typed_data))
        return bytes(signed.signature).hex()

    def sign(self, data: Any, config: Optional[DIDConfig] = None) -> str:
        """Convert data under config's conventions and sign the result."""
        config = config or DIDConfig()
        typed_data = convert_to_typed_data(
            config.domain_name,
            data,
            config.primary_type,
            config.float_policy,
        )
        return self.sign_typed_data(typed_data)

    # ── Persistence ───────────────────────────────────────────

    def save(self, path: Path) -> None:
        """
        Write the private key to disk as an unencrypted PKCS8 PEM file.
        Creates parent directories if needed.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        private_key = ec.derive_private_key(
            int.from_bytes(self.private_bytes_raw(), "big"),
            ec.SECP256K1(),
        )
        path.write_bytes(private_key.private_bytes(
            encoding=             Encoding.PEM,
            format=               PrivateFormat.PKCS8,
            encryption_algorithm= NoEncryption(),
        ))

    def private_bytes_raw(self) -> bytes:
        """Raw 32-byte private key. Never log or transmit."""
        return bytes(self._account.key)

    def __repr__(self) -> str:
        return f"EthProvider(address={self.address})"


def new_eth_provider() -> EthProvider:
    """Provider over a freshly generated key."""
    return EthProvider.generate()
