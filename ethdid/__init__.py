"""
ethdid/__init__.py

ethdid: EIP-712 typed data for arbitrary records, and did:pkh
signature verification over content-addressed blocks.

    typed = convert_to_typed_data("vsc.network", data, "tx_container_v0", truncate_float)
    sig   = provider.sign_typed_data(typed)
    EthDID.new(provider.address).verify(Block.wrap(data), sig)  → True
"""

__version__ = "0.1.0"

from ethdid.core.block import Block
from ethdid.core.canonical import canonicalize
from ethdid.core.config import (
    DIDConfig,
    reject_float,
    truncate_float,
)
from ethdid.core.crypto import EthProvider, new_eth_provider
from ethdid.core.did import ETH_DID_PREFIX, EthDID
from ethdid.core.exceptions import (
    BlockDecodeError,
    EthDIDError,
    InconsistentArrayElementTypeError,
    IntegrityError,
    InvalidDomainError,
    InvalidPrimaryTypeError,
    MalformedDIDError,
    NumericPolicyRejectedError,
    SignatureRecoveryFailedError,
    TypeSchemaConflictError,
    UnsupportedTypeError,
    ValidationError,
)
from ethdid.core.hashing import compute_typed_data_hash, encode_typed_data_message
from ethdid.core.kinds import Kind, TypedRecord, UInt, classify
from ethdid.core.schema import convert_to_typed_data
from ethdid.core.typed_data import FieldDescriptor, TypedData

__all__ = [
    # Conversion
    "convert_to_typed_data",
    "TypedData",
    "FieldDescriptor",
    "classify",
    "Kind",
    "UInt",
    "TypedRecord",
    # Hashing
    "compute_typed_data_hash",
    "encode_typed_data_message",
    "canonicalize",
    # DIDs
    "EthDID",
    "ETH_DID_PREFIX",
    "EthProvider",
    "new_eth_provider",
    "Block",
    # Config
    "DIDConfig",
    "truncate_float",
    "reject_float",
    # Errors
    "EthDIDError",
    "ValidationError",
    "IntegrityError",
    "InvalidDomainError",
    "InvalidPrimaryTypeError",
    "UnsupportedTypeError",
    "NumericPolicyRejectedError",
    "InconsistentArrayElementTypeError",
    "TypeSchemaConflictError",
    "MalformedDIDError",
    "BlockDecodeError",
    "SignatureRecoveryFailedError",
]
