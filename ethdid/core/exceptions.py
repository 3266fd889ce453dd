"""
ethdid Exception Hierarchy

All exceptions inherit from EthDIDError for easy catching.
Conversion errors abort the whole call — there is no partial TypedData.
"""


class EthDIDError(Exception):
    """Base exception for all ethdid errors"""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ValidationError(EthDIDError):
    """Raised when interchange data fails structural validation"""
    pass


class IntegrityError(EthDIDError):
    """Raised when a content identifier does not match its bytes"""
    pass


# ── Conversion ────────────────────────────────────────────────

class InvalidDomainError(ValidationError):
    """Raised when the domain name is empty"""
    pass


class InvalidPrimaryTypeError(ValidationError):
    """Raised when the primary type name is empty"""
    pass


class UnsupportedTypeError(EthDIDError):
    """Raised when a value kind has no EIP-712 representation"""
    pass


class NumericPolicyRejectedError(EthDIDError):
    """Raised by a float policy that refuses (or fails) a conversion"""
    pass


class InconsistentArrayElementTypeError(EthDIDError):
    """Raised when sequence elements cannot share one element type"""
    pass


class TypeSchemaConflictError(EthDIDError):
    """Raised when one type name is registered with two field lists"""
    pass


# ── Verification ──────────────────────────────────────────────

class MalformedDIDError(EthDIDError):
    """Raised when a DID string lacks the expected prefix or address"""
    pass


class BlockDecodeError(EthDIDError):
    """Raised when a block payload cannot be decoded"""
    pass


class SignatureRecoveryFailedError(EthDIDError):
    """Raised when no signer can be recovered from a signature"""
    pass
