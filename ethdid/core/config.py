"""
ethdid/core/config.py

Signing conventions shared by the signer and the verifier.

A signature only verifies when both sides convert with the same domain
name, primary type name and float policy. DIDConfig bundles the three.

Environment (read by DIDConfig.from_env()):
    ETHDID_DOMAIN_NAME    default "vsc.network"
    ETHDID_PRIMARY_TYPE   default "tx_container_v0"
    ETHDID_FLOAT_POLICY   "truncate" (default) | "reject"
"""

import math
import os
from dataclasses import dataclass, field
from typing import Callable, Dict

from ethdid.core.exceptions import NumericPolicyRejectedError, ValidationError


DEFAULT_DOMAIN_NAME  = "vsc.network"
DEFAULT_PRIMARY_TYPE = "tx_container_v0"

FloatPolicy = Callable[[float], int]


# ─────────────────────────────────────────────────────────────
# Float Policies
# ─────────────────────────────────────────────────────────────

def truncate_float(value: float) -> int:
    """Standard conversion: drop the fractional part (25.5 → 25)."""
    if math.isnan(value) or math.isinf(value):
        raise NumericPolicyRejectedError(
            "Non-finite float has no integer form",
            {"value": value},
        )
    return int(value)


def reject_float(value: float) -> int:
    """Refuse every float. For payloads that must be integer-only."""
    raise NumericPolicyRejectedError(
        "Floating point values are not accepted",
        {"value": value},
    )


FLOAT_POLICIES: Dict[str, FloatPolicy] = {
    "truncate": truncate_float,
    "reject":   reject_float,
}


# ─────────────────────────────────────────────────────────────
# DIDConfig
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class DIDConfig:
    domain_name:  str         = DEFAULT_DOMAIN_NAME
    primary_type: str         = DEFAULT_PRIMARY_TYPE
    float_policy: FloatPolicy = field(default=truncate_float)

    @classmethod
    def from_env(cls) -> "DIDConfig":
        """Read ETHDID_* env vars. Unset vars fall back to the defaults."""
        policy_name = os.environ.get("ETHDID_FLOAT_POLICY", "truncate").lower()
        if policy_name not in FLOAT_POLICIES:
            raise ValidationError(
                f"Unknown ETHDID_FLOAT_POLICY '{policy_name}'. "
                f"Valid: {sorted(FLOAT_POLICIES)}"
            )
        return cls(
            domain_name=  os.environ.get("ETHDID_DOMAIN_NAME", DEFAULT_DOMAIN_NAME),
            primary_type= os.environ.get("ETHDID_PRIMARY_TYPE", DEFAULT_PRIMARY_TYPE),
            float_policy= FLOAT_POLICIES[policy_name],
        )
