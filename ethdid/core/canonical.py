"""
ethdid: Canonical JSON Encoding — RFC 8785 (JCS)

Canonical bytes for the typed-data interchange form, and the content
id of block bytes.

RFC 8785: https://www.rfc-editor.org/rfc/rfc8785
"""

import hashlib
from typing import Any

try:
    import jcs as _jcs
except ImportError as exc:
    raise ImportError(
        "ethdid requires the 'jcs' package for RFC 8785 compliance.\n"
        "Install with: pip install jcs\n"
        f"Original error: {exc}"
    ) from exc


def canonicalize(obj: Any) -> bytes:
    """
    Encode a JSON-model value to RFC 8785 canonical JSON bytes.

    Output is deterministic regardless of key insertion order.
    All values must be JSON-primitive (str, int, float, bool, None, list, dict).
    Byte strings are not JSON — hex-encode them before calling.

    Returns:
        UTF-8 encoded canonical JSON bytes.
    """
    return _jcs.canonicalize(obj)


def content_id(raw: bytes) -> str:
    """
    Content identifier of raw block bytes.

    Returns:
        Lowercase hex-encoded SHA-256 digest (64 characters).
    """
    return hashlib.sha256(raw).hexdigest()
