"""
cross_lang_proof/emit_proof.py

ethdid Cross-Language Proof — Python Emitter
=============================================

Signs ONE fixed transaction payload with a deterministic secp256k1 key,
then dumps a complete proof bundle to proof_bundle.json.

The bundle contains EVERY intermediate value:
    - payload             (the record as the signer sees it)
    - block_raw_hex       (payload as canonical CBOR — the block bytes)
    - block_cid           (SHA-256 of block_raw, hex)
    - typed_data          (interchange form: types, primaryType, domain, message)
    - digest_hex          (EIP-712 digest — the 32 bytes actually signed)
    - address / did       (signer identity)
    - signature_hex       (r || s || v, 65 bytes, v = 27/28)

Another implementation reads proof_bundle.json and independently:
    1. decodes block_raw into a value and converts it to typed data
    2. recomputes digest_hex from that typed data
    3. recovers the signer from signature_hex and compares it to did

If all three match, both sides agree on the canonical form.

Usage:
    cd cross_lang_proof
    python emit_proof.py
"""

import json
from pathlib import Path

from ethdid import (
    Block,
    DIDConfig,
    EthProvider,
    compute_typed_data_hash,
    convert_to_typed_data,
)


# ── Deterministic key seed ────────────────────────────────────────────────────
# FIXED 32-byte seed → deterministic key → reproducible proof bundle.
# secp256k1 signing is RFC 6979 deterministic, so the signature is too.
# This is NOT a security key.
PROOF_SEED = bytes.fromhex(
    "deadbeefdeadbeefdeadbeefdeadbeef"
    "cafebabecafebabecafebabecafebabe"
)

PROOF_PAYLOAD = {
    "tx": {
        "op": "transfer",
        "payload": {
            "tk":     "HIVE",
            "to":     "hive:proof",
            "amount": 1,
        },
    },
    "__t": "vsc-tx",
    "__v": "0.2",
    "headers": {
        "nonce":   1,
        "intents": [],
    },
}


def main(out_path: Path = None) -> dict:
    out_path = out_path or Path(__file__).parent / "proof_bundle.json"
    config   = DIDConfig()

    # ── Key ──────────────────────────────────────────────────
    provider = EthProvider.from_private_bytes(PROOF_SEED)
    print(f"Address          : {provider.address}")

    # ── Block → typed data → digest ──────────────────────────
    block   = Block.wrap(PROOF_PAYLOAD)
    payload = block.decode()
    typed   = convert_to_typed_data(
        config.domain_name,
        payload,
        config.primary_type,
        config.float_policy,
    )
    digest  = compute_typed_data_hash(typed)

    # ── Sign + self-check ────────────────────────────────────
    signature = provider.sign_typed_data(typed)
    if not provider.did.verify(block, signature):
        raise SystemExit("self-verification failed")

    # ── Proof bundle ─────────────────────────────────────────
    bundle = {
        "_description": (
            "ethdid Cross-Language Proof Bundle. "
            "Python emitter → independent verifier. "
            "All values must match independently computed output."
        ),
        "payload":       PROOF_PAYLOAD,
        "block_raw_hex": block.raw_data.hex(),
        "block_cid":     block.cid,
        "typed_data":    typed.to_dict(),
        "digest_hex":    digest.hex(),
        "address":       provider.address,
        "did":           str(provider.did),
        "signature_hex": signature,
        "expected_results": {
            "digest_match":    True,
            "signature_valid": True,
        }
    }

    out_path.write_text(json.dumps(bundle, indent=2), encoding="utf-8")
    print(f"Proof bundle written to: {out_path}")
    print()
    print("Expected verification:")
    print(f"  digest_hex      : {digest.hex()}")
    print(f"  did             : {provider.did}")
    print(f"  signature_hex   : {signature[:32]}...")
    print(f"  signature_valid : True")
    return bundle


if __name__ == "__main__":
    main()
