"""
tests/test_eth_did.py

did:pkh Signature Verification Suite

  DID
    DID-01  new() / str() round-trip exactly
    DID-02  parse() rejects a missing prefix or address

  VERIFY
    VER-01  Signature from the DID's key verifies
    VER-02  Same signature against another address → False, no error
    VER-03  Raw recovery-id (v = 0/1) signatures accepted
    VER-04  Malformed signature → SignatureRecoveryFailedError
    VER-05  Tampered payload → False
    VER-06  Nested payload verifies end to end
    VER-07  Payload conversion errors keep their own type

  HASHING
    HASH-01 compute_typed_data_hash equals the digest eth_account signs
    HASH-02 Hash independent of dict insertion order
    HASH-03 Undefined element types stay out of encodeType

  ROUND TRIPS
    RT-01   Real transaction, record arrays and empty arrays sign and verify

  BLOCK / PROVIDER / CONFIG
    BLK-01  cid integrity enforced
    BLK-02  Non-negative ints decode as UInt; bytes stay bytes
    KEY-01  PEM save / load keeps the address
"""

import pytest
from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_utils import keccak

from ethdid import (
    ETH_DID_PREFIX,
    Block,
    BlockDecodeError,
    DIDConfig,
    EthDID,
    EthProvider,
    FieldDescriptor,
    IntegrityError,
    MalformedDIDError,
    NumericPolicyRejectedError,
    SignatureRecoveryFailedError,
    UInt,
    UnsupportedTypeError,
    ValidationError,
    compute_typed_data_hash,
    convert_to_typed_data,
    encode_typed_data_message,
    new_eth_provider,
    reject_float,
    truncate_float,
)
from ethdid.core.canonical import content_id
from ethdid.core.hashing import encode_type, hash_struct


ADDRESS = "0xCcCCccccCCCCcCCCCCCcCcCccCcCCCcCcccccccC"


# ─────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────

@pytest.fixture
def provider():
    """A fresh secp256k1 provider for each test."""
    return EthProvider.generate()


@pytest.fixture
def provider2():
    """A second independent key — used for wrong-signer tests."""
    return EthProvider.generate()


@pytest.fixture
def block():
    # two fields so that a non-deterministic field order would show up
    return Block.wrap({"foo": "bar", "baz": 12345})


def sign_block(provider: EthProvider, block: Block, config: DIDConfig = None) -> str:
    """Helper: sign exactly what a verifier will reconstruct from block."""
    return provider.sign(block.decode(), config)


# ─────────────────────────────────────────────────────────────
# DID
# ─────────────────────────────────────────────────────────────

class TestDID:

    def test_DID01_new_and_string(self):
        did = EthDID.new(ADDRESS)
        assert str(did) == ETH_DID_PREFIX + ADDRESS
        assert did.address == ADDRESS
        assert EthDID.parse(str(did)) == did

    def test_DID02_parse_rejects_malformed(self):
        with pytest.raises(MalformedDIDError):
            EthDID.parse("did:key:z6Mk")
        with pytest.raises(MalformedDIDError):
            EthDID.parse(ETH_DID_PREFIX)

    def test_provider_did(self, provider):
        assert provider.did == EthDID.new(provider.address)
        assert new_eth_provider() is not None


# ─────────────────────────────────────────────────────────────
# VERIFY
# ─────────────────────────────────────────────────────────────

class TestVerify:

    def test_VER01_valid_signature(self, provider, block):
        signature = sign_block(provider, block)
        assert EthDID.new(provider.address).verify(block, signature) is True

    def test_VER01_lowercase_address_still_matches(self, provider, block):
        signature = sign_block(provider, block)
        assert EthDID.new(provider.address.lower()).verify(block, signature) is True

    def test_VER02_wrong_address_is_false(self, provider, provider2, block):
        signature = sign_block(provider, block)
        assert EthDID.new(provider2.address).verify(block, signature) is False

    def test_VER03_raw_recovery_id(self, provider, block):
        signature = bytearray(bytes.fromhex(sign_block(provider, block)))
        signature[-1] -= 27
        assert EthDID.new(provider.address).verify(block, signature.hex()) is True

    def test_0x_prefixed_signature(self, provider, block):
        signature = "0x" + sign_block(provider, block)
        assert provider.did.verify(block, signature) is True

    def test_VER04_malformed_signature(self, provider, block):
        did = provider.did
        with pytest.raises(SignatureRecoveryFailedError):
            did.verify(block, "not-hex")
        with pytest.raises(SignatureRecoveryFailedError):
            did.verify(block, "ab" * 64)

    def test_VER05_tampered_payload(self, provider, block):
        signature = sign_block(provider, block)
        tampered  = Block.wrap({"foo": "bar", "baz": 54321})
        assert provider.did.verify(tampered, signature) is False

    def test_VER06_nested_payload(self, provider):
        block = Block.wrap({
            "tx":  {"op": "transfer", "payload": {"amount": 1, "to": "hive:alice"}},
            "__t": "vsc-tx",
            "headers": {"nonce": 7, "intents": [], "required_auths": [provider.did.value]},
        })
        signature = sign_block(provider, block)
        assert provider.did.verify(block, signature) is True

    def test_config_mismatch_does_not_verify(self, provider, block):
        signature = sign_block(provider, block, DIDConfig(domain_name="other.network"))
        assert provider.did.verify(block, signature) is False
        assert provider.did.verify(
            block, signature, DIDConfig(domain_name="other.network")
        ) is True

    def test_float_policy_applies_on_verify(self, provider):
        block = Block.wrap({"mark": 25.5})
        signature = sign_block(provider, block)
        assert provider.did.verify(block, signature) is True
        with pytest.raises(NumericPolicyRejectedError):
            provider.did.verify(block, signature, DIDConfig(float_policy=reject_float))

    def test_undecodable_block(self, provider):
        raw = b"\xa1\x63foo"  # map of one entry, value missing
        block = Block.from_raw(raw, content_id(raw))
        with pytest.raises(BlockDecodeError):
            provider.did.verify(block, "00" * 65)

    def test_bytes_field_verifies(self, provider):
        block = Block.wrap({"someByteData": bytes([0x01, 0x02, 0x03]), "name": "Alice"})
        signature = sign_block(provider, block)
        assert provider.did.verify(block, signature) is True

    def test_VER07_conversion_error_is_not_a_recovery_failure(self, provider, block):
        signature = sign_block(provider, block)
        with pytest.raises(UnsupportedTypeError):
            provider.did.verify(Block.wrap({"n": 2 ** 256}), signature)


# ─────────────────────────────────────────────────────────────
# HASHING
# ─────────────────────────────────────────────────────────────

class TestHashing:

    def test_HASH01_digest_matches_signed_hash(self, provider):
        typed  = convert_to_typed_data("vsc.network", {"foo": "bar"}, "tx_container_v0", truncate_float)
        signed = Account.from_key(provider.private_bytes_raw()).sign_message(
            encode_typed_data_message(typed)
        )
        digest = compute_typed_data_hash(typed)

        assert len(digest) == 32
        assert bytes(signed.message_hash) == digest

    def test_HASH02_insertion_order_irrelevant(self):
        a = convert_to_typed_data("vsc.network", {"a": "1", "b": UInt(2)}, "t", truncate_float)
        b = convert_to_typed_data("vsc.network", {"b": UInt(2), "a": "1"}, "t", truncate_float)
        assert compute_typed_data_hash(a) == compute_typed_data_hash(b)

    def test_domain_changes_hash(self):
        a = convert_to_typed_data("vsc.network", {"a": "1"}, "t", truncate_float)
        b = convert_to_typed_data("other.network", {"a": "1"}, "t", truncate_float)
        assert compute_typed_data_hash(a) != compute_typed_data_hash(b)

    def test_encode_type_lists_dependencies_in_name_order(self):
        types = {
            "Mail": (
                FieldDescriptor("from", "Person"),
                FieldDescriptor("to", "Person"),
                FieldDescriptor("contents", "string"),
            ),
            "Person": (
                FieldDescriptor("name", "string"),
                FieldDescriptor("wallet", "address"),
            ),
        }
        message = {
            "from":     {"name": "Cow", "wallet": "0xCD2a3d9F938E13CD947Ec05AbC7FE734Df8DD826"},
            "to":       {"name": "Bob", "wallet": "0xbBbBBBBbbBBBbbbBbbBbbbbBBbBbbbbBbBbbBBbB"},
            "contents": "Hello, Bob!",
        }

        assert encode_type("Mail", types) == \
            "Mail(Person from,Person to,string contents)Person(string name,address wallet)"
        assert hash_struct("Mail", message, types).hex() == \
            "c52c0ee5d84264471806290a3f2c4cecfc5490626bf912d01f240d7a274b371e"

    def test_HASH03_empty_array_hashes_without_element_type(self):
        typed = convert_to_typed_data("vsc.network", {"intents": []}, "t", truncate_float)

        assert encode_type("t", typed.types) == "t(undefined[] intents)"
        assert hash_struct("t", typed.message, typed.types) == keccak(
            keccak(text="t(undefined[] intents)") + keccak(b"")
        )

    def test_digest_matches_eth_account_encoder(self):
        typed = convert_to_typed_data("vsc.network", {
            "flag":  True,
            "blob":  b"\x01\x02",
            "to":    ADDRESS,
            "items": [{"id": UInt(1)}, {"id": -2}],
            "inner": {"label": "x", "marks": [UInt(3), UInt(4)]},
        }, "tx_container_v0", truncate_float)

        reference = encode_typed_data(full_message=typed.to_eip712_message())
        ours      = encode_typed_data_message(typed)

        assert bytes(ours.header) == bytes(reference.header)
        assert bytes(ours.body) == bytes(reference.body)


# ─────────────────────────────────────────────────────────────
# SIGN → VERIFY ROUND TRIPS
# ─────────────────────────────────────────────────────────────

class TestRoundTrips:

    def test_RT01_real_transaction_shape(self, provider):
        block = Block.wrap({
            "tx": {
                "op": "transfer",
                "payload": {
                    "tk":     "HIVE",
                    "to":     "hive:XXXXX",
                    "from":   "did:pkh:eip155:1:YYYYY",
                    "amount": 1,
                },
            },
            "__t": "vsc-tx",
            "__v": "0.2",
            "headers": {
                "type":           1,
                "nonce":          1,
                "intents":        [],
                "required_auths": ["did:pkh:eip155:1:YYYYY"],
            },
        })
        signature = sign_block(provider, block)
        assert provider.did.verify(block, signature) is True

    def test_record_array_with_mixed_sign_ints(self, provider):
        block = Block.wrap({"moves": [{"dx": 1}, {"dx": -1}], "g": [[1], [-1]]})
        signature = sign_block(provider, block)
        assert provider.did.verify(block, signature) is True

    def test_nested_empty_arrays(self, provider):
        block = Block.wrap({
            "rows":  [{"tags": []}, {"tags": ["a"]}],
            "grid":  [[], []],
            "outer": {"inner": {"none": []}},
        })
        signature = sign_block(provider, block)
        assert provider.did.verify(block, signature) is True


# ─────────────────────────────────────────────────────────────
# BLOCK / PROVIDER / CONFIG
# ─────────────────────────────────────────────────────────────

class TestBlock:

    def test_BLK01_cid_integrity(self, block):
        assert Block.from_raw(block.raw_data, block.cid) == block
        with pytest.raises(IntegrityError):
            Block.from_raw(block.raw_data + b" ", block.cid)

    def test_BLK02_unsigned_ints(self):
        decoded = Block.wrap({"n": 5, "m": -5, "f": 1.5}).decode()
        assert isinstance(decoded["n"], UInt)
        assert not isinstance(decoded["m"], UInt)
        assert decoded == {"n": 5, "m": -5, "f": 1.5}

    def test_bytes_survive_the_block(self):
        decoded = Block.wrap({"blob": b"\x00\xff", "nested": [True, b"\x01"]}).decode()
        assert decoded == {"blob": b"\x00\xff", "nested": [True, b"\x01"]}
        assert decoded["nested"][0] is True

    def test_cid_independent_of_key_order(self):
        assert Block.wrap({"a": 1, "b": 2}).cid == Block.wrap({"b": 2, "a": 1}).cid

    def test_unencodable_payload(self):
        with pytest.raises(BlockDecodeError):
            Block.wrap({"blob": object()})


class TestProvider:

    def test_KEY01_pem_round_trip(self, provider, tmp_path):
        path = tmp_path / "keys" / "signer.pem"
        provider.save(path)
        loaded = EthProvider.from_file(path)
        assert loaded.address == provider.address

    def test_missing_key_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            EthProvider.from_file(tmp_path / "missing.pem")

    def test_bad_key_file(self, tmp_path):
        path = tmp_path / "bad.pem"
        path.write_bytes(b"not a key")
        with pytest.raises(ValueError):
            EthProvider.from_file(path)

    def test_private_bytes_length(self):
        with pytest.raises(ValueError):
            EthProvider.from_private_bytes(b"\x01" * 31)
        seed = b"\x01" * 32
        assert EthProvider.from_private_bytes(seed).private_bytes_raw() == seed


class TestConfig:

    def test_defaults(self):
        config = DIDConfig()
        assert config.domain_name == "vsc.network"
        assert config.primary_type == "tx_container_v0"
        assert config.float_policy is truncate_float

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("ETHDID_DOMAIN_NAME", "test.network")
        monkeypatch.setenv("ETHDID_PRIMARY_TYPE", "tx_v1")
        monkeypatch.setenv("ETHDID_FLOAT_POLICY", "reject")
        config = DIDConfig.from_env()
        assert config.domain_name == "test.network"
        assert config.primary_type == "tx_v1"
        assert config.float_policy is reject_float

    def test_from_env_unknown_policy(self, monkeypatch):
        monkeypatch.setenv("ETHDID_FLOAT_POLICY", "round")
        with pytest.raises(ValidationError):
            DIDConfig.from_env()
