"""Unit tests for transaction building, signing, and the RLP codec."""

from __future__ import annotations

import pytest
import rlp
from eth_account import Account
from eth_utils import keccak, to_checksum_address
from rlp.sedes import big_endian_int

from swisc.chain.tx import (
    SignedTransaction,
    UnsignedTransaction,
    build_transaction,
    deserialize,
    recover_sender,
    serialize,
    sign_transaction,
    signing_hash,
    transaction_hash,
)
from swisc.errors import EncodingError, SigningError

from conftest import TEST_ADDRESS, TEST_KEY

RECIPIENT = "0x3CeD54309C06E0830607F8565B56C443708363d8"

# EIP-155 reference example.
EIP155_TO = "0x" + "35" * 20
EIP155_SIGNING_DATA = (
    "ec098504a817c800825208943535353535353535353535353535353535353535"
    "880de0b6b3a764000080018080"
)
EIP155_SIGNING_HASH = "daf5a779ae972f972197303d7b574746c7ef83eadac0f2791ad23db92e4c8e53"
EIP155_RAW = (
    "f86c098504a817c800825208943535353535353535353535353535353535353535"
    "880de0b6b3a76400008025a028ef61340bd939bc2195fe537567866003e1a15d3c"
    "71ff63e1590620aa636276a067cbe9d8997f761aecb703304b3800ccf555c9f3dc"
    "64214b297fb1966a3b6d83"
)

# nonce 5, 10 gwei, 21000 gas, RECIPIENT, 0.01 ether, no data.
TRANSFER_FIELDS = (
    "05"
    "8502540be400"
    "825208"
    "943ced54309c06e0830607f8565b56c443708363d8"
    "872386f26fc10000"
    "80"
)
TRANSFER_SIGNING_DATA_CHAIN_4 = "eb" + TRANSFER_FIELDS + "048080"
TRANSFER_SIGNING_DATA_UNPROTECTED = "e8" + TRANSFER_FIELDS


def _eip155_unsigned() -> UnsignedTransaction:
    return build_transaction(
        nonce=9,
        to=EIP155_TO,
        value=10**18,
        gas_limit=21000,
        gas_price=20 * 10**9,
    )


def _transfer_unsigned(nonce: int = 5) -> UnsignedTransaction:
    return build_transaction(
        nonce=nonce,
        to=RECIPIENT,
        value=10_000_000_000_000_000,
        gas_limit=21000,
        gas_price=10_000_000_000,
    )


class TestBuildTransaction:
    """Field validation in build_transaction."""

    def test_fields(self) -> None:
        tx = _transfer_unsigned()
        assert tx.nonce == 5
        assert tx.to == bytes.fromhex(RECIPIENT[2:])
        assert tx.value == 10**16
        assert tx.gas == 21000
        assert tx.gas_price == 10**10
        assert tx.data == b""

    def test_accepts_raw_address_bytes(self) -> None:
        tx = build_transaction(0, b"\x11" * 20, 0, 21000, 1)
        assert tx.to == b"\x11" * 20

    def test_accepts_lowercase_address(self) -> None:
        tx = build_transaction(0, RECIPIENT.lower(), 0, 21000, 1)
        assert tx.to == bytes.fromhex(RECIPIENT[2:])

    @pytest.mark.parametrize("field", ["nonce", "value", "gas_limit", "gas_price"])
    def test_rejects_negative(self, field: str) -> None:
        kwargs = dict(nonce=0, to=RECIPIENT, value=0, gas_limit=21000, gas_price=1)
        kwargs[field] = -1
        with pytest.raises(EncodingError):
            build_transaction(**kwargs)

    def test_rejects_257_bit_value(self) -> None:
        with pytest.raises(EncodingError, match="256-bit"):
            build_transaction(0, RECIPIENT, 2**256, 21000, 1)

    def test_accepts_max_uint256(self) -> None:
        tx = build_transaction(0, RECIPIENT, 2**256 - 1, 21000, 1)
        assert tx.value == 2**256 - 1

    def test_rejects_bool_and_float(self) -> None:
        with pytest.raises(EncodingError):
            build_transaction(True, RECIPIENT, 0, 21000, 1)
        with pytest.raises(EncodingError):
            build_transaction(0, RECIPIENT, 0.5, 21000, 1)

    def test_rejects_short_address(self) -> None:
        with pytest.raises(EncodingError):
            build_transaction(0, b"\x11" * 19, 0, 21000, 1)
        with pytest.raises(EncodingError):
            build_transaction(0, "0x" + "11" * 19, 0, 21000, 1)

    def test_rejects_non_hex_address(self) -> None:
        with pytest.raises(EncodingError):
            build_transaction(0, "0x" + "zz" * 20, 0, 21000, 1)


class TestMinimalEncoding:
    """Integers are minimal big-endian byte strings."""

    def test_sedes(self) -> None:
        assert big_endian_int.serialize(0) == b""
        assert big_endian_int.serialize(256) == b"\x01\x00"

    def test_fields_in_serialized_transaction(self) -> None:
        unsigned = build_transaction(0, RECIPIENT, 256, 21000, 1)
        items = list(rlp.decode(serialize(sign_transaction(unsigned, TEST_KEY, chain_id=4))))
        nonce, gas_price, gas, to, value, data = items[:6]
        assert nonce == b""
        assert gas_price == b"\x01"
        assert gas == (21000).to_bytes(2, "big")
        assert value == b"\x01\x00"
        assert data == b""

    def test_rejects_non_minimal_integer(self) -> None:
        signed = sign_transaction(_transfer_unsigned(), TEST_KEY, chain_id=4)
        items = list(rlp.decode(serialize(signed)))
        items[0] = b"\x00\x05"
        with pytest.raises(EncodingError):
            deserialize(rlp.encode(items))


class TestEip155Vector:
    """The published EIP-155 example reproduces byte for byte."""

    def test_signing_data_and_hash(self) -> None:
        unsigned = _eip155_unsigned()
        data = rlp.encode([*unsigned, 1, 0, 0])
        assert data.hex() == EIP155_SIGNING_DATA
        assert signing_hash(unsigned, chain_id=1).hex() == EIP155_SIGNING_HASH

    def test_signed_raw(self) -> None:
        signed = sign_transaction(_eip155_unsigned(), TEST_KEY, chain_id=1)
        assert signed.v == 37
        assert serialize(signed).hex() == EIP155_RAW

    def test_recovers_sender(self) -> None:
        signed = deserialize("0x" + EIP155_RAW)
        assert signed.chain_id == 1
        assert recover_sender(signed) == TEST_ADDRESS


class TestTransferScenario:
    """nonce 5, 0.01 ether, 21000 gas at 10 gwei, fixed key."""

    def test_signing_data(self) -> None:
        unsigned = _transfer_unsigned()
        assert rlp.encode([*unsigned, 4, 0, 0]).hex() == TRANSFER_SIGNING_DATA_CHAIN_4
        assert rlp.encode(unsigned).hex() == TRANSFER_SIGNING_DATA_UNPROTECTED
        assert signing_hash(unsigned, chain_id=4) == keccak(bytes.fromhex(TRANSFER_SIGNING_DATA_CHAIN_4))
        assert signing_hash(unsigned) == keccak(bytes.fromhex(TRANSFER_SIGNING_DATA_UNPROTECTED))

    def test_raw_layout(self) -> None:
        raw = serialize(sign_transaction(_transfer_unsigned(), TEST_KEY, chain_id=4))
        assert raw[0] == 0xF8
        assert raw[1] == len(raw) - 2
        assert raw[2:42].hex() == TRANSFER_FIELDS
        assert raw[42] in (0x2B, 0x2C)

        raw = serialize(sign_transaction(_transfer_unsigned(), TEST_KEY))
        assert raw[2:42].hex() == TRANSFER_FIELDS
        assert raw[42] in (0x1B, 0x1C)

    def test_matches_eth_account(self) -> None:
        signed = sign_transaction(_transfer_unsigned(), TEST_KEY, chain_id=4)
        reference = Account.sign_transaction(
            {
                "nonce": 5,
                "to": to_checksum_address(RECIPIENT),
                "value": 10_000_000_000_000_000,
                "gas": 21000,
                "gasPrice": 10_000_000_000,
                "chainId": 4,
            },
            TEST_KEY,
        )
        assert serialize(signed) == bytes(reference.raw_transaction)
        assert transaction_hash(signed) == "0x" + bytes(reference.hash).hex()

    def test_reproducible(self) -> None:
        first = serialize(sign_transaction(_transfer_unsigned(), TEST_KEY, chain_id=4))
        second = serialize(sign_transaction(_transfer_unsigned(), TEST_KEY, chain_id=4))
        assert first == second

    def test_unprotected_signature(self) -> None:
        signed = sign_transaction(_transfer_unsigned(), TEST_KEY)
        assert signed.v in (27, 28)
        assert signed.chain_id is None
        assert recover_sender(signed) == Account.from_key(TEST_KEY).address

    def test_protected_v(self) -> None:
        signed = sign_transaction(_transfer_unsigned(), TEST_KEY, chain_id=11155111)
        assert signed.v in (35 + 2 * 11155111, 36 + 2 * 11155111)
        assert signed.chain_id == 11155111
        assert recover_sender(signed) == Account.from_key(TEST_KEY).address


class TestRoundTrip:
    """deserialize(serialize(tx)) == tx."""

    @pytest.mark.parametrize("chain_id", [None, 1, 4, 84532])
    def test_round_trip(self, chain_id) -> None:
        signed = sign_transaction(_transfer_unsigned(nonce=7), TEST_KEY, chain_id=chain_id)
        raw = serialize(signed)
        decoded = deserialize(raw)
        assert isinstance(decoded, SignedTransaction)
        assert decoded == signed
        assert serialize(decoded) == raw

    def test_accepts_hex_string(self) -> None:
        signed = sign_transaction(_transfer_unsigned(), TEST_KEY, chain_id=4)
        assert deserialize("0x" + serialize(signed).hex()) == signed

    def test_transaction_hash_is_keccak_of_raw(self) -> None:
        signed = sign_transaction(_transfer_unsigned(), TEST_KEY, chain_id=4)
        assert transaction_hash(signed) == "0x" + keccak(serialize(signed)).hex()


class TestDeserializeErrors:
    def test_truncated(self) -> None:
        raw = bytes.fromhex(EIP155_RAW)
        with pytest.raises(EncodingError):
            deserialize(raw[:-5])

    def test_trailing_bytes(self) -> None:
        with pytest.raises(EncodingError):
            deserialize(bytes.fromhex(EIP155_RAW) + b"\x00")

    def test_wrong_field_count(self) -> None:
        with pytest.raises(EncodingError):
            deserialize(rlp.encode([b"\x01", b"\x02"]))

    def test_not_hex(self) -> None:
        with pytest.raises(EncodingError):
            deserialize("0xnothex")


class TestSigningErrors:
    """Malformed keys surface as SigningError."""

    @pytest.mark.parametrize(
        "key",
        [
            "0x" + "00" * 32,
            "0x" + "ff" * 32,
            "0x" + "46" * 31,
            "0x" + "46" * 33,
            "not-a-key",
            b"\x01" * 16,
        ],
    )
    def test_bad_keys(self, key) -> None:
        with pytest.raises(SigningError):
            sign_transaction(_transfer_unsigned(), key, chain_id=4)

    def test_raw_key_bytes(self) -> None:
        key = bytes.fromhex(TEST_KEY[2:])
        signed = sign_transaction(_transfer_unsigned(), key, chain_id=4)
        assert recover_sender(signed) == Account.from_key(TEST_KEY).address

    def test_invalid_v(self) -> None:
        signed = sign_transaction(_transfer_unsigned(), TEST_KEY, chain_id=4)
        tampered = signed.copy(v=5)
        with pytest.raises(SigningError):
            recover_sender(tampered)

    def test_tampered_value_changes_sender(self) -> None:
        signed = sign_transaction(_transfer_unsigned(), TEST_KEY, chain_id=4)
        tampered = signed.copy(value=signed.value + 1)
        try:
            recovered = recover_sender(tampered)
        except SigningError:
            return
        assert recovered != Account.from_key(TEST_KEY).address
