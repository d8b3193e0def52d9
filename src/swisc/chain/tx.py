"""
Transaction Builder - Build, sign, serialize, and broadcast legacy transfers.

The wire format is the legacy RLP list
``[nonce, gasPrice, gas, to, value, data, v, r, s]``.  Signing is keccak-256
over the RLP of the unsigned fields (with the EIP-155 ``[chainId, 0, 0]``
suffix when a chain id is given), using secp256k1 via eth-keys.

Nothing here retries: a failed step raises once and the pipeline stops.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

import rlp
from eth_keys import keys
from eth_keys.exceptions import BadSignature, ValidationError
from eth_utils import is_hex_address, keccak, to_checksum_address
from loguru import logger
from rlp.exceptions import RLPException
from rlp.sedes import Binary, big_endian_int, binary

from ..config import DEFAULT_RPC_TIMEOUT
from ..errors import EncodingError, SigningError
from ..wallet.keys import check_sender, scoped_private_key
from .rpc import get_chain_id, get_nonce, send_raw_transaction

UINT256_CEILING = 2**256
ADDRESS_LENGTH = 20

address = Binary.fixed_length(ADDRESS_LENGTH)

_UNSIGNED_FIELDS = [
    ("nonce", big_endian_int),
    ("gas_price", big_endian_int),
    ("gas", big_endian_int),
    ("to", address),
    ("value", big_endian_int),
    ("data", binary),
]


class UnsignedTransaction(rlp.Serializable):
    fields = _UNSIGNED_FIELDS

    nonce: int
    gas_price: int
    gas: int
    to: bytes
    value: int
    data: bytes


class SignedTransaction(rlp.Serializable):
    fields = _UNSIGNED_FIELDS + [
        ("v", big_endian_int),
        ("r", big_endian_int),
        ("s", big_endian_int),
    ]

    nonce: int
    gas_price: int
    gas: int
    to: bytes
    value: int
    data: bytes
    v: int
    r: int
    s: int

    @property
    def chain_id(self) -> Optional[int]:
        """EIP-155 chain id encoded in ``v``, or None for unprotected signatures."""
        if self.v in (27, 28):
            return None
        return (self.v - 35) // 2

    def as_unsigned(self) -> UnsignedTransaction:
        return UnsignedTransaction(
            nonce=self.nonce,
            gas_price=self.gas_price,
            gas=self.gas,
            to=self.to,
            value=self.value,
            data=self.data,
        )


def _check_uint(name: str, value: object) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise EncodingError(f"{name} must be an integer, got {type(value).__name__}")
    if not 0 <= value < UINT256_CEILING:
        raise EncodingError(f"{name} out of range for a 256-bit unsigned integer: {value}")
    return value


def _to_address_bytes(to: Union[str, bytes, bytearray]) -> bytes:
    if isinstance(to, (bytes, bytearray)):
        raw = bytes(to)
    elif isinstance(to, str) and is_hex_address(to):
        raw = bytes.fromhex(to[2:] if to[:2].lower() == "0x" else to)
    else:
        raise EncodingError(f"Recipient is not a 20-byte address: {to!r}")
    if len(raw) != ADDRESS_LENGTH:
        raise EncodingError(f"Recipient must be {ADDRESS_LENGTH} bytes, got {len(raw)}")
    return raw


def build_transaction(
    nonce: int,
    to: Union[str, bytes],
    value: int,
    gas_limit: int,
    gas_price: int,
    data: bytes = b"",
) -> UnsignedTransaction:
    """
    Assemble an unsigned transaction.  Pure; no network access.

    Args:
        nonce: Sender's next unused nonce
        to: Recipient, 0x-hex string or 20 raw bytes
        value: Amount in wei
        gas_limit: Gas limit
        gas_price: Gas price in wei
        data: Call data (empty for a plain transfer)

    Raises:
        EncodingError: A field is negative, too wide, or the address malformed
    """
    if not isinstance(data, (bytes, bytearray)):
        raise EncodingError(f"data must be bytes, got {type(data).__name__}")

    return UnsignedTransaction(
        nonce=_check_uint("nonce", nonce),
        gas_price=_check_uint("gas_price", gas_price),
        gas=_check_uint("gas_limit", gas_limit),
        to=_to_address_bytes(to),
        value=_check_uint("value", value),
        data=bytes(data),
    )


def signing_hash(unsigned_tx: UnsignedTransaction, chain_id: Optional[int] = None) -> bytes:
    """keccak-256 of the RLP that the signature commits to."""
    if chain_id is None:
        payload = rlp.encode(unsigned_tx)
    else:
        payload = rlp.encode([*unsigned_tx, _check_uint("chain_id", chain_id), 0, 0])
    return keccak(payload)


def sign_transaction(
    unsigned_tx: UnsignedTransaction,
    private_key: Union[str, bytes, bytearray],
    chain_id: Optional[int] = None,
) -> SignedTransaction:
    """
    Sign an unsigned transaction.

    Args:
        unsigned_tx: Output of build_transaction
        private_key: 32-byte key, raw or 0x-hex
        chain_id: EIP-155 chain id; None signs without replay protection

    Raises:
        SigningError: If the key is malformed
    """
    msg_hash = signing_hash(unsigned_tx, chain_id)

    with scoped_private_key(private_key) as key:
        signature = key.sign_msg_hash(msg_hash)

    if chain_id is None:
        v = 27 + signature.v
    else:
        v = 35 + 2 * chain_id + signature.v

    return SignedTransaction(
        nonce=unsigned_tx.nonce,
        gas_price=unsigned_tx.gas_price,
        gas=unsigned_tx.gas,
        to=unsigned_tx.to,
        value=unsigned_tx.value,
        data=unsigned_tx.data,
        v=v,
        r=signature.r,
        s=signature.s,
    )


def serialize(signed_tx: SignedTransaction) -> bytes:
    try:
        return rlp.encode(signed_tx)
    except RLPException as exc:
        raise EncodingError(f"Cannot serialize transaction: {exc}") from exc


def deserialize(raw: Union[bytes, str]) -> SignedTransaction:
    """
    Decode a serialized signed transaction.

    Accepts raw bytes or a 0x-hex string.  Non-canonical encodings (leading
    zero bytes, trailing data, wrong address width) are rejected.

    Raises:
        EncodingError: If the payload is not a canonical legacy transaction
    """
    if isinstance(raw, str):
        try:
            raw = bytes.fromhex(raw[2:] if raw[:2].lower() == "0x" else raw)
        except ValueError:
            raise EncodingError("Raw transaction is not valid hex") from None
    try:
        return rlp.decode(bytes(raw), SignedTransaction)
    except RLPException as exc:
        raise EncodingError(f"Malformed transaction encoding: {exc}") from exc


def transaction_hash(signed_tx: SignedTransaction) -> str:
    return "0x" + keccak(serialize(signed_tx)).hex()


def recover_sender(signed_tx: SignedTransaction) -> str:
    """
    Recover the checksummed sender address from the signature.

    Raises:
        SigningError: If ``v`` is not a valid recovery value or the
            signature does not recover
    """
    v = signed_tx.v
    if v in (27, 28):
        chain_id = None
        recovery_id = v - 27
    elif v >= 35:
        chain_id = (v - 35) // 2
        recovery_id = (v - 35) % 2
    else:
        raise SigningError(f"Invalid signature v value: {v}")

    msg_hash = signing_hash(signed_tx.as_unsigned(), chain_id)
    try:
        signature = keys.Signature(vrs=(recovery_id, signed_tx.r, signed_tx.s))
        public_key = signature.recover_public_key_from_msg_hash(msg_hash)
    except (BadSignature, ValidationError) as exc:
        raise SigningError(f"Signature does not recover: {exc}") from exc
    return public_key.to_checksum_address()


async def fetch_nonce(
    address: str,
    rpc_url: str,
    timeout: float = DEFAULT_RPC_TIMEOUT,
) -> int:
    nonce = await get_nonce(address, rpc_url, timeout)
    logger.info(f"Nonce for {address}: {nonce}")
    return nonce


async def broadcast(
    raw: bytes,
    rpc_url: str,
    timeout: float = DEFAULT_RPC_TIMEOUT,
) -> str:
    """
    Submit serialized bytes with eth_sendRawTransaction.

    Returns:
        Transaction hash reported by the node

    Raises:
        BroadcastRejected: The node refused the transaction
    """
    tx_hash = await send_raw_transaction("0x" + raw.hex(), rpc_url, timeout)
    logger.info(f"Broadcast accepted: {tx_hash}")
    return tx_hash


@dataclass(frozen=True)
class TransferResult:
    """
    Outcome of send_transfer.

    Attributes:
        sender: Checksummed sender address
        signed: The signed transaction
        raw: 0x-hex serialized transaction
        tx_hash: Locally computed transaction hash
        broadcast: False for dry runs
    """

    sender: str
    signed: SignedTransaction
    raw: str
    tx_hash: str
    broadcast: bool = True

    @property
    def nonce(self) -> int:
        return self.signed.nonce

    @property
    def to(self) -> str:
        return to_checksum_address(self.signed.to)


async def send_transfer(
    rpc_url: str,
    private_key: str,
    to: str,
    value: int,
    gas_limit: int,
    gas_price: int,
    chain_id: Optional[int] = None,
    eip155: bool = True,
    expected_sender: Optional[str] = None,
    data: bytes = b"",
    timeout: float = DEFAULT_RPC_TIMEOUT,
    dry_run: bool = False,
) -> TransferResult:
    """
    Fetch nonce, build, sign, serialize, and broadcast one transfer.

    Every network call is awaited in turn.  With ``eip155`` and no
    ``chain_id``, the chain id is queried from the node first.

    Args:
        rpc_url: JSON-RPC endpoint
        private_key: Sender key (0x-hex)
        to: Recipient address
        value: Amount in wei
        gas_limit: Gas limit
        gas_price: Gas price in wei
        chain_id: EIP-155 chain id (None: query the node when eip155 is set)
        eip155: False signs without replay protection
        expected_sender: If set, must match the key's address
        data: Call data
        timeout: Per-call timeout in seconds
        dry_run: Sign but do not broadcast

    Returns:
        TransferResult with the signed transaction and hash
    """
    sender = check_sender(private_key, expected_sender)

    if eip155 and chain_id is None:
        chain_id = await get_chain_id(rpc_url, timeout)
    elif not eip155:
        chain_id = None

    nonce = await fetch_nonce(sender, rpc_url, timeout)
    unsigned = build_transaction(nonce, to, value, gas_limit, gas_price, data)
    signed = sign_transaction(unsigned, private_key, chain_id)
    raw = serialize(signed)
    local_hash = transaction_hash(signed)

    if dry_run:
        logger.info(f"Dry run, not broadcasting {local_hash}")
        return TransferResult(sender, signed, "0x" + raw.hex(), local_hash, broadcast=False)

    node_hash = await broadcast(raw, rpc_url, timeout)
    if node_hash.lower() != local_hash:
        logger.warning(f"Node returned hash {node_hash}, expected {local_hash}")

    return TransferResult(sender, signed, "0x" + raw.hex(), node_hash)
