__all__ = [
    # Errors
    "SwiscError",
    "ConfigError",
    "EncodingError",
    "SigningError",
    "NetworkError",
    "BroadcastRejected",
    "Timeout",
    # Config
    "Settings",
    # Transactions
    "UnsignedTransaction",
    "SignedTransaction",
    "TransferResult",
    "build_transaction",
    "sign_transaction",
    "serialize",
    "deserialize",
    "recover_sender",
    "transaction_hash",
    "fetch_nonce",
    "broadcast",
    "send_transfer",
    # Contract reads
    "read_contract",
    "load_addresses",
    # Keys
    "get_address",
    "load_private_key",
]

from .errors import (
    BroadcastRejected,
    ConfigError,
    EncodingError,
    NetworkError,
    SigningError,
    SwiscError,
    Timeout,
)
from .config import Settings
from .chain.tx import (
    SignedTransaction,
    TransferResult,
    UnsignedTransaction,
    broadcast,
    build_transaction,
    deserialize,
    fetch_nonce,
    recover_sender,
    send_transfer,
    serialize,
    sign_transaction,
    transaction_hash,
)
from .chain.abi import load_addresses, read_contract
from .wallet.keys import get_address, load_private_key
