"""
RSA file encryption with XML key records.

High-level API:
- KeyManager().generate_key_pair(destination_folder, key_size=4096) -> (public_path, pair_path)
- KeyManager().load_key_pair(key_file_path) -> KeyStatus
- KeyManager().encrypt_file(source_file, destination_folder, oaep_padding=False) -> output_path
- KeyManager().decrypt_file(source_file, destination_folder, oaep_padding=False) -> DecryptResult
- KeyManager().status() -> KeyStatus
- serialize(public_key, private_key=None) -> bytes / deserialize(data) -> KeyRecord

Each file is encrypted as a single RSA block, so it must fit within
capacity(key_size) bytes. Errors are raised as CryptoError subclasses, except
for decryption failures, which decrypt_file reports in its result.
"""

from .errors import (
    CodecError,
    CryptoError,
    DecryptionFailedError,
    ErrorKind,
    InvalidKeySizeError,
    KeyIOError,
    KeyLoadError,
    NoKeyLoadedError,
    PayloadTooLargeError,
)
from .key_manager import (
    DEFAULT_KEY_SIZE,
    ENCRYPTED_EXT,
    KEY_PAIR_SUFFIX,
    MAX_KEY_SIZE,
    MIN_KEY_SIZE,
    PUBLIC_KEY_SUFFIX,
    DecryptResult,
    KeyManager,
    KeyState,
    KeyStatus,
    capacity,
    decrypted_file_name,
    oaep_capacity,
    validate_key_size,
)
from .key_record import KeyRecord, deserialize, serialize

__all__ = [
    "KeyManager",
    "KeyState",
    "KeyStatus",
    "DecryptResult",
    "KeyRecord",
    "serialize",
    "deserialize",
    "capacity",
    "oaep_capacity",
    "validate_key_size",
    "decrypted_file_name",
    "DEFAULT_KEY_SIZE",
    "MIN_KEY_SIZE",
    "MAX_KEY_SIZE",
    "PUBLIC_KEY_SUFFIX",
    "KEY_PAIR_SUFFIX",
    "ENCRYPTED_EXT",
    "ErrorKind",
    "CryptoError",
    "InvalidKeySizeError",
    "NoKeyLoadedError",
    "KeyLoadError",
    "PayloadTooLargeError",
    "DecryptionFailedError",
    "KeyIOError",
    "CodecError",
]
