"""Error types raised by ffe_crypto.

Every error carries an ``ErrorKind`` so that callers (the CLI, a menu loop,
another program) can branch on the failure category without string matching.
"""

import enum
from typing import Optional


class ErrorKind(enum.Enum):
    INVALID_KEY_SIZE = "InvalidKeySize"
    NO_KEY_LOADED = "NoKeyLoaded"
    KEY_LOAD = "KeyLoadError"
    PAYLOAD_TOO_LARGE = "PayloadTooLarge"
    DECRYPTION_FAILED = "DecryptionFailed"
    IO = "IoError"
    CODEC = "CodecError"


class CryptoError(Exception):
    kind: ErrorKind


class InvalidKeySizeError(CryptoError):
    kind = ErrorKind.INVALID_KEY_SIZE


class NoKeyLoadedError(CryptoError):
    kind = ErrorKind.NO_KEY_LOADED


class KeyLoadError(CryptoError):
    kind = ErrorKind.KEY_LOAD


class PayloadTooLargeError(CryptoError):
    kind = ErrorKind.PAYLOAD_TOO_LARGE


class DecryptionFailedError(CryptoError):
    kind = ErrorKind.DECRYPTION_FAILED


class KeyIOError(CryptoError):
    """Filesystem failure while reading or writing keys, plaintext or ciphertext."""

    kind = ErrorKind.IO

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class CodecError(CryptoError):
    """The key record document is not well-formed or has unknown fields."""

    kind = ErrorKind.CODEC
