"""Key state and single-block RSA file encryption.

``KeyManager`` owns the current key and is the only thing that changes it.
Files are encrypted whole, as one RSA block, so a file must fit within
``capacity(key_size)`` bytes of the loaded key.
"""

import enum
import logging
import os
import stat
from dataclasses import dataclass
from typing import Optional, Tuple, Union

import rsa as pyrsa
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from .errors import (
    CodecError,
    DecryptionFailedError,
    InvalidKeySizeError,
    KeyIOError,
    KeyLoadError,
    NoKeyLoadedError,
    PayloadTooLargeError,
)
from .key_record import deserialize, serialize

MIN_KEY_SIZE = 384
MAX_KEY_SIZE = 16384
KEY_SIZE_STEP = 8
DEFAULT_KEY_SIZE = 4096
PUBLIC_EXPONENT = 65537

# cryptography will not generate keys below this size.
CRYPTOGRAPHY_MIN_KEY_SIZE = 1024

PUBLIC_KEY_SUFFIX = "PUBLIC_RSA_Key.xml"
KEY_PAIR_SUFFIX = "PUBLIC_AND_PRIVATE_RSA_Keys.xml"
ENCRYPTED_EXT = ".encrypted"

_PATH_HINT = "Are you sure the selected path is valid?"

log = logging.getLogger(__name__)


class KeyState(enum.Enum):
    NOT_LOADED = "NOT_LOADED"
    PUBLIC = "PUBLIC"
    PUBLIC_AND_PRIVATE = "PUBLIC_AND_PRIVATE"


@dataclass(frozen=True)
class KeyStatus:
    state: KeyState
    key_size: Optional[int] = None
    capacity: Optional[int] = None

    def __str__(self) -> str:
        if self.state is KeyState.NOT_LOADED:
            return "RSA KEYS: NOT LOADED!"
        if self.state is KeyState.PUBLIC_AND_PRIVATE:
            return f"RSA KEYS: PRIVATE AND PUBLIC! Capacity: {self.capacity} bytes."
        return f"RSA KEYS: ONLY PUBLIC! Capacity: {self.capacity} bytes."


@dataclass(frozen=True)
class DecryptResult:
    """Outcome of ``KeyManager.decrypt_file``.

    Cryptographic failures are reported here instead of being raised.
    """

    output_path: Optional[str] = None
    error: Optional[DecryptionFailedError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


# --- Key size helpers ---

def validate_key_size(key_size: int) -> bool:
    return key_size % KEY_SIZE_STEP == 0 and MIN_KEY_SIZE <= key_size <= MAX_KEY_SIZE


def capacity(key_size: int) -> int:
    """Bytes a key of ``key_size`` bits can encrypt in one PKCS#1 v1.5 block."""
    return (key_size - MIN_KEY_SIZE) // 8 + 37


def oaep_capacity(key_size: int) -> int:
    """Bytes a key of ``key_size`` bits can encrypt in one OAEP (SHA-1) block."""
    return (key_size + 7) // 8 - 2 * hashes.SHA1.digest_size - 2


def decrypted_file_name(source_file: str) -> str:
    name = os.path.basename(source_file)
    if name.endswith(ENCRYPTED_EXT) and len(name) > len(ENCRYPTED_EXT):
        return name[:-len(ENCRYPTED_EXT)]
    return name


def _rsa_padding(oaep: bool) -> padding.AsymmetricPadding:
    if oaep:
        return padding.OAEP(
            mgf=padding.MGF1(algorithm=hashes.SHA1()),
            algorithm=hashes.SHA1(),
            label=None,
        )
    return padding.PKCS1v15()


def _generate_private_key(key_size: int) -> rsa.RSAPrivateKey:
    if key_size >= CRYPTOGRAPHY_MIN_KEY_SIZE:
        return rsa.generate_private_key(
            public_exponent=PUBLIC_EXPONENT, key_size=key_size, backend=default_backend()
        )

    # Small keys come from python-rsa and are imported into cryptography.
    _, small = pyrsa.newkeys(key_size, accurate=True, exponent=PUBLIC_EXPONENT)
    private_numbers = rsa.RSAPrivateNumbers(
        p=small.p,
        q=small.q,
        d=small.d,
        dmp1=small.exp1,
        dmq1=small.exp2,
        iqmp=small.coef,
        public_numbers=rsa.RSAPublicNumbers(small.e, small.n),
    )
    return private_numbers.private_key()


def _decrypt_block(private_key: rsa.RSAPrivateKey, data: bytes, oaep: bool) -> bytes:
    """Decrypt one RSA block. Raises ValueError when ``data`` was not made for ``private_key``."""
    if oaep:
        return private_key.decrypt(data, _rsa_padding(oaep))

    # PKCS#1 v1.5 goes through python-rsa: with OpenSSL implicit rejection,
    # cryptography returns random bytes for a wrong key instead of failing.
    if len(data) != (private_key.key_size + 7) // 8:
        raise ValueError("Ciphertext length must be equal to key size.")
    numbers = private_key.private_numbers()
    rsa_private = pyrsa.PrivateKey(
        numbers.public_numbers.n, numbers.public_numbers.e, numbers.d, numbers.p, numbers.q
    )
    try:
        return pyrsa.decrypt(data, rsa_private)
    except pyrsa.DecryptionError as e:
        raise ValueError(str(e) or "Decryption failed") from e


# --- File helpers ---

def _read_bytes(path: str) -> bytes:
    try:
        with open(path, 'rb') as f_in:
            return f_in.read()
    except OSError as e:
        raise KeyIOError(f"Could not read '{path}': {e}. {_PATH_HINT}", path) from e


def _write_bytes(path: str, data: bytes, *, private: bool = False) -> None:
    try:
        if private:
            # Owner read/write only; O_TRUNC keeps overwrite semantics.
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, stat.S_IRUSR | stat.S_IWUSR)
            with os.fdopen(fd, 'wb') as f_out:
                f_out.write(data)
        else:
            with open(path, 'wb') as f_out:
                f_out.write(data)
    except OSError as e:
        raise KeyIOError(f"Could not write '{path}': {e}. {_PATH_HINT}", path) from e


class KeyManager:
    """Holds the current RSA key and runs file encryption and decryption with it.

    The key slot is either empty, a public key, or a private key (which carries
    its public half). ``generate_key_pair`` and ``load_key_pair`` are the only
    operations that replace it, and only once the new key is fully in place.

    Not thread safe: callers sharing one manager across threads must
    serialize access themselves.
    """

    def __init__(self):
        self._key: Union[None, rsa.RSAPublicKey, rsa.RSAPrivateKey] = None

    @property
    def state(self) -> KeyState:
        if self._key is None:
            return KeyState.NOT_LOADED
        if isinstance(self._key, rsa.RSAPrivateKey):
            return KeyState.PUBLIC_AND_PRIVATE
        return KeyState.PUBLIC

    @property
    def key_size(self) -> Optional[int]:
        return None if self._key is None else self._key.key_size

    @property
    def public_key(self) -> Optional[rsa.RSAPublicKey]:
        if isinstance(self._key, rsa.RSAPrivateKey):
            return self._key.public_key()
        return self._key

    def status(self) -> KeyStatus:
        state = self.state
        if state is KeyState.NOT_LOADED:
            return KeyStatus(state)
        return KeyStatus(state, self.key_size, capacity(self.key_size))

    def generate_key_pair(self, destination_folder: str, key_size: int = DEFAULT_KEY_SIZE, *, prefix: str = "") -> Tuple[str, str]:
        """Generate a key pair, save it to ``destination_folder`` and load it.

        Writes '<prefix>PUBLIC_AND_PRIVATE_RSA_Keys.xml' and '<prefix>PUBLIC_RSA_Key.xml',
        overwriting existing files. Returns (public_path, pair_path).
        """
        if not validate_key_size(key_size):
            raise InvalidKeySizeError(
                f"Key size {key_size} not appropriate: it must be a multiple of {KEY_SIZE_STEP} "
                f"between {MIN_KEY_SIZE} and {MAX_KEY_SIZE} bits."
            )
        if not os.path.isdir(destination_folder):
            raise KeyIOError(f"'{destination_folder}' is not a folder. {_PATH_HINT}", destination_folder)

        log.info("Generating %d-bit RSA key pair", key_size)
        key = _generate_private_key(key_size)
        public_key = key.public_key()

        pair_path = os.path.join(destination_folder, f"{prefix}{KEY_PAIR_SUFFIX}")
        public_path = os.path.join(destination_folder, f"{prefix}{PUBLIC_KEY_SUFFIX}")

        _write_bytes(pair_path, serialize(public_key, key), private=True)
        try:
            _write_bytes(public_path, serialize(public_key))
        except KeyIOError as e:
            raise KeyIOError(
                f"{e} The key pair was saved to '{pair_path}' but the public key file is missing.",
                public_path,
            ) from e

        self._key = key
        log.info("RSA keys saved to '%s' and '%s'", pair_path, public_path)
        return public_path, pair_path

    def load_key_pair(self, key_file_path: str) -> KeyStatus:
        """Load a public key or key pair record, replacing the current key."""
        try:
            with open(key_file_path, 'rb') as key_file:
                data = key_file.read()
        except OSError as e:
            raise KeyLoadError(f"Could not read key file '{key_file_path}': {e}") from e

        try:
            record = deserialize(data)
        except CodecError as e:
            raise KeyLoadError(f"'{key_file_path}' is not an appropriate RSA key file: {e}") from e

        try:
            key = record.to_key()
        except ValueError as e:
            raise KeyLoadError(f"'{key_file_path}' does not contain a valid RSA key: {e}") from e

        self._key = key
        status = self.status()
        log.info("Loaded %d-bit RSA key from '%s' (%s)", key.key_size, key_file_path, status.state.value)
        return status

    def encrypt_file(self, source_file: str, destination_folder: str, *, oaep_padding: bool = False) -> str:
        """Encrypt ``source_file`` into '<destination_folder>/<name>.encrypted'.

        The whole file must fit in one RSA block. Returns the output path.
        """
        public_key = self.public_key
        if public_key is None:
            raise NoKeyLoadedError("No valid RSA key has been loaded.")

        data = _read_bytes(source_file)
        limit = oaep_capacity(public_key.key_size) if oaep_padding else capacity(public_key.key_size)
        if len(data) > limit:
            raise PayloadTooLargeError(
                f"'{source_file}' is {len(data)} bytes but the loaded {public_key.key_size}-bit key "
                f"can encrypt at most {limit} bytes."
            )

        try:
            encrypted = public_key.encrypt(data, _rsa_padding(oaep_padding))
        except ValueError as e:
            raise PayloadTooLargeError(
                f"{e} Are you sure the selected file is not exceeding the maximum size?"
            ) from e

        output_path = os.path.join(destination_folder, os.path.basename(source_file) + ENCRYPTED_EXT)
        _write_bytes(output_path, encrypted)
        log.info("File '%s' encrypted to '%s'", source_file, output_path)
        return output_path

    def decrypt_file(self, source_file: str, destination_folder: str, *, oaep_padding: bool = False) -> DecryptResult:
        """Decrypt ``source_file`` into ``destination_folder``.

        The output name drops a trailing '.encrypted'. A wrong key or a
        damaged file yields a failed ``DecryptResult`` and writes nothing.
        """
        if self.state is not KeyState.PUBLIC_AND_PRIVATE:
            raise NoKeyLoadedError("No RSA private key has been loaded.")

        data = _read_bytes(source_file)
        try:
            decrypted = _decrypt_block(self._key, data, oaep_padding)
        except ValueError as e:
            log.warning("Could not decrypt '%s': %s", source_file, e)
            error = DecryptionFailedError(
                f"Could not decrypt '{source_file}': {e}. Are you sure the selected file is encrypted "
                f"with the loaded key?"
            )
            error.__cause__ = e
            return DecryptResult(error=error)

        output_path = os.path.join(destination_folder, decrypted_file_name(source_file))
        _write_bytes(output_path, decrypted)
        log.info("File '%s' decrypted to '%s'", source_file, output_path)
        return DecryptResult(output_path=output_path)
