"""XML key records.

A key record is the on-disk form of RSA key material:

    <?xml version='1.0' encoding='utf-8'?>
    <RSAPSerializable xmlns:xsi="..." xmlns:xsd="...">
      <D>...</D>
      <DP>...</DP>
      ...
      <Q>...</Q>
    </RSAPSerializable>

Each field holds a big-endian integer, base64 encoded. A public key record
only has ``Exponent`` and ``Modulus``; a key pair record has all eight fields.
``RSAKeyValue`` documents use the same field names and are accepted as well.

The codec only checks structure. Whether the numbers form a valid RSA key is
decided by ``cryptography`` when ``KeyRecord.to_key`` imports them.
"""

import base64
import binascii
import xml.etree.ElementTree as ET
from dataclasses import dataclass, fields
from typing import Optional, Union

from cryptography.hazmat.primitives.asymmetric import rsa

from .errors import CodecError

ROOT_TAG = "RSAPSerializable"
ACCEPTED_ROOT_TAGS = (ROOT_TAG, "RSAKeyValue")

XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"
XSD_NS = "http://www.w3.org/2001/XMLSchema"

# A 16384-bit key pair record is under 20 KiB.
MAX_RECORD_SIZE = 64 * 1024

# Document element name -> KeyRecord attribute, in document order.
_XML_FIELDS = {
    "D": "d",
    "DP": "dp",
    "DQ": "dq",
    "Exponent": "exponent",
    "InverseQ": "inverse_q",
    "Modulus": "modulus",
    "P": "p",
    "Q": "q",
}

RSAKey = Union[rsa.RSAPublicKey, rsa.RSAPrivateKey]


def _to_bytes(value: int, length: int = 0) -> bytes:
    length = max(length, (value.bit_length() + 7) // 8, 1)
    return value.to_bytes(length, "big")


def _to_int(value: bytes) -> int:
    return int.from_bytes(value, "big")


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


@dataclass
class KeyRecord:
    d: Optional[bytes] = None
    dp: Optional[bytes] = None
    dq: Optional[bytes] = None
    exponent: Optional[bytes] = None
    inverse_q: Optional[bytes] = None
    modulus: Optional[bytes] = None
    p: Optional[bytes] = None
    q: Optional[bytes] = None

    @property
    def is_public_only(self) -> bool:
        return not any((self.d, self.dp, self.dq, self.inverse_q, self.p, self.q))

    @classmethod
    def from_key(cls, key: RSAKey) -> "KeyRecord":
        """Build a record from a ``cryptography`` RSA key.

        Modulus and D are padded to the modulus length, the CRT values to half
        of it, so records line up byte for byte with ones written by other
        RSAPSerializable producers.
        """
        if isinstance(key, rsa.RSAPrivateKey):
            private_numbers = key.private_numbers()
            public_numbers = private_numbers.public_numbers
        else:
            private_numbers = None
            public_numbers = key.public_numbers()

        size = (public_numbers.n.bit_length() + 7) // 8
        record = cls(
            exponent=_to_bytes(public_numbers.e),
            modulus=_to_bytes(public_numbers.n, size),
        )
        if private_numbers is not None:
            half = (size + 1) // 2
            record.d = _to_bytes(private_numbers.d, size)
            record.p = _to_bytes(private_numbers.p, half)
            record.q = _to_bytes(private_numbers.q, half)
            record.dp = _to_bytes(private_numbers.dmp1, half)
            record.dq = _to_bytes(private_numbers.dmq1, half)
            record.inverse_q = _to_bytes(private_numbers.iqmp, half)
        return record

    def to_key(self) -> RSAKey:
        """Import the record into ``cryptography``.

        Raises ValueError when the numbers are missing or inconsistent.
        Missing prime factors and CRT values are recovered from D.
        """
        if not self.modulus or not self.exponent:
            raise ValueError("Key record has no Modulus or Exponent.")

        n = _to_int(self.modulus)
        e = _to_int(self.exponent)
        public_numbers = rsa.RSAPublicNumbers(e, n)
        if self.is_public_only:
            return public_numbers.public_key()

        if not self.d:
            raise ValueError("Key record has private fields but no D.")
        d = _to_int(self.d)
        if self.p and self.q:
            p, q = _to_int(self.p), _to_int(self.q)
        else:
            p, q = rsa.rsa_recover_prime_factors(n, e, d)

        private_numbers = rsa.RSAPrivateNumbers(
            p=p,
            q=q,
            d=d,
            dmp1=_to_int(self.dp) if self.dp else rsa.rsa_crt_dmp1(d, p),
            dmq1=_to_int(self.dq) if self.dq else rsa.rsa_crt_dmq1(d, q),
            iqmp=_to_int(self.inverse_q) if self.inverse_q else rsa.rsa_crt_iqmp(p, q),
            public_numbers=public_numbers,
        )
        return private_numbers.private_key()

    def to_xml(self) -> bytes:
        root = ET.Element(ROOT_TAG, {"xmlns:xsi": XSI_NS, "xmlns:xsd": XSD_NS})
        for name, attr in _XML_FIELDS.items():
            value = getattr(self, attr)
            if value:
                ET.SubElement(root, name).text = base64.b64encode(value).decode("ascii")
        ET.indent(root, space="  ")
        return ET.tostring(root, encoding="utf-8", xml_declaration=True)

    @classmethod
    def from_xml(cls, data: Union[bytes, str]) -> "KeyRecord":
        if isinstance(data, str):
            data = data.encode("utf-8")
        if len(data) > MAX_RECORD_SIZE:
            raise CodecError(f"Key record is larger than {MAX_RECORD_SIZE} bytes.")
        # Key records never carry a DTD, so entity declarations never reach the parser.
        if b"<!DOCTYPE" in data or b"<!ENTITY" in data:
            raise CodecError("Key record must not contain a DOCTYPE or ENTITY declaration.")
        try:
            root = ET.fromstring(data)
        except ET.ParseError as e:
            raise CodecError(f"Key record is not a well-formed XML document: {e}") from e

        root_name = _local_name(root.tag)
        if root_name not in ACCEPTED_ROOT_TAGS:
            raise CodecError(f"Unexpected key record element '{root_name}'.")

        values = {}
        for child in root:
            name = _local_name(child.tag)
            attr = _XML_FIELDS.get(name)
            if attr is None:
                raise CodecError(f"Unrecognized key record field '{name}'.")
            if attr in values:
                raise CodecError(f"Key record field '{name}' appears more than once.")

            text = "".join((child.text or "").split())
            if not text:
                values[attr] = None
                continue
            try:
                values[attr] = base64.b64decode(text, validate=True)
            except (binascii.Error, ValueError) as e:
                raise CodecError(f"Key record field '{name}' is not valid base64.") from e

        return cls(**values)

    def __repr__(self) -> str:
        # Never echo key material.
        populated = [f.name for f in fields(self) if getattr(self, f.name)]
        return f"KeyRecord(fields={populated})"


def serialize(public_key: rsa.RSAPublicKey, private_key: Optional[rsa.RSAPrivateKey] = None) -> bytes:
    """Serialize a public key, or a full key pair when ``private_key`` is given."""
    if private_key is None:
        return KeyRecord.from_key(public_key).to_xml()
    if private_key.public_key().public_numbers() != public_key.public_numbers():
        raise ValueError("private_key does not belong to public_key")
    return KeyRecord.from_key(private_key).to_xml()


def deserialize(data: Union[bytes, str]) -> KeyRecord:
    return KeyRecord.from_xml(data)
