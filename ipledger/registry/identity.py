"""Identity tokens for owners and transfer parties.

An identity is an opaque byte string of at most ``MAX_IDENTITY_BYTES``.
Its text form is the principal encoding used by the ledger's host:

    lowercase base32( crc32_be(raw) + raw ), no padding,
    split into groups of five characters joined by ``-``

so the empty identity reads ``aaaaa-aa`` and the anonymous identity
(``b"\\x04"``) reads ``2vxsx-fae``.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import zlib
from dataclasses import dataclass

from ipledger.registry.errors import InvalidIdentityError

MAX_IDENTITY_BYTES = 29

_ANONYMOUS_TAG = b"\x04"
_SELF_AUTHENTICATING_TAG = b"\x02"
_GROUP = 5


@dataclass(frozen=True, order=True)
class Identity:
    """An actor on the ledger. Ordered by raw bytes, usable as a store key."""

    raw: bytes = b""

    def __post_init__(self) -> None:
        if not isinstance(self.raw, (bytes, bytearray)):
            raise InvalidIdentityError(f"Identity must be bytes, got {type(self.raw).__name__}")
        if len(self.raw) > MAX_IDENTITY_BYTES:
            raise InvalidIdentityError(
                f"Identity is {len(self.raw)} bytes; at most {MAX_IDENTITY_BYTES} allowed"
            )
        object.__setattr__(self, "raw", bytes(self.raw))

    @classmethod
    def from_text(cls, text: str) -> Identity:
        """Parse the principal text form, verifying checksum and grouping."""
        if not isinstance(text, str) or not text:
            raise InvalidIdentityError("Identity text is empty", value=text or "")

        compact = text.replace("-", "").upper()
        padding = (-len(compact)) % 8
        try:
            decoded = base64.b32decode(compact + "=" * padding)
        except (binascii.Error, ValueError):
            raise InvalidIdentityError(f"Not a valid identity: {text!r}", value=text)

        if len(decoded) < 4:
            raise InvalidIdentityError(f"Identity text too short: {text!r}", value=text)

        checksum, raw = decoded[:4], decoded[4:]
        if len(raw) > MAX_IDENTITY_BYTES:
            raise InvalidIdentityError(f"Identity too long: {text!r}", value=text)
        if zlib.crc32(raw).to_bytes(4, "big") != checksum:
            raise InvalidIdentityError(f"Identity checksum mismatch: {text!r}", value=text)

        identity = cls(raw)
        if identity.to_text() != text:
            raise InvalidIdentityError(f"Identity text is not canonical: {text!r}", value=text)
        return identity

    @classmethod
    def from_hex(cls, value: str) -> Identity:
        try:
            return cls(bytes.fromhex(value))
        except ValueError:
            raise InvalidIdentityError(f"Not a hex identity: {value!r}", value=value)

    @classmethod
    def anonymous(cls) -> Identity:
        return cls(_ANONYMOUS_TAG)

    @classmethod
    def self_authenticating(cls, public_key: bytes) -> Identity:
        """Derive the identity controlled by ``public_key`` (sha224 + tag byte)."""
        return cls(hashlib.sha224(public_key).digest() + _SELF_AUTHENTICATING_TAG)

    @property
    def is_anonymous(self) -> bool:
        return self.raw == _ANONYMOUS_TAG

    def to_text(self) -> str:
        checksum = zlib.crc32(self.raw).to_bytes(4, "big")
        encoded = base64.b32encode(checksum + self.raw).decode("ascii").lower().rstrip("=")
        return "-".join(encoded[i : i + _GROUP] for i in range(0, len(encoded), _GROUP))

    def to_hex(self) -> str:
        return self.raw.hex()

    def __str__(self) -> str:
        return self.to_text()
