"""Digest engine: SHA-256 commitments and merkle aggregation.

A Digest is the 32-byte SHA-256 of a content blob. It is rendered as a
lowercase hex string whenever it leaves the process (JSON, CLI output,
file names).
"""

import hashlib
from collections.abc import Sequence
from typing import Any, Self

from pydantic import GetCoreSchemaHandler
from pydantic_core import core_schema

from timecapsule.exceptions import EmptyInputError

DIGEST_SIZE = 32


class Digest(bytes):
    """Fixed-length SHA-256 commitment.

    Behaves like ``bytes`` and can be passed anywhere raw digest bytes are
    expected. Pydantic models accept either a Digest, 32 raw bytes or a
    64-character hex string and serialize to lowercase hex.
    """

    def __new__(cls, value: bytes | bytearray | memoryview) -> Self:
        data = bytes(value)
        if len(data) != DIGEST_SIZE:
            raise ValueError(f"Digest must be {DIGEST_SIZE} bytes, got {len(data)}")
        return super().__new__(cls, data)

    @classmethod
    def from_hex(cls, value: str) -> Self:
        """Parse a hex-encoded digest (case-insensitive)."""
        try:
            raw = bytes.fromhex(value.strip())
        except ValueError as e:
            raise ValueError(f"Invalid digest hex: {value!r}") from e
        return cls(raw)

    @classmethod
    def coerce(cls, value: Any) -> "Digest":
        """Accept a Digest, raw bytes or a hex string."""
        if isinstance(value, Digest):
            return value
        if isinstance(value, str):
            return cls.from_hex(value)
        if isinstance(value, (bytes, bytearray, memoryview)):
            return cls(value)
        raise TypeError(f"Cannot build a Digest from {type(value).__name__}")

    def __repr__(self) -> str:
        return f"Digest({self.hex()!r})"

    @classmethod
    def __get_pydantic_core_schema__(cls, source: Any, handler: GetCoreSchemaHandler) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls.coerce,
            serialization=core_schema.plain_serializer_function_ser_schema(lambda d: d.hex(), return_schema=core_schema.str_schema()),
        )


def digest(data: bytes) -> Digest:
    """Compute the SHA-256 digest of ``data``."""
    return Digest(hashlib.sha256(data).digest())


def digest_hex(data: bytes) -> str:
    """Compute the SHA-256 digest of ``data`` as lowercase hex."""
    return hashlib.sha256(data).hexdigest()


def verify_digest(data: bytes, expected: Digest | str) -> bool:
    """Recompute the digest of ``data`` and compare it with ``expected``."""
    return digest(data) == Digest.coerce(expected)


def aggregate(digests: Sequence[bytes]) -> Digest:
    """Reduce digests to a single merkle root.

    Adjacent pairs are concatenated and re-hashed level by level. An unpaired
    trailing digest is promoted unchanged to the next level. A single digest
    is its own root.

    Raises:
        EmptyInputError: If ``digests`` is empty.
    """
    if not digests:
        raise EmptyInputError("Cannot aggregate an empty sequence of digests")

    level = [Digest.coerce(d) for d in digests]
    while len(level) > 1:
        next_level: list[Digest] = []
        for i in range(0, len(level), 2):
            if i + 1 < len(level):
                next_level.append(digest(level[i] + level[i + 1]))
            else:
                next_level.append(level[i])
        level = next_level
    return level[0]


__all__ = ["DIGEST_SIZE", "Digest", "aggregate", "digest", "digest_hex", "verify_digest"]
