"""Value types stored in and returned by the block archive."""

from __future__ import annotations

import enum
import hashlib
import re
from dataclasses import dataclass

ZERO_HASH = bytes(32)
"""The all-zeros mainchain hash, parent of the mainchain genesis block."""

_VERSION_RE = re.compile(r"^(\d+)\.(\d+)\.(\d+)(?:[-+].*)?$")


@dataclass(frozen=True, order=True)
class Version:
    """A semantic version of the database layout."""

    major: int
    minor: int
    patch: int

    def __post_init__(self) -> None:
        if min(self.major, self.minor, self.patch) < 0:
            raise ValueError("version components must be non-negative")

    @classmethod
    def parse(cls, text: str) -> Version:
        """Parse ``major.minor.patch``, ignoring any pre-release or build suffix."""
        match = _VERSION_RE.match(text.strip())
        if match is None:
            raise ValueError(f"invalid version: {text!r}")
        major, minor, patch = (int(part) for part in match.groups())
        return cls(major, minor, patch)

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


CURRENT_VERSION = Version(0, 13, 0)
"""Version written into a freshly created database."""

MIN_COMPATIBLE_VERSION = Version(0, 13, 0)
"""Databases older than this must be cleared and re-synced."""


class BmmResult(enum.Enum):
    """Outcome of checking a blind-merged-mining commitment."""

    VERIFIED = "verified"
    FAILED = "failed"


@dataclass(frozen=True)
class Tip:
    """A sidechain tip together with the mainchain block that verified it."""

    block_hash: bytes
    main_block_hash: bytes


@dataclass(frozen=True)
class MainHeaderInfo:
    """Header information for a mainchain block."""

    block_hash: bytes
    prev_block_hash: bytes
    height: int
    work: int


@dataclass(frozen=True)
class MainBlockInfo:
    """Block information for a mainchain block: its BMM commitment, if any."""

    bmm_commitment: bytes | None = None


@dataclass(frozen=True)
class HeaderLike:
    """A sidechain block header as the archive needs it."""

    prev_side_hash: bytes | None
    prev_main_hash: bytes
    merkle_root: bytes = bytes(32)

    def hash(self) -> bytes:
        """Return the 32-byte hash identifying this header."""
        digest = hashlib.sha256()
        if self.prev_side_hash is None:
            digest.update(b"\x00")
        else:
            digest.update(b"\x01")
            digest.update(len(self.prev_side_hash).to_bytes(4, "little"))
            digest.update(self.prev_side_hash)
        for part in (self.prev_main_hash, self.merkle_root):
            digest.update(len(part).to_bytes(4, "little"))
            digest.update(part)
        return digest.digest()