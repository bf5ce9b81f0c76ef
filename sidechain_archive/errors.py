"""Errors raised by the block archive."""

from __future__ import annotations

from os import PathLike


def _display(value: object) -> str:
    """Render a hash as lower-case hex, anything else with ``str``."""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).hex()
    return str(value)


class ArchiveError(Exception):
    """Base class for every archive failure."""


class IncompatibleVersion(ArchiveError):
    """The on-disk database was written by an incompatible version."""

    def __init__(self, version: object, db_path: str | PathLike[str]) -> None:
        self.version = version
        self.db_path = db_path
        super().__init__(
            f"Incompatible DB version ({version}). "
            f"Please clear the DB (`{db_path}`) and re-sync"
        )


class InvalidMerkleRoot(ArchiveError):
    """A header's merkle root does not match its body."""

    def __init__(self) -> None:
        super().__init__("invalid merkle root")


class InvalidPrevSideHash(ArchiveError):
    """A header refers to a parent that is not in the archive."""

    def __init__(self) -> None:
        super().__init__("invalid previous side hash")


class _HashError(ArchiveError):
    """An error about a single block hash."""

    _template = "{}"

    def __init__(self, block_hash: bytes) -> None:
        self.block_hash = block_hash
        super().__init__(self._template.format(_display(block_hash)))


class NoAccumulator(_HashError):
    """No accumulator is stored for a sidechain block."""

    _template = "no accumulator for block {}"


class NoBlockHash(_HashError):
    """A sidechain block hash is unknown."""

    _template = "unknown block hash: {}"


class NoBmmResult(_HashError):
    """No BMM result is stored for a sidechain block."""

    _template = "no BMM result with block {}"


class NoBody(_HashError):
    """No body is stored for a sidechain block."""

    _template = "no block body with hash {}"


class NoDepositsInfo(_HashError):
    """No deposit information is stored for a mainchain block."""

    _template = "no deposits info for block {}"


class NoHeader(_HashError):
    """No header is stored for a sidechain block."""

    _template = "no header with hash {}"


class NoHeight(_HashError):
    """No height is stored for a sidechain block."""

    _template = "no height info for block hash {}"


class NoMainBlockHash(_HashError):
    """A mainchain block hash is unknown."""

    _template = "unknown mainchain block hash: {}"


class NoMainBlockInfo(_HashError):
    """No block info is stored for a mainchain block."""

    _template = "no mainchain block info for block hash {}"


class NoMainHeaderInfo(_HashError):
    """No header info is stored for a mainchain block."""

    _template = "no mainchain header info for block hash {}"


class NoMainHeight(_HashError):
    """No height is stored for a mainchain block."""

    _template = "no height info for mainchain block hash {}"


class NoAncestor(ArchiveError):
    """A sidechain block has no ancestor at the requested depth."""

    def __init__(self, block_hash: bytes, depth: int) -> None:
        self.block_hash = block_hash
        self.depth = depth
        super().__init__(
            f"no ancestor with depth {depth} for block {_display(block_hash)}"
        )


class NoMainAncestor(ArchiveError):
    """A mainchain block has no ancestor at the requested depth."""

    def __init__(self, block_hash: bytes, depth: int) -> None:
        self.block_hash = block_hash
        self.depth = depth
        super().__init__(
            f"no mainchain ancestor with depth {depth} "
            f"for block {_display(block_hash)}"
        )