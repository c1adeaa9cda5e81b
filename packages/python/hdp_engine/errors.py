"""
Error types for the HDP engine.

Every failure is a tagged exception; nothing is downgraded to a
partial or best-effort result.
"""

from typing import Optional


class HDPError(Exception):
    """Base class for all engine errors."""


class InvalidConfiguration(HDPError, ValueError):
    """Raised when encoding parameters are out of range."""


class EmptyInput(HDPError, ValueError):
    """Raised when encode is called with no data."""


class InsufficientFragments(HDPError):
    """Raised when fewer than the threshold number of fragments are supplied."""

    def __init__(self, needed: int, got: int):
        self.needed = needed
        self.got = got
        super().__init__(f"Need {needed} fragments, got {got}")


class CorruptedFragment(HDPError):
    """Raised when a supplied fragment fails checksum verification."""

    def __init__(self, fragment_id: str, shard_index: Optional[int] = None):
        self.fragment_id = fragment_id
        self.shard_index = shard_index
        super().__init__(f"Fragment {fragment_id} failed checksum verification")


class InconsistentFragments(HDPError):
    """Raised when supplied fragments do not belong to one encode operation."""


class ReconstructionError(HDPError):
    """Raised when Reed-Solomon decoding fails."""


class InvalidPlacement(HDPError, ValueError):
    """Raised for an empty or duplicated node list."""


class FragmentFormatError(HDPError, ValueError):
    """Raised when a persisted fragment record is malformed."""


class ManifestError(HDPError):
    """Raised when a manifest is invalid or fails verification."""
