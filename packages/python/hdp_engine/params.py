"""
Encoding parameters for the HDP engine.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from .errors import InvalidConfiguration

# GF(2^8) Reed-Solomon codewords are at most 255 symbols long
MAX_TOTAL_SHARDS = 255
DEFAULT_TOTAL_SHARDS = 10
DEFAULT_THRESHOLD_RATIO = 0.7


def default_threshold(total_shards: int) -> int:
    """Minimum shards needed by default: ceil(0.7 * total)."""
    # round() first so 0.7 * 10 = 7.000000000000001 does not become 8
    return max(1, math.ceil(round(total_shards * DEFAULT_THRESHOLD_RATIO, 9)))


@dataclass(frozen=True)
class EncodingParameters:
    """Immutable (threshold, total) pair fixed at engine construction."""
    total_shards: int = DEFAULT_TOTAL_SHARDS
    threshold_shards: Optional[int] = None

    def __post_init__(self):
        total = self.total_shards
        if isinstance(total, bool) or not isinstance(total, int):
            raise InvalidConfiguration(f"total_shards must be an integer, got {total!r}")
        if total < 2:
            raise InvalidConfiguration(f"total_shards must be at least 2, got {total}")
        if total > MAX_TOTAL_SHARDS:
            raise InvalidConfiguration(
                f"total_shards cannot exceed {MAX_TOTAL_SHARDS} (Reed-Solomon limit), got {total}"
            )

        threshold = self.threshold_shards
        if threshold is None:
            object.__setattr__(self, "threshold_shards", default_threshold(total))
            return
        if isinstance(threshold, bool) or not isinstance(threshold, int):
            raise InvalidConfiguration(f"threshold_shards must be an integer, got {threshold!r}")
        if threshold < 1:
            raise InvalidConfiguration(f"threshold_shards must be at least 1, got {threshold}")
        if threshold > total:
            raise InvalidConfiguration(
                f"threshold_shards ({threshold}) cannot exceed total_shards ({total})"
            )

    @property
    def parity_shards(self) -> int:
        return self.total_shards - self.threshold_shards

    @property
    def max_failures(self) -> int:
        """Number of fragments that may be lost without losing the payload."""
        return self.parity_shards

    def shard_size_for(self, original_size: int) -> int:
        """Bytes per fragment for a payload of `original_size` bytes."""
        return math.ceil(original_size / self.threshold_shards)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_shards": self.total_shards,
            "threshold_shards": self.threshold_shards,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EncodingParameters":
        if "total_shards" not in data:
            raise InvalidConfiguration("total_shards missing")
        return cls(
            total_shards=data["total_shards"],
            threshold_shards=data.get("threshold_shards"),
        )


class RedundancyPreset(Enum):
    """Named (threshold, total) presets."""

    MINIMAL = (2, 3)
    FEDERATION = (5, 9)
    DEFAULT = (7, 10)
    PARANOID = (7, 15)

    @property
    def params(self) -> EncodingParameters:
        threshold, total = self.value
        return EncodingParameters(total_shards=total, threshold_shards=threshold)

    @classmethod
    def from_string(cls, name: str) -> "RedundancyPreset":
        """Look up a preset by case-insensitive name."""
        try:
            return cls[name.upper()]
        except KeyError:
            valid = [preset.name.lower() for preset in cls]
            raise InvalidConfiguration(f"Unknown redundancy preset: {name}. Valid: {valid}")
