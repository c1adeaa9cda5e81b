"""
Fragments and per-fragment integrity checks.

A fragment carries its own encoding metadata and a SHA-256 checksum of
its payload, so any node holding it can verify it without the others.
"""

import base64
import binascii
import hashlib
import hmac
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict

from .errors import FragmentFormatError

FRAGMENT_ID_PREFIX = "hdp_"


def compute_checksum(payload: bytes) -> str:
    return hashlib.sha256(payload).hexdigest()


def new_fragment_id() -> str:
    return f"{FRAGMENT_ID_PREFIX}{uuid.uuid4().hex}"


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class EncodingMetadata:
    """Encoding parameters carried with every fragment."""
    total_shards: int
    threshold_shards: int
    original_size: int
    created_at: str

    @property
    def shard_size(self) -> int:
        return -(-self.original_size // self.threshold_shards)

    def same_encoding(self, other: "EncodingMetadata") -> bool:
        """True when both describe the same (n, k, size) encoding."""
        return (
            self.total_shards == other.total_shards
            and self.threshold_shards == other.threshold_shards
            and self.original_size == other.original_size
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_shards": self.total_shards,
            "threshold_shards": self.threshold_shards,
            "original_size": self.original_size,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EncodingMetadata":
        try:
            return cls(
                total_shards=int(data["total_shards"]),
                threshold_shards=int(data["threshold_shards"]),
                original_size=int(data["original_size"]),
                created_at=str(data["created_at"]),
            )
        except KeyError as e:
            raise FragmentFormatError(f"encoding_metadata.{e.args[0]} missing") from e
        except (TypeError, ValueError) as e:
            raise FragmentFormatError(f"Invalid encoding_metadata: {e}") from e


@dataclass(frozen=True)
class Fragment:
    """One redundant piece of an encoded payload."""
    id: str
    shard_index: int
    payload: bytes
    checksum: str
    metadata: EncodingMetadata

    @classmethod
    def create(cls, shard_index: int, payload: bytes, metadata: EncodingMetadata) -> "Fragment":
        """Build a fragment with a fresh id and a checksum over `payload`."""
        payload = bytes(payload)
        return cls(
            id=new_fragment_id(),
            shard_index=shard_index,
            payload=payload,
            checksum=compute_checksum(payload),
            metadata=metadata,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted/on-wire layout."""
        return {
            "id": self.id,
            "shard_index": self.shard_index,
            "payload": base64.b64encode(self.payload).decode("ascii"),
            "checksum": self.checksum,
            "encoding_metadata": self.metadata.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Fragment":
        required = ["id", "shard_index", "payload", "checksum", "encoding_metadata"]
        for key in required:
            if key not in data:
                raise FragmentFormatError(f"Missing required field: {key}")

        try:
            payload = base64.b64decode(data["payload"], validate=True)
        except (binascii.Error, TypeError, ValueError) as e:
            raise FragmentFormatError(f"Invalid base64 payload: {e}") from e

        shard_index = data["shard_index"]
        if isinstance(shard_index, bool) or not isinstance(shard_index, int):
            raise FragmentFormatError(f"shard_index must be an integer, got {shard_index!r}")

        # The checksum is carried as-is; verification happens explicitly
        return cls(
            id=str(data["id"]),
            shard_index=shard_index,
            payload=payload,
            checksum=str(data["checksum"]),
            metadata=EncodingMetadata.from_dict(data["encoding_metadata"]),
        )


def verify_fragment(fragment: Fragment) -> bool:
    """Recompute the payload digest and compare it with the stored checksum."""
    actual = compute_checksum(fragment.payload)
    return hmac.compare_digest(actual.encode("ascii"), fragment.checksum.encode("utf-8"))
