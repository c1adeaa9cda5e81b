"""
Fragment bundle manifests and ledger records.
"""

import json
import hashlib
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .errors import FragmentFormatError, ManifestError
from .fragment import Fragment, utc_timestamp, verify_fragment
from .store import fragment_filename, load_fragment

MANIFEST_VERSION = "hdp_fragments_v1"
HASH_ALGORITHM = "sha256"
SEALING_ALGORITHM = "aes-256-gcm"


def ledger_record(fragments: Sequence[Fragment]) -> Dict[str, Any]:
    """Audit record a caller appends to its ledger after a successful encode."""
    if not fragments:
        raise ManifestError("Cannot build a ledger record from no fragments")
    metadata = fragments[0].metadata
    ordered = sorted(fragments, key=lambda f: f.shard_index)
    return {
        "fragment_ids": [f.id for f in ordered],
        "total_shards": metadata.total_shards,
        "threshold_shards": metadata.threshold_shards,
        "original_size": metadata.original_size,
        "timestamp": utc_timestamp(),
    }


def build_manifest(
    fragments: Sequence[Fragment],
    original: Optional[bytes] = None,
    sealed: bool = False,
) -> Dict[str, Any]:
    """
    Describe a fragment set as saved by store.save_fragments.

    `original` is the encoded payload; its hash is checked after recovery.
    `sealed` records that the payload is a sealing.SealedPayload blob.
    """
    if not fragments:
        raise ManifestError("Cannot build a manifest from no fragments")
    metadata = fragments[0].metadata
    ordered = sorted(fragments, key=lambda f: f.shard_index)
    leaf_hashes = [f.checksum for f in ordered]

    manifest: Dict[str, Any] = {
        "version": MANIFEST_VERSION,
        "hash_algorithm": HASH_ALGORITHM,
        "original_size": metadata.original_size,
        "encoding": {
            "total_shards": metadata.total_shards,
            "threshold_shards": metadata.threshold_shards,
            "parity_shards": metadata.total_shards - metadata.threshold_shards,
        },
        "fragments": [
            {
                "id": f.id,
                "shard_index": f.shard_index,
                "checksum": f.checksum,
                "path": fragment_filename(f),
            }
            for f in ordered
        ],
        "merkle": {
            "algorithm": HASH_ALGORITHM,
            "root": compute_merkle_root(leaf_hashes),
            "leaf_hashes": leaf_hashes,
        },
    }
    if original is not None:
        manifest["original_hash"] = hashlib.sha256(original).hexdigest()
    if sealed:
        manifest["encryption"] = {"algorithm": SEALING_ALGORITHM}
    return manifest


def load_manifest(path: str | Path) -> Dict[str, Any]:
    """Read a manifest written by save_manifest."""
    manifest_path = Path(path)
    try:
        text = manifest_path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise ManifestError(f"Manifest not found: {path}") from e
    except OSError as e:
        raise ManifestError(f"Cannot read manifest {path}: {e}") from e
    try:
        manifest = json.loads(text)
    except json.JSONDecodeError as e:
        raise ManifestError(f"Invalid JSON: {e}") from e
    if not isinstance(manifest, dict):
        raise ManifestError(f"Manifest {path} is not a JSON object")
    return manifest


def save_manifest(manifest: Dict[str, Any], path: str | Path) -> Path:
    p = Path(path)
    with p.open("w", encoding="utf-8") as f:
        json.dump(manifest, f, indent=2)
    return p


def verify_manifest(manifest: Dict[str, Any], fragment_dir: Optional[str | Path] = None) -> None:
    """Lightweight structural checks + optional fragment checksum verification."""
    required_top = ["version", "hash_algorithm", "original_size", "encoding", "fragments"]
    for key in required_top:
        if key not in manifest:
            raise ManifestError(f"Missing required field: {key}")

    if manifest["version"] != MANIFEST_VERSION:
        raise ManifestError(f"Unsupported manifest version: {manifest['version']}")
    if manifest["hash_algorithm"] != HASH_ALGORITHM:
        raise ManifestError(f"Unsupported hash algorithm: {manifest['hash_algorithm']}")

    encoding = manifest["encoding"]
    for key in ["total_shards", "threshold_shards"]:
        if key not in encoding:
            raise ManifestError(f"encoding.{key} missing")
    if encoding["threshold_shards"] > encoding["total_shards"]:
        raise ManifestError("encoding.threshold_shards exceeds encoding.total_shards")

    entries: List[Dict[str, Any]] = manifest["fragments"]
    if len(entries) < encoding["threshold_shards"]:
        raise ManifestError("Not enough fragments to reconstruct (less than threshold_shards)")

    # Optional fragment verification if fragment_dir provided
    if fragment_dir:
        base = Path(fragment_dir)
        for entry in entries:
            if "path" not in entry or "checksum" not in entry:
                raise ManifestError("Fragment entry missing path or checksum")
            fragment_path = base / entry["path"]
            if not fragment_path.exists():
                raise ManifestError(f"Fragment file missing: {fragment_path}")
            try:
                fragment = load_fragment(fragment_path)
            except FragmentFormatError as e:
                raise ManifestError(f"Unreadable fragment {fragment_path}: {e}") from e
            if fragment.checksum != entry["checksum"] or not verify_fragment(fragment):
                raise ManifestError(f"Fragment checksum mismatch for {fragment_path}")

    merkle = manifest.get("merkle")
    if merkle and merkle.get("root"):
        leaves = merkle.get("leaf_hashes", [])
        if leaves != [entry.get("checksum") for entry in entries]:
            raise ManifestError("Merkle leaves do not match fragment checksums")
        if compute_merkle_root(leaves) != merkle["root"]:
            raise ManifestError("Merkle root mismatch")


def _merkle_parent(left: bytes, right: bytes) -> bytes:
    return hashlib.sha256(left + right).digest()


def compute_merkle_root(leaves: List[str]) -> str:
    """
    Binary SHA-256 Merkle root over hex leaf hashes.

    A layer with an odd node count pairs its last node with itself. No
    leaves give an empty root; a single leaf is its own root.
    """
    if not leaves:
        return ""
    try:
        nodes = [bytes.fromhex(leaf) for leaf in leaves]
    except (TypeError, ValueError) as e:
        raise ManifestError(f"Merkle leaf is not a hex digest: {e}") from e
    while len(nodes) > 1:
        odd = nodes[-1] if len(nodes) % 2 else None
        pairs = zip(nodes[0::2], nodes[1::2])
        nodes = [_merkle_parent(left, right) for left, right in pairs]
        if odd is not None:
            nodes.append(_merkle_parent(odd, odd))
    return nodes[0].hex()
