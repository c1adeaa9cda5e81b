"""
Payload recovery from a fragment directory.

Recovers the original payload from fragments saved on disk using:
- Reed-Solomon erasure coding (any k-of-n fragments)
- Per-fragment checksum verification
- Optional AES-256-GCM unsealing
- Final payload hash verification

Unlike HDPEngine.reconstruct, missing and corrupt fragment files are
reported and skipped here, as long as enough valid fragments remain.
"""

import hashlib
import logging
from pathlib import Path
from typing import Dict, Any, List, Optional, Tuple
from dataclasses import dataclass, field

from .engine import HDPEngine
from .erasure import analyze_reconstruction
from .errors import (
    FragmentFormatError,
    HDPError,
    InconsistentFragments,
    InsufficientFragments,
    ManifestError,
    ReconstructionError,
)
from .fragment import Fragment, verify_fragment
from .manifest import SEALING_ALGORITHM
from .sealing import unseal
from .store import load_fragment

logger = logging.getLogger(__name__)


@dataclass
class FragmentInfo:
    """Information about a single fragment file."""
    index: int
    id: str
    path: str
    expected_checksum: str
    fragment: Optional[Fragment] = None
    valid: bool = False
    error: Optional[str] = None


@dataclass
class RecoveryReport:
    """Detailed report of a recovery attempt."""
    success: bool
    feasible: bool
    original_size: int
    recovered_size: int
    original_hash: Optional[str]
    recovered_hash: Optional[str]
    hash_verified: bool
    unsealed: bool
    fragments_required: int
    fragments_available: int
    fragments_valid: int
    fragment_details: List[FragmentInfo] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "success": self.success,
            "feasible": self.feasible,
            "original_size": self.original_size,
            "recovered_size": self.recovered_size,
            "original_hash": self.original_hash,
            "recovered_hash": self.recovered_hash,
            "hash_verified": self.hash_verified,
            "unsealed": self.unsealed,
            "fragments_required": self.fragments_required,
            "fragments_available": self.fragments_available,
            "fragments_valid": self.fragments_valid,
            "fragment_details": [
                {
                    "index": f.index,
                    "id": f.id,
                    "path": f.path,
                    "valid": f.valid,
                    "error": f.error
                }
                for f in self.fragment_details
            ],
            "error": self.error
        }


def load_and_verify_fragments(
    manifest: Dict[str, Any],
    fragment_dir: Path
) -> List[FragmentInfo]:
    """
    Load fragments from disk and verify their checksums.

    Args:
        manifest: Fragment bundle manifest
        fragment_dir: Directory containing fragment files

    Returns:
        List of FragmentInfo with loaded fragments and validation status
    """
    infos = []

    for entry in manifest["fragments"]:
        info = FragmentInfo(
            index=entry["shard_index"],
            id=entry["id"],
            path=entry["path"],
            expected_checksum=entry["checksum"]
        )

        fragment_path = Path(fragment_dir) / entry["path"]

        if not fragment_path.exists():
            info.error = f"File not found: {fragment_path}"
            logger.warning("Skipping fragment %s: %s", info.id, info.error)
            infos.append(info)
            continue

        try:
            fragment = load_fragment(fragment_path)
        except (FragmentFormatError, OSError) as e:
            info.error = f"Unreadable fragment: {e}"
            logger.warning("Skipping fragment %s: %s", info.id, info.error)
            infos.append(info)
            continue

        info.fragment = fragment

        if fragment.id != info.id or fragment.shard_index != info.index:
            info.error = f"Identity mismatch: file holds {fragment.id} (shard {fragment.shard_index})"
        elif fragment.checksum != info.expected_checksum:
            info.error = (
                f"Checksum mismatch: expected {info.expected_checksum[:16]}..., "
                f"got {fragment.checksum[:16]}..."
            )
        elif not verify_fragment(fragment):
            info.error = "Checksum mismatch: payload does not match stored checksum"
        else:
            info.valid = True

        if not info.valid:
            logger.warning("Skipping fragment %s: %s", info.id, info.error)
        infos.append(info)

    return infos


def analyze_recoverability(
    manifest: Dict[str, Any],
    fragment_dir: Optional[str | Path] = None
) -> Dict[str, Any]:
    """
    Analyze whether recovery is possible without actually reconstructing.

    Args:
        manifest: Fragment bundle manifest
        fragment_dir: Optional directory to verify fragment availability

    Returns:
        Analysis dict with feasibility assessment
    """
    encoding = manifest["encoding"]
    k = encoding["threshold_shards"]
    n = encoding["total_shards"]

    result = {
        "k": k,
        "n": n,
        "original_size": manifest["original_size"],
        "original_hash": manifest.get("original_hash"),
        "fragments_declared": len(manifest["fragments"]),
    }

    if fragment_dir:
        infos = load_and_verify_fragments(manifest, Path(fragment_dir))
        valid_indices = [f.index for f in infos if f.valid]

        analysis = analyze_reconstruction(valid_indices, k, n)
        result.update({
            "fragments_found": len([f for f in infos if f.fragment is not None]),
            "fragments_valid": len(valid_indices),
            "valid_indices": valid_indices,
            "feasible": analysis["feasible"],
            "fast_path": analysis["fast_path"],
            "missing_count": analysis["missing_count"],
            "redundancy_margin": analysis["redundancy_margin"],
            "message": analysis["message"],
            "fragment_status": [
                {"index": f.index, "valid": f.valid, "error": f.error}
                for f in infos
            ]
        })
    else:
        # Without fragment_dir, assume all declared fragments are available
        declared_indices = [f["shard_index"] for f in manifest["fragments"]]
        analysis = analyze_reconstruction(declared_indices, k, n)
        result.update({
            "feasible": analysis["feasible"],
            "message": analysis["message"],
            "note": "Actual fragment availability not verified (no fragment_dir provided)"
        })

    return result


def recover_payload(
    manifest: Dict[str, Any],
    fragment_dir: str | Path,
    key: Optional[bytes] = None,
    verify_hash: bool = True
) -> Tuple[bytes, RecoveryReport]:
    """
    Recover the original payload from fragment files.

    Args:
        manifest: Fragment bundle manifest
        fragment_dir: Directory containing fragment files
        key: AES-256-GCM key, required when the manifest marks the payload sealed
        verify_hash: Whether to verify the reconstructed payload hash

    Returns:
        Tuple of (recovered data, detailed report)

    Raises:
        ManifestError: If recovery fails
    """
    fragment_dir = Path(fragment_dir)
    encoding = manifest["encoding"]
    k = encoding["threshold_shards"]
    n = encoding["total_shards"]
    original_size = manifest["original_size"]
    original_hash = manifest.get("original_hash")

    infos = load_and_verify_fragments(manifest, fragment_dir)
    valid = [f for f in infos if f.valid]

    report = RecoveryReport(
        success=False,
        feasible=len(valid) >= k,
        original_size=original_size,
        recovered_size=0,
        original_hash=original_hash,
        recovered_hash=None,
        hash_verified=False,
        unsealed=False,
        fragments_required=k,
        fragments_available=len([f for f in infos if f.fragment is not None]),
        fragments_valid=len(valid),
        fragment_details=infos
    )

    if not report.feasible:
        report.error = f"Need {k} valid fragments, only {len(valid)} available"
        raise ManifestError(report.error)

    engine = HDPEngine(total_shards=n, threshold_shards=k)
    try:
        recovered = engine.reconstruct([f.fragment for f in valid])
    except (InsufficientFragments, InconsistentFragments, ReconstructionError) as e:
        report.error = f"Reconstruction failed: {e}"
        raise ManifestError(report.error) from e

    report.recovered_size = len(recovered)
    report.recovered_hash = hashlib.sha256(recovered).hexdigest()

    # Verify hash if requested and original hash available
    if verify_hash and original_hash:
        report.hash_verified = report.recovered_hash == original_hash
        if not report.hash_verified:
            report.error = (
                f"Hash mismatch: expected {original_hash[:16]}..., "
                f"got {report.recovered_hash[:16]}..."
            )
            raise ManifestError(report.error)

    sealing = manifest.get("encryption")
    if sealing:
        if sealing.get("algorithm") != SEALING_ALGORITHM:
            report.error = f"Unsupported encryption: {sealing.get('algorithm')}"
            raise ManifestError(report.error)

        if not key:
            report.error = "Decryption key required but not provided"
            raise ManifestError(report.error)

        try:
            recovered = unseal(recovered, key)
        except HDPError as e:
            report.error = f"Decryption failed: {e}"
            raise ManifestError(report.error) from e
        report.unsealed = True
        report.recovered_size = len(recovered)

    report.success = True
    return recovered, report
