"""
HDP Engine - holographic fragment storage

Splits a payload into N redundant fragments, any M of which rebuild it
exactly, checks each fragment against its own checksum, and places
fragments on nodes by consistent hashing of their ids.

The engine performs no I/O and no encryption; transport, ledgers and
sealing are the caller's business.
"""

from .params import (
    EncodingParameters,
    RedundancyPreset,
    default_threshold,
)
from .fragment import (
    EncodingMetadata,
    Fragment,
    compute_checksum,
    verify_fragment,
)
from .engine import HDPEngine
from .placement import distribute, node_for
from .erasure import (
    encode_data,
    reconstruct_data,
    analyze_reconstruction,
    RSParams,
    ReconstructionResult,
)
from .errors import (
    HDPError,
    InvalidConfiguration,
    EmptyInput,
    InsufficientFragments,
    CorruptedFragment,
    InconsistentFragments,
    ReconstructionError,
    InvalidPlacement,
    FragmentFormatError,
    ManifestError,
)
from .manifest import (
    build_manifest,
    ledger_record,
    load_manifest,
    save_manifest,
    verify_manifest,
    compute_merkle_root,
)
from .store import save_fragments, load_fragment, load_fragments
from .recovery import (
    recover_payload,
    analyze_recoverability,
    load_and_verify_fragments,
    RecoveryReport,
    FragmentInfo,
)
from .sealing import seal, unseal, generate_key, SealedPayload, SealingError

__version__ = "0.1.0"
__all__ = [
    # Configuration
    "EncodingParameters",
    "RedundancyPreset",
    "default_threshold",
    # Fragments
    "EncodingMetadata",
    "Fragment",
    "compute_checksum",
    "verify_fragment",
    # Engine
    "HDPEngine",
    "distribute",
    "node_for",
    # Erasure coding
    "encode_data",
    "reconstruct_data",
    "analyze_reconstruction",
    "RSParams",
    "ReconstructionResult",
    # Errors
    "HDPError",
    "InvalidConfiguration",
    "EmptyInput",
    "InsufficientFragments",
    "CorruptedFragment",
    "InconsistentFragments",
    "ReconstructionError",
    "InvalidPlacement",
    "FragmentFormatError",
    "ManifestError",
    # Manifest and storage
    "build_manifest",
    "ledger_record",
    "load_manifest",
    "save_manifest",
    "verify_manifest",
    "compute_merkle_root",
    "save_fragments",
    "load_fragment",
    "load_fragments",
    # Recovery
    "recover_payload",
    "analyze_recoverability",
    "load_and_verify_fragments",
    "RecoveryReport",
    "FragmentInfo",
    # Sealing
    "seal",
    "unseal",
    "generate_key",
    "SealedPayload",
    "SealingError",
]
