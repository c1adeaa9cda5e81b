"""
Holographic fragment storage engine.

Splits a payload into `total_shards` redundant fragments, any
`threshold_shards` of which rebuild it byte for byte. The engine holds only
its immutable EncodingParameters, so one instance can be shared freely
between threads.
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence

from .erasure import RSParams, encode_data, reconstruct_data, analyze_reconstruction
from .errors import (
    CorruptedFragment,
    EmptyInput,
    InconsistentFragments,
    InsufficientFragments,
    ReconstructionError,
)
from .fragment import EncodingMetadata, Fragment, utc_timestamp, verify_fragment
from .params import MAX_TOTAL_SHARDS, EncodingParameters
from . import placement

logger = logging.getLogger(__name__)


class HDPEngine:
    """Encode, verify, reconstruct and place fragments."""

    def __init__(
        self,
        total_shards: Optional[int] = None,
        threshold_shards: Optional[int] = None,
        params: Optional[EncodingParameters] = None,
    ):
        if params is None:
            if total_shards is None:
                params = EncodingParameters(threshold_shards=threshold_shards)
            else:
                params = EncodingParameters(total_shards, threshold_shards)
        self._params = params

    @property
    def params(self) -> EncodingParameters:
        return self._params

    @property
    def total_shards(self) -> int:
        return self._params.total_shards

    @property
    def threshold_shards(self) -> int:
        return self._params.threshold_shards

    def __repr__(self) -> str:
        return f"HDPEngine(total_shards={self.total_shards}, threshold_shards={self.threshold_shards})"

    def encode(self, data: bytes) -> List[Fragment]:
        """
        Encode `data` into `total_shards` fragments ordered by shard index.

        Payloads and checksums are deterministic for identical input; only
        fragment ids and `created_at` differ between calls.

        Raises:
            EmptyInput: If `data` is empty
        """
        if not data:
            raise EmptyInput("Cannot encode empty data")

        k = self.threshold_shards
        n = self.total_shards
        shards, rs_params = encode_data(bytes(data), k, n)

        metadata = EncodingMetadata(
            total_shards=n,
            threshold_shards=k,
            original_size=len(data),
            created_at=utc_timestamp(),
        )
        fragments = [
            Fragment.create(shard_index=i, payload=shard, metadata=metadata)
            for i, shard in enumerate(shards)
        ]

        logger.debug(
            "Encoded %d bytes into %d fragments of %d bytes (threshold %d)",
            len(data), n, rs_params.shard_size, k,
        )
        return fragments

    def verify(self, fragment: Fragment) -> bool:
        """Check a fragment's payload against its stored checksum."""
        return verify_fragment(fragment)

    def reconstruct(self, fragments: Iterable[Fragment]) -> bytes:
        """
        Rebuild the original payload from at least `threshold_shards` fragments.

        The threshold, total and original size are read from the fragments'
        own metadata. Every supplied fragment is verified before use; exactly
        `threshold_shards` of them, lowest shard index first, are decoded.

        Raises:
            InconsistentFragments: If the fragments do not come from one encode
            InsufficientFragments: If fewer than the threshold are supplied
            CorruptedFragment: If any supplied fragment fails verification
            ReconstructionError: If Reed-Solomon decoding fails
        """
        by_index = self._collect(list(fragments))

        if not by_index:
            raise InsufficientFragments(needed=self.threshold_shards, got=0)

        metadata = next(iter(by_index.values())).metadata
        k = metadata.threshold_shards
        if len(by_index) < k:
            raise InsufficientFragments(needed=k, got=len(by_index))

        ordered = [by_index[i] for i in sorted(by_index)]
        for fragment in ordered:
            if not verify_fragment(fragment):
                logger.warning(
                    "Fragment %s (shard %d) failed checksum verification",
                    fragment.id, fragment.shard_index,
                )
                raise CorruptedFragment(fragment.id, fragment.shard_index)

        rs_params = RSParams(
            data_shards=k,
            parity_shards=metadata.total_shards - k,
            total_shards=metadata.total_shards,
            shard_size=metadata.shard_size,
        )
        result = reconstruct_data(
            shards=[f.payload for f in ordered],
            shard_indices=[f.shard_index for f in ordered],
            params=rs_params,
            original_size=metadata.original_size,
        )
        if not result.success:
            raise ReconstructionError(result.error)

        logger.debug(
            "Reconstructed %d bytes from shards %s (fast path: %s)",
            metadata.original_size, result.used_indices, result.fast_path,
        )
        return result.data

    def _collect(self, fragments: List[Fragment]) -> Dict[int, Fragment]:
        """Check the fragments belong to one encode and key them by shard index."""
        if not fragments:
            return {}

        reference = fragments[0].metadata
        if reference.threshold_shards < 1 or reference.total_shards < reference.threshold_shards:
            raise InconsistentFragments(
                f"Invalid encoding metadata: threshold {reference.threshold_shards} "
                f"of {reference.total_shards}"
            )
        if reference.total_shards > MAX_TOTAL_SHARDS:
            raise InconsistentFragments(
                f"Invalid encoding metadata: total_shards {reference.total_shards} exceeds {MAX_TOTAL_SHARDS}"
            )
        if reference.original_size < 1:
            raise InconsistentFragments(f"Invalid original size: {reference.original_size}")

        if reference.threshold_shards != self.threshold_shards or reference.total_shards != self.total_shards:
            logger.debug(
                "Fragments encoded with %d-of-%d, engine configured for %d-of-%d",
                reference.threshold_shards, reference.total_shards,
                self.threshold_shards, self.total_shards,
            )

        expected_size = reference.shard_size
        by_index: Dict[int, Fragment] = {}
        for fragment in fragments:
            if not fragment.metadata.same_encoding(reference):
                raise InconsistentFragments(
                    f"Fragment {fragment.id} has encoding metadata that disagrees with {fragments[0].id}"
                )
            if not 0 <= fragment.shard_index < reference.total_shards:
                raise InconsistentFragments(
                    f"Fragment {fragment.id} has shard index {fragment.shard_index} "
                    f"outside 0..{reference.total_shards - 1}"
                )
            if len(fragment.payload) != expected_size:
                if not verify_fragment(fragment):
                    raise CorruptedFragment(fragment.id, fragment.shard_index)
                raise InconsistentFragments(
                    f"Fragment {fragment.id} payload is {len(fragment.payload)} bytes, expected {expected_size}"
                )

            existing = by_index.get(fragment.shard_index)
            if existing is None:
                by_index[fragment.shard_index] = fragment
            elif existing.payload != fragment.payload or existing.checksum != fragment.checksum:
                for candidate in (existing, fragment):
                    if not verify_fragment(candidate):
                        raise CorruptedFragment(candidate.id, candidate.shard_index)
                raise InconsistentFragments(
                    f"Fragments {existing.id} and {fragment.id} both claim shard {fragment.shard_index}"
                )

        return by_index

    def repair(
        self,
        fragments: Iterable[Fragment],
        shard_indices: Optional[Iterable[int]] = None,
    ) -> List[Fragment]:
        """
        Regenerate fragments for the given shard indices.

        Defaults to the indices missing from `fragments`. Repaired fragments
        are new fragments with new ids; their payloads are identical to the
        originals because encoding is deterministic.
        """
        fragments = list(fragments)
        data = self.reconstruct(fragments)
        metadata = fragments[0].metadata
        n = metadata.total_shards

        if shard_indices is None:
            present = {f.shard_index for f in fragments}
            wanted = [i for i in range(n) if i not in present]
        else:
            wanted = sorted(set(shard_indices))
            for i in wanted:
                if not 0 <= i < n:
                    raise InconsistentFragments(f"Shard index {i} outside 0..{n - 1}")

        if not wanted:
            return []

        shards, _ = encode_data(data, metadata.threshold_shards, n)
        repaired_metadata = EncodingMetadata(
            total_shards=n,
            threshold_shards=metadata.threshold_shards,
            original_size=metadata.original_size,
            created_at=utc_timestamp(),
        )
        repaired = [
            Fragment.create(shard_index=i, payload=shards[i], metadata=repaired_metadata)
            for i in wanted
        ]
        logger.debug("Repaired shards %s", wanted)
        return repaired

    def analyze(self, fragments: Iterable[Fragment]) -> dict:
        """Feasibility report for a fragment set, checksums included."""
        fragments = list(fragments)
        valid = [f for f in fragments if verify_fragment(f)]
        valid_indices = [f.shard_index for f in valid]
        if fragments:
            k = fragments[0].metadata.threshold_shards
            n = fragments[0].metadata.total_shards
        else:
            k, n = self.threshold_shards, self.total_shards
        analysis = analyze_reconstruction(valid_indices, k, n)
        valid_ids = {f.id for f in valid}
        analysis["corrupted"] = [f.id for f in fragments if f.id not in valid_ids]
        return analysis

    def distribute(
        self,
        fragments: Iterable[Fragment],
        node_ids: Sequence[str],
    ) -> Dict[str, List[Fragment]]:
        """Deterministically map fragments onto nodes by fragment id."""
        return placement.distribute(fragments, node_ids)
