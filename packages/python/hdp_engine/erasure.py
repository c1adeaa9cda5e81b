"""
Reed-Solomon Erasure Coding for the HDP engine.

Implements systematic RS encoding where:
- First k shards are data shards (original data split)
- Next (n-k) shards are parity shards (redundancy)
- Any k shards can reconstruct the original data exactly

Uses reedsolo library for GF(2^8) Reed-Solomon operations.
"""

from typing import Dict, List, Optional, Tuple
from dataclasses import dataclass
import math

from reedsolo import RSCodec, ReedSolomonError

from .params import MAX_TOTAL_SHARDS


@dataclass
class RSParams:
    """Reed-Solomon encoding parameters."""
    data_shards: int      # k - number of data shards
    parity_shards: int    # n-k - number of parity shards
    total_shards: int     # n - total shards
    shard_size: int       # Size of each shard in bytes


@dataclass
class ReconstructionResult:
    """Result of reconstruction attempt."""
    success: bool
    data: Optional[bytes]
    original_size: int
    shards_used: int
    shards_available: int
    shards_required: int
    used_indices: List[int]
    error: Optional[str] = None
    fast_path: bool = False


def encode_data(data: bytes, k: int, n: int) -> Tuple[List[bytes], RSParams]:
    """
    Encode data into n shards using Reed-Solomon erasure coding.

    Args:
        data: Original data to encode
        k: Number of data shards (minimum required for reconstruction)
        n: Total number of shards (k data + n-k parity)

    Returns:
        Tuple of (list of shard bytes, RSParams)

    The encoding works as follows:
    1. Pad data to be divisible by k
    2. Split into k equal data shards
    3. Generate n-k parity shards using RS coding, one codeword per byte column
    """
    if k < 1:
        raise ValueError("Must have at least 1 data shard")
    if n < k:
        raise ValueError(f"Total shards (n={n}) cannot be less than data shards (k={k})")
    if n > MAX_TOTAL_SHARDS:
        raise ValueError(f"Total shards (n={n}) cannot exceed {MAX_TOTAL_SHARDS}")

    parity_count = n - k

    # Pad data to be divisible by k
    original_size = len(data)
    padded_size = max(1, math.ceil(original_size / k)) * k
    padded_data = bytes(data).ljust(padded_size, b'\x00')

    shard_size = padded_size // k

    data_shards = [
        padded_data[i * shard_size:(i + 1) * shard_size]
        for i in range(k)
    ]

    params = RSParams(
        data_shards=k,
        parity_shards=parity_count,
        total_shards=n,
        shard_size=shard_size
    )

    if parity_count == 0:
        return data_shards, params

    rs = RSCodec(parity_count)

    parity_shards = [bytearray(shard_size) for _ in range(parity_count)]

    for byte_pos in range(shard_size):
        column = bytes(shard[byte_pos] for shard in data_shards)

        # Last parity_count bytes of the codeword are parity
        encoded = rs.encode(column)
        for parity_idx, parity_byte in enumerate(encoded[k:]):
            parity_shards[parity_idx][byte_pos] = parity_byte

    all_shards = data_shards + [bytes(ps) for ps in parity_shards]
    return all_shards, params


def select_shards(shard_map: Dict[int, bytes], k: int) -> List[int]:
    """Pick exactly k shard indices, lowest first."""
    return sorted(shard_map)[:k]


def reconstruct_data(
    shards: List[Optional[bytes]],
    shard_indices: List[int],
    params: RSParams,
    original_size: int
) -> ReconstructionResult:
    """
    Reconstruct original data from available shards.

    When more than k shards are available, exactly k are used, chosen by
    ascending shard index, so the same shard set always decodes the same way.

    Args:
        shards: List of available shard data (same order as shard_indices)
        shard_indices: Index of each shard (0 to n-1)
        params: RS encoding parameters
        original_size: Original data size before padding

    Returns:
        ReconstructionResult with success status and recovered data
    """
    k = params.data_shards
    n = params.total_shards
    parity_count = n - k
    shard_size = params.shard_size

    shard_map: Dict[int, bytes] = {}
    for idx, shard_data in zip(shard_indices, shards):
        if shard_data is not None:
            shard_map[idx] = shard_data

    available_count = len(shard_map)

    if available_count < k:
        return ReconstructionResult(
            success=False,
            data=None,
            original_size=original_size,
            shards_used=0,
            shards_available=available_count,
            shards_required=k,
            used_indices=[],
            error=f"Need {k} shards, only {available_count} available"
        )

    selected = select_shards(shard_map, k)

    # All data shards selected: just concatenate
    if selected == list(range(k)):
        reconstructed = b''.join(shard_map[i] for i in range(k))
        return ReconstructionResult(
            success=True,
            data=reconstructed[:original_size],
            original_size=original_size,
            shards_used=k,
            shards_available=available_count,
            shards_required=k,
            used_indices=selected,
            fast_path=True
        )

    rs = RSCodec(parity_count)
    selected_set = set(selected)
    erasure_positions = [i for i in range(n) if i not in selected_set]

    reconstructed_data_shards = [bytearray(shard_size) for _ in range(k)]

    for byte_pos in range(shard_size):
        codeword = bytearray(n)
        for shard_idx in selected:
            codeword[shard_idx] = shard_map[shard_idx][byte_pos]

        try:
            decoded, _, _ = rs.decode(
                bytes(codeword), erase_pos=erasure_positions, only_erasures=True
            )
        except ReedSolomonError as e:
            return ReconstructionResult(
                success=False,
                data=None,
                original_size=original_size,
                shards_used=0,
                shards_available=available_count,
                shards_required=k,
                used_indices=selected,
                error=f"RS decode failed at byte {byte_pos}: {e}"
            )

        for i in range(k):
            reconstructed_data_shards[i][byte_pos] = decoded[i]

    reconstructed = b''.join(bytes(shard) for shard in reconstructed_data_shards)

    return ReconstructionResult(
        success=True,
        data=reconstructed[:original_size],
        original_size=original_size,
        shards_used=k,
        shards_available=available_count,
        shards_required=k,
        used_indices=selected
    )


def analyze_reconstruction(
    available_indices: List[int],
    k: int,
    n: int
) -> dict:
    """
    Analyze whether reconstruction is feasible without actually reconstructing.

    Args:
        available_indices: List of available shard indices
        k: Data shards required
        n: Total shards

    Returns:
        Analysis dict with feasibility and details
    """
    available = set(i for i in available_indices if 0 <= i < n)
    available_count = len(available)
    missing_indices = [i for i in range(n) if i not in available]

    # The k lowest indices are the ones reconstruction would use
    selected = sorted(available)[:k]

    return {
        "feasible": available_count >= k,
        "available_shards": available_count,
        "required_shards": k,
        "total_shards": n,
        "missing_shards": missing_indices,
        "missing_count": len(missing_indices),
        "redundancy_margin": available_count - k,
        "fast_path": selected == list(range(k)),  # True if no RS decoding needed
        "message": (
            "Reconstruction possible" if available_count >= k
            else f"Need {k - available_count} more shard(s)"
        )
    }
