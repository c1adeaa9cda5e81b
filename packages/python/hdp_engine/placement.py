"""
Deterministic fragment placement.

Each fragment id is hashed with SHA-256 and mapped onto the node list with
Lamping & Veach jump consistent hashing. Adding a node to the end of the
list moves only about 1/N of the fragments. No load balancing is attempted.
"""

import hashlib
import logging
from typing import Dict, Iterable, List, Sequence

from .errors import InvalidPlacement
from .fragment import Fragment

logger = logging.getLogger(__name__)

_MASK64 = (1 << 64) - 1
_LCG_MULTIPLIER = 2862933555777941757


def key_hash(key: str) -> int:
    """First 8 bytes of SHA-256(key) as a big-endian 64-bit integer."""
    digest = hashlib.sha256(key.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big")


def jump_hash(key: int, buckets: int) -> int:
    """Map a 64-bit key onto one of `buckets` buckets."""
    if buckets < 1:
        raise InvalidPlacement(f"buckets must be at least 1, got {buckets}")
    b, j = -1, 0
    while j < buckets:
        b = j
        key = (key * _LCG_MULTIPLIER + 1) & _MASK64
        j = int((b + 1) * ((1 << 31) / ((key >> 33) + 1)))
    return b


def _check_nodes(node_ids: Sequence[str]) -> List[str]:
    nodes = list(node_ids)
    if not nodes:
        raise InvalidPlacement("node_ids must not be empty")
    if len(set(nodes)) != len(nodes):
        raise InvalidPlacement("node_ids must not contain duplicates")
    return nodes


def node_for(fragment_id: str, node_ids: Sequence[str]) -> str:
    """Node a single fragment id is placed on."""
    nodes = _check_nodes(node_ids)
    return nodes[jump_hash(key_hash(fragment_id), len(nodes))]


def distribute(
    fragments: Iterable[Fragment],
    node_ids: Sequence[str],
) -> Dict[str, List[Fragment]]:
    """
    Assign every fragment to exactly one node.

    Every node appears in the result, in the given order, possibly with an
    empty list. Fragments keep their input order within a node.
    """
    nodes = _check_nodes(node_ids)
    distribution: Dict[str, List[Fragment]] = {node: [] for node in nodes}

    count = 0
    for fragment in fragments:
        bucket = jump_hash(key_hash(fragment.id), len(nodes))
        distribution[nodes[bucket]].append(fragment)
        count += 1

    logger.debug(
        "Distributed %d fragments across %d nodes: %s",
        count, len(nodes), {node: len(frags) for node, frags in distribution.items()},
    )
    return distribution
