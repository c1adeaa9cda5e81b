"""
On-disk fragment layout: one JSON document per fragment.
"""

import json
import logging
from pathlib import Path
from typing import Iterable, List

from .errors import FragmentFormatError
from .fragment import FRAGMENT_ID_PREFIX, Fragment

logger = logging.getLogger(__name__)

FRAGMENT_SUFFIX = ".json"


def fragment_filename(fragment: Fragment) -> str:
    return f"{fragment.id}{FRAGMENT_SUFFIX}"


def save_fragment(fragment: Fragment, directory: str | Path) -> Path:
    path = Path(directory) / fragment_filename(fragment)
    with path.open("w", encoding="utf-8") as f:
        json.dump(fragment.to_dict(), f)
    return path


def save_fragments(directory: str | Path, fragments: Iterable[Fragment]) -> List[Path]:
    """Write each fragment to `directory`, creating it if needed."""
    base = Path(directory)
    base.mkdir(parents=True, exist_ok=True)
    paths = [save_fragment(fragment, base) for fragment in fragments]
    logger.debug("Saved %d fragments to %s", len(paths), base)
    return paths


def load_fragment(path: str | Path) -> Fragment:
    p = Path(path)
    try:
        with p.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise FragmentFormatError(f"Invalid JSON in {p}: {e}") from e
    if not isinstance(data, dict):
        raise FragmentFormatError(f"Fragment record in {p} is not an object")
    return Fragment.from_dict(data)


def load_fragments(directory: str | Path) -> List[Fragment]:
    """Load every fragment file in `directory`, ordered by shard index."""
    fragments = [load_fragment(p) for p in sorted(Path(directory).glob(f"{FRAGMENT_ID_PREFIX}*{FRAGMENT_SUFFIX}"))]
    return sorted(fragments, key=lambda f: f.shard_index)
