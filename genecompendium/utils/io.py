"""
File I/O utilities for genecompendium.

This module provides helpers for saving and loading JSON artefacts
(optionally gzip-compressed), including the persisted duplicate-patient
relation consumed by the curation pipeline.
"""

from __future__ import annotations

import gzip
import hashlib
import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Union

from genecompendium.exceptions import InvalidArgumentError
from genecompendium.utils.logging import logger


# =============================================================================
# Path Utilities
# =============================================================================

def ensure_dir(path: Union[str, Path]) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path

    Returns:
        Path object
    """
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def safe_filename(key: str, suffix: str = "") -> str:
    """
    Turn an arbitrary dataset name into a filesystem-safe file name.

    Args:
        key: Dataset name or other identifier
        suffix: File suffix (e.g. ``".parquet"``)

    Returns:
        Sanitised file name. Names that had to be altered carry a short
        hash of the original, so two names never map to the same file.
    """
    if len(key) > 200:
        key = hashlib.md5(key.encode()).hexdigest()
    safe_key = "".join(c if c.isalnum() or c in "._-" else "_" for c in key)
    if safe_key != key:
        safe_key = f"{safe_key}-{hashlib.md5(key.encode()).hexdigest()[:8]}"
    return f"{safe_key}{suffix}"


# =============================================================================
# JSON I/O
# =============================================================================

def save_json(
    obj: Any,
    path: Union[str, Path],
    compress: bool = False,
) -> Path:
    """
    Save a JSON-serialisable object.

    Args:
        obj: Object to serialise
        path: Output path
        compress: Whether to use gzip compression (``.gz`` is appended)

    Returns:
        Path actually written
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    if compress or path.suffix == ".gz":
        if path.suffix != ".gz":
            path = path.with_suffix(path.suffix + ".gz")
        with gzip.open(path, "wt", encoding="utf-8") as f:
            json.dump(obj, f, indent=2)
    else:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(obj, f, indent=2)

    return path


def load_json(path: Union[str, Path]) -> Any:
    """Load a JSON file, transparently handling gzip compression."""
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"JSON file not found: {path}")

    if path.suffix == ".gz":
        with gzip.open(path, "rt", encoding="utf-8") as f:
            return json.load(f)
    with open(path, encoding="utf-8") as f:
        return json.load(f)


# =============================================================================
# Duplicate relation artefact
# =============================================================================

def normalise_duplicate_relation(
    relation: Mapping[str, Union[str, Iterable[str]]],
) -> Dict[str, List[str]]:
    """
    Coerce a duplicate relation into ``{key: [related keys]}``.

    Related keys may be given as a single string or any iterable of
    strings; order is preserved and repeated keys are dropped.

    Raises:
        InvalidArgumentError: If the relation is not a mapping of strings.
    """
    if not isinstance(relation, Mapping):
        raise InvalidArgumentError(
            f"Duplicate relation must be a mapping, got {type(relation).__name__}"
        )

    normalised: Dict[str, List[str]] = {}
    for key, related in relation.items():
        if not isinstance(key, str):
            raise InvalidArgumentError(f"Duplicate relation keys must be strings: {key!r}")
        if isinstance(related, str):
            related = [related]
        members: List[str] = []
        for member in related:
            if not isinstance(member, str):
                raise InvalidArgumentError(
                    f"Duplicate relation members must be strings: {member!r} (key {key})"
                )
            if member not in members:
                members.append(member)
        normalised[key] = members
    return normalised


def save_duplicate_relation(
    relation: Mapping[str, Iterable[str]],
    path: Union[str, Path],
    compress: bool = False,
) -> Path:
    """
    Persist a duplicate-patient relation as JSON.

    Example:
        >>> save_duplicate_relation({"DS1:p1": ["DS2:p7"]}, "duplicates.json")
    """
    normalised = normalise_duplicate_relation(relation)
    path = save_json(normalised, path, compress=compress)
    logger.debug(f"Saved duplicate relation with {len(normalised)} entries to {path}")
    return path


def load_duplicate_relation(path: Union[str, Path]) -> Dict[str, List[str]]:
    """
    Load a duplicate-patient relation saved by :func:`save_duplicate_relation`.

    Args:
        path: Path to ``duplicates.json`` (or ``duplicates.json.gz``)

    Returns:
        Mapping from representative patient key to related keys
    """
    relation = normalise_duplicate_relation(load_json(path))
    logger.debug(f"Loaded duplicate relation with {len(relation)} entries from {path}")
    return relation


__all__ = [
    "ensure_dir",
    "safe_filename",
    "save_json",
    "load_json",
    "normalise_duplicate_relation",
    "save_duplicate_relation",
    "load_duplicate_relation",
]
