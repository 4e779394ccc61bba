"""Metadata merge-and-validate.

Reconciles the key/value rows a user typed in against the metadata the server
already holds, before anything is written. The write payload is the full
merged map as a list of single-key objects, which is what the backend's
``POST /entities/{id}/metadata`` accepts.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from ..models import DuplicateExistingError, DuplicateInInputError, EmptyInputError, WireValue
from .wire_value import WireHeaderMode, decode


def _candidate_pair(candidate: Any) -> Tuple[str, str]:
    if isinstance(candidate, Mapping):
        key, value = candidate.get("key"), candidate.get("value")
    elif isinstance(candidate, (tuple, list)) and len(candidate) == 2:
        key, value = candidate
    else:
        key, value = getattr(candidate, "key", None), getattr(candidate, "value", None)
    return ("" if key is None else str(key)).strip(), ("" if value is None else str(value)).strip()


def clean_candidates(candidates: Optional[Iterable[Any]]) -> List[Tuple[str, str]]:
    """Trim keys and values and drop rows where either ends up empty."""
    cleaned: List[Tuple[str, str]] = []
    for candidate in candidates or []:
        key, value = _candidate_pair(candidate)
        if key and value:
            cleaned.append((key, value))
    return cleaned


def _repeated(keys: Iterable[str]) -> List[str]:
    seen: set[str] = set()
    repeated: List[str] = []
    for key in keys:
        if key in seen and key not in repeated:
            repeated.append(key)
        seen.add(key)
    return repeated


def decode_metadata(
    existing: Optional[Mapping[str, WireValue]],
    header_mode: WireHeaderMode = WireHeaderMode.DETECT,
) -> Dict[str, str]:
    """Decode every value of a server metadata map, keeping server order."""
    return {str(key): decode(value, header_mode) for key, value in (existing or {}).items()}


def validate_and_merge(
    existing: Optional[Mapping[str, WireValue]],
    candidates: Optional[Iterable[Any]],
    header_mode: WireHeaderMode = WireHeaderMode.DETECT,
) -> List[Dict[str, str]]:
    """Validate new metadata rows and merge them into the existing map.

    Args:
        existing: Server metadata, ``key -> wire value``.
        candidates: Rows as ``{"key", "value"}`` mappings, ``(key, value)``
            pairs, or objects with ``key``/``value`` attributes.
        header_mode: Wire header handling used when decoding existing values.

    Returns:
        ``[{key: value}, ...]``: existing keys first in server order, then the
        new keys in submission order.

    Raises:
        EmptyInputError: Nothing left after trimming.
        DuplicateInInputError: A key appears more than once in the submission.
        DuplicateExistingError: A key is already present on the server.
    """
    cleaned = clean_candidates(candidates)
    if not cleaned:
        raise EmptyInputError()

    repeated = _repeated(key for key, _ in cleaned)
    if repeated:
        raise DuplicateInInputError(repeated)

    merged = decode_metadata(existing, header_mode)
    colliding = [key for key, _ in cleaned if key in merged]
    if colliding:
        raise DuplicateExistingError(colliding)

    for key, value in cleaned:
        merged[key] = value
    return [{key: value} for key, value in merged.items()]


__all__ = ["clean_candidates", "decode_metadata", "validate_and_merge"]
