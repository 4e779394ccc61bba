"""Relation batch flattening."""

from __future__ import annotations

from typing import Any, Iterable, List, Union

from ..models import Relation, RelationBatch


def flatten(batches: Iterable[Union[RelationBatch, dict[str, Any]]] | None) -> List[Any]:
    """Concatenate every batch ``body`` in batch order.

    Batches may be parsed ``RelationBatch`` models or raw dicts; a missing or
    null ``body`` counts as empty. Items are returned as given.
    """
    flat: List[Any] = []
    for batch in batches or []:
        if isinstance(batch, RelationBatch):
            body = batch.body
        elif isinstance(batch, dict):
            body = batch.get("body") or []
        else:
            continue
        flat.extend(body)
    return flat


def parse_relation_batches(payload: Any) -> List[RelationBatch]:
    """Coerce a ``/relations`` payload into batches, tolerating a bare dict."""
    if payload is None:
        return []
    if isinstance(payload, dict):
        payload = [payload]
    return [RelationBatch.model_validate(item) for item in payload if isinstance(item, dict)]


def relation_row(relation: Relation, decode_name) -> dict[str, Any]:
    """Presentation row for a single relation."""
    return {
        "id": relation.id,
        "name": decode_name(relation.name),
        "kind": f"{relation.kind.major} - {relation.kind.minor}",
        "created": relation.created,
        "terminated": relation.terminated,
        "direction": relation.direction,
    }


__all__ = ["flatten", "parse_relation_batches", "relation_row"]
