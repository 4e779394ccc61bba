"""Categorization tree traversal.

The ``/categories/tree`` endpoint returns a recursive structure:

    [{"entityId": "...", "name": <wire value>, "direction": "OUTGOING",
      "startTime": "...", "endTime": null,
      "attributes": [<node>, ...],
      "children": [<node>, ...]}, ...]

Child nodes usually carry ``relatedEntityId`` instead of ``entityId``.
Attribute nodes are walked exactly like children but are flagged so a
renderer can show them differently.

The walk never recurses. It keeps an explicit stack, enforces a depth bound,
and tracks the ids on the current root-to-node path so a node that is its own
ancestor is reported instead of looping forever. The same entity may appear
in separate branches; only a repeat on the current path is a cycle.

Nodes stay plain JSON dicts. Validating deeply nested input into models
would recurse, which is exactly what the walker avoids.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional

from ..models import StructuralError
from .wire_value import WireHeaderMode, decode

JsonDict = Dict[str, Any]

DEFAULT_MAX_DEPTH = 64
PALETTE_SIZE = 8


@dataclass(frozen=True)
class TreeStep:
    """One visited node and where it sits in the tree."""

    node: JsonDict
    depth: int
    is_attribute: bool
    parent_id: Optional[str]


@dataclass(frozen=True)
class CategoryRow:
    id: Optional[str]
    name: str
    direction: Optional[str]
    start_time: Optional[str]
    end_time: Optional[str]
    depth: int
    palette_level: int
    is_attribute: bool
    parent_id: Optional[str]

    def to_dict(self) -> JsonDict:
        return {
            "id": self.id,
            "name": self.name,
            "direction": self.direction,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "depth": self.depth,
            "palette_level": self.palette_level,
            "is_attribute": self.is_attribute,
            "parent_id": self.parent_id,
        }


def node_id(node: JsonDict) -> Optional[str]:
    for key in ("entityId", "relatedEntityId", "id"):
        value = node.get(key)
        if value:
            return str(value)
    return None


def _sequence(node: JsonDict, key: str) -> List[Any]:
    value = node.get(key)
    return value if isinstance(value, list) else []


def iter_tree(roots: Optional[List[Any]], max_depth: int = DEFAULT_MAX_DEPTH) -> Iterator[TreeStep]:
    """Yield nodes depth-first in pre-order: node, its attributes, then its children.

    Args:
        roots: Top-level nodes. Non-dict entries are skipped.
        max_depth: Deepest depth allowed (roots are depth 0).

    Raises:
        StructuralError: A node sits deeper than ``max_depth`` or repeats an
            id (or the same object) already on its ancestor path.
    """
    # Stack entries: (node, depth, is_attribute, parent_id)
    stack: List[tuple[Any, int, bool, Optional[str]]] = [
        (root, 0, False, None) for root in reversed(roots or [])
    ]
    # Keys of the nodes on the current path, indexed by depth.
    path: List[Any] = []
    on_path: set[Any] = set()

    while stack:
        node, depth, is_attribute, parent_id = stack.pop()
        if not isinstance(node, dict):
            continue

        nid = node_id(node)
        if depth > max_depth:
            raise StructuralError(
                f"Category tree exceeds maximum depth {max_depth}",
                depth=depth,
                node_id=nid,
            )

        # Pre-order: everything on the path deeper than this node is finished.
        while len(path) > depth:
            on_path.discard(path.pop())

        key = nid if nid is not None else ("object", id(node))
        if key in on_path:
            raise StructuralError(
                f"Cycle detected in category tree at node {nid or '<anonymous>'}",
                depth=depth,
                node_id=nid,
            )
        path.append(key)
        on_path.add(key)

        yield TreeStep(node, depth, is_attribute, parent_id)

        children = _sequence(node, "children")
        attributes = _sequence(node, "attributes")
        for child in reversed(children):
            stack.append((child, depth + 1, False, nid))
        for attribute in reversed(attributes):
            stack.append((attribute, depth + 1, True, nid))


def walk(
    roots: Optional[List[Any]],
    visit: Callable[[JsonDict, int], Any],
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> int:
    """Call ``visit(node, depth)`` once per node and attribute node.

    Returns the number of visited nodes.
    """
    count = 0
    for step in iter_tree(roots, max_depth=max_depth):
        visit(step.node, step.depth)
        count += 1
    return count


def palette_level(depth: int) -> int:
    return depth % PALETTE_SIZE


def flatten_tree(
    roots: Optional[List[Any]],
    max_depth: int = DEFAULT_MAX_DEPTH,
    header_mode: WireHeaderMode = WireHeaderMode.DETECT,
) -> List[CategoryRow]:
    """Walk the tree into presentation rows with decoded names."""
    rows: List[CategoryRow] = []
    for step in iter_tree(roots, max_depth=max_depth):
        node = step.node
        rows.append(
            CategoryRow(
                id=node_id(node),
                name=decode(node.get("name"), header_mode),
                direction=node.get("direction"),
                start_time=node.get("startTime"),
                end_time=node.get("endTime"),
                depth=step.depth,
                palette_level=palette_level(step.depth),
                is_attribute=step.is_attribute,
                parent_id=step.parent_id,
            )
        )
    return rows


__all__ = [
    "DEFAULT_MAX_DEPTH",
    "PALETTE_SIZE",
    "TreeStep",
    "CategoryRow",
    "node_id",
    "iter_tree",
    "walk",
    "palette_level",
    "flatten_tree",
]
