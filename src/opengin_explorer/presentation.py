"""Presentation-ready shapes for counts, entity pages and lifecycle fields."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from .client.wire_value import WireHeaderMode, decode
from .models import CountSummary, Entity, EntityPage

JsonDict = Dict[str, Any]


def format_date(value: Optional[str]) -> str:
    """ISO date (``YYYY-MM-DD``) for a timestamp; ``"N/A"`` when empty.

    Unparseable values are returned unchanged.
    """
    if not value:
        return "N/A"
    text = str(value).strip()
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        return text


def lifecycle_status(terminated: Optional[str]) -> str:
    return format_date(terminated) if terminated else "Active"


def count_distribution(summary: CountSummary, mode: Literal["major", "minor"] = "major") -> List[JsonDict]:
    """Chart rows for the count summary.

    ``major`` yields one row per major kind. ``minor`` flattens the nested
    map into rows labelled ``"<Minor> (<major>)"``.
    """
    if mode == "major":
        return [{"name": name, "value": value} for name, value in summary.major_counts.items()]

    rows: List[JsonDict] = []
    for major, minors in summary.minor_counts.items():
        for name, value in (minors or {}).items():
            label = name[:1].upper() + name[1:]
            rows.append({"name": f"{label} ({major})", "value": value, "major": major, "minor": name})
    return rows


def page_window(offset: int, limit: int, total: int) -> JsonDict:
    """1-based bounds of the current page and whether prev/next exist."""
    first = offset + 1 if total else 0
    last = min(offset + limit, total)
    return {
        "first": first,
        "last": last,
        "total": total,
        "has_previous": offset > 0,
        "has_next": offset + limit < total,
    }


def entity_row(entity: Entity, header_mode: WireHeaderMode = WireHeaderMode.DETECT) -> JsonDict:
    return {
        "id": entity.id,
        "name": decode(entity.name, header_mode),
        "created": format_date(entity.created),
        "status": lifecycle_status(entity.terminated),
    }


def entity_page_view(page: EntityPage, header_mode: WireHeaderMode = WireHeaderMode.DETECT) -> JsonDict:
    return {
        "major": page.pair.major,
        "minor": page.pair.minor,
        "count": page.count,
        "window": page_window(page.offset, page.limit, page.total),
        "items": [entity_row(item, header_mode) for item in page.items],
    }
