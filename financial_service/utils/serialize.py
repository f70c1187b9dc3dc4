# financial_service/utils/serialize.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional


def json_value(v: Any) -> Any:
    if isinstance(v, datetime):
        return v.isoformat()
    if isinstance(v, date):
        return v.isoformat()
    if isinstance(v, Decimal):
        return float(v)
    return v


def row_json(obj, exclude: Iterable[str] = ()) -> Optional[Dict[str, Any]]:
    """Column values of a model row keyed by *column* name, JSON-ready."""
    if obj is None:
        return None
    skip = set(exclude)
    out: Dict[str, Any] = {}
    for attr in obj.__mapper__.column_attrs:
        col = attr.columns[0]
        if col.name in skip:
            continue
        out[col.name] = json_value(getattr(obj, attr.key))
    return out
