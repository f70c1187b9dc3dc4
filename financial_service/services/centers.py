# financial_service/services/centers.py
from __future__ import annotations

from typing import Any, Dict, List

from ..extensions import db
from ..models import Center, State


class CenterLookupError(Exception):
    """Carries the HTTP status and message the caller should answer with."""

    def __init__(self, status: int, detail: str):
        super().__init__(detail)
        self.status = status
        self.detail = detail


def resolve_center_id(claims: Dict[str, Any]) -> str:
    """
    Center the caller acts for: the token's center_id, or for a center admin
    whose token lacks it, the center they administer.
    """
    center_id = claims.get("center_id")
    if not center_id and claims.get("role") == "center":
        row = Center.query.filter_by(center_admin=claims.get("id")).first()
        if not row:
            raise CenterLookupError(404, "Center not found for this admin")
        center_id = row.center_id
    if not center_id:
        raise CenterLookupError(400, "Center ID not found")
    return str(center_id)


def resolve_state_id(user_id) -> str:
    row = State.query.filter_by(state_admin=user_id).first()
    if not row:
        raise CenterLookupError(
            404, "State not found for this admin. Please ensure you are assigned to a state."
        )
    return row.state_id


def center_ids_in_state(state_id: str) -> List[str]:
    rows = db.session.query(Center.center_id).filter(Center.state_id == state_id).all()
    return [r.center_id for r in rows]
