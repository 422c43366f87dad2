"""Flat user directory."""

from typing import Any, Dict, List

from . import datastore_pg as pg
from .errors import ConflictError
from .validation import require_fields


def user_from_row(row: Dict[str, Any]) -> Dict[str, Any]:
    created = row.get("created_at")
    return {
        "id": row["id"],
        "name": row["name"],
        "email": row["email"],
        "createdAt": created.isoformat() if hasattr(created, "isoformat") else created,
    }


def list_users(db) -> List[Dict[str, Any]]:
    with db.connection() as conn:
        return [user_from_row(r) for r in pg.list_users(conn)]


def create_user(db, payload: Dict[str, Any]) -> Dict[str, Any]:
    require_fields(payload, ("name", "email"), "name and email are required")
    try:
        with db.connection() as conn:
            user_id = pg.insert_user(conn, str(payload["name"]).strip(), str(payload["email"]).strip())
            row = pg.get_user(conn, user_id)
    except ConflictError as exc:
        raise ConflictError("email already exists") from exc
    return user_from_row(row)
