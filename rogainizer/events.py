"""Event management for both deployment schemas.

The ``courses`` schema stores configured courses/categories per event and
is the parent of teams. The ``results`` schema stores dated result records
keyed naturally by ``(year, series, name)`` and is written through
``save_result``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from . import datastore_pg as pg
from .errors import ConflictError, NotFoundError, ValidationError
from .lists import decode_stored_list, encode_list
from .validation import (
    is_blank,
    parse_date,
    parse_duration,
    parse_id,
    parse_year,
    require_fields,
)


logger = logging.getLogger(__name__)

SAVED_MESSAGE = "Event saved successfully."
OVERWRITTEN_MESSAGE = "Event overwritten successfully."


def event_from_row(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "name": row["name"],
        "date": row["date"],
        "location": row["location"],
        "courses": decode_stored_list(row.get("courses")),
        "categories": decode_stored_list(row.get("categories")),
    }


def result_event_from_row(row: Dict[str, Any]) -> Dict[str, Any]:
    duration = row.get("duration_hours")
    return {
        "id": row["id"],
        "year": row["year"],
        "series": row["series"],
        "name": row["name"],
        "date": row["date"],
        "organiser": row.get("organiser") or "",
        "durationHours": float(duration) if duration is not None else None,
    }


def _event_fields(payload: Dict[str, Any]) -> Dict[str, Any]:
    require_fields(payload, ("name", "date", "location"), "name, date, and location are required")
    return {
        "name": str(payload["name"]).strip(),
        "date": parse_date(payload["date"]),
        "location": str(payload["location"]).strip(),
        "courses": encode_list(payload.get("courses")),
        "categories": encode_list(payload.get("categories")),
    }


def list_events(db) -> List[Dict[str, Any]]:
    with db.connection() as conn:
        return [event_from_row(r) for r in pg.list_events(conn)]


def create_event(db, payload: Dict[str, Any]) -> Dict[str, Any]:
    fields = _event_fields(payload)
    with db.connection() as conn:
        event_id = pg.insert_event(conn, fields)
        row = pg.get_event(conn, event_id)
    logger.info("create_event event_id=%s", event_id)
    return event_from_row(row)


def update_event(db, raw_event_id: Any, payload: Dict[str, Any]) -> Dict[str, Any]:
    event_id = parse_id(raw_event_id, "event")
    fields = _event_fields(payload)
    with db.connection() as conn:
        if pg.update_event(conn, event_id, fields) == 0:
            raise NotFoundError("event not found")
        row = pg.get_event(conn, event_id)
    # Courses/categories may have shrunk; existing teams are not revalidated.
    logger.info("update_event event_id=%s", event_id)
    return event_from_row(row)


def delete_event(db, raw_event_id: Any) -> None:
    event_id = parse_id(raw_event_id, "event")
    with db.connection() as conn:
        if pg.delete_event(conn, event_id) == 0:
            raise NotFoundError("event not found")
    logger.info("delete_event event_id=%s", event_id)


def list_result_events(db) -> List[Dict[str, Any]]:
    with db.connection() as conn:
        return [result_event_from_row(r) for r in pg.list_result_events(conn)]


def _result_fields(payload: Dict[str, Any]) -> Dict[str, Any]:
    year = parse_year(payload.get("year"))
    require_fields(payload, ("series", "name", "date"), "year, series, name, and date are required")
    duration = payload.get("duration")
    if duration is None:
        duration = payload.get("durationHours")
    organiser = payload.get("organiser")
    return {
        "year": year,
        "series": str(payload["series"]).strip(),
        "name": str(payload["name"]).strip(),
        "date": parse_date(payload["date"]),
        "organiser": "" if is_blank(organiser) else str(organiser).strip(),
        "duration_hours": parse_duration(duration),
    }


def _parse_overwrite(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text in ("1", "true", "yes", "on"):
            return True
        if text in ("", "0", "false", "no", "off"):
            return False
    if isinstance(value, (int, float)):
        return bool(value)
    raise ValidationError("overwrite must be a boolean")


def save_result(db, payload: Dict[str, Any]) -> Dict[str, Any]:
    """Insert a result event, or overwrite the one sharing its natural key.

    Without ``overwrite`` an existing ``(year, series, name)`` raises a
    ConflictError with ``exists=True`` and nothing is written. The lookup
    and the write are separate statements, so two concurrent submissions
    can both miss the lookup; the loser then hits the store's unique
    constraint and gets a ConflictError without ``exists``.

    Returns ``{"message": ..., "event": ..., "overwritten": bool}``.
    """
    fields = _result_fields(payload)
    overwrite = _parse_overwrite(payload.get("overwrite"))

    with db.connection() as conn:
        existing = pg.find_result_event(conn, fields["year"], fields["series"], fields["name"])
        if existing is not None and not overwrite:
            raise ConflictError(
                "An event with the same year, series, and name already exists.",
                exists=True,
            )
        if existing is not None:
            event_id = existing["id"]
            if pg.update_result_event(conn, event_id, fields) == 0:
                raise NotFoundError("event not found")
            outcome = "overwritten"
        else:
            event_id = pg.insert_result_event(conn, fields)
            outcome = "inserted"
        row = pg.get_result_event(conn, event_id)

    logger.info(
        "save_result outcome=%s event_id=%s year=%s series=%s",
        outcome,
        event_id,
        fields["year"],
        fields["series"],
    )
    overwritten = outcome == "overwritten"
    return {
        "message": OVERWRITTEN_MESSAGE if overwritten else SAVED_MESSAGE,
        "event": result_event_from_row(row),
        "overwritten": overwritten,
    }
