"""Team records, always scoped to their owning event."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from . import datastore_pg as pg
from .errors import NotFoundError, ValidationError
from .lists import decode_stored_list, normalize_competitors
from .validation import normalize_score, parse_id, require_fields, validate_selections


logger = logging.getLogger(__name__)

_REQUIRED = ("name", "competitors", "course", "category")
_REQUIRED_MESSAGE = "name, competitors, course, category, and score are required"


def team_from_row(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "eventId": row["event_id"],
        "name": row["name"],
        "competitors": row["competitors"],
        "course": row["course"],
        "category": row["category"],
        "score": float(row["score"]) if row.get("score") is not None else 0.0,
    }


def _team_fields(payload: Dict[str, Any], score_required: bool) -> Dict[str, Any]:
    require_fields(payload, _REQUIRED, _REQUIRED_MESSAGE)
    competitors = normalize_competitors(payload["competitors"])
    if not competitors:
        raise ValidationError(_REQUIRED_MESSAGE)

    raw_score = payload.get("score")
    if raw_score is None and not score_required:
        raw_score = 0
    score = normalize_score(raw_score)
    if score is None:
        raise ValidationError("score must be a non-negative number")

    return {
        "name": str(payload["name"]).strip(),
        "competitors": competitors,
        "course": str(payload["course"]),
        "category": str(payload["category"]),
        "score": score,
    }


def _check_selections(conn, event_id: int, fields: Dict[str, Any]) -> None:
    event = pg.get_event_selections(conn, event_id)
    if event is None:
        raise NotFoundError("event not found")
    error = validate_selections(
        decode_stored_list(event.get("courses")),
        decode_stored_list(event.get("categories")),
        fields["course"],
        fields["category"],
    )
    if error is not None:
        raise error


def list_teams(db, raw_event_id: Any) -> List[Dict[str, Any]]:
    event_id = parse_id(raw_event_id, "event")
    with db.connection() as conn:
        return [team_from_row(r) for r in pg.list_teams(conn, event_id)]


def create_team(db, raw_event_id: Any, payload: Dict[str, Any]) -> Dict[str, Any]:
    event_id = parse_id(raw_event_id, "event")
    fields = _team_fields(payload, score_required=False)
    with db.connection() as conn:
        _check_selections(conn, event_id, fields)
        team_id = pg.insert_team(conn, event_id, fields)
        row = pg.get_team(conn, team_id)
    logger.info("create_team event_id=%s team_id=%s", event_id, team_id)
    return team_from_row(row)


def update_team(db, raw_event_id: Any, raw_team_id: Any, payload: Dict[str, Any]) -> Dict[str, Any]:
    event_id = parse_id(raw_event_id, "event")
    team_id = parse_id(raw_team_id, "team")
    fields = _team_fields(payload, score_required=True)
    with db.connection() as conn:
        _check_selections(conn, event_id, fields)
        if pg.update_team(conn, team_id, event_id, fields) == 0:
            raise NotFoundError("team not found")
        row = pg.get_team(conn, team_id, event_id)
    logger.info("update_team event_id=%s team_id=%s", event_id, team_id)
    return team_from_row(row)


def delete_team(db, raw_event_id: Any, raw_team_id: Any) -> None:
    event_id = parse_id(raw_event_id, "event")
    team_id = parse_id(raw_team_id, "team")
    with db.connection() as conn:
        if pg.delete_team(conn, team_id, event_id) == 0:
            raise NotFoundError("team not found")
    logger.info("delete_team event_id=%s team_id=%s", event_id, team_id)
