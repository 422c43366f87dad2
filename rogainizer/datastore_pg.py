import logging
import os
import re
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Dict, List, Optional

import psycopg2
from psycopg2 import errors as pg_errors
from psycopg2 import pool as pg_pool
from psycopg2.extras import RealDictCursor

from .errors import ConflictError, RogainizerError, SchemaError, StorageError


logger = logging.getLogger(__name__)

_MISSING_RELATION = re.compile(r'relation "(?:[\w]+\.)?([\w]+)" does not exist')

DEFAULT_INIT_SCRIPT = "sql/init.sql"


def _env_int(name: str, default: Optional[int] = None) -> Optional[int]:
    val = os.environ.get(name)
    if val is None:
        return default
    try:
        return int(val)
    except Exception:
        return default


def _connect_kwargs() -> Dict[str, Any]:
    """Common connection kwargs: connect_timeout + TCP keepalives.

    Defaults:
      - connect_timeout: 10 seconds (overridable via DB_CONNECT_TIMEOUT)
      - keepalives: enabled by default; can be disabled by DB_KEEPALIVES=0
      - keepalive tunables applied if provided (IDLE/INTERVAL/COUNT)
    """
    kwargs: Dict[str, Any] = {}
    ct_env = _env_int("DB_CONNECT_TIMEOUT")
    kwargs["connect_timeout"] = ct_env if ct_env is not None else 10

    ka_env = os.environ.get("DB_KEEPALIVES")
    if ka_env is None:
        kwargs["keepalives"] = 1
    else:
        kwargs["keepalives"] = 0 if str(ka_env).lower() in ("0", "false") else 1

    idle = _env_int("DB_KEEPALIVES_IDLE")
    if idle is not None:
        kwargs["keepalives_idle"] = idle
    interval = _env_int("DB_KEEPALIVES_INTERVAL")
    if interval is not None:
        kwargs["keepalives_interval"] = interval
    count = _env_int("DB_KEEPALIVES_COUNT")
    if count is not None:
        kwargs["keepalives_count"] = count
    return kwargs


def classify_error(exc: Exception, init_script: str = DEFAULT_INIT_SCRIPT) -> RogainizerError:
    """Map a driver exception onto the service error taxonomy.

    ``init_script`` names the schema file a missing table should point at.
    """
    if isinstance(exc, RogainizerError):
        return exc
    if isinstance(exc, pg_errors.UndefinedTable):
        match = _MISSING_RELATION.search(str(exc))
        return SchemaError(match.group(1) if match else "required", init_script)
    if isinstance(exc, pg_errors.UniqueViolation):
        return ConflictError(str(exc).strip() or "duplicate record")
    return StorageError(str(exc).strip() or exc.__class__.__name__)


def _rollback_quietly(conn) -> None:
    try:
        conn.rollback()
    except Exception:
        pass


class Database:
    """Connection handle built once per process and passed to every query.

    Uses a ThreadedConnectionPool when ``open()`` succeeded, otherwise a
    direct connection per checkout.
    """

    def __init__(
        self,
        dsn: str,
        minconn: int = 1,
        maxconn: int = 10,
        init_script: str = DEFAULT_INIT_SCRIPT,
    ) -> None:
        self.dsn = dsn
        self.init_script = init_script
        self.minconn = minconn
        self.maxconn = maxconn
        self.pool: Optional[pg_pool.AbstractConnectionPool] = None

    @classmethod
    def from_env(cls) -> "Database":
        url = os.environ.get("DATABASE_URL")
        if not url:
            raise RuntimeError("DATABASE_URL not set; configure a PostgreSQL connection string")
        return cls(
            url,
            minconn=_env_int("DB_POOL_MIN", 1) or 1,
            maxconn=_env_int("DB_POOL_MAX", 10) or 10,
        )

    def open(self) -> None:
        """Create the pool. Safe to call multiple times."""
        if self.pool is not None:
            return
        self.pool = pg_pool.ThreadedConnectionPool(
            self.minconn, self.maxconn, dsn=self.dsn, **_connect_kwargs()
        )

    def close(self) -> None:
        if self.pool is not None:
            self.pool.closeall()
            self.pool = None

    def _checkout_pooled(self):
        retried = False
        while True:
            conn = self.pool.getconn()
            # Lightweight liveness check: SELECT 1
            healthy = True
            try:
                with conn.cursor() as cur:
                    cur.execute("SELECT 1")
                if not getattr(conn, "autocommit", False):
                    _rollback_quietly(conn)
            except Exception:
                healthy = False

            if healthy:
                return conn
            # Discard the broken connection and retry once
            try:
                self.pool.putconn(conn, close=True)
            except Exception:
                pass
            if retried:
                raise psycopg2.OperationalError("Failed to acquire healthy DB connection after retry")
            retried = True

    def _checkin(self, conn) -> None:
        if self.pool is None:
            try:
                conn.close()
            except Exception:
                pass
            return
        try:
            # status 0 = idle, 1 = active, 2 = intrans, 3 = inerror
            if getattr(conn, "closed", 0) == 0 and not getattr(conn, "autocommit", False):
                if getattr(conn, "status", 0) in (1, 2, 3):
                    _rollback_quietly(conn)
        finally:
            self.pool.putconn(conn)

    @contextmanager
    def connection(self):
        """Yield one connection for a whole read/write/re-read sequence.

        Driver errors raised at checkout or inside the block surface as
        SchemaError, ConflictError or StorageError.
        """
        try:
            if self.pool is not None:
                conn = self._checkout_pooled()
            else:
                conn = psycopg2.connect(self.dsn, **_connect_kwargs())
        except psycopg2.Error as exc:
            logger.warning("db checkout failed: %s", exc)
            raise classify_error(exc, self.init_script) from exc
        try:
            yield conn
        except psycopg2.Error as exc:
            _rollback_quietly(conn)
            logger.warning("db statement failed: %s", exc)
            raise classify_error(exc, self.init_script) from exc
        except Exception:
            _rollback_quietly(conn)
            raise
        finally:
            self._checkin(conn)


def _date_to_str(val) -> Optional[str]:
    if val is None:
        return None
    if isinstance(val, datetime):
        return val.date().isoformat()
    if isinstance(val, date):
        return val.isoformat()
    return str(val)[:10]


def _row(r) -> Optional[Dict[str, Any]]:
    if r is None:
        return None
    out = dict(r)
    if "date" in out:
        out["date"] = _date_to_str(out["date"])
    return out


def ping(conn) -> None:
    with conn.cursor() as cur:
        cur.execute("SELECT 1")
        cur.fetchone()


# Events (course variant)

_EVENT_COLUMNS = "id, name, event_date AS date, location, courses, categories"


def list_events(conn) -> List[Dict[str, Any]]:
    with conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(f"SELECT {_EVENT_COLUMNS} FROM events ORDER BY event_date ASC, id ASC")
        return [_row(r) for r in cur.fetchall() or []]


def get_event(conn, event_id: int) -> Optional[Dict[str, Any]]:
    with conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(f"SELECT {_EVENT_COLUMNS} FROM events WHERE id = %s", (event_id,))
        return _row(cur.fetchone())


def get_event_selections(conn, event_id: int) -> Optional[Dict[str, Any]]:
    """Return the raw stored courses/categories of one event, or None."""
    with conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute("SELECT id, courses, categories FROM events WHERE id = %s", (event_id,))
        return _row(cur.fetchone())


def insert_event(conn, fields: Dict[str, Any]) -> int:
    with conn.cursor() as cur:
        cur.execute(
            """
            INSERT INTO events (name, event_date, location, courses, categories)
            VALUES (%s, %s, %s, %s, %s)
            RETURNING id
            """,
            (fields["name"], fields["date"], fields["location"], fields["courses"], fields["categories"]),
        )
        new_id = cur.fetchone()[0]
    conn.commit()
    return int(new_id)


def update_event(conn, event_id: int, fields: Dict[str, Any]) -> int:
    with conn.cursor() as cur:
        cur.execute(
            """
            UPDATE events
            SET name = %s, event_date = %s, location = %s, courses = %s, categories = %s
            WHERE id = %s
            """,
            (fields["name"], fields["date"], fields["location"], fields["courses"], fields["categories"], event_id),
        )
        count = cur.rowcount or 0
    conn.commit()
    return count


def delete_event(conn, event_id: int) -> int:
    with conn.cursor() as cur:
        cur.execute("DELETE FROM events WHERE id = %s", (event_id,))
        count = cur.rowcount or 0
    conn.commit()
    return count


# Events (scoring variant)

_RESULT_COLUMNS = (
    "id, year, series, name, event_date AS date, organiser, duration_hours"
)


def list_result_events(conn) -> List[Dict[str, Any]]:
    with conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(f"SELECT {_RESULT_COLUMNS} FROM events ORDER BY event_date ASC, id ASC")
        return [_row(r) for r in cur.fetchall() or []]


def find_result_event(conn, year: int, series: str, name: str) -> Optional[Dict[str, Any]]:
    """Look up an event by its natural key (year, series, name)."""
    with conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(
            f"SELECT {_RESULT_COLUMNS} FROM events WHERE year = %s AND series = %s AND name = %s LIMIT 1",
            (year, series, name),
        )
        return _row(cur.fetchone())


def get_result_event(conn, event_id: int) -> Optional[Dict[str, Any]]:
    with conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(f"SELECT {_RESULT_COLUMNS} FROM events WHERE id = %s", (event_id,))
        return _row(cur.fetchone())


def insert_result_event(conn, fields: Dict[str, Any]) -> int:
    with conn.cursor() as cur:
        cur.execute(
            """
            INSERT INTO events (year, series, name, event_date, organiser, duration_hours)
            VALUES (%s, %s, %s, %s, %s, %s)
            RETURNING id
            """,
            (
                fields["year"],
                fields["series"],
                fields["name"],
                fields["date"],
                fields["organiser"],
                fields["duration_hours"],
            ),
        )
        new_id = cur.fetchone()[0]
    conn.commit()
    return int(new_id)


def update_result_event(conn, event_id: int, fields: Dict[str, Any]) -> int:
    with conn.cursor() as cur:
        cur.execute(
            """
            UPDATE events
            SET year = %s, series = %s, name = %s, event_date = %s, organiser = %s, duration_hours = %s
            WHERE id = %s
            """,
            (
                fields["year"],
                fields["series"],
                fields["name"],
                fields["date"],
                fields["organiser"],
                fields["duration_hours"],
                event_id,
            ),
        )
        count = cur.rowcount or 0
    conn.commit()
    return count


# Teams

_TEAM_COLUMNS = "id, event_id, name, competitors, course, category, score"


def list_teams(conn, event_id: int) -> List[Dict[str, Any]]:
    with conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(
            f"SELECT {_TEAM_COLUMNS} FROM teams WHERE event_id = %s ORDER BY id ASC",
            (event_id,),
        )
        return [_row(r) for r in cur.fetchall() or []]


def get_team(conn, team_id: int, event_id: Optional[int] = None) -> Optional[Dict[str, Any]]:
    sql = f"SELECT {_TEAM_COLUMNS} FROM teams WHERE id = %s"
    params: List[Any] = [team_id]
    if event_id is not None:
        sql += " AND event_id = %s"
        params.append(event_id)
    with conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(sql, params)
        return _row(cur.fetchone())


def insert_team(conn, event_id: int, fields: Dict[str, Any]) -> int:
    with conn.cursor() as cur:
        cur.execute(
            """
            INSERT INTO teams (event_id, name, competitors, course, category, score)
            VALUES (%s, %s, %s, %s, %s, %s)
            RETURNING id
            """,
            (event_id, fields["name"], fields["competitors"], fields["course"], fields["category"], fields["score"]),
        )
        new_id = cur.fetchone()[0]
    conn.commit()
    return int(new_id)


def update_team(conn, team_id: int, event_id: int, fields: Dict[str, Any]) -> int:
    with conn.cursor() as cur:
        cur.execute(
            """
            UPDATE teams
            SET name = %s, competitors = %s, course = %s, category = %s, score = %s
            WHERE id = %s AND event_id = %s
            """,
            (
                fields["name"],
                fields["competitors"],
                fields["course"],
                fields["category"],
                fields["score"],
                team_id,
                event_id,
            ),
        )
        count = cur.rowcount or 0
    conn.commit()
    return count


def delete_team(conn, team_id: int, event_id: int) -> int:
    with conn.cursor() as cur:
        cur.execute("DELETE FROM teams WHERE id = %s AND event_id = %s", (team_id, event_id))
        count = cur.rowcount or 0
    conn.commit()
    return count


# Users

def list_users(conn, limit: int = 100) -> List[Dict[str, Any]]:
    with conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(
            "SELECT id, name, email, created_at FROM users ORDER BY id DESC LIMIT %s",
            (limit,),
        )
        return [_row(r) for r in cur.fetchall() or []]


def get_user(conn, user_id: int) -> Optional[Dict[str, Any]]:
    with conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute("SELECT id, name, email, created_at FROM users WHERE id = %s", (user_id,))
        return _row(cur.fetchone())


def insert_user(conn, name: str, email: str) -> int:
    with conn.cursor() as cur:
        cur.execute(
            "INSERT INTO users (name, email) VALUES (%s, %s) RETURNING id",
            (name, email),
        )
        new_id = cur.fetchone()[0]
    conn.commit()
    return int(new_id)
