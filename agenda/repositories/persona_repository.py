# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""Data-access layer for personas and their friend links."""
import threading
import time
import uuid
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import bindparam, text
from sqlalchemy.engine import Connection, Engine

from agenda.core.logging import get_logger

logger = get_logger(__name__)

PERSONA_COLS = "id, name, email, phone"

_seq_lock = threading.Lock()
_last_seq = 0

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS personas (
        id          TEXT PRIMARY KEY,
        name        TEXT NOT NULL,
        email       TEXT NOT NULL UNIQUE,
        phone       TEXT NOT NULL UNIQUE,
        created_seq BIGINT NOT NULL,
        created_at  TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
        updated_at  TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
    # friend_id has no foreign key: a reference may dangle between a delete
    # and its cascade.
    """
    CREATE TABLE IF NOT EXISTS persona_friends (
        persona_id  TEXT NOT NULL REFERENCES personas(id) ON DELETE CASCADE,
        friend_id   TEXT NOT NULL,
        ordinal     INTEGER NOT NULL,
        PRIMARY KEY (persona_id, friend_id)
    )
    """,
    "CREATE INDEX IF NOT EXISTS ix_persona_friends_friend_id ON persona_friends (friend_id)",
)


def _next_seq() -> int:
    """Nanosecond creation stamp, strictly increasing within the process."""
    global _last_seq
    with _seq_lock:
        _last_seq = max(time.time_ns(), _last_seq + 1)
        return _last_seq


def _row_to_dict(row) -> Dict[str, Any]:
    return {
        "id": str(row[0]),
        "name": row[1],
        "email": row[2],
        "phone": row[3],
        "friends": [],
    }


class PersonaRepository:
    def __init__(self, engine: Engine):
        self._engine = engine

    # ── Schema ─────────────────────────────────────────────────────────

    def create_schema(self):
        with self._engine.begin() as conn:
            for statement in SCHEMA_STATEMENTS:
                conn.execute(text(statement))

    # ── Write ──────────────────────────────────────────────────────────

    def insert(self, name: str, email: str, phone: str,
               friends: Iterable[str]) -> str:
        """Store a new persona and return the id assigned to it."""
        persona_id = str(uuid.uuid4())
        with self._engine.begin() as conn:
            conn.execute(
                text("""
                    INSERT INTO personas (id, name, email, phone, created_seq, created_at, updated_at)
                    VALUES (:id, :name, :email, :phone, :seq, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP)
                """),
                {"id": persona_id, "name": name, "email": email, "phone": phone,
                 "seq": _next_seq()},
            )
            self._write_friend_links(conn, persona_id, friends)
        return persona_id

    def update_fields(self, email: str, name: str, phone: str,
                      friends: Iterable[str]) -> bool:
        """Replace name, phone and friend list of the persona owning ``email``.

        Returns False when no persona has that email.
        """
        with self._engine.begin() as conn:
            row = conn.execute(
                text("SELECT id FROM personas WHERE email = :email"),
                {"email": email},
            ).fetchone()
            if not row:
                return False
            persona_id = str(row[0])
            conn.execute(
                text("""
                    UPDATE personas
                    SET name = :name, phone = :phone, updated_at = CURRENT_TIMESTAMP
                    WHERE id = :id
                """),
                {"id": persona_id, "name": name, "phone": phone},
            )
            conn.execute(
                text("DELETE FROM persona_friends WHERE persona_id = :id"),
                {"id": persona_id},
            )
            self._write_friend_links(conn, persona_id, friends)
        return True

    def delete(self, persona_id: str) -> bool:
        with self._engine.begin() as conn:
            conn.execute(
                text("DELETE FROM persona_friends WHERE persona_id = :id"),
                {"id": persona_id},
            )
            result = conn.execute(
                text("DELETE FROM personas WHERE id = :id"), {"id": persona_id}
            )
        return result.rowcount > 0

    def remove_id_from_all_friend_lists(self, persona_id: str) -> int:
        """Pull ``persona_id`` out of every friend list that holds it."""
        with self._engine.begin() as conn:
            result = conn.execute(
                text("DELETE FROM persona_friends WHERE friend_id = :id"),
                {"id": persona_id},
            )
        return result.rowcount

    # ── Read ───────────────────────────────────────────────────────────

    def find_by_ids(self, ids: Iterable[str],
                    with_friends: bool = True) -> List[Dict[str, Any]]:
        """Fetch every persona whose id is in ``ids`` with one query.

        With ``with_friends=False`` the link table is not read and the
        records carry no ``friends`` key.
        """
        ids = list(dict.fromkeys(ids))
        if not ids:
            return []
        stmt = text(
            f"SELECT {PERSONA_COLS} FROM personas WHERE id IN :ids ORDER BY created_seq, id"
        ).bindparams(bindparam("ids", expanding=True))
        with self._engine.connect() as conn:
            rows = conn.execute(stmt, {"ids": ids}).fetchall()
            records = [_row_to_dict(r) for r in rows]
            if not with_friends:
                for record in records:
                    del record["friends"]
                return records
            return self._with_friends(conn, records)

    def find_one(self, email: Optional[str] = None, phone: Optional[str] = None,
                 persona_id: Optional[str] = None,
                 exclude_email: Optional[str] = None) -> Optional[Dict[str, Any]]:
        conditions = []
        params: Dict[str, Any] = {}
        if persona_id is not None:
            conditions.append("id = :id")
            params["id"] = persona_id
        if email is not None:
            conditions.append("email = :email")
            params["email"] = email
        if phone is not None:
            conditions.append("phone = :phone")
            params["phone"] = phone
        if not conditions:
            raise ValueError("find_one needs at least one of persona_id, email or phone")
        if exclude_email is not None:
            conditions.append("email <> :exclude_email")
            params["exclude_email"] = exclude_email

        with self._engine.connect() as conn:
            row = conn.execute(
                text(f"SELECT {PERSONA_COLS} FROM personas WHERE {' AND '.join(conditions)}"),
                params,
            ).fetchone()
            if not row:
                return None
            return self._with_friends(conn, [_row_to_dict(row)])[0]

    def find_all(self, name: Optional[str] = None) -> List[Dict[str, Any]]:
        where = ""
        params: Dict[str, Any] = {}
        if name is not None:
            where = " WHERE name = :name"
            params["name"] = name
        with self._engine.connect() as conn:
            rows = conn.execute(
                text(f"SELECT {PERSONA_COLS} FROM personas{where} ORDER BY created_seq, id"),
                params,
            ).fetchall()
            return self._with_friends(conn, [_row_to_dict(r) for r in rows])

    def count(self) -> int:
        with self._engine.connect() as conn:
            return conn.execute(text("SELECT COUNT(*) FROM personas")).scalar() or 0

    def verify_connection(self):
        with self._engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    def dispose(self):
        self._engine.dispose()

    # ── Private ────────────────────────────────────────────────────────

    def _write_friend_links(self, conn: Connection, persona_id: str,
                            friends: Iterable[str]):
        links = [
            {"pid": persona_id, "fid": friend_id, "ord": ordinal}
            for ordinal, friend_id in enumerate(dict.fromkeys(friends))
        ]
        if links:
            conn.execute(
                text("""
                    INSERT INTO persona_friends (persona_id, friend_id, ordinal)
                    VALUES (:pid, :fid, :ord)
                """),
                links,
            )

    def _with_friends(self, conn: Connection,
                      records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        if not records:
            return records
        by_id = {r["id"]: r for r in records}
        stmt = text("""
            SELECT persona_id, friend_id FROM persona_friends
            WHERE persona_id IN :ids ORDER BY persona_id, ordinal
        """).bindparams(bindparam("ids", expanding=True))
        for persona_id, friend_id in conn.execute(stmt, {"ids": list(by_id)}).fetchall():
            by_id[str(persona_id)]["friends"].append(str(friend_id))
        return records
