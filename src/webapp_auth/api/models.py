from __future__ import annotations

import json
import sqlite3
import time
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from webapp_auth.utils.locks import file_lock


class DuplicateEmailError(ValueError):
    pass


def now_ts() -> int:
    return int(time.time())


def iso_ts(ts: int | None) -> str | None:
    if ts is None:
        return None
    return datetime.fromtimestamp(int(ts), tz=timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True, slots=True)
class User:
    id: str
    name: str
    email: str
    password_hash: str
    avatar: str | None
    created_at: int
    updated_at: int

    def public_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "avatar": self.avatar,
            "createdAt": iso_ts(self.created_at),
            "updatedAt": iso_ts(self.updated_at),
        }


@dataclass(frozen=True, slots=True)
class RefreshSession:
    """
    One refresh token. Rotation revokes the row and points `replaced_by` at its successor,
    so a live login is the single non-revoked row at the end of a chain.
    """

    jti: str
    user_id: str
    token_hash: str
    created_at: int
    expires_at: int
    revoked: bool
    replaced_by: str | None
    last_used_at: int | None
    created_ip: str | None
    user_agent: str | None

    @property
    def rotated(self) -> bool:
        return bool(self.replaced_by)

    def is_expired(self, now: int | None = None) -> bool:
        return int(now if now is not None else now_ts()) >= int(self.expires_at)


@dataclass(frozen=True, slots=True)
class AuditLog:
    id: int
    user_id: str | None
    action: str
    resource: str
    details: dict[str, Any] | None
    ip_address: str | None
    user_agent: str | None
    created_at: int


def _user_from_row(row: sqlite3.Row) -> User:
    return User(
        id=str(row["id"]),
        name=str(row["name"]),
        email=str(row["email"]),
        password_hash=str(row["password_hash"]),
        avatar=(str(row["avatar"]) if row["avatar"] is not None else None),
        created_at=int(row["created_at"]),
        updated_at=int(row["updated_at"]),
    )


def _session_from_row(row: sqlite3.Row) -> RefreshSession:
    return RefreshSession(
        jti=str(row["jti"]),
        user_id=str(row["user_id"]),
        token_hash=str(row["token_hash"]),
        created_at=int(row["created_at"]),
        expires_at=int(row["expires_at"]),
        revoked=bool(int(row["revoked"])),
        replaced_by=(str(row["replaced_by"]) if row["replaced_by"] else None),
        last_used_at=(int(row["last_used_at"]) if row["last_used_at"] is not None else None),
        created_ip=(str(row["created_ip"]) if row["created_ip"] else None),
        user_agent=(str(row["user_agent"]) if row["user_agent"] else None),
    )


class AuthStore:
    """
    SQLite-backed store for users, refresh-token sessions and the audit trail.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock_path = self.db_path.with_suffix(self.db_path.suffix + ".lock")
        self._init()

    def _conn(self) -> sqlite3.Connection:
        con = sqlite3.connect(str(self.db_path), timeout=30.0)
        con.row_factory = sqlite3.Row
        con.execute("PRAGMA foreign_keys=ON;")
        return con

    def _write_lock(self) -> AbstractContextManager[None]:
        return file_lock(self._lock_path)

    @contextmanager
    def _write(self) -> Iterator[sqlite3.Connection]:
        with self._write_lock():
            con = self._conn()
            try:
                yield con
                con.commit()
            except Exception:
                con.rollback()
                raise
            finally:
                con.close()

    @contextmanager
    def _read(self) -> Iterator[sqlite3.Connection]:
        con = self._conn()
        try:
            yield con
        finally:
            con.close()

    def _init(self) -> None:
        with self._write() as con:
            con.execute("PRAGMA journal_mode=WAL;")
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS users (
                  id TEXT PRIMARY KEY,
                  name TEXT NOT NULL,
                  email TEXT NOT NULL UNIQUE COLLATE NOCASE,
                  password_hash TEXT NOT NULL,
                  avatar TEXT,
                  created_at INTEGER NOT NULL,
                  updated_at INTEGER NOT NULL
                );
                """
            )
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS sessions (
                  jti TEXT PRIMARY KEY,
                  user_id TEXT NOT NULL,
                  token_hash TEXT NOT NULL,
                  created_at INTEGER NOT NULL,
                  expires_at INTEGER NOT NULL,
                  revoked INTEGER NOT NULL DEFAULT 0,
                  replaced_by TEXT,
                  last_used_at INTEGER,
                  created_ip TEXT,
                  user_agent TEXT,
                  FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
                );
                """
            )
            con.execute("CREATE INDEX IF NOT EXISTS sessions_user_id ON sessions(user_id);")
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS audit_logs (
                  id INTEGER PRIMARY KEY AUTOINCREMENT,
                  user_id TEXT,
                  action TEXT NOT NULL,
                  resource TEXT NOT NULL,
                  details_json TEXT,
                  ip_address TEXT,
                  user_agent TEXT,
                  created_at INTEGER NOT NULL,
                  FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE SET NULL
                );
                """
            )
            con.execute("CREATE INDEX IF NOT EXISTS audit_logs_user_id ON audit_logs(user_id);")

    def ping(self) -> bool:
        with self._read() as con:
            row = con.execute("SELECT 1").fetchone()
            return bool(row and int(row[0]) == 1)

    # --- users ---

    def create_user(self, user: User) -> User:
        try:
            with self._write() as con:
                con.execute(
                    """
                    INSERT INTO users (id, name, email, password_hash, avatar, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        user.id,
                        user.name,
                        user.email,
                        user.password_hash,
                        user.avatar,
                        int(user.created_at),
                        int(user.updated_at),
                    ),
                )
        except sqlite3.IntegrityError as ex:
            raise DuplicateEmailError(user.email) from ex
        return user

    def get_user(self, user_id: str) -> User | None:
        with self._read() as con:
            row = con.execute("SELECT * FROM users WHERE id = ?", (str(user_id),)).fetchone()
            return _user_from_row(row) if row is not None else None

    def get_user_by_email(self, email: str) -> User | None:
        with self._read() as con:
            row = con.execute("SELECT * FROM users WHERE email = ?", (str(email),)).fetchone()
            return _user_from_row(row) if row is not None else None

    def update_user(
        self,
        user_id: str,
        *,
        name: str | None = None,
        email: str | None = None,
        avatar: str | None = None,
        clear_avatar: bool = False,
    ) -> User | None:
        sets: list[str] = []
        args: list[Any] = []
        if name is not None:
            sets.append("name=?")
            args.append(name)
        if email is not None:
            sets.append("email=?")
            args.append(email)
        if avatar is not None or clear_avatar:
            sets.append("avatar=?")
            args.append(avatar)
        sets.append("updated_at=?")
        args.append(now_ts())
        try:
            with self._write() as con:
                con.execute(f"UPDATE users SET {', '.join(sets)} WHERE id=?", (*args, str(user_id)))
        except sqlite3.IntegrityError as ex:
            raise DuplicateEmailError(str(email)) from ex
        return self.get_user(user_id)

    def set_password_hash(self, user_id: str, password_hash: str) -> None:
        with self._write() as con:
            con.execute(
                "UPDATE users SET password_hash=?, updated_at=? WHERE id=?",
                (password_hash, now_ts(), str(user_id)),
            )

    def delete_user(self, user_id: str) -> bool:
        with self._write() as con:
            con.execute("DELETE FROM sessions WHERE user_id=?", (str(user_id),))
            cur = con.execute("DELETE FROM users WHERE id=?", (str(user_id),))
            return int(cur.rowcount or 0) > 0

    # --- refresh-token sessions ---

    def put_session(
        self,
        *,
        jti: str,
        user_id: str,
        token_hash: str,
        created_at: int,
        expires_at: int,
        created_ip: str | None = None,
        user_agent: str | None = None,
    ) -> None:
        with self._write() as con:
            con.execute(
                """
                INSERT INTO sessions
                  (jti, user_id, token_hash, created_at, expires_at, revoked, replaced_by,
                   last_used_at, created_ip, user_agent)
                VALUES (?, ?, ?, ?, ?, 0, NULL, NULL, ?, ?)
                """,
                (
                    str(jti),
                    str(user_id),
                    str(token_hash),
                    int(created_at),
                    int(expires_at),
                    str(created_ip or "") or None,
                    (str(user_agent)[:160] if user_agent else None),
                ),
            )

    def get_session(self, jti: str) -> RefreshSession | None:
        with self._read() as con:
            row = con.execute("SELECT * FROM sessions WHERE jti=?", (str(jti),)).fetchone()
            return _session_from_row(row) if row is not None else None

    def mark_rotated(self, *, old_jti: str, new_jti: str) -> bool:
        """
        Retire `old_jti` in favour of `new_jti`. Returns False if the old row was no longer live,
        i.e. another request rotated or revoked it first.
        """
        with self._write() as con:
            cur = con.execute(
                """
                UPDATE sessions
                SET revoked=1, replaced_by=?, last_used_at=?
                WHERE jti=? AND revoked=0
                """,
                (str(new_jti), now_ts(), str(old_jti)),
            )
            return int(cur.rowcount or 0) == 1

    def revoke_session(self, jti: str, *, user_id: str | None = None) -> int:
        with self._write() as con:
            if user_id is None:
                cur = con.execute(
                    "UPDATE sessions SET revoked=1, last_used_at=? WHERE jti=? AND revoked=0",
                    (now_ts(), str(jti)),
                )
            else:
                cur = con.execute(
                    """
                    UPDATE sessions SET revoked=1, last_used_at=?
                    WHERE jti=? AND user_id=? AND revoked=0
                    """,
                    (now_ts(), str(jti), str(user_id)),
                )
            return int(cur.rowcount or 0)

    def revoke_user_sessions(self, user_id: str) -> int:
        with self._write() as con:
            cur = con.execute(
                "UPDATE sessions SET revoked=1, last_used_at=? WHERE user_id=? AND revoked=0",
                (now_ts(), str(user_id)),
            )
            return int(cur.rowcount or 0)

    def list_active_sessions(self, user_id: str) -> list[RefreshSession]:
        with self._read() as con:
            rows = con.execute(
                """
                SELECT * FROM sessions
                WHERE user_id=? AND revoked=0 AND expires_at>?
                ORDER BY created_at DESC
                """,
                (str(user_id), now_ts()),
            ).fetchall()
            return [_session_from_row(r) for r in rows]

    def prune_expired_sessions(self, now: int | None = None) -> int:
        cutoff = int(now if now is not None else now_ts())
        with self._write() as con:
            cur = con.execute("DELETE FROM sessions WHERE expires_at<=?", (cutoff,))
            return int(cur.rowcount or 0)

    # --- audit trail ---

    def add_audit_log(
        self,
        *,
        action: str,
        resource: str,
        user_id: str | None = None,
        details: dict[str, Any] | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> None:
        with self._write() as con:
            con.execute(
                """
                INSERT INTO audit_logs
                  (user_id, action, resource, details_json, ip_address, user_agent, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id,
                    str(action),
                    str(resource),
                    json.dumps(details, sort_keys=True) if details else None,
                    ip_address,
                    (str(user_agent)[:160] if user_agent else None),
                    now_ts(),
                ),
            )

    def list_audit_logs(
        self, *, user_id: str | None = None, action: str | None = None, limit: int = 200
    ) -> list[AuditLog]:
        where: list[str] = []
        args: list[Any] = []
        if user_id is not None:
            where.append("user_id=?")
            args.append(str(user_id))
        if action is not None:
            where.append("action=?")
            args.append(str(action))
        sql = "SELECT * FROM audit_logs"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY id DESC LIMIT ?"
        args.append(max(1, int(limit)))
        with self._read() as con:
            rows = con.execute(sql, tuple(args)).fetchall()
        out: list[AuditLog] = []
        for r in rows:
            details = json.loads(r["details_json"]) if r["details_json"] else None
            out.append(
                AuditLog(
                    id=int(r["id"]),
                    user_id=(str(r["user_id"]) if r["user_id"] is not None else None),
                    action=str(r["action"]),
                    resource=str(r["resource"]),
                    details=details,
                    ip_address=(str(r["ip_address"]) if r["ip_address"] else None),
                    user_agent=(str(r["user_agent"]) if r["user_agent"] else None),
                    created_at=int(r["created_at"]),
                )
            )
        return out
