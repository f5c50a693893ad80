"""SQLite storage for users, linked accounts and application records."""
import os
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from .errors import PersistenceError
from .models import ApplicationRecord, LinkedAccount, STATUSES

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    name TEXT,
    email TEXT UNIQUE
);
CREATE TABLE IF NOT EXISTS accounts (
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    provider TEXT NOT NULL,
    provider_account_id TEXT NOT NULL,
    refresh_token TEXT,
    access_token TEXT,
    expires_at INTEGER,
    token_type TEXT,
    scope TEXT,
    PRIMARY KEY (provider, provider_account_id)
);
CREATE TABLE IF NOT EXISTS applications (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT,
    company TEXT NOT NULL,
    role TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'applied' CHECK (status IN ('applied', 'accepted', 'rejected')),
    source_message_id TEXT UNIQUE,
    created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S+00:00', 'now'))
);
"""

def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt

class ApplicationStore:
    def __init__(self, db_path: str):
        if db_path != ":memory:":
            os.makedirs(os.path.dirname(os.path.abspath(db_path)), exist_ok=True)
        try:
            self._conn = sqlite3.connect(db_path)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
            self._conn.executescript(SCHEMA)
        except sqlite3.Error as e:
            raise PersistenceError("Could not open application store", str(e)) from e

    def close(self) -> None:
        self._conn.close()

    def _write(self, sql: str, params=()) -> sqlite3.Cursor:
        try:
            with self._conn:
                return self._conn.execute(sql, params)
        except sqlite3.Error as e:
            raise PersistenceError("Store write failed", str(e)) from e

    # users

    def ensure_user(self, email: str, name: Optional[str] = None) -> str:
        existing = self.get_user_by_email(email)
        if existing:
            return existing
        user_id = uuid.uuid4().hex
        self._write("INSERT INTO users (id, name, email) VALUES (?, ?, ?)", (user_id, name, email))
        return user_id

    def get_user_by_email(self, email: str) -> Optional[str]:
        row = self._conn.execute("SELECT id FROM users WHERE email = ? LIMIT 1", (email,)).fetchone()
        return row["id"] if row else None

    # linked accounts

    def get_linked_account(self, user_id: str, provider: str = "google") -> Optional[LinkedAccount]:
        row = self._conn.execute(
            "SELECT * FROM accounts WHERE user_id = ? AND provider = ? LIMIT 1", (user_id, provider)
        ).fetchone()
        if not row:
            return None
        return LinkedAccount(
            user_id=row["user_id"],
            provider=row["provider"],
            provider_account_id=row["provider_account_id"],
            access_token=row["access_token"],
            refresh_token=row["refresh_token"],
            expires_at=row["expires_at"],
            token_type=row["token_type"],
            scope=row["scope"],
        )

    def save_linked_account(self, account: LinkedAccount) -> None:
        self._write(
            """
            INSERT INTO accounts (user_id, provider, provider_account_id, refresh_token,
                                  access_token, expires_at, token_type, scope)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (provider, provider_account_id) DO UPDATE SET
                user_id = excluded.user_id,
                refresh_token = COALESCE(excluded.refresh_token, accounts.refresh_token),
                access_token = excluded.access_token,
                expires_at = excluded.expires_at,
                token_type = excluded.token_type,
                scope = excluded.scope
            """,
            (account.user_id, account.provider, account.provider_account_id, account.refresh_token,
             account.access_token, account.expires_at, account.token_type, account.scope),
        )

    def update_account_token(self, user_id: str, provider: str, provider_account_id: str,
                             access_token: str, expires_at: int) -> None:
        self._write(
            "UPDATE accounts SET access_token = ?, expires_at = ? "
            "WHERE user_id = ? AND provider = ? AND provider_account_id = ?",
            (access_token, expires_at, user_id, provider, provider_account_id),
        )

    # applications

    def insert_if_absent(self, record: ApplicationRecord) -> bool:
        """Insert unless a record with the same source_message_id exists. True if a row was created."""
        columns = ["user_id", "company", "role", "status", "source_message_id"]
        values = [record.user_id, record.company, record.role, record.status, record.source_message_id]
        if record.created_at is not None:
            columns.append("created_at")
            values.append(record.created_at.astimezone(timezone.utc).isoformat())
        placeholders = ", ".join("?" for _ in columns)
        sql = (
            f"INSERT INTO applications ({', '.join(columns)}) SELECT {placeholders} "
            "WHERE ? IS NULL OR NOT EXISTS (SELECT 1 FROM applications WHERE source_message_id = ?)"
        )
        params = values + [record.source_message_id, record.source_message_id]
        try:
            with self._conn:
                cur = self._conn.execute(sql, params)
        except sqlite3.IntegrityError as e:
            # lost a race on the unique constraint
            if "UNIQUE" in str(e).upper():
                return False
            raise PersistenceError("Store write failed", str(e)) from e
        except sqlite3.Error as e:
            raise PersistenceError("Store write failed", str(e)) from e
        if cur.rowcount > 0:
            record.id = str(cur.lastrowid)
            return True
        return False

    def list_applications(self, user_id: Optional[str] = None) -> List[ApplicationRecord]:
        sql = "SELECT * FROM applications"
        params: tuple = ()
        if user_id is not None:
            sql += " WHERE user_id = ?"
            params = (user_id,)
        sql += " ORDER BY created_at DESC, id DESC"
        return [
            ApplicationRecord(
                id=str(row["id"]),
                company=row["company"],
                role=row["role"],
                status=row["status"],
                source_message_id=row["source_message_id"],
                created_at=_parse_ts(row["created_at"]),
                user_id=row["user_id"],
            )
            for row in self._conn.execute(sql, params)
        ]

    def update_status(self, record_id: str, status: str) -> bool:
        if status not in STATUSES:
            raise ValueError(f"Invalid status {status!r}; expected one of {', '.join(STATUSES)}")
        cur = self._write("UPDATE applications SET status = ? WHERE id = ?", (status, record_id))
        return cur.rowcount > 0

    def count_applications(self) -> int:
        return self._conn.execute("SELECT COUNT(*) FROM applications").fetchone()[0]
