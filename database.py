import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import List, Optional

import config
from security import hash_password

USER_COLUMNS = ["user_name", "name", "email", "phone_no", "role", "pages", "profile_image"]


def init_database():
    """Initialize SQLite database with tables"""
    with get_db() as conn:
        cursor = conn.cursor()

        # Users table
        cursor.execute('''
            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_name TEXT UNIQUE NOT NULL,
                name TEXT,
                email TEXT,
                phone_no TEXT,
                role TEXT,
                password_hash TEXT NOT NULL,
                pages TEXT,
                profile_image TEXT,
                timestamp TEXT
            )
        ''')

        # Session records, one row per (session, storage key)
        cursor.execute('''
            CREATE TABLE IF NOT EXISTS session_store (
                session_id TEXT NOT NULL,
                key TEXT NOT NULL,
                value TEXT NOT NULL,
                expires_at TEXT,
                PRIMARY KEY (session_id, key)
            )
        ''')

        # Databases created before session expiry was tracked
        columns = [row["name"] for row in cursor.execute("PRAGMA table_info(session_store)")]
        if "expires_at" not in columns:
            cursor.execute("ALTER TABLE session_store ADD COLUMN expires_at TEXT")

        # Insert default users if not exists
        default_users = [
            ("admin", "Admin User", "admin", hash_password("admin123"), "all"),
            ("user", "John Doe", "user", hash_password("user123"), json.dumps(["dashboard", "patient-profile"])),
        ]

        for user_name, name, role, password_hash, pages in default_users:
            cursor.execute('''
                INSERT OR IGNORE INTO users (user_name, name, role, password_hash, pages, timestamp)
                VALUES (?, ?, ?, ?, ?, ?)
            ''', (user_name, name, role, password_hash, pages, datetime.now().isoformat()))

        conn.commit()

    purge_expired_sessions()


@contextmanager
def get_db():
    """Database connection context manager"""
    conn = sqlite3.connect(config.DATABASE_PATH)
    conn.row_factory = sqlite3.Row  # Enable dict-like access
    try:
        yield conn
    finally:
        conn.close()


def find_users_by_credentials(username: str, password: str) -> List[dict]:
    """Users whose user_name and password both match exactly"""
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(
            "SELECT * FROM users WHERE user_name = ? AND password_hash = ?",
            (username, hash_password(password))
        )
        return [dict(row) for row in cursor.fetchall()]


def list_users() -> List[dict]:
    """All users, newest first"""
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute("SELECT * FROM users ORDER BY timestamp DESC, id DESC")
        return [dict(row) for row in cursor.fetchall()]


def get_user_by_id(user_id: int) -> Optional[dict]:
    """Get user by ID from database"""
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute("SELECT * FROM users WHERE id = ?", (user_id,))
        user = cursor.fetchone()
        return dict(user) if user else None


def create_user(fields: dict, password_hash: str) -> int:
    """Create a new user in the database"""
    columns = [column for column in USER_COLUMNS if column in fields]
    values = [fields[column] for column in columns]
    columns += ["password_hash", "timestamp"]
    values += [password_hash, datetime.now().isoformat()]

    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(
            f"INSERT INTO users ({', '.join(columns)}) VALUES ({', '.join('?' for _ in columns)})",
            values
        )
        new_id = cursor.lastrowid
        conn.commit()
        return new_id


def update_user(user_id: int, fields: dict, password_hash: str = None) -> bool:
    """Update the given columns of a user, returns False if no such user"""
    columns = [column for column in USER_COLUMNS if column in fields]
    values = [fields[column] for column in columns]
    if password_hash:
        columns.append("password_hash")
        values.append(password_hash)
    columns.append("timestamp")
    values.append(datetime.now().isoformat())

    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(
            f"UPDATE users SET {', '.join(f'{column} = ?' for column in columns)} WHERE id = ?",
            values + [user_id]
        )
        conn.commit()
        return cursor.rowcount > 0


def delete_user(user_id: int) -> bool:
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute("DELETE FROM users WHERE id = ?", (user_id,))
        conn.commit()
        return cursor.rowcount > 0


def session_expiry() -> str:
    return (datetime.utcnow() + timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES)).isoformat()


def purge_expired_sessions() -> int:
    """Delete session records past their expiry, returns how many went"""
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(
            "DELETE FROM session_store WHERE expires_at IS NULL OR expires_at <= ?",
            (datetime.utcnow().isoformat(),)
        )
        conn.commit()
        return cursor.rowcount


class SQLiteSessionStorage:
    """Key/value storage for one login session, backed by session_store"""

    def __init__(self, session_id: str):
        self.session_id = session_id

    def get(self, key: str) -> Optional[str]:
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT value FROM session_store WHERE session_id = ? AND key = ? AND expires_at > ?",
                (self.session_id, key, datetime.utcnow().isoformat())
            )
            row = cursor.fetchone()
            return row["value"] if row else None

    def set(self, key: str, value: str):
        with get_db() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO session_store (session_id, key, value, expires_at) VALUES (?, ?, ?, ?)",
                (self.session_id, key, value, session_expiry())
            )
            conn.commit()

    def remove(self, key: str):
        with get_db() as conn:
            conn.execute(
                "DELETE FROM session_store WHERE session_id = ? AND key = ?",
                (self.session_id, key)
            )
            conn.commit()
