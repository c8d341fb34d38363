"""Visitor guestbook entries, deletable by whoever knows the entry password."""

from __future__ import annotations

from datetime import datetime

from werkzeug.security import check_password_hash, generate_password_hash

from database import get_db
from models import GuestbookEntry

MAX_NAME_LENGTH = 10
PASSWORD_LENGTH = 4
MAX_CONTENT_LENGTH = 500


class GuestbookValidationError(ValueError):
    pass


class GuestbookStoreDB:
    """Guestbook for one card."""

    def __init__(self, to_user: str):
        self.to_user = to_user

    def entries(self, limit: int = 100) -> list[GuestbookEntry]:
        rows = get_db().execute(
            "SELECT id, to_user, name, content, created_at FROM guestbooks "
            "WHERE to_user = ? ORDER BY created_at DESC, id DESC LIMIT ?",
            (self.to_user, limit),
        ).fetchall()
        return [GuestbookEntry.from_row(r) for r in rows]

    def count(self) -> int:
        row = get_db().execute(
            "SELECT COUNT(*) AS n FROM guestbooks WHERE to_user = ?", (self.to_user,),
        ).fetchone()
        return row["n"]

    def add(self, name: str, password: str, content: str) -> GuestbookEntry:
        name = (name or "").strip()
        content = (content or "").strip()
        password = password or ""
        if not name or not password or not content:
            raise GuestbookValidationError("Name, password and message are all required.")
        if len(name) > MAX_NAME_LENGTH:
            raise GuestbookValidationError(f"Name must be at most {MAX_NAME_LENGTH} characters.")
        if len(password) != PASSWORD_LENGTH:
            raise GuestbookValidationError(f"Password must be {PASSWORD_LENGTH} characters.")
        if len(content) > MAX_CONTENT_LENGTH:
            raise GuestbookValidationError(f"Message must be at most {MAX_CONTENT_LENGTH} characters.")

        db = get_db()
        cur = db.execute(
            "INSERT INTO guestbooks (to_user, name, password, content, created_at) VALUES (?, ?, ?, ?, ?)",
            (self.to_user, name, generate_password_hash(password), content, datetime.now().isoformat()),
        )
        db.commit()
        row = db.execute(
            "SELECT id, to_user, name, content, created_at FROM guestbooks WHERE id = ?",
            (cur.lastrowid,),
        ).fetchone()
        return GuestbookEntry.from_row(row)

    def delete(self, entry_id: int, password: str) -> bool | None:
        """True if deleted, False on a wrong password, None if no such entry."""
        db = get_db()
        row = db.execute(
            "SELECT password FROM guestbooks WHERE id = ? AND to_user = ?",
            (entry_id, self.to_user),
        ).fetchone()
        if row is None:
            return None
        if not password or not check_password_hash(row["password"], password):
            return False
        db.execute("DELETE FROM guestbooks WHERE id = ?", (entry_id,))
        db.commit()
        return True
