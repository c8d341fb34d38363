"""
Account Authentication — Flask-Login blueprint.

Provides register, login, logout and "who am I" JSON routes.
Uses werkzeug.security for password hashing. A card belongs to the account
whose e-mail matches the card's owner_email; the super admin is the account
whose e-mail matches SUPER_ADMIN_EMAIL.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta

from flask import Blueprint, current_app, jsonify, request
from flask_login import LoginManager, UserMixin, current_user, login_required, login_user, logout_user
from werkzeug.security import check_password_hash, generate_password_hash

from audit import log_event
from database import get_db
from extensions import limiter

LOCKOUT_THRESHOLD = 5
LOCKOUT_MINUTES = 15

auth_bp = Blueprint("auth", __name__)
login_manager = LoginManager()


class User(UserMixin):
    """Wraps an accounts row for Flask-Login."""

    def __init__(self, id: int, email: str, name: str = ""):
        self.id = id
        self.email = email
        self.name = name

    @property
    def is_super_admin(self) -> bool:
        admin_email = current_app.config.get("SUPER_ADMIN_EMAIL", "")
        return bool(admin_email) and self.email == admin_email

    @property
    def card_id(self) -> str | None:
        from card_store import CardStoreDB
        card = CardStoreDB.get_by_owner(self.email)
        return card.id if card else None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "card_id": self.card_id,
            "is_super_admin": self.is_super_admin,
        }

    @staticmethod
    def get(user_id: int):
        row = get_db().execute("SELECT id, email, name FROM accounts WHERE id = ?", (user_id,)).fetchone()
        if row:
            return User(row["id"], row["email"], row["name"])
        return None

    @staticmethod
    def get_by_email(email: str):
        return get_db().execute(
            "SELECT id, email, name, password_hash, login_attempts, locked_until "
            "FROM accounts WHERE email = ?", (email,),
        ).fetchone()


@login_manager.user_loader
def load_user(user_id):
    return User.get(int(user_id))


@login_manager.unauthorized_handler
def _unauthorized():
    return jsonify({"error": "Authentication required"}), 401


def _validate_password(password: str) -> str | None:
    """Return an error message if password is too weak, else None."""
    if len(password) < 8:
        return "Password must be at least 8 characters."
    if not any(c.isalpha() for c in password):
        return "Password must contain at least one letter."
    if not any(c.isdigit() for c in password):
        return "Password must contain at least one digit."
    return None


def _credentials() -> tuple[str, str, dict]:
    data = request.get_json(silent=True) or request.form.to_dict()
    email = str(data.get("email", "")).strip().lower()
    password = str(data.get("password", ""))
    return email, password, data


@auth_bp.route("/login", methods=["POST"])
@limiter.limit("5 per 15 minutes")
def login():
    email, password, _ = _credentials()
    if not email or not password:
        return jsonify({"error": "Email and password are required."}), 400

    row = User.get_by_email(email)
    if not row:
        return jsonify({"error": "Invalid email or password."}), 401

    if row["locked_until"]:
        try:
            remaining = (datetime.fromisoformat(row["locked_until"]) - datetime.now()).total_seconds()
        except ValueError:
            remaining = 0
        if remaining > 0:
            mins = math.ceil(remaining / 60)
            log_event("login_locked", email)
            return jsonify({"error": f"Account temporarily locked. Try again in {mins} minute(s)."}), 423

    db = get_db()
    if not check_password_hash(row["password_hash"], password):
        attempts = row["login_attempts"] + 1
        if attempts >= LOCKOUT_THRESHOLD:
            db.execute(
                "UPDATE accounts SET login_attempts = ?, locked_until = ? WHERE id = ?",
                (attempts, (datetime.now() + timedelta(minutes=LOCKOUT_MINUTES)).isoformat(), row["id"]),
            )
        else:
            db.execute("UPDATE accounts SET login_attempts = ? WHERE id = ?", (attempts, row["id"]))
        db.commit()
        log_event("login_failed", email, f"attempts={attempts}")
        return jsonify({"error": "Invalid email or password."}), 401

    db.execute("UPDATE accounts SET login_attempts = 0, locked_until = '' WHERE id = ?", (row["id"],))
    db.commit()

    user = User(row["id"], row["email"], row["name"])
    login_user(user, remember=True)
    log_event("login_success", email)
    return jsonify({"success": True, "user": user.to_dict()})


@auth_bp.route("/register", methods=["POST"])
@limiter.limit("3 per hour")
def register():
    email, password, data = _credentials()
    name = str(data.get("name", "")).strip()

    if not email or not password:
        return jsonify({"error": "Email and password are required."}), 400
    if "@" not in email:
        return jsonify({"error": "Invalid email address."}), 400

    pw_error = _validate_password(password)
    if pw_error:
        return jsonify({"error": pw_error}), 400

    if User.get_by_email(email):
        return jsonify({"error": "An account with this email already exists."}), 409

    db = get_db()
    cur = db.execute(
        "INSERT INTO accounts (email, name, password_hash, created_at) VALUES (?, ?, ?, ?)",
        (email, name, generate_password_hash(password), datetime.now().isoformat()),
    )
    db.commit()

    log_event("register", email)
    user = User(cur.lastrowid, email, name)
    login_user(user, remember=True)
    return jsonify({"success": True, "user": user.to_dict()}), 201


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    log_event("logout", current_user.email)
    logout_user()
    return jsonify({"success": True})


@auth_bp.route("/api/me")
@login_required
def me():
    return jsonify({"user": current_user.to_dict()})
