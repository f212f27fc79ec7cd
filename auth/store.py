"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user is the mapper. Services and route
code never touch SQL directly.

The store owns the account constraints: non-blank name, well-formed unique
email, known role, minimum password length and matching confirmation. Both
create() and save(validate=True) enforce them and raise ValidationError
before anything is written.

Password rotation goes through save(): stage the plaintext on the User
(User.stage_password), and save() validates, hashes, stamps
password_changed_at and clears the staged fields. Callers never hash or
stamp themselves.

Security:
  All queries use bound parameters. No f-strings in SQL.
  Default reads leave hashed_password as None; pass include_secret=True
  only where a password has to be verified.

Datetimes are stored as ISO-8601 UTC text and converted back to aware
datetimes on read. Reset expiry is compared in Python after an indexed
lookup on the token digest.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import Column, Index, Integer, MetaData, String, Table, Text, create_engine, event, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.errors import ValidationError
from auth.models import DEFAULT_ROLE, ROLES, User
from auth.passwords import hash_password

logger = logging.getLogger("wayfarer.auth.store")

PASSWORD_MIN_LENGTH = 8

_DEFAULT_DB_URL = "sqlite:///./wayfarer_users.db"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("email", String(320), nullable=False, unique=True),
    Column("role", String(30), nullable=False, server_default=DEFAULT_ROLE),
    Column("hashed_password", Text, nullable=False),
    Column("password_changed_at", String(40)),
    Column("password_reset_token", String(64)),  # SHA-256 hex of the mailed secret
    Column("password_reset_expires", String(40)),
    Column("created_at", String(40), nullable=False),
)

Index("ix_users_password_reset_token", _users.c.password_reset_token)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _to_iso(value: datetime | None) -> str | None:
    return _as_utc(value).isoformat() if value is not None else None


def _from_iso(value: str | None) -> datetime | None:
    return _as_utc(datetime.fromisoformat(value)) if value else None


def _normalize_email(email: Any) -> str:
    return email.strip().lower() if isinstance(email, str) else ""


def _coerce_datetime(value: Any, field: str, errors: dict[str, str]) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return _as_utc(value) if value is not None else None
    if isinstance(value, str):
        try:
            return _as_utc(datetime.fromisoformat(value))
        except ValueError:
            pass
    errors[field] = "Must be an ISO-8601 datetime."
    return None


def _check_profile(name: Any, email: str, role: Any, errors: dict[str, str]) -> None:
    if not isinstance(name, str) or not name.strip():
        errors["name"] = "Please tell us your name."
    if not email:
        errors["email"] = "Please provide your email."
    else:
        try:
            validate_email(email, check_deliverability=False)
        except EmailNotValidError:
            errors["email"] = "Please provide a valid email."
    if role not in ROLES:
        errors["role"] = f"Role must be one of: {', '.join(ROLES)}."


def _check_password(password: Any, confirm_password: Any, errors: dict[str, str]) -> None:
    if not isinstance(password, str) or not password:
        errors["password"] = "Please provide a password."
    elif len(password) < PASSWORD_MIN_LENGTH:
        errors["password"] = f"Password must be at least {PASSWORD_MIN_LENGTH} characters."
    if confirm_password != password:
        errors["confirm_password"] = "Passwords are not the same."


def _raise_if_invalid(errors: dict[str, str]) -> None:
    if errors:
        raise ValidationError("Invalid input data. " + " ".join(errors.values()), details=errors)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User accounts.

    Usage:
        store = UserStore("sqlite:///./users.db")
        user = store.create({"name": "Ada", "email": "ada@example.com",
                             "password": "pa55word!", "confirm_password": "pa55word!"})
        same = store.find_by_email("ada@example.com")
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite") and "mode=memory" not in db_url and ":memory:" not in db_url:
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_by_email(self, email: str, include_secret: bool = False) -> User | None:
        """Look up a user by email (case-insensitive). Returns None if not found."""
        normalized = _normalize_email(email)
        if not normalized:
            return None
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == normalized)).fetchone()
        return _row_to_user(row, include_secret) if row is not None else None

    def find_by_id(self, user_id: int, include_secret: bool = False) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row, include_secret) if row is not None else None

    def find_by_reset_token(self, token_hash: str, now: datetime | None = None) -> User | None:
        """Return the user holding ``token_hash`` if its expiry is still ahead of ``now``."""
        current = _as_utc(now) if now is not None else _utcnow()
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.password_reset_token == token_hash)).fetchone()
        if row is None:
            return None
        expires = _from_iso(row.password_reset_expires)
        if expires is None or expires <= current:
            return None
        return _row_to_user(row, include_secret=False)

    def list_users(self) -> list[User]:
        """Return all users ordered by id."""
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.id)).fetchall()
        return [_row_to_user(r, include_secret=False) for r in rows]

    def has_users(self) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return (result or 0) > 0

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, fields: dict) -> User:
        """Validate and insert a new user. Returns the stored record without its hash.

        Accepted keys: name, email, password, confirm_password, role,
        password_changed_at. Anything else is ignored.

        Raises ValidationError on any constraint failure, including a
        duplicate email.
        """
        errors: dict[str, str] = {}
        name = fields.get("name")
        email = _normalize_email(fields.get("email"))
        role = fields.get("role") or DEFAULT_ROLE
        password = fields.get("password")
        _check_profile(name, email, role, errors)
        _check_password(password, fields.get("confirm_password"), errors)
        changed_at = _coerce_datetime(fields.get("password_changed_at"), "password_changed_at", errors)
        if "email" not in errors and self.find_by_email(email) is not None:
            errors["email"] = "Email is already registered."
        _raise_if_invalid(errors)

        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.insert().values(
                        name=name.strip(),
                        email=email,
                        role=role,
                        hashed_password=hash_password(password),
                        password_changed_at=_to_iso(changed_at),
                        created_at=_utcnow().isoformat(),
                    )
                )
                conn.commit()
                user_id = result.inserted_primary_key[0]
        except IntegrityError as exc:
            # Concurrent signup for the same address won the race.
            raise ValidationError(
                "Invalid input data. Email is already registered.",
                details={"email": "Email is already registered."},
            ) from exc

        logger.info("Created user id=%s role=%s", user_id, role)
        return self.find_by_id(user_id)

    def save(self, user: User, validate: bool = True, now: datetime | None = None) -> None:
        """Persist the mutable fields of an existing user.

        If a plaintext password is staged it is hashed, password_changed_at
        is set to ``now`` and the staged fields are cleared. With
        validate=False the constraints are skipped; that mode exists for
        reset-token bookkeeping only.

        The stored hash is left untouched unless a new password is staged, so
        saving a record loaded without its secret is safe.
        """
        if user.id is None:
            raise ValueError("save() requires a persisted user; use create() for new accounts.")

        email = _normalize_email(user.email)
        staged = user.password is not None
        if validate:
            errors: dict[str, str] = {}
            _check_profile(user.name, email, user.role, errors)
            if staged:
                _check_password(user.password, user.confirm_password, errors)
            _raise_if_invalid(errors)

        values: dict[str, Any] = {
            "name": user.name,
            "email": email,
            "role": user.role,
            "password_reset_token": user.password_reset_token,
            "password_reset_expires": _to_iso(user.password_reset_expires),
        }
        changed_at = user.password_changed_at
        if staged:
            changed_at = _as_utc(now) if now is not None else _utcnow()
            values["hashed_password"] = hash_password(user.password)
        values["password_changed_at"] = _to_iso(changed_at)

        try:
            with self.engine.connect() as conn:
                conn.execute(_users.update().where(_users.c.id == user.id).values(**values))
                conn.commit()
        except IntegrityError as exc:
            raise ValidationError(
                "Invalid input data. Email is already registered.",
                details={"email": "Email is already registered."},
            ) from exc

        user.email = email
        if staged:
            user.password_changed_at = changed_at
            user.hashed_password = values["hashed_password"]
            user.stage_password(None, None)

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row, include_secret: bool) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        role=row.role,
        hashed_password=row.hashed_password if include_secret else None,
        password_changed_at=_from_iso(row.password_changed_at),
        password_reset_token=row.password_reset_token,
        password_reset_expires=_from_iso(row.password_reset_expires),
        created_at=row.created_at,
    )
