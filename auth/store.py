"""
auth/store.py -- SQLAlchemy Core persistence layer for identities.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. Route and dependency code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

Favorites:
  A user's favorites set lives in user_favorites, a child collection keyed by
  (user_id, article_id). The composite primary key makes add_favorite()
  idempotent even when two requests race: the loser's INSERT hits the key and
  is treated as "already present". Article favorite counts are always derived
  from this table (see content/favorites.py), never stored here.

Uniqueness:
  username and email carry UNIQUE indexes. IntegrityError from either is
  translated into UniqueConstraintViolation naming the colliding field.

Layer rule: no imports from api/ or content/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    MetaData,
    PrimaryKeyConstraint,
    String,
    Table,
    Text,
    create_engine,
    event,
    func,
    select,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError

from auth.models import User
from core.errors import UniqueConstraintViolation

logger = logging.getLogger("conduit.store")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'conduit.db'}"

# Columns a caller may change through update_user(). Everything else (id,
# created_at) is owned by the store.
_MUTABLE_FIELDS = frozenset({"username", "email", "bio", "image", "salt", "hash"})

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("bio", Text),
    Column("image", Text),
    Column("salt", String(64), nullable=False),
    Column("hash", String(128), nullable=False),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_user_favorites = Table(
    "user_favorites",
    _metadata,
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("article_id", Integer, nullable=False, index=True),
    PrimaryKeyConstraint("user_id", "article_id", name="pk_user_favorite"),
)


# ---------------------------------------------------------------------------
# SQLite connection setup
# ---------------------------------------------------------------------------


def configure_sqlite(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode and foreign key enforcement.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool. Shared with content/store.py.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


def make_engine(db_url: str) -> Engine:
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", configure_sqlite)
    return engine


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities and their favorites collection.

    Usage:
        store = UserStore()
        salt, hash_ = set_password("secret")
        uid = store.create_user(User(username="ana", email="ana@example.com", salt=salt, hash=hash_))
        store.add_favorite(uid, article_id)
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        self.engine: Engine = make_engine(db_url)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # User queries
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises UniqueConstraintViolation("username" | "email") on collision.
        """
        now = _now_iso()
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    _users.insert().values(
                        username=user.username,
                        email=user.email,
                        bio=user.bio,
                        image=user.image,
                        salt=user.salt,
                        hash=user.hash,
                        created_at=now,
                        updated_at=now,
                    )
                )
                return result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise self._unique_violation(user.username, user.email) from exc

    def get_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
            return _row_to_user(row, _load_favorites(conn, row.id)) if row is not None else None

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact (already lowercased) email. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
            return _row_to_user(row, _load_favorites(conn, row.id)) if row is not None else None

    def get_by_username(self, username: str) -> User | None:
        """Look up a user by exact (already lowercased) username. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
            return _row_to_user(row, _load_favorites(conn, row.id)) if row is not None else None

    def get_many(self, user_ids: set[int]) -> dict[int, User]:
        """Return {id: User} for the given ids. Missing ids are simply absent.

        Favorites are not loaded; the result is meant for author profiles.
        """
        if not user_ids:
            return {}
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().where(_users.c.id.in_(sorted(user_ids)))).fetchall()
        return {r.id: _row_to_user(r, set()) for r in rows}

    def update_user(self, user_id: int, **fields) -> bool:
        """Update mutable fields on an existing user.

        Accepted fields: username, email, bio, image, salt, hash. Unknown
        keys raise ValueError. Raises UniqueConstraintViolation when a new
        username or email is already taken.

        Returns True if a row was updated, False if user_id was not found.
        """
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {unknown!r}")
        if not fields:
            return self.get_by_id(user_id) is not None
        fields["updated_at"] = _now_iso()
        try:
            with self.engine.begin() as conn:
                result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
        except IntegrityError as exc:
            raise self._unique_violation(fields.get("username"), fields.get("email"), exclude_id=user_id) from exc
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Favorites collection
    # ------------------------------------------------------------------

    def add_favorite(self, user_id: int, article_id: int) -> bool:
        """Add article_id to the user's favorites. No-op if already present.

        Returns True if the set changed.
        """
        try:
            with self.engine.begin() as conn:
                exists = conn.execute(
                    select(_user_favorites.c.user_id).where(
                        (_user_favorites.c.user_id == user_id) & (_user_favorites.c.article_id == article_id)
                    )
                ).first()
                if exists is not None:
                    return False
                conn.execute(_user_favorites.insert().values(user_id=user_id, article_id=article_id))
        except IntegrityError:
            # A concurrent request inserted the same pair first; the set
            # already holds the id, which is the outcome asked for.
            logger.debug("favorite (%s, %s) already present", user_id, article_id)
            return False
        return True

    def remove_favorite(self, user_id: int, article_id: int) -> bool:
        """Remove article_id from the user's favorites. No-op if absent.

        Returns True if the set changed.
        """
        with self.engine.begin() as conn:
            result = conn.execute(
                _user_favorites.delete().where(
                    (_user_favorites.c.user_id == user_id) & (_user_favorites.c.article_id == article_id)
                )
            )
        return result.rowcount > 0

    def get_favorites(self, user_id: int) -> set[int]:
        with self.engine.connect() as conn:
            return _load_favorites(conn, user_id)

    def count_favorited_by(self, article_id: int) -> int:
        """Return how many users hold article_id in their favorites set."""
        with self.engine.connect() as conn:
            result = conn.execute(
                select(func.count()).select_from(_user_favorites).where(_user_favorites.c.article_id == article_id)
            ).scalar()
        return result or 0

    def remove_favorites_for_article(self, article_id: int) -> int:
        """Drop a deleted article from every user's favorites. Returns rows removed."""
        with self.engine.begin() as conn:
            result = conn.execute(_user_favorites.delete().where(_user_favorites.c.article_id == article_id))
        return result.rowcount

    def close(self) -> None:
        self.engine.dispose()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _unique_violation(
        self,
        username: str | None,
        email: str | None,
        exclude_id: int | None = None,
    ) -> UniqueConstraintViolation:
        """Work out which unique index fired.

        The driver's IntegrityError text differs between SQLite and
        PostgreSQL, so re-query instead of parsing the message.
        """
        if username is not None:
            other = self.get_by_username(username)
            if other is not None and other.id != exclude_id:
                return UniqueConstraintViolation("username")
        if email is not None:
            other = self.get_by_email(email)
            if other is not None and other.id != exclude_id:
                return UniqueConstraintViolation("email")
        return UniqueConstraintViolation("username" if username is not None else "email")


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _load_favorites(conn: Connection, user_id: int) -> set[int]:
    rows = conn.execute(select(_user_favorites.c.article_id).where(_user_favorites.c.user_id == user_id)).fetchall()
    return {r.article_id for r in rows}


def _row_to_user(row, favorites: set[int]) -> User:
    return User(
        id=row.id,
        username=row.username,
        email=row.email,
        salt=row.salt,
        hash=row.hash,
        bio=row.bio,
        image=row.image,
        favorites=favorites,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
