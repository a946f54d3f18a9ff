"""
content/store.py -- SQLAlchemy Core persistence layer for articles.

Pattern: Repository + Data Mapper (same as auth/store.py). ArticleStore is the
repository; _row_to_article is the mapper.

Security: all queries use bound parameters. No f-strings in SQL.

Slugs:
  create_article() assigns a slug from content.slugs.generate_slug() when the
  article does not carry one yet. The UNIQUE index on articles.slug is the
  final arbiter: a collision raises SlugTaken and nothing is written. The
  store never regenerates a slug on its own; the caller decides whether to
  retry with a fresh one. update_article() cannot touch the slug at all.

Favorites count:
  favorites_count is written only through set_favorites_count(), which the
  favorites engine calls with a value recomputed from user_favorites.

Usage:
    store = ArticleStore()
    article_id = store.create_article(Article(title="Hello World", author_id=uid))
    article = store.get_by_slug("hello-world-k3x9za")
    store.close()
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.store import make_engine
from content.models import Article, ArticlePatch
from content.slugs import generate_slug
from core.errors import SlugTaken

logger = logging.getLogger("conduit.store")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'conduit.db'}"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_articles = Table(
    "articles",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("slug", String(255), nullable=False, unique=True),
    Column("title", Text, nullable=False),
    Column("description", Text, nullable=False, server_default=""),
    Column("body", Text, nullable=False, server_default=""),
    Column("tag_list", Text),  # JSON array serialized as text
    Column("author_id", Integer, nullable=False, index=True),
    Column("favorites_count", Integer, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class ArticleStore:
    """Repository for Article entities."""

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        self.engine: Engine = make_engine(db_url)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_article(self, article: Article) -> int:
        """Insert a new article and return its assigned database ID.

        Assigns article.slug first if it is empty. On success article.id,
        created_at and updated_at are filled in. Raises SlugTaken if another
        article already owns the slug.
        """
        if not article.slug:
            article.slug = generate_slug(article.title)
        now = _now_iso()
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    _articles.insert().values(
                        slug=article.slug,
                        title=article.title,
                        description=article.description,
                        body=article.body,
                        tag_list=json.dumps(article.tag_list),
                        author_id=article.author_id,
                        favorites_count=0,
                        created_at=now,
                        updated_at=now,
                    )
                )
        except IntegrityError as exc:
            raise SlugTaken(article.slug) from exc
        article.id = result.inserted_primary_key[0]
        article.favorites_count = 0
        article.created_at = article.updated_at = now
        return article.id

    def update_article(self, article_id: int, patch: ArticlePatch) -> bool:
        """Apply the fields present in `patch`. Returns False if the article is gone."""
        values: dict = {}
        if patch.title is not None:
            values["title"] = patch.title
        if patch.description is not None:
            values["description"] = patch.description
        if patch.body is not None:
            values["body"] = patch.body
        if patch.tag_list is not None:
            values["tag_list"] = json.dumps(patch.tag_list)
        if not values:
            return self.get_by_id(article_id) is not None
        values["updated_at"] = _now_iso()
        with self.engine.begin() as conn:
            result = conn.execute(_articles.update().where(_articles.c.id == article_id).values(**values))
        return result.rowcount > 0

    def set_favorites_count(self, article_id: int, count: int) -> bool:
        """Overwrite the derived favorites counter. Returns False if the article is gone."""
        if count < 0:
            raise ValueError("favorites_count cannot be negative")
        with self.engine.begin() as conn:
            result = conn.execute(
                _articles.update().where(_articles.c.id == article_id).values(favorites_count=count)
            )
        return result.rowcount > 0

    def delete_article(self, article_id: int) -> bool:
        """Permanently delete an article. Returns True if deleted, False if not found.

        Ownership is the caller's responsibility. The favorites engine clears
        user_favorites entries for the id.
        """
        with self.engine.begin() as conn:
            result = conn.execute(_articles.delete().where(_articles.c.id == article_id))
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_by_id(self, article_id: int) -> Article | None:
        with self.engine.connect() as conn:
            row = conn.execute(_articles.select().where(_articles.c.id == article_id)).fetchone()
        return _row_to_article(row) if row is not None else None

    def get_by_slug(self, slug: str) -> Article | None:
        """Look up an article by slug. Slugs are stored lowercase; lookups are exact."""
        with self.engine.connect() as conn:
            row = conn.execute(_articles.select().where(_articles.c.slug == slug.lower())).fetchone()
        return _row_to_article(row) if row is not None else None

    def list_articles(
        self,
        limit: int = 20,
        offset: int = 0,
        author_id: Optional[int] = None,
        article_ids: Optional[set[int]] = None,
    ) -> list[Article]:
        """Return articles newest first, optionally filtered by author or id set."""
        query = _articles.select()
        if author_id is not None:
            query = query.where(_articles.c.author_id == author_id)
        if article_ids is not None:
            query = query.where(_articles.c.id.in_(sorted(article_ids)))
        query = query.order_by(_articles.c.created_at.desc(), _articles.c.id.desc()).limit(limit).offset(offset)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_article(r) for r in rows]

    def count_articles(self, author_id: Optional[int] = None, article_ids: Optional[set[int]] = None) -> int:
        query = select(func.count()).select_from(_articles)
        if author_id is not None:
            query = query.where(_articles.c.author_id == author_id)
        if article_ids is not None:
            query = query.where(_articles.c.id.in_(sorted(article_ids)))
        with self.engine.connect() as conn:
            result = conn.execute(query).scalar()
        return result or 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_article(row) -> Article:
    return Article(
        id=row.id,
        slug=row.slug,
        title=row.title,
        description=row.description or "",
        body=row.body or "",
        tag_list=json.loads(row.tag_list) if row.tag_list else [],
        author_id=row.author_id,
        favorites_count=row.favorites_count,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
