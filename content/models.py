"""
content/models.py -- Domain dataclasses for articles.

These are pure data containers with zero logic. Slug assignment lives in
content/slugs.py and content/store.py; favorite counting in content/favorites.py.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Article:
    """A piece of user-authored content.

    slug is assigned once, before the first successful insert, and never
    regenerated -- renaming the title keeps the original slug.

    favorites_count is derived: it always equals the number of users whose
    favorites set contains this article's id once the last recompute has
    finished. Never increment it directly.

    id is None before the record is written to the database.
    """

    title: str
    author_id: int
    description: str = ""
    body: str = ""
    tag_list: list[str] = field(default_factory=list)
    slug: str = ""
    favorites_count: int = 0
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""


@dataclass
class ArticlePatch:
    """Explicit partial update for an Article. None means "leave unchanged".

    There is no slug field; a slug never changes after insert.
    """

    title: Optional[str] = None
    description: Optional[str] = None
    body: Optional[str] = None
    tag_list: Optional[list[str]] = None
