"""
content/favorites.py -- Keeps articles.favorites_count consistent with users' favorites sets.

Source of truth: the user_favorites collection owned by each user (auth/store.py).
Derived value:   articles.favorites_count (content/store.py).

favorite() / unfavorite() only change the set. recompute_count() re-counts
from the set and overwrites the article's counter; it never increments or
decrements, so a lost or duplicated request cannot make the counter drift.

A toggle is complete only after its recompute has been persisted. toggle()
runs both steps and is what the API calls.

Consistency window: the set change and the recompute are two separate
writes with no transaction around them. Two users toggling the same article
at the same moment can briefly leave the counter one behind, or have the
earlier recompute land last. The next recompute on that article corrects it;
every recompute reads the set AFTER its own mutation committed, so the
counter converges once the last concurrent toggle finishes.
"""

from __future__ import annotations

import logging

from auth.store import UserStore
from content.models import Article
from content.store import ArticleStore
from core.errors import NotFound

logger = logging.getLogger("conduit.content")


class FavoritesEngine:
    """Favorite bookkeeping over a UserStore (the sets) and an ArticleStore (the counters)."""

    def __init__(self, user_store: UserStore, article_store: ArticleStore) -> None:
        self.user_store = user_store
        self.article_store = article_store

    def favorite(self, user_id: int, article_id: int) -> bool:
        """Add article_id to the user's favorites. Idempotent; returns True if the set changed."""
        return self.user_store.add_favorite(user_id, article_id)

    def unfavorite(self, user_id: int, article_id: int) -> bool:
        """Remove article_id from the user's favorites. Idempotent; returns True if the set changed."""
        return self.user_store.remove_favorite(user_id, article_id)

    def recompute_count(self, article_id: int) -> int:
        """Count users holding article_id, persist it on the article and return it.

        Raises NotFound if the article no longer exists.
        """
        count = self.user_store.count_favorited_by(article_id)
        if not self.article_store.set_favorites_count(article_id, count):
            raise NotFound("Article not found.")
        return count

    def toggle(self, user_id: int, article: Article, favorited: bool) -> Article:
        """Favorite or unfavorite, then recompute. Returns the article with its fresh count."""
        if article.id is None:
            raise ValueError("Cannot favorite an article that has not been saved")
        if favorited:
            changed = self.favorite(user_id, article.id)
        else:
            changed = self.unfavorite(user_id, article.id)
        article.favorites_count = self.recompute_count(article.id)
        logger.debug(
            "user %s %s article %s (changed=%s, count=%d)",
            user_id,
            "favorited" if favorited else "unfavorited",
            article.id,
            changed,
            article.favorites_count,
        )
        return article

    def forget_article(self, article_id: int) -> None:
        """Remove a deleted article from every favorites set."""
        removed = self.user_store.remove_favorites_for_article(article_id)
        if removed:
            logger.info("Removed deleted article %s from %d favorites sets", article_id, removed)
