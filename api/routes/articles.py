"""
api/routes/articles.py -- Article CRUD and favorites endpoints.

Routes:
  GET    /api/articles                  -- list, newest first (optional gate)
  POST   /api/articles                  -- create; slug assigned here (required gate)
  GET    /api/articles/{slug}           -- read (optional gate)
  PUT    /api/articles/{slug}           -- partial update, owner only (required gate)
  DELETE /api/articles/{slug}           -- delete, owner only (required gate)
  POST   /api/articles/{slug}/favorite  -- favorite + recompute count (required gate)
  DELETE /api/articles/{slug}/favorite  -- unfavorite + recompute count (required gate)

Ownership: PUT and DELETE compare article.author_id with the caller's id and
raise Forbidden (403) on mismatch.

Slugs: a fresh slug is generated at most _SLUG_ATTEMPTS times if the unique
index reports a collision. Titles can change later; slugs never do.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response

from api.dependencies import get_article_store, get_favorites, get_user_store, resolve_user, resolve_viewer
from api.models import (
    ArticleBody,
    ArticleCreateRequest,
    ArticleListResponse,
    ArticleResponse,
    ArticleUpdateRequest,
)
from auth.dependencies import optional_identity, require_identity
from auth.models import TokenClaims, User
from content.models import Article, ArticlePatch
from core.errors import Forbidden, NotFound, SlugTaken

logger = logging.getLogger("conduit.api")

router = APIRouter()

_SLUG_ATTEMPTS = 3


def _load_article(request: Request, slug: str) -> Article:
    article = get_article_store(request).get_by_slug(slug)
    if article is None:
        raise NotFound("Article not found.")
    return article


def _article_response(request: Request, article: Article, viewer: Optional[User]) -> ArticleResponse:
    author = get_user_store(request).get_by_id(article.author_id)
    if author is None:
        raise NotFound("Article author not found.")
    return ArticleResponse(article=ArticleBody.from_article(article, author, viewer))


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------


@router.get("/articles", response_model=ArticleListResponse)
def list_articles(
    request: Request,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    author: Optional[str] = Query(default=None),
    favorited: Optional[str] = Query(default=None),
    claims: Optional[TokenClaims] = Depends(optional_identity),
) -> ArticleListResponse:
    """List articles, optionally filtered by author username or by who favorited them."""
    user_store = get_user_store(request)
    article_store = get_article_store(request)
    viewer = resolve_viewer(request, claims)

    author_id: Optional[int] = None
    article_ids: Optional[set[int]] = None
    if author is not None:
        author_user = user_store.get_by_username(author.lower())
        if author_user is None:
            return ArticleListResponse(articles=[], articles_count=0)
        author_id = author_user.id
    if favorited is not None:
        fan = user_store.get_by_username(favorited.lower())
        if fan is None:
            return ArticleListResponse(articles=[], articles_count=0)
        article_ids = fan.favorites

    articles = article_store.list_articles(limit=limit, offset=offset, author_id=author_id, article_ids=article_ids)
    authors = user_store.get_many({a.author_id for a in articles})
    bodies = [ArticleBody.from_article(a, authors[a.author_id], viewer) for a in articles if a.author_id in authors]
    total = article_store.count_articles(author_id=author_id, article_ids=article_ids)
    return ArticleListResponse(articles=bodies, articles_count=total)


@router.post("/articles", response_model=ArticleResponse)
def create_article(
    request: Request,
    body: ArticleCreateRequest,
    claims: TokenClaims = Depends(require_identity),
) -> ArticleResponse:
    """Create an article owned by the caller. favoritesCount starts at 0."""
    user = resolve_user(request, claims)
    fields = body.article
    article = Article(
        title=fields.title,
        description=fields.description,
        body=fields.body,
        tag_list=fields.tag_list,
        author_id=user.id,
    )
    article_store = get_article_store(request)
    for attempt in range(1, _SLUG_ATTEMPTS + 1):
        try:
            article_store.create_article(article)
            break
        except SlugTaken:
            if attempt == _SLUG_ATTEMPTS:
                raise
            logger.warning("Slug collision on %r, retrying with a fresh slug", article.slug)
            article.slug = ""
    logger.info("User id=%s created article %s", user.id, article.slug)
    return _article_response(request, article, user)


# ---------------------------------------------------------------------------
# Single article
# ---------------------------------------------------------------------------


@router.get("/articles/{slug}", response_model=ArticleResponse)
def get_article(
    request: Request,
    slug: str,
    claims: Optional[TokenClaims] = Depends(optional_identity),
) -> ArticleResponse:
    article = _load_article(request, slug)
    return _article_response(request, article, resolve_viewer(request, claims))


@router.put("/articles/{slug}", response_model=ArticleResponse)
def update_article(
    request: Request,
    slug: str,
    body: ArticleUpdateRequest,
    claims: TokenClaims = Depends(require_identity),
) -> ArticleResponse:
    """Apply the fields present in the body. Owner only; the slug is kept."""
    user = resolve_user(request, claims)
    article = _load_article(request, slug)
    if article.author_id != user.id:
        raise Forbidden()

    fields = body.article
    patch = ArticlePatch(
        title=fields.title,
        description=fields.description,
        body=fields.body,
        tag_list=fields.tag_list,
    )
    article_store = get_article_store(request)
    if not article_store.update_article(article.id, patch):
        raise NotFound("Article not found.")
    return _article_response(request, _load_article(request, slug), user)


@router.delete("/articles/{slug}", status_code=204)
def delete_article(
    request: Request,
    slug: str,
    claims: TokenClaims = Depends(require_identity),
) -> Response:
    """Delete an article. Owner only. Its id is dropped from every favorites set."""
    user = resolve_user(request, claims)
    article = _load_article(request, slug)
    if article.author_id != user.id:
        raise Forbidden()
    get_article_store(request).delete_article(article.id)
    get_favorites(request).forget_article(article.id)
    logger.info("User id=%s deleted article %s", user.id, article.slug)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Favorites
# ---------------------------------------------------------------------------


def _toggle(request: Request, slug: str, claims: TokenClaims, favorited: bool) -> ArticleResponse:
    user = resolve_user(request, claims)
    article = _load_article(request, slug)
    get_favorites(request).toggle(user.id, article, favorited)
    viewer = resolve_user(request, claims)  # re-read so `favorited` reflects the change
    return _article_response(request, article, viewer)


@router.post("/articles/{slug}/favorite", response_model=ArticleResponse)
def favorite_article(
    request: Request,
    slug: str,
    claims: TokenClaims = Depends(require_identity),
) -> ArticleResponse:
    return _toggle(request, slug, claims, favorited=True)


@router.delete("/articles/{slug}/favorite", response_model=ArticleResponse)
def unfavorite_article(
    request: Request,
    slug: str,
    claims: TokenClaims = Depends(require_identity),
) -> ArticleResponse:
    return _toggle(request, slug, claims, favorited=False)
