"""
api/routes/users.py -- Registration, login and current-user endpoints.

Routes:
  POST /api/users          -- register; returns the user with a token (public)
  POST /api/users/login    -- password login by email (public)
  GET  /api/user           -- current user, fresh token (required gate)
  PUT  /api/user           -- partial update of the current user (required gate)

Security:
  authenticate_user() provides timing equalization -- use it, never inline
  get_by_email() + verify_password().
  Wrong password and unknown email produce the same 422
  {"errors": {"email or password": ["is invalid"]}}.
  Cache-Control: no-store on every response that carries a token.

Concurrency:
  Handlers that run PBKDF2 are plain `def` so FastAPI executes them on its
  worker thread pool; the KDF never blocks the event loop.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.dependencies import get_tokens, get_user_store, resolve_user
from api.models import LoginRequest, RegisterRequest, UserBody, UserResponse, UserUpdateRequest
from auth.credentials import authenticate_user, set_password
from auth.dependencies import require_identity
from auth.models import TokenClaims, User, UserPatch
from core.errors import InvalidCredentials, NotFound

logger = logging.getLogger("conduit.api")

router = APIRouter()


def _user_response(user: User, token: str) -> JSONResponse:
    resp = JSONResponse(
        status_code=200,
        content=UserResponse(user=UserBody.from_user(user, token)).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/users", response_model=UserResponse)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create an account and return it with a token.

    Username/email collisions surface as 422 {"errors": {"username": ["has already been taken"]}}.
    """
    user_store = get_user_store(request)
    salt, hash_ = set_password(body.user.password)
    user = User(username=body.user.username, email=body.user.email, salt=salt, hash=hash_)
    user.id = user_store.create_user(user)
    logger.info("Registered user id=%s", user.id)
    return _user_response(user, get_tokens(request).issue(user))


@router.post("/users/login", response_model=UserResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password."""
    user = authenticate_user(get_user_store(request), body.user.email, body.user.password)
    if user is None:
        raise InvalidCredentials()
    return _user_response(user, get_tokens(request).issue(user))


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/user", response_model=UserResponse)
def current_user(request: Request, claims: TokenClaims = Depends(require_identity)) -> JSONResponse:
    """Return the current user re-read from the store, with a fresh token."""
    user = resolve_user(request, claims)
    return _user_response(user, get_tokens(request).issue(user))


@router.put("/user", response_model=UserResponse)
def update_current_user(
    request: Request,
    body: UserUpdateRequest,
    claims: TokenClaims = Depends(require_identity),
) -> JSONResponse:
    """Apply the fields present in the body. A new password replaces salt and hash together."""
    user_store = get_user_store(request)
    user = resolve_user(request, claims)

    fields = body.user
    patch = UserPatch(
        username=fields.username,
        email=fields.email,
        bio=fields.bio,
        image=fields.image,
        password=fields.password,
    )

    updates: dict = {}
    if patch.username is not None:
        updates["username"] = patch.username
    if patch.email is not None:
        updates["email"] = patch.email
    if patch.bio is not None:
        updates["bio"] = patch.bio
    if patch.image is not None:
        updates["image"] = patch.image
    if patch.password is not None:
        updates["salt"], updates["hash"] = set_password(patch.password)

    if not user_store.update_user(user.id, **updates):
        raise NotFound("User not found.")
    if "hash" in updates:
        logger.info("Password changed for user id=%s", user.id)

    updated = resolve_user(request, claims)
    # Re-issue so the token's username claim matches a possibly renamed account.
    return _user_response(updated, get_tokens(request).issue(updated))
