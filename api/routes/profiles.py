"""
api/routes/profiles.py -- Public profile lookup.

Routes:
  GET /api/profiles/{username}  -- public profile (optional gate)
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request

from api.dependencies import get_user_store
from api.models import ProfileBody, ProfileResponse
from auth.dependencies import optional_identity
from auth.models import TokenClaims
from core.errors import NotFound

router = APIRouter()


@router.get("/profiles/{username}", response_model=ProfileResponse)
def get_profile(
    request: Request,
    username: str,
    claims: Optional[TokenClaims] = Depends(optional_identity),
) -> ProfileResponse:
    """Return a user's public profile. `following` is always false."""
    user = get_user_store(request).get_by_username(username.lower())
    if user is None:
        raise NotFound("Profile not found.")
    return ProfileResponse(profile=ProfileBody.from_user(user))
