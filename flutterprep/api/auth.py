"""JSON auth endpoints (/v1/auth/*).

Sign-up and sign-in go through the dual-database service, so the account
lands on the primary store and is mirrored to the secondary under the same
id.  Sign-in returns a bearer access token; users whose email is listed in
ADMIN_EMAILS also get the ``admin`` role.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel

from flutterprep.api.dependencies import get_services, require_user
from flutterprep.backends.base import normalize_email
from flutterprep.models.principal import Principal
from flutterprep.models.user import AuthUser, GitHubIdentity
from flutterprep.services.container import Services
from flutterprep.services.token_service import ACCESS_TOKEN_TTL_MIN

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/auth", tags=["auth"])


# --- Request / Response schemas -------------------------------------------


class CredentialsIn(BaseModel):
    email: str
    password: str


class ResetPasswordIn(BaseModel):
    email: str


class GitHubLinkIn(BaseModel):
    username: str
    avatar_url: str | None = None
    access_token: str | None = None


class GitHubOut(BaseModel):
    username: str
    avatar_url: str | None = None


class UserOut(BaseModel):
    id: str
    email: str
    email_verified: bool
    display_name: str | None = None
    github: GitHubOut | None = None

    @classmethod
    def from_user(cls, user: AuthUser) -> UserOut:
        github = None
        if user.github is not None:
            github = GitHubOut(username=user.github.username, avatar_url=user.github.avatar_url)
        return cls(
            id=user.id,
            email=user.email,
            email_verified=user.email_verified,
            display_name=user.display_name,
            github=github,
        )


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserOut


# --- Routes ----------------------------------------------------------------


@router.post("/sign-up", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def sign_up(
    payload: CredentialsIn,
    services: Annotated[Services, Depends(get_services)],
) -> UserOut:
    user = await services.db.sign_up(payload.email, payload.password)
    logger.info("User signed up  user_id=%s", user.id)
    return UserOut.from_user(user)


@router.post("/sign-in", response_model=TokenOut)
async def sign_in(
    payload: CredentialsIn,
    services: Annotated[Services, Depends(get_services)],
) -> TokenOut:
    user = await services.db.sign_in(payload.email, payload.password)
    roles = ["user"]
    if normalize_email(user.email) in services.settings.admin_emails:
        roles.append("admin")
    logger.info("Sign-in succeeded  user_id=%s roles=%s", user.id, roles)
    return TokenOut(
        access_token=services.tokens.create_access_token(sub=user.id, roles=roles),
        expires_in=ACCESS_TOKEN_TTL_MIN * 60,
        user=UserOut.from_user(user),
    )


@router.post("/sign-out", status_code=status.HTTP_204_NO_CONTENT)
async def sign_out(
    principal: Annotated[Principal, Depends(require_user)],
    services: Annotated[Services, Depends(get_services)],
) -> Response:
    await services.db.sign_out(principal.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/reset-password", status_code=status.HTTP_202_ACCEPTED)
async def reset_password(
    payload: ResetPasswordIn,
    services: Annotated[Services, Depends(get_services)],
) -> dict:
    await services.db.reset_password(payload.email)
    # Same answer whether or not the account exists
    return {"message": "If the account exists, a password reset email will be sent"}


@router.post("/github", response_model=UserOut)
async def link_github(
    payload: GitHubLinkIn,
    principal: Annotated[Principal, Depends(require_user)],
    services: Annotated[Services, Depends(get_services)],
) -> UserOut:
    identity = GitHubIdentity(
        username=payload.username.strip(),
        avatar_url=payload.avatar_url,
        access_token=payload.access_token,
    )
    if not identity.username:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": "GitHub username is required"},
        )
    user = await services.db.link_github_account(principal.user_id, identity)
    logger.info("GitHub account linked  user_id=%s github=%s", user.id, identity.username)
    return UserOut.from_user(user)


@router.get("/me", response_model=UserOut)
async def me(
    principal: Annotated[Principal, Depends(require_user)],
    services: Annotated[Services, Depends(get_services)],
) -> UserOut:
    user = await services.db.get_user(principal.user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"message": "User not found"},
        )
    return UserOut.from_user(user)
