from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class GitHubIdentity:
    username: str
    avatar_url: str | None = None
    access_token: str | None = None


@dataclass(frozen=True, slots=True)
class AuthUser:
    """Public view of an account.  Never carries the password hash."""

    id: str
    email: str
    email_verified: bool = False
    display_name: str | None = None
    github: GitHubIdentity | None = None
    created_at: datetime | None = None
