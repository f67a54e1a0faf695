"""Shared-secret role resolution.

There are no users: a credential is one of two configured passwords and the
role it maps to is all the app knows about the caller.
"""
import enum
import hmac
from typing import Optional


class Role(enum.IntEnum):
    GUEST = 0
    TEAM = 1
    ADMIN = 2

    @property
    def label(self) -> str:
        return self.name.lower()


def _matches(credential: str, secret: Optional[str]) -> bool:
    if not secret:
        return False
    return hmac.compare_digest(credential.encode("utf-8"), secret.encode("utf-8"))


def resolve_role(credential: Optional[str], team_secret: Optional[str], admin_secret: Optional[str]) -> Role:
    """Maps a presented secret to a role. Absent or unknown credentials are GUEST."""
    if not credential:
        return Role.GUEST
    if _matches(credential, admin_secret):
        return Role.ADMIN
    if _matches(credential, team_secret):
        return Role.TEAM
    return Role.GUEST
