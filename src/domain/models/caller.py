"""Caller identity and authentication context of a chat turn."""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class CallerIdentity:
    """The authenticated user a turn runs for."""

    user_id: str
    username: str | None = None
    permissions: tuple[str, ...] = ()

    def has_any_permission(self, required: list[str] | tuple[str, ...]) -> bool:
        """True when nothing is required or the caller holds at least one required permission."""
        if not required:
            return True
        return any(p in self.permissions for p in required)

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> "CallerIdentity":
        """Map JWT claims to a caller identity.

        Permissions are read from ``permissions``, ``roles`` or Keycloak's
        ``realm_access.roles``, whichever is present.
        """
        user_id = claims.get("user_id") or claims.get("sub") or ""
        permissions: list[str] = []
        if isinstance(claims.get("permissions"), list):
            permissions.extend(str(p) for p in claims["permissions"])
        if isinstance(claims.get("roles"), list):
            permissions.extend(str(r) for r in claims["roles"])
        realm_access = claims.get("realm_access")
        if isinstance(realm_access, dict):
            permissions.extend(str(r) for r in realm_access.get("roles") or [])
        return cls(
            user_id=str(user_id),
            username=claims.get("preferred_username") or claims.get("username") or claims.get("email"),
            permissions=tuple(dict.fromkeys(permissions)),
        )


@dataclass(frozen=True)
class AuthContext:
    """Credentials forwarded to tools that make delegated calls."""

    access_token: str | None = None
    request_id: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)
