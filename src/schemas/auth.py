"""Authentication schemas for verified access tokens and user context."""

from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class UserContext(BaseModel):
    """Authenticated user for the current request.

    Populated by the auth dependency from a verified access token; this
    is the (user_id, is_admin) pair the order endpoints rely on.
    """

    model_config = ConfigDict(from_attributes=True)

    user_id: UUID = Field(description="Unique identifier for the user (from JWT sub claim)")
    email: str | None = Field(default=None, description="User's email address if available")
    role: str | None = Field(default=None, description="Token role claim (e.g. 'authenticated')")
    is_admin: bool = Field(default=False, description="Whether the user holds the administrator capability")


class TokenPayload(BaseModel):
    """JWT claims of a Supabase-issued access token."""

    model_config = ConfigDict(from_attributes=True)

    sub: str = Field(description="Subject - the user's UUID")
    email: str | None = Field(default=None, description="User's email address")
    role: str | None = Field(default=None, description="User's role")
    exp: int = Field(description="Expiration timestamp (Unix epoch)")
    iat: int = Field(description="Issued at timestamp (Unix epoch)")
    aud: str | None = Field(default=None, description="Audience - intended recipient")
    iss: str | None = Field(default=None, description="Issuer - token issuer URL")
    app_metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Server-controlled metadata; carries the admin role",
    )

    def has_admin_role(self, admin_role_name: str) -> bool:
        """Check the server-controlled metadata for the admin capability.

        Accepts either a single ``role`` or a ``roles`` list, plus a boolean
        ``is_admin`` flag.
        """
        if self.app_metadata.get("is_admin") is True:
            return True
        if self.app_metadata.get("role") == admin_role_name:
            return True
        roles = self.app_metadata.get("roles") or []
        return isinstance(roles, list) and admin_role_name in roles

    def to_user_context(self, admin_role_name: str = "admin") -> UserContext:
        """Convert token payload to UserContext.

        Returns:
            UserContext: User context derived from token claims.
        """
        return UserContext(
            user_id=UUID(self.sub),
            email=self.email,
            role=self.role,
            is_admin=self.has_admin_role(admin_role_name),
        )
