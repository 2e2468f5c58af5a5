"""
Pydantic decoders for auth response payloads.

The login endpoint has shipped more than one response shape over time:
the user object appears under ``user`` or ``users``, the id as ``id`` or
``user_id``, the display name as ``full_name`` or ``name``. These models
absorb the variants in one place so the auth operations see a single shape.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class UserRole(str, Enum):
    """Role derived from the numeric role_id."""

    ADMIN = "admin"
    MANAGER = "manager"
    PHARMACIST = "pharmacist"
    CASHIER = "cashier"
    USER = "user"

    @classmethod
    def from_role_id(cls, role_id: Optional[int]) -> "UserRole":
        return ROLE_BY_ID.get(role_id, cls.USER)


ROLE_BY_ID = {
    1: UserRole.ADMIN,
    2: UserRole.MANAGER,
    3: UserRole.PHARMACIST,
    4: UserRole.CASHIER,
}


def _first_present(data: dict, *keys: str) -> Any:
    # First truthy value wins; 0 and "" fall through like missing keys
    for key in keys:
        value = data.get(key)
        if value:
            return value
    return None


class LoginUser(BaseModel):
    """User record embedded in a login response."""

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    full_name: Optional[str] = None
    email: Optional[str] = None
    role_id: Optional[int] = None
    branch_id: Optional[str] = None
    must_change_password: bool = False

    @model_validator(mode="before")
    @classmethod
    def merge_aliases(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        merged = dict(data)
        merged["id"] = _first_present(data, "id", "user_id")
        merged["full_name"] = _first_present(data, "full_name", "name")
        return merged

    @field_validator("id", "full_name", "email", "branch_id", mode="before")
    @classmethod
    def stringify_fields(cls, value: Any) -> Any:
        return None if value is None else str(value)

    @field_validator("role_id", mode="before")
    @classmethod
    def parse_role_id(cls, value: Any) -> Any:
        # Unknown role ids map to the generic user role, never a decode error
        try:
            return None if value is None else int(value)
        except (TypeError, ValueError):
            return None

    @field_validator("must_change_password", mode="before")
    @classmethod
    def coerce_flag(cls, value: Any) -> bool:
        return bool(value)

    @property
    def role(self) -> UserRole:
        return UserRole.from_role_id(self.role_id)


class LoginResponse(BaseModel):
    """Successful login payload."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    token: Optional[str] = None
    refresh_token: Optional[str] = Field(default=None, alias="refreshToken")
    user: Optional[LoginUser] = None
    requires_password_change: bool = Field(default=False, alias="requiresPasswordChange")
    must_change_password: bool = Field(default=False, alias="mustChangePassword")

    @model_validator(mode="before")
    @classmethod
    def pick_user(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        merged = dict(data)
        user = data.get("user") or data.get("users")
        merged["user"] = user if isinstance(user, dict) else None
        merged.pop("users", None)
        return merged

    @field_validator("token", "refresh_token", mode="before")
    @classmethod
    def stringify_tokens(cls, value: Any) -> Any:
        return None if value is None else str(value)

    @field_validator("requires_password_change", "must_change_password", mode="before")
    @classmethod
    def coerce_flag(cls, value: Any) -> bool:
        return bool(value)

    @property
    def role(self) -> UserRole:
        return self.user.role if self.user else UserRole.USER

    @property
    def password_change_required(self) -> bool:
        return bool(
            self.requires_password_change
            or self.must_change_password
            or (self.user and self.user.must_change_password)
        )


def decode_login_response(payload: dict) -> LoginResponse:
    return LoginResponse.model_validate(payload)


__all__ = [
    "UserRole",
    "ROLE_BY_ID",
    "LoginUser",
    "LoginResponse",
    "decode_login_response",
]
