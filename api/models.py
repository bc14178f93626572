"""
API request and response models for Shopfront REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
items/models.py, which own the internal domain representation. Route handlers
map between the two.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import Permission, User
from items.models import Item

# bcrypt only looks at the first 72 bytes of a password.
_BCRYPT_MAX_BYTES = 72

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


def _check_password_bytes(value: str) -> str:
    if len(value.encode("utf-8")) > _BCRYPT_MAX_BYTES:
        raise ValueError(f"password must be at most {_BCRYPT_MAX_BYTES} bytes")
    return value


# ---------------------------------------------------------------------------
# Auth -- requests
# ---------------------------------------------------------------------------


class SignupRequest(BaseModel):
    """Request body for POST /api/v1/auth/signup. Email is lowercased by the service."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(min_length=3, max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=1)
    name: str = Field(default="", max_length=255)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)


class SigninRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)


class RequestResetRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(min_length=1, max_length=255)


class ResetPasswordRequest(BaseModel):
    """Request body for POST /api/v1/auth/reset-password.

    The field names match the reset link (?resetToken=...) and the form
    posting it, hence the camelCase aliases.
    """

    model_config = ConfigDict(populate_by_name=True)

    reset_token: str = Field(alias="resetToken", min_length=1, max_length=128)
    password: str = Field(min_length=1)
    confirm_password: str = Field(alias="confirmPassword", min_length=1)

    @field_validator("password", "confirm_password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)


class PermissionsUpdate(BaseModel):
    """Request body for PATCH /api/v1/auth/users/{user_id}/permissions."""

    permissions: list[Permission] = Field(max_length=len(Permission))


# ---------------------------------------------------------------------------
# Auth -- responses
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public view of a user. Never includes the hash or reset fields."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    name: str
    permissions: list[str]
    created_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            permissions=list(user.permissions),
            created_at=user.created_at or "",
        )


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------


class ItemCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=255)
    price: int = Field(ge=0)
    description: str = Field(default="", max_length=5000)
    image: Optional[str] = Field(default=None, max_length=2000)
    large_image: Optional[str] = Field(default=None, max_length=2000)


class ItemUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    price: Optional[int] = Field(default=None, ge=0)
    description: Optional[str] = Field(default=None, max_length=5000)
    image: Optional[str] = Field(default=None, max_length=2000)
    large_image: Optional[str] = Field(default=None, max_length=2000)


class ItemResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: str
    price: int
    image: Optional[str]
    large_image: Optional[str]
    user_id: Optional[str]
    created_at: str

    @classmethod
    def from_item(cls, item: Item) -> "ItemResponse":
        return cls(
            id=item.id,
            title=item.title,
            description=item.description,
            price=item.price,
            image=item.image,
            large_image=item.large_image,
            user_id=item.user_id,
            created_at=item.created_at,
        )


class ItemsCountResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    count: int


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
