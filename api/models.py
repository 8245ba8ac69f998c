"""
API request and response models for Stockroom REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
inventory/models.py, which own the internal domain representation. Route
handlers map between the two.

Request models accept missing fields (empty-string defaults) on purpose:
auth.service reports a missing email or password as a 400 ValidationFailure
with a readable message, which is the contract clients of /auth/login rely on.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import User
from inventory.models import Item

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /auth/register and /api/register.

    Fields are passed through untouched: auth.service trims name and email,
    and the password is hashed exactly as sent so login sees the same bytes.
    """

    name: str = Field(default="", max_length=255)
    email: str = Field(default="", max_length=255)
    password: str = Field(default="", max_length=72)


class LoginRequest(BaseModel):
    """Request body for POST /auth/login and /api/login."""

    email: str = Field(default="", max_length=255)
    password: str = Field(default="", max_length=72)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Error envelope returned on 4xx/5xx responses from the JSON API."""

    model_config = ConfigDict(frozen=True)

    message: str
    code: Optional[str] = None
    detail: Optional[str] = None


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class TokenResponse(BaseModel):
    """Response for a successful token login."""

    model_config = ConfigDict(frozen=True)

    message: str
    token: str
    token_type: str = "bearer"
    expires_in: int


class UserPublic(BaseModel):
    """User fields safe to return to clients. Never includes the hash."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    email: str
    created_at: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "UserPublic":
        return cls(id=user.id, name=user.name, email=user.email, created_at=user.created_at)


class DashboardResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    user: UserPublic


class ItemOut(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    price: str
    quantity: int
    image: Optional[str] = None
    created_at: str
    updated_at: str

    @classmethod
    def from_item(cls, item: Item) -> "ItemOut":
        return cls(**item.to_dict())


class ItemResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    data: ItemOut
    duration: Optional[int] = None


class ItemListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    data: list[ItemOut]


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
    database: str = "ok"
