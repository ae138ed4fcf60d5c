"""Account model - the acting user and owner join target."""

from enum import Enum
from typing import Any, Optional
from pydantic import Field, field_validator

from src.models.base import CamelModel


class AccountRole(str, Enum):
    """Account roles."""
    ADMIN = "admin"
    SUB_ADMIN = "sub-admin"
    AGENT = "agent"
    CLIENT = "client"


# Never exposed through the owner join
ACCOUNT_PRIVATE_FIELDS = (
    "password",
    "tokens",
    "ip",
    "resetToken",
    "resetTokenExpirationDate",
    "verificationCode",
    "verificationCodeExpirationDate",
)


class Account(CamelModel):
    """Authenticated account as seen by the property core."""
    id: str = Field(..., alias="_id", description="Account ID")
    role: AccountRole = Field(default=AccountRole.CLIENT, description="Account role")
    firstname: Optional[str] = None
    lastname: Optional[str] = None
    avatar_url: Optional[str] = Field(None, description="Public avatar URL")
    avatar_names: list[str] = Field(default_factory=list, description="Stored avatar keys")
    listing_count: int = Field(default=0, ge=0, description="Properties currently owned")
    total_listing: int = Field(default=0, ge=0, description="Properties ever created")
    verified: bool = False

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        return str(value) if value is not None else value
