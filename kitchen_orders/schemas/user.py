import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from kitchen_orders.core.scope import Role
from kitchen_orders.schemas.common import EmailAddress, NonEmptyStr


class UserCreate(BaseModel):
    name: NonEmptyStr
    email: EmailAddress
    password: str = Field(..., min_length=6)
    role: Role = Role.KITCHEN
    # Only meaningful for the superadmin; read by the tenant scope resolver
    restaurant_id: Optional[uuid.UUID] = None


class UserUpdate(BaseModel):
    name: Optional[NonEmptyStr] = None
    email: Optional[EmailAddress] = None
    password: Optional[str] = None
    role: Optional[Role] = None
    active: Optional[bool] = None


class UserStatusUpdate(BaseModel):
    active: bool


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    email: str
    role: Role
    restaurant_id: Optional[uuid.UUID] = None
    restaurant_name: Optional[str] = None
    active: bool
    created_at: Optional[datetime] = None

    @classmethod
    def from_user(cls, user, restaurant_name: Optional[str] = None) -> "UserResponse":
        response = cls.model_validate(user)
        response.restaurant_name = restaurant_name
        return response
