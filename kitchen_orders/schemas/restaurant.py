import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from kitchen_orders.core.scope import Role
from kitchen_orders.schemas.common import NonEmptyStr, OptionalEmailAddress


class EmailConfig(BaseModel):
    """Outgoing mail settings embedded in a restaurant."""
    sender_name: str = ""
    sender_email: OptionalEmailAddress = ""
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = Field(587, gt=0, lt=65536)
    smtp_user: str = ""
    smtp_password: str = ""
    use_ssl: bool = False


class EmailConfigUpdate(BaseModel):
    sender_name: Optional[str] = None
    sender_email: Optional[OptionalEmailAddress] = None
    smtp_host: Optional[str] = None
    smtp_port: Optional[int] = Field(None, gt=0, lt=65536)
    smtp_user: Optional[str] = None
    # Blank keeps the stored password (clients never receive it back)
    smtp_password: Optional[str] = None
    use_ssl: Optional[bool] = None


class EmailConfigResponse(BaseModel):
    sender_name: str = ""
    sender_email: str = ""
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    use_ssl: bool = False
    has_smtp_password: bool = False


class RestaurantCreate(BaseModel):
    name: NonEmptyStr
    address: str = ""
    phone: str = ""
    email: str = ""
    email_config: EmailConfig = Field(default_factory=EmailConfig)
    active: bool = True


class RestaurantUpdate(BaseModel):
    name: Optional[NonEmptyStr] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    email_config: Optional[EmailConfigUpdate] = None
    active: Optional[bool] = None


class RestaurantStatusUpdate(BaseModel):
    active: bool


class RestaurantResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    address: str
    phone: str
    email: str
    email_config: EmailConfigResponse
    active: bool
    created_at: Optional[datetime] = None

    @classmethod
    def from_restaurant(cls, restaurant) -> "RestaurantResponse":
        config = dict(restaurant.email_config or {})
        config["has_smtp_password"] = bool(config.pop("smtp_password", ""))
        return cls(
            id=restaurant.id,
            name=restaurant.name,
            address=restaurant.address,
            phone=restaurant.phone,
            email=restaurant.email,
            email_config=EmailConfigResponse(**config),
            active=restaurant.active,
            created_at=restaurant.created_at,
        )


class SeedUserCredentials(BaseModel):
    """Staff account created together with a restaurant. The password is shown only once."""
    id: uuid.UUID
    name: str
    email: str
    password: str
    role: Role


class RestaurantBootstrapResponse(BaseModel):
    restaurant: RestaurantResponse
    users: List[SeedUserCredentials]


class StatsResponse(BaseModel):
    restaurants: int
    users: int
    suppliers: int
    items: int
    orders: int
