import uuid
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from kitchen_orders.models.catalog import WEEKDAYS, all_weekdays
from kitchen_orders.schemas.common import EmailAddress, NonEmptyStr, loaded


def _normalize_days(days: List[str]) -> List[str]:
    normalized = []
    for day in days:
        token = day.strip().lower()
        if token not in WEEKDAYS:
            raise ValueError(f"Unknown weekday '{day}'")
        if token not in normalized:
            normalized.append(token)
    if not normalized:
        raise ValueError("An item must be orderable on at least one day")
    return normalized


# ----- Suppliers -----

class SupplierRequest(BaseModel):
    name: NonEmptyStr
    email: EmailAddress
    phone: str = ""
    address: str = ""


class SupplierUpdate(BaseModel):
    name: Optional[NonEmptyStr] = None
    email: Optional[EmailAddress] = None
    phone: Optional[str] = None
    address: Optional[str] = None


class SupplierResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    restaurant_id: uuid.UUID
    name: str
    email: str
    phone: str
    address: str


# ----- Categories -----

class CategoryRequest(BaseModel):
    name: NonEmptyStr
    description: Optional[str] = None


class CategoryUpdate(BaseModel):
    name: Optional[NonEmptyStr] = None
    description: Optional[str] = None


class CategoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    restaurant_id: uuid.UUID
    name: str
    description: Optional[str] = None


# ----- Items -----

class ItemRequest(BaseModel):
    name: NonEmptyStr
    description: Optional[str] = None
    unit: NonEmptyStr
    supplier_id: uuid.UUID
    category_id: Optional[uuid.UUID] = None
    is_active: bool = True
    active_days: List[str] = Field(default_factory=all_weekdays)

    @field_validator("active_days")
    @classmethod
    def check_days(cls, days):
        return _normalize_days(days)


class ItemUpdate(BaseModel):
    name: Optional[NonEmptyStr] = None
    description: Optional[str] = None
    unit: Optional[NonEmptyStr] = None
    supplier_id: Optional[uuid.UUID] = None
    category_id: Optional[uuid.UUID] = None
    is_active: Optional[bool] = None
    active_days: Optional[List[str]] = None

    @field_validator("active_days")
    @classmethod
    def check_days(cls, days):
        if days is None:
            raise ValueError("active_days cannot be null")
        return _normalize_days(days)


class ItemResponse(BaseModel):
    id: uuid.UUID
    restaurant_id: uuid.UUID
    name: str
    description: Optional[str] = None
    unit: str
    supplier_id: uuid.UUID
    category_id: Optional[uuid.UUID] = None
    is_active: bool
    active_days: List[str]
    supplier: Optional[SupplierResponse] = None
    category: Optional[CategoryResponse] = None

    @classmethod
    def from_item(cls, item) -> "ItemResponse":
        supplier = loaded(item, "supplier")
        category = loaded(item, "category")
        return cls(
            id=item.id,
            restaurant_id=item.restaurant_id,
            name=item.name,
            description=item.description,
            unit=item.unit,
            supplier_id=item.supplier_id,
            category_id=item.category_id,
            is_active=item.is_active,
            active_days=list(item.active_days or []),
            supplier=SupplierResponse.model_validate(supplier) if supplier else None,
            category=CategoryResponse.model_validate(category) if category else None,
        )


# ----- Units of measure -----

class UnitRequest(BaseModel):
    name: NonEmptyStr
    abbreviation: NonEmptyStr
    is_default: bool = False


class UnitResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    restaurant_id: uuid.UUID
    name: str
    abbreviation: str
    is_default: bool
