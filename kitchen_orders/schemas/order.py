import uuid
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from kitchen_orders.schemas.common import NonEmptyStr, loaded


class OrderLineRequest(BaseModel):
    """Schema for a single line in the order request."""
    item_id: uuid.UUID
    quantity: int = Field(..., gt=0)
    unit: Optional[str] = None


class OrderRequest(BaseModel):
    """Schema for the full order submission body."""
    items: List[OrderLineRequest]
    # supplier id -> note for that supplier only
    supplier_notes: Dict[str, str] = Field(default_factory=dict)


class OrderStatusUpdate(BaseModel):
    """Schema for updating an order status."""
    status: NonEmptyStr


class OrderLineResponse(BaseModel):
    item_id: Optional[uuid.UUID] = None
    item_name: Optional[str] = None
    supplier_id: Optional[uuid.UUID] = None
    supplier_name: Optional[str] = None
    quantity: int
    unit: Optional[str] = None


class OrderResponse(BaseModel):
    id: uuid.UUID
    restaurant_id: uuid.UUID
    created_by_id: Optional[uuid.UUID] = None
    status: str
    supplier_notes: Dict[str, str]
    created_at: Optional[datetime] = None
    lines: List[OrderLineResponse]

    @classmethod
    def from_order(cls, order) -> "OrderResponse":
        lines = []
        for line in order.lines:
            item = loaded(line, "item")
            supplier = loaded(item, "supplier") if item else None
            lines.append(OrderLineResponse(
                item_id=line.item_id,
                item_name=item.name if item else None,
                supplier_id=item.supplier_id if item else None,
                supplier_name=supplier.name if supplier else None,
                quantity=line.quantity,
                unit=line.unit or (item.unit if item else None),
            ))
        return cls(
            id=order.id,
            restaurant_id=order.restaurant_id,
            created_by_id=order.created_by_id,
            status=order.status,
            supplier_notes=dict(order.supplier_notes or {}),
            created_at=order.created_at,
            lines=lines,
        )


class NotificationFailureResponse(BaseModel):
    supplier_id: Optional[uuid.UUID] = None
    supplier_name: Optional[str] = None
    code: str
    message: str


class OrderPlacementResponse(BaseModel):
    """Response schema for a newly submitted order."""
    order: OrderResponse
    message: str
    notified_suppliers: List[uuid.UUID]
    notification_failures: List[NotificationFailureResponse]
