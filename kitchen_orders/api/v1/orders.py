import logging
from fastapi import APIRouter, Depends, status
from uuid import UUID

from kitchen_orders.core.deps import RequestContext, get_notifier, tenant_context
from kitchen_orders.core.errors import AppError
from kitchen_orders.core.scope import KITCHEN_ROLES
from kitchen_orders.schemas.order import (
    NotificationFailureResponse,
    OrderPlacementResponse,
    OrderRequest,
    OrderResponse,
    OrderStatusUpdate,
)
from kitchen_orders.schemas.response import SuccessResponse
from kitchen_orders.services.notification import SupplierNotifier
from kitchen_orders.services.order_service import get_order, list_orders, place_order, update_order_status

router = APIRouter()
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
log = logging.getLogger("uvicorn")

kitchen_access = tenant_context(*KITCHEN_ROLES)


@router.get("/", response_model=SuccessResponse)
async def list_orders_endpoint(ctx: RequestContext = Depends(kitchen_access)):
    """Order history of the current restaurant, newest first."""
    orders = await list_orders(ctx.scope)
    return SuccessResponse(data=[OrderResponse.from_order(o).model_dump() for o in orders])


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def create_order_endpoint(
    request_data: OrderRequest,
    ctx: RequestContext = Depends(kitchen_access),
    notifier: SupplierNotifier = Depends(get_notifier),
):
    """
    Saves the order, then emails every supplier involved.

    The order is kept even when some notifications fail; the failures are
    listed in the response next to the suppliers that were notified.
    """
    try:
        order, report = await place_order(
            restaurant_id=ctx.scope.require(),
            created_by_id=ctx.principal.id,
            lines=request_data.items,
            supplier_notes=request_data.supplier_notes,
            notifier=notifier,
        )
    except AppError as e:
        log.error(f"Error placing order: {e.message}")
        raise

    if report.ok:
        message = "Order created and all suppliers notified"
    else:
        message = "Order created but some supplier notifications failed"
    log.info(f"Order {order.id} placed by user {ctx.principal.id}: {len(report.sent)} sent, {len(report.failed)} failed")

    data = OrderPlacementResponse(
        order=OrderResponse.from_order(order),
        message=message,
        notified_suppliers=[s.supplier_id for s in report.sent],
        notification_failures=[NotificationFailureResponse(**vars(f)) for f in report.failed],
    ).model_dump()
    return SuccessResponse(message=message, data=data)


@router.get("/{order_id}", response_model=SuccessResponse)
async def get_order_endpoint(order_id: UUID, ctx: RequestContext = Depends(kitchen_access)):
    """Fetches details for a specific order."""
    order = await get_order(order_id, ctx.scope)
    return SuccessResponse(data=OrderResponse.from_order(order).model_dump())


@router.patch("/{order_id}/status", response_model=SuccessResponse)
async def update_status_endpoint(order_id: UUID, payload: OrderStatusUpdate, ctx: RequestContext = Depends(kitchen_access)):
    """Updates the free-form status; nothing else on an order ever changes."""
    order = await update_order_status(order_id, ctx.scope, payload.status)
    log.info(f"Order {order.id} status set to {order.status}")
    return SuccessResponse(message=f"Order status updated to {order.status}", data=OrderResponse.from_order(order).model_dump())
