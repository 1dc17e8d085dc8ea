import logging
from typing import Dict, List, Mapping, Optional, Sequence, Tuple
from uuid import UUID

from tortoise.transactions import in_transaction

from kitchen_orders.core.errors import NotFoundError, ValidationError
from kitchen_orders.core.scope import ScopeDecision
from kitchen_orders.models import DEFAULT_ORDER_STATUS, Item, Order, OrderLine, Restaurant
from kitchen_orders.services.notification import DispatchReport, SupplierNotifier, group_lines_by_supplier

log = logging.getLogger(__name__)

ORDER_PREFETCH = ("lines__item__supplier",)


def _normalize_notes(notes: Optional[Mapping[str, str]]) -> Dict[str, str]:
    """Keys become canonical UUID strings; blank notes are dropped."""
    normalized = {}
    for key, note in (notes or {}).items():
        if not note or not str(note).strip():
            continue
        try:
            normalized[str(UUID(str(key)))] = str(note).strip()
        except ValueError:
            raise ValidationError(f"Invalid supplier id in notes: {key}")
    return normalized


async def place_order(
    restaurant_id: UUID,
    created_by_id: Optional[UUID],
    lines: Sequence,
    supplier_notes: Optional[Mapping[str, str]],
    notifier: SupplierNotifier,
) -> Tuple[Order, DispatchReport]:
    """
    Persists the order first, then mails every supplier whose items it contains.

    ``lines`` need ``item_id``, ``quantity`` and ``unit``. Notification failures
    are collected in the returned report and never undo the order.
    """
    if not lines:
        raise ValidationError("Order must contain items.")
    for line in lines:
        if int(line.quantity) <= 0:
            raise ValidationError("Quantities must be positive.")

    restaurant = await Restaurant.get_or_none(id=restaurant_id)
    if not restaurant:
        raise ValidationError("Restaurant not found.")

    notes = _normalize_notes(supplier_notes)

    # Every item must belong to the ordering restaurant before anything is written
    item_ids = {str(line.item_id) for line in lines}
    items = await Item.filter(id__in=list(item_ids), restaurant_id=restaurant_id).select_related("supplier")
    items_by_id = {str(i.id): i for i in items}
    unknown = sorted(item_ids - set(items_by_id))
    if unknown:
        raise ValidationError(f"Items not found for this restaurant: {', '.join(unknown)}")

    # 1. Persist header and lines together
    async with in_transaction() as conn:
        order = await Order.create(
            restaurant_id=restaurant_id,
            created_by_id=created_by_id,
            status=DEFAULT_ORDER_STATUS,
            supplier_notes=notes,
            using_db=conn,
        )
        for position, line in enumerate(lines):
            await OrderLine.create(
                order=order,
                position=position,
                item_id=line.item_id,
                quantity=int(line.quantity),
                unit=line.unit or None,
                using_db=conn,
            )
    log.info(f"Order {order.id} saved for restaurant {restaurant_id} with {len(lines)} lines")

    # 2. Group by supplier, 3. notify each supplier in turn
    buckets, unresolved = group_lines_by_supplier(lines, items_by_id)
    report = await notifier.notify_suppliers(restaurant, buckets, notes, unresolved)
    if report.failed:
        log.warning(f"Order {order.id} created with {len(report.failed)} notification failure(s)")

    await order.fetch_related(*ORDER_PREFETCH)
    return order, report


async def list_orders(scope: ScopeDecision) -> List[Order]:
    """Newest first. A global scope lists every tenant; a misconfigured one lists nothing."""
    if scope.misconfigured:
        return []
    query = Order.all() if scope.is_global else Order.filter(restaurant_id=scope.restaurant_id)
    return await query.order_by("-created_at").prefetch_related(*ORDER_PREFETCH)


async def get_order(order_id: UUID, scope: ScopeDecision) -> Order:
    query = Order.filter(id=order_id)
    if not scope.is_global:
        query = query.filter(restaurant_id=scope.require())
    order = await query.prefetch_related(*ORDER_PREFETCH).first()
    if not order:
        raise NotFoundError("Order not found")
    return order


async def update_order_status(order_id: UUID, scope: ScopeDecision, status: str) -> Order:
    """Status is the only field of an order that ever changes."""
    order = await get_order(order_id, scope)
    order.status = status
    await order.save(update_fields=["status"])
    return order
