import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from kitchen_orders.core.deps import RequestContext, tenant_context
from kitchen_orders.core.errors import NotFoundError, ValidationError
from kitchen_orders.core.scope import ADMIN_ROLES, KITCHEN_ROLES, apply_scope
from kitchen_orders.models import Category, Item, OrderLine, Supplier, WEEKDAYS
from kitchen_orders.schemas.catalog import ItemRequest, ItemResponse, ItemUpdate
from kitchen_orders.schemas.response import SuccessResponse

router = APIRouter()
log = logging.getLogger("uvicorn")

read_access = tenant_context(*KITCHEN_ROLES)
write_access = tenant_context(*ADMIN_ROLES)


async def _check_references(restaurant_id: UUID, supplier_id: Optional[UUID], category_id: Optional[UUID]):
    """Supplier and category must belong to the same restaurant as the item."""
    if supplier_id is not None and not await Supplier.exists(id=supplier_id, restaurant_id=restaurant_id):
        raise ValidationError("The selected supplier does not belong to this restaurant")
    if category_id is not None and not await Category.exists(id=category_id, restaurant_id=restaurant_id):
        raise ValidationError("The selected category does not belong to this restaurant")


async def _get_item(item_id: UUID, ctx: RequestContext) -> Item:
    item = await apply_scope(Item.filter(id=item_id), ctx.scope).select_related("supplier", "category").first()
    if not item:
        raise NotFoundError("Item not found")
    return item


@router.get("/", response_model=SuccessResponse)
async def list_items(
    include_inactive: bool = False,
    category_id: Optional[UUID] = None,
    supplier_id: Optional[UUID] = None,
    day: Optional[str] = Query(None, description="Only items orderable on this weekday"),
    ctx: RequestContext = Depends(read_access),
):
    """Items of the current restaurant sorted by name; inactive items only on request."""
    if ctx.scope.misconfigured:
        return SuccessResponse(data=[])

    query = apply_scope(Item.all(), ctx.scope)
    if not include_inactive:
        query = query.filter(is_active=True)
    if category_id:
        query = query.filter(category_id=category_id)
    if supplier_id:
        query = query.filter(supplier_id=supplier_id)

    items = await query.select_related("supplier", "category").order_by("name")

    if day:
        token = day.strip().lower()
        if token not in WEEKDAYS:
            raise ValidationError(f"Unknown weekday '{day}'")
        items = [i for i in items if token in (i.active_days or [])]

    return SuccessResponse(data=[ItemResponse.from_item(i).model_dump() for i in items])


@router.get("/{item_id}", response_model=SuccessResponse)
async def get_item(item_id: UUID, ctx: RequestContext = Depends(read_access)):
    item = await _get_item(item_id, ctx)
    return SuccessResponse(data=ItemResponse.from_item(item).model_dump())


@router.get("/{item_id}/can-delete", response_model=SuccessResponse)
async def can_delete_item(item_id: UUID, ctx: RequestContext = Depends(write_access)):
    """An item referenced by any order can only be deactivated or force-deleted."""
    item = await _get_item(item_id, ctx)
    in_use = await OrderLine.exists(item_id=item.id)
    return SuccessResponse(data={"can_delete": not in_use})


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def create_item(payload: ItemRequest, ctx: RequestContext = Depends(write_access)):
    restaurant_id = ctx.scope.require()
    await _check_references(restaurant_id, payload.supplier_id, payload.category_id)

    item = await Item.create(restaurant_id=restaurant_id, **payload.model_dump())
    await item.fetch_related("supplier", "category")
    log.info(f"Item '{item.name}' created for restaurant {restaurant_id}")
    return SuccessResponse(data=ItemResponse.from_item(item).model_dump())


@router.put("/{item_id}", response_model=SuccessResponse)
async def update_item(item_id: UUID, payload: ItemUpdate, ctx: RequestContext = Depends(write_access)):
    item = await _get_item(item_id, ctx)
    changes = payload.model_dump(exclude_unset=True)
    await _check_references(item.restaurant_id, changes.get("supplier_id"), changes.get("category_id"))

    for field, value in changes.items():
        if value is None and field not in ("description", "category_id"):
            continue
        setattr(item, field, value)
    await item.save()
    item = await _get_item(item_id, ctx)
    return SuccessResponse(data=ItemResponse.from_item(item).model_dump())


@router.delete("/{item_id}", response_model=SuccessResponse)
async def delete_item(item_id: UUID, ctx: RequestContext = Depends(write_access)):
    item = await _get_item(item_id, ctx)
    if await OrderLine.exists(item_id=item.id):
        raise ValidationError("This item is used in orders and cannot be deleted; deactivate it instead")
    await item.delete()
    return SuccessResponse(message="Item deleted")


@router.delete("/{item_id}/force", response_model=SuccessResponse)
async def force_delete_item(item_id: UUID, ctx: RequestContext = Depends(write_access)):
    """Deletes regardless of order references; past order lines lose their item link."""
    item = await _get_item(item_id, ctx)
    await item.delete()
    log.info(f"Item {item_id} force-deleted by {ctx.principal.id}")
    return SuccessResponse(message="Item permanently deleted")
