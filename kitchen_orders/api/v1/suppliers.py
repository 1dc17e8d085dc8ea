import logging
from uuid import UUID

from fastapi import APIRouter, Depends, status

from kitchen_orders.core.deps import RequestContext, tenant_context
from kitchen_orders.core.errors import NotFoundError, ValidationError
from kitchen_orders.core.scope import ADMIN_ROLES, KITCHEN_ROLES, apply_scope
from kitchen_orders.models import Item, Supplier
from kitchen_orders.schemas.catalog import SupplierRequest, SupplierResponse, SupplierUpdate
from kitchen_orders.schemas.response import SuccessResponse

router = APIRouter()
log = logging.getLogger("uvicorn")

read_access = tenant_context(*KITCHEN_ROLES)
write_access = tenant_context(*ADMIN_ROLES)


async def _get_supplier(supplier_id: UUID, ctx: RequestContext) -> Supplier:
    supplier = await apply_scope(Supplier.filter(id=supplier_id), ctx.scope).first()
    if not supplier:
        raise NotFoundError("Supplier not found")
    return supplier


@router.get("/", response_model=SuccessResponse)
async def list_suppliers(ctx: RequestContext = Depends(read_access)):
    if ctx.scope.misconfigured:
        return SuccessResponse(data=[])
    suppliers = await apply_scope(Supplier.all(), ctx.scope).order_by("name")
    return SuccessResponse(data=[SupplierResponse.model_validate(s).model_dump() for s in suppliers])


@router.get("/{supplier_id}", response_model=SuccessResponse)
async def get_supplier(supplier_id: UUID, ctx: RequestContext = Depends(read_access)):
    supplier = await _get_supplier(supplier_id, ctx)
    return SuccessResponse(data=SupplierResponse.model_validate(supplier).model_dump())


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def create_supplier(payload: SupplierRequest, ctx: RequestContext = Depends(write_access)):
    restaurant_id = ctx.scope.require()
    supplier = await Supplier.create(restaurant_id=restaurant_id, **payload.model_dump())
    log.info(f"Supplier '{supplier.name}' created for restaurant {restaurant_id}")
    return SuccessResponse(data=SupplierResponse.model_validate(supplier).model_dump())


@router.put("/{supplier_id}", response_model=SuccessResponse)
async def update_supplier(supplier_id: UUID, payload: SupplierUpdate, ctx: RequestContext = Depends(write_access)):
    supplier = await _get_supplier(supplier_id, ctx)
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(supplier, field, value)
    await supplier.save()
    return SuccessResponse(data=SupplierResponse.model_validate(supplier).model_dump())


@router.delete("/{supplier_id}", response_model=SuccessResponse)
async def delete_supplier(supplier_id: UUID, ctx: RequestContext = Depends(write_access)):
    supplier = await _get_supplier(supplier_id, ctx)
    item_count = await Item.filter(supplier_id=supplier.id).count()
    if item_count > 0:
        raise ValidationError(f"Cannot delete supplier: it is used by {item_count} items")
    await supplier.delete()
    return SuccessResponse(message="Supplier deleted")
