import logging
from uuid import UUID

from fastapi import APIRouter, Depends, status
from tortoise.transactions import in_transaction

from kitchen_orders.core.deps import RequestContext, tenant_context
from kitchen_orders.core.errors import NotFoundError, ValidationError
from kitchen_orders.core.scope import ADMIN_ROLES, KITCHEN_ROLES, apply_scope
from kitchen_orders.models import UnitOfMeasure
from kitchen_orders.schemas.catalog import UnitRequest, UnitResponse
from kitchen_orders.schemas.response import SuccessResponse

router = APIRouter()
log = logging.getLogger("uvicorn")

read_access = tenant_context(*KITCHEN_ROLES)
write_access = tenant_context(*ADMIN_ROLES)


async def _get_unit(unit_id: UUID, ctx: RequestContext) -> UnitOfMeasure:
    unit = await apply_scope(UnitOfMeasure.filter(id=unit_id), ctx.scope).first()
    if not unit:
        raise NotFoundError("Unit of measure not found")
    return unit


async def _ensure_unique(restaurant_id: UUID, payload: UnitRequest, exclude_id: UUID = None):
    query = UnitOfMeasure.filter(restaurant_id=restaurant_id)
    if exclude_id is not None:
        query = query.exclude(id=exclude_id)
    if await query.filter(name=payload.name).exists() or await query.filter(abbreviation=payload.abbreviation).exists():
        raise ValidationError("Unit of measure already exists")


async def save_unit(unit: UnitOfMeasure) -> UnitOfMeasure:
    """Saves the unit; a default unit first clears the default flag on the rest of its restaurant."""
    async with in_transaction() as conn:
        if unit.is_default:
            await UnitOfMeasure.filter(restaurant_id=unit.restaurant_id, is_default=True).exclude(id=unit.id).using_db(conn).update(is_default=False)
        await unit.save(using_db=conn)
    return unit


@router.get("/", response_model=SuccessResponse)
async def list_units(ctx: RequestContext = Depends(read_access)):
    if ctx.scope.misconfigured:
        return SuccessResponse(data=[])
    units = await apply_scope(UnitOfMeasure.all(), ctx.scope).order_by("name")
    return SuccessResponse(data=[UnitResponse.model_validate(u).model_dump() for u in units])


@router.get("/{unit_id}", response_model=SuccessResponse)
async def get_unit(unit_id: UUID, ctx: RequestContext = Depends(read_access)):
    unit = await _get_unit(unit_id, ctx)
    return SuccessResponse(data=UnitResponse.model_validate(unit).model_dump())


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def create_unit(payload: UnitRequest, ctx: RequestContext = Depends(write_access)):
    restaurant_id = ctx.scope.require()
    await _ensure_unique(restaurant_id, payload)
    unit = await save_unit(UnitOfMeasure(restaurant_id=restaurant_id, **payload.model_dump()))
    return SuccessResponse(data=UnitResponse.model_validate(unit).model_dump())


@router.put("/{unit_id}", response_model=SuccessResponse)
async def update_unit(unit_id: UUID, payload: UnitRequest, ctx: RequestContext = Depends(write_access)):
    unit = await _get_unit(unit_id, ctx)
    await _ensure_unique(unit.restaurant_id, payload, exclude_id=unit.id)
    unit.name = payload.name
    unit.abbreviation = payload.abbreviation
    unit.is_default = payload.is_default
    await save_unit(unit)
    return SuccessResponse(data=UnitResponse.model_validate(unit).model_dump())


@router.delete("/{unit_id}", response_model=SuccessResponse)
async def delete_unit(unit_id: UUID, ctx: RequestContext = Depends(write_access)):
    unit = await _get_unit(unit_id, ctx)
    await unit.delete()
    return SuccessResponse(message="Unit of measure deleted")
