import logging
from uuid import UUID

from fastapi import APIRouter, Depends, status

from kitchen_orders.core.deps import RequestContext, tenant_context
from kitchen_orders.core.errors import NotFoundError, ValidationError
from kitchen_orders.core.scope import ADMIN_ROLES, KITCHEN_ROLES, apply_scope
from kitchen_orders.models import Category, Item
from kitchen_orders.schemas.catalog import CategoryRequest, CategoryResponse, CategoryUpdate
from kitchen_orders.schemas.response import SuccessResponse

router = APIRouter()
log = logging.getLogger("uvicorn")

read_access = tenant_context(*KITCHEN_ROLES)
write_access = tenant_context(*ADMIN_ROLES)


async def _get_category(category_id: UUID, ctx: RequestContext) -> Category:
    category = await apply_scope(Category.filter(id=category_id), ctx.scope).first()
    if not category:
        raise NotFoundError("Category not found")
    return category


@router.get("/", response_model=SuccessResponse)
async def list_categories(ctx: RequestContext = Depends(read_access)):
    if ctx.scope.misconfigured:
        log.info("No restaurant for caller, returning empty category list")
        return SuccessResponse(data=[])
    categories = await apply_scope(Category.all(), ctx.scope).order_by("name")
    return SuccessResponse(data=[CategoryResponse.model_validate(c).model_dump() for c in categories])


@router.get("/{category_id}", response_model=SuccessResponse)
async def get_category(category_id: UUID, ctx: RequestContext = Depends(read_access)):
    category = await _get_category(category_id, ctx)
    return SuccessResponse(data=CategoryResponse.model_validate(category).model_dump())


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def create_category(payload: CategoryRequest, ctx: RequestContext = Depends(write_access)):
    category = await Category.create(restaurant_id=ctx.scope.require(), **payload.model_dump())
    return SuccessResponse(data=CategoryResponse.model_validate(category).model_dump())


@router.put("/{category_id}", response_model=SuccessResponse)
async def update_category(category_id: UUID, payload: CategoryUpdate, ctx: RequestContext = Depends(write_access)):
    category = await _get_category(category_id, ctx)
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is None and field == "name":
            continue
        setattr(category, field, value)
    await category.save()
    return SuccessResponse(data=CategoryResponse.model_validate(category).model_dump())


@router.delete("/{category_id}", response_model=SuccessResponse)
async def delete_category(category_id: UUID, ctx: RequestContext = Depends(write_access)):
    """Rejected while any item still uses the category."""
    category = await _get_category(category_id, ctx)
    item_count = await Item.filter(category_id=category.id, restaurant_id=category.restaurant_id).count()
    if item_count > 0:
        raise ValidationError(f"Cannot delete category: it is used by {item_count} items")
    await category.delete()
    return SuccessResponse(message="Category deleted")
