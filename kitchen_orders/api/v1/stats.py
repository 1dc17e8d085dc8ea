from fastapi import APIRouter, Depends

from kitchen_orders.core.deps import RequestContext, tenant_context
from kitchen_orders.core.scope import SUPERADMIN_ROLES, ScopeSource
from kitchen_orders.models import Item, Order, Restaurant, Supplier, User
from kitchen_orders.schemas.response import SuccessResponse
from kitchen_orders.schemas.restaurant import StatsResponse

router = APIRouter()

superadmin_access = tenant_context(*SUPERADMIN_ROLES)


@router.get("/", response_model=SuccessResponse)
async def get_stats(ctx: RequestContext = Depends(superadmin_access)):
    """System-wide counts, or one restaurant's counts when it is selected explicitly."""
    if ctx.scope.source == ScopeSource.OVERRIDE:
        rid = ctx.scope.restaurant_id
        stats = StatsResponse(
            restaurants=await Restaurant.filter(id=rid).count(),
            users=await User.filter(restaurant_id=rid).count(),
            suppliers=await Supplier.filter(restaurant_id=rid).count(),
            items=await Item.filter(restaurant_id=rid).count(),
            orders=await Order.filter(restaurant_id=rid).count(),
        )
    else:
        stats = StatsResponse(
            restaurants=await Restaurant.all().count(),
            users=await User.all().count(),
            suppliers=await Supplier.all().count(),
            items=await Item.all().count(),
            orders=await Order.all().count(),
        )
    return SuccessResponse(data=stats.model_dump())
