import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status

from kitchen_orders.core.deps import RequestContext, get_notifier, tenant_context
from kitchen_orders.core.scope import ADMIN_ROLES, KITCHEN_ROLES, SUPERADMIN_ROLES
from kitchen_orders.models import Restaurant
from kitchen_orders.schemas.response import SuccessResponse
from kitchen_orders.schemas.restaurant import (
    RestaurantBootstrapResponse,
    RestaurantCreate,
    RestaurantResponse,
    RestaurantStatusUpdate,
    RestaurantUpdate,
)
from kitchen_orders.services.notification import SupplierNotifier
from kitchen_orders.services.restaurant_service import (
    create_restaurant_with_staff,
    current_restaurant,
    get_restaurant,
    set_restaurant_active,
    update_restaurant,
)

router = APIRouter()
log = logging.getLogger("uvicorn")

member_access = tenant_context(*KITCHEN_ROLES)
admin_access = tenant_context(*ADMIN_ROLES)
superadmin_access = tenant_context(*SUPERADMIN_ROLES)


def _data(restaurant):
    return RestaurantResponse.from_restaurant(restaurant).model_dump()


# ----- Current restaurant (any member) -----

@router.get("/current", response_model=SuccessResponse)
async def get_current_restaurant(ctx: RequestContext = Depends(member_access)):
    restaurant = await current_restaurant(ctx.scope.restaurant_id)
    return SuccessResponse(data=_data(restaurant))


@router.put("/current", response_model=SuccessResponse)
async def update_current_restaurant(
    request: Request,
    payload: RestaurantUpdate,
    ctx: RequestContext = Depends(admin_access),
):
    restaurant = await current_restaurant(ctx.scope.restaurant_id)
    restaurant = await update_restaurant(restaurant, payload)
    if payload.email_config is not None:
        # New credentials must not keep using an authenticated connection for the old ones
        request.app.state.transports.evict(restaurant.id)
    return SuccessResponse(data=_data(restaurant))


@router.post("/current/test-email", response_model=SuccessResponse)
async def send_test_email(
    ctx: RequestContext = Depends(admin_access),
    notifier: SupplierNotifier = Depends(get_notifier),
):
    """Sends a message to the restaurant's own sender address with its stored settings."""
    restaurant = await current_restaurant(ctx.scope.restaurant_id)
    message_id = await notifier.send_test_email(restaurant)
    log.info(f"Test email sent for restaurant {restaurant.id}: {message_id}")
    return SuccessResponse(message="Test email sent successfully", data={"message_id": message_id})


# ----- Tenant administration (superadmin) -----

@router.get("/", response_model=SuccessResponse)
async def list_restaurants(ctx: RequestContext = Depends(superadmin_access)):
    restaurants = await Restaurant.all().order_by("name")
    return SuccessResponse(data=[_data(r) for r in restaurants])


@router.get("/{restaurant_id}", response_model=SuccessResponse)
async def get_restaurant_by_id(restaurant_id: UUID, ctx: RequestContext = Depends(superadmin_access)):
    return SuccessResponse(data=_data(await get_restaurant(restaurant_id)))


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def create_restaurant(payload: RestaurantCreate, ctx: RequestContext = Depends(superadmin_access)):
    """Creates the restaurant with an admin and a kitchen account; their passwords are returned once."""
    restaurant, users = await create_restaurant_with_staff(payload)
    data = RestaurantBootstrapResponse(restaurant=RestaurantResponse.from_restaurant(restaurant), users=users)
    return SuccessResponse(message="Restaurant created", data=data.model_dump())


@router.put("/{restaurant_id}", response_model=SuccessResponse)
async def update_restaurant_by_id(
    request: Request,
    restaurant_id: UUID,
    payload: RestaurantUpdate,
    ctx: RequestContext = Depends(superadmin_access),
):
    restaurant = await update_restaurant(await get_restaurant(restaurant_id), payload)
    if payload.email_config is not None:
        request.app.state.transports.evict(restaurant.id)
    return SuccessResponse(data=_data(restaurant))


@router.patch("/{restaurant_id}", response_model=SuccessResponse)
async def set_restaurant_status(
    restaurant_id: UUID,
    payload: RestaurantStatusUpdate,
    ctx: RequestContext = Depends(superadmin_access),
):
    restaurant = await set_restaurant_active(restaurant_id, payload.active)
    return SuccessResponse(data=_data(restaurant))
