import logging
from uuid import UUID

from fastapi import APIRouter, Depends, status

from kitchen_orders.core.deps import RequestContext, tenant_context
from kitchen_orders.core.errors import AuthorizationError, NotFoundError, ValidationError
from kitchen_orders.core.scope import ADMIN_ROLES, SUPERADMIN_ROLES, Role, apply_scope
from kitchen_orders.core.security import hash_password
from kitchen_orders.models import Restaurant, User
from kitchen_orders.schemas.response import SuccessResponse
from kitchen_orders.schemas.user import UserCreate, UserResponse, UserStatusUpdate, UserUpdate

router = APIRouter()
log = logging.getLogger("uvicorn")

admin_access = tenant_context(*ADMIN_ROLES)
superadmin_access = tenant_context(*SUPERADMIN_ROLES)


async def _get_user(user_id: UUID, ctx: RequestContext) -> User:
    user = await apply_scope(User.filter(id=user_id), ctx.scope).first()
    if not user:
        raise NotFoundError("User not found")
    return user


def _dump(users):
    return [UserResponse.from_user(u).model_dump() for u in users]


@router.get("/all", response_model=SuccessResponse)
async def list_all_users(ctx: RequestContext = Depends(superadmin_access)):
    """Every account across all restaurants."""
    users = await User.all().order_by("name")
    return SuccessResponse(data=_dump(users))


@router.get("/", response_model=SuccessResponse)
async def list_users(ctx: RequestContext = Depends(admin_access)):
    if ctx.scope.misconfigured:
        return SuccessResponse(data=[])
    users = await apply_scope(User.all(), ctx.scope).order_by("name")
    return SuccessResponse(data=_dump(users))


@router.get("/{user_id}", response_model=SuccessResponse)
async def get_user(user_id: UUID, ctx: RequestContext = Depends(admin_access)):
    user = await _get_user(user_id, ctx)
    return SuccessResponse(data=UserResponse.from_user(user).model_dump())


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def create_user(payload: UserCreate, ctx: RequestContext = Depends(admin_access)):
    """The new account belongs to the resolved restaurant; only a superadmin may create superadmins."""
    if payload.role == Role.SUPERADMIN and not ctx.principal.is_superadmin:
        raise AuthorizationError("Only a superadmin can create superadmin accounts")

    restaurant_id = ctx.scope.restaurant_id
    if restaurant_id is None and payload.role != Role.SUPERADMIN:
        restaurant_id = ctx.scope.require()
    if restaurant_id is not None and not await Restaurant.exists(id=restaurant_id):
        raise ValidationError("Restaurant not found")

    if await User.exists(email=payload.email):
        raise ValidationError("A user with this email already exists")

    user = await User.create(
        name=payload.name,
        email=payload.email,
        password_hash=hash_password(payload.password),
        role=payload.role,
        restaurant_id=restaurant_id,
    )
    log.info(f"User {user.email} ({user.role.value}) created for restaurant {restaurant_id}")
    return SuccessResponse(message="User created", data=UserResponse.from_user(user).model_dump())


@router.put("/{user_id}", response_model=SuccessResponse)
async def update_user(user_id: UUID, payload: UserUpdate, ctx: RequestContext = Depends(admin_access)):
    user = await _get_user(user_id, ctx)

    if not ctx.principal.is_superadmin and (user.role == Role.SUPERADMIN or payload.role == Role.SUPERADMIN):
        raise AuthorizationError("Only a superadmin can modify superadmin accounts")

    if payload.email and await User.filter(email=payload.email).exclude(id=user.id).exists():
        raise ValidationError("Email already in use by another user")

    if payload.name:
        user.name = payload.name
    if payload.email:
        user.email = payload.email
    if payload.role:
        user.role = payload.role
    if payload.active is not None:
        user.active = payload.active
    if payload.password and payload.password.strip():
        if len(payload.password) < 6:
            raise ValidationError("Password must be at least 6 characters")
        user.password_hash = hash_password(payload.password)

    await user.save()
    return SuccessResponse(message="User updated", data=UserResponse.from_user(user).model_dump())


@router.patch("/{user_id}", response_model=SuccessResponse)
async def set_user_status(user_id: UUID, payload: UserStatusUpdate, ctx: RequestContext = Depends(admin_access)):
    user = await _get_user(user_id, ctx)
    if user.role == Role.SUPERADMIN and not ctx.principal.is_superadmin:
        raise AuthorizationError("Only a superadmin can modify superadmin accounts")
    user.active = payload.active
    await user.save(update_fields=["active"])
    return SuccessResponse(data=UserResponse.from_user(user).model_dump())
