import logging

from fastapi import APIRouter, Depends

from kitchen_orders.core.deps import Principal, current_principal
from kitchen_orders.core.errors import AuthenticationError, AuthorizationError, NotFoundError
from kitchen_orders.core.security import create_access_token, verify_password
from kitchen_orders.models import User
from kitchen_orders.schemas.auth import LoginRequest, LoginResponse
from kitchen_orders.schemas.response import SuccessResponse
from kitchen_orders.schemas.user import UserResponse

router = APIRouter()
log = logging.getLogger("uvicorn")


def _restaurant_name(user):
    return user.restaurant.name if user.restaurant_id and user.restaurant else None


@router.post("/login", response_model=SuccessResponse)
async def login(payload: LoginRequest):
    user = await User.filter(email=payload.email.strip().lower()).select_related("restaurant").first()
    if not user or not verify_password(user.password_hash, payload.password):
        raise AuthenticationError("Invalid credentials")
    if not user.active:
        raise AuthorizationError("Account is deactivated")

    log.info(f"User {user.email} logged in ({user.role.value})")
    data = LoginResponse(token=create_access_token(user), user=UserResponse.from_user(user, _restaurant_name(user)))
    return SuccessResponse(data=data.model_dump())


@router.get("/user", response_model=SuccessResponse)
async def get_current_user(principal: Principal = Depends(current_principal)):
    user = await User.filter(id=principal.id).select_related("restaurant").first()
    if not user:
        raise NotFoundError("User not found")
    return SuccessResponse(data=UserResponse.from_user(user, _restaurant_name(user)).model_dump())
