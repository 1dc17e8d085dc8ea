from pydantic import BaseModel

from kitchen_orders.schemas.user import UserResponse


class LoginRequest(BaseModel):
    email: str
    password: str


class LoginResponse(BaseModel):
    token: str
    user: UserResponse
