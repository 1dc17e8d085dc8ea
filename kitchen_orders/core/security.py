from typing import Any, Dict, Optional

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from werkzeug.security import check_password_hash, generate_password_hash

from kitchen_orders.core.config import SECRET_KEY, TOKEN_MAX_AGE
from kitchen_orders.core.errors import AuthenticationError

_serializer = URLSafeTimedSerializer(SECRET_KEY, salt="kitchen-orders-auth")


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password_hash: str, password: str) -> bool:
    if not password_hash:
        return False
    return check_password_hash(password_hash, password)


def create_access_token(user) -> str:
    """Signs the caller id, role and home restaurant into a bearer token."""
    return _serializer.dumps({
        "id": str(user.id),
        "role": user.role.value if hasattr(user.role, "value") else str(user.role),
        "restaurant_id": str(user.restaurant_id) if user.restaurant_id else None,
    })


def decode_access_token(token: str, max_age: int = TOKEN_MAX_AGE) -> Dict[str, Any]:
    try:
        return _serializer.loads(token, max_age=max_age)
    except SignatureExpired:
        raise AuthenticationError("Token has expired")
    except BadSignature:
        raise AuthenticationError("Token is not valid")


def extract_token(x_auth_token: Optional[str], authorization: Optional[str]) -> Optional[str]:
    """Raw token header first, then a standard bearer Authorization header."""
    if x_auth_token:
        return x_auth_token
    if authorization and authorization.startswith("Bearer "):
        return authorization.split(" ", 1)[1].strip() or None
    return None
