from typing import Dict, Optional

from kitchen_orders.core.scope import Role
from kitchen_orders.core.security import create_access_token, hash_password
from kitchen_orders.models import Category, Item, Restaurant, Supplier, User

DEFAULT_PASSWORD = "secret123"


def complete_mail_config(sender_email: str = "orders@restaurant.it") -> Dict:
    return {
        "sender_name": "Kitchen",
        "sender_email": sender_email,
        "smtp_host": "smtp.restaurant.test",
        "smtp_port": 587,
        "smtp_user": sender_email,
        "smtp_password": "app-password",
        "use_ssl": False,
    }


async def make_restaurant(name: str = "Trattoria Roma", mail: bool = True, **fields) -> Restaurant:
    if mail and "email_config" not in fields:
        fields["email_config"] = complete_mail_config()
    return await Restaurant.create(name=name, **fields)


async def make_user(
    restaurant: Optional[Restaurant],
    role: Role = Role.ADMIN,
    email: Optional[str] = None,
    password: str = DEFAULT_PASSWORD,
    **fields,
) -> User:
    suffix = restaurant.name.lower().replace(" ", "") if restaurant else "global"
    return await User.create(
        name=fields.pop("name", f"{role.value} {suffix}"),
        email=email or f"{role.value}@{suffix}.it",
        password_hash=hash_password(password),
        role=role,
        restaurant=restaurant,
        **fields,
    )


async def make_supplier(restaurant: Restaurant, name: str = "Fresh Farm", email: Optional[str] = None) -> Supplier:
    return await Supplier.create(
        restaurant=restaurant,
        name=name,
        email=email if email is not None else f"{name.lower().replace(' ', '')}@supplier.it",
    )


async def make_category(restaurant: Restaurant, name: str = "Vegetables") -> Category:
    return await Category.create(restaurant=restaurant, name=name)


async def make_item(restaurant: Restaurant, supplier: Supplier, name: str = "Tomatoes", unit: str = "kg", **fields) -> Item:
    return await Item.create(restaurant=restaurant, supplier=supplier, name=name, unit=unit, **fields)


def auth_headers(user: User, restaurant_override=None) -> Dict[str, str]:
    headers = {"Authorization": f"Bearer {create_access_token(user)}"}
    if restaurant_override is not None:
        headers["X-Restaurant-Id"] = str(restaurant_override)
    return headers
