import asyncio
import logging
import re
import secrets
import string
from typing import List, Optional, Tuple

from tortoise.transactions import in_transaction

from kitchen_orders.core import config
from kitchen_orders.core.errors import NotFoundError, ValidationError
from kitchen_orders.core.scope import Role
from kitchen_orders.core.security import hash_password
from kitchen_orders.models import Restaurant, User
from kitchen_orders.schemas.restaurant import RestaurantCreate, RestaurantUpdate, SeedUserCredentials

log = logging.getLogger(__name__)

TEMP_PASSWORD_ALPHABET = string.ascii_letters + string.digits
TEMP_PASSWORD_LENGTH = 10


def restaurant_slug(name: str) -> str:
    return re.sub(r"[^a-z0-9]", "", name.lower())


def seed_user_specs(restaurant_name: str) -> List[Tuple[str, str, Role]]:
    """(name, email, role) of the staff accounts created with a restaurant."""
    slug = restaurant_slug(restaurant_name)
    if not slug:
        raise ValidationError("Restaurant name must contain letters or digits")
    domain = config.SEED_EMAIL_DOMAIN
    return [
        (f"Admin {restaurant_name}", f"admin@{slug}.{domain}", Role.ADMIN),
        (f"Cucina {restaurant_name}", f"cucina@{slug}.{domain}", Role.KITCHEN),
    ]


def generate_temp_password(length: int = TEMP_PASSWORD_LENGTH) -> str:
    return "".join(secrets.choice(TEMP_PASSWORD_ALPHABET) for _ in range(length))


async def _create_seed_user(restaurant: Restaurant, name: str, email: str, role: Role, conn) -> SeedUserCredentials:
    password = generate_temp_password()
    user = await User.create(
        name=name,
        email=email,
        password_hash=hash_password(password),
        role=role,
        restaurant=restaurant,
        using_db=conn,
    )
    return SeedUserCredentials(id=user.id, name=name, email=email, password=password, role=role)


async def create_restaurant_with_staff(payload: RestaurantCreate) -> Tuple[Restaurant, List[SeedUserCredentials]]:
    """
    Creates a restaurant plus its admin and kitchen accounts (created concurrently).

    All three rows are written in one transaction; a failed account leaves no restaurant behind.
    """
    specs = seed_user_specs(payload.name)
    taken = await User.filter(email__in=[email for _, email, _ in specs]).values_list("email", flat=True)
    if taken:
        raise ValidationError(f"Email already in use: {', '.join(sorted(taken))}")

    async with in_transaction() as conn:
        restaurant = await Restaurant.create(**payload.model_dump(), using_db=conn)
        # Let both inserts finish before the transaction is left, even when one fails
        results = await asyncio.gather(*(
            _create_seed_user(restaurant, name, email, role, conn) for name, email, role in specs
        ), return_exceptions=True)
        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            raise errors[0]
    users = results
    log.info(f"Restaurant {restaurant.name} ({restaurant.id}) created with {len(users)} staff accounts")
    return restaurant, list(users)


async def get_restaurant(restaurant_id) -> Restaurant:
    restaurant = await Restaurant.get_or_none(id=restaurant_id)
    if not restaurant:
        raise NotFoundError("Restaurant not found")
    return restaurant


async def update_restaurant(restaurant: Restaurant, payload: RestaurantUpdate) -> Restaurant:
    """Applies a partial update; mail settings are merged and a blank password keeps the stored one."""
    changes = payload.model_dump(exclude_unset=True, exclude={"email_config"})
    for field, value in changes.items():
        if value is not None:
            setattr(restaurant, field, value)

    if payload.email_config is not None:
        email_config = dict(restaurant.email_config or {})
        for key, value in payload.email_config.model_dump(exclude_unset=True).items():
            if value is None or (key == "smtp_password" and value == ""):
                continue
            email_config[key] = value
        restaurant.email_config = email_config

    await restaurant.save()
    return restaurant


async def set_restaurant_active(restaurant_id, active: bool) -> Restaurant:
    restaurant = await get_restaurant(restaurant_id)
    restaurant.active = active
    await restaurant.save(update_fields=["active"])
    return restaurant


async def current_restaurant(restaurant_id: Optional[object]) -> Restaurant:
    if restaurant_id is None:
        raise ValidationError("No restaurant ID available for this user")
    return await get_restaurant(restaurant_id)
