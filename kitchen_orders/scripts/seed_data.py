# scripts/seed_data.py
import asyncio
import os
from kitchen_orders.core.db import init_db, close_db
from kitchen_orders.core.scope import Role
from kitchen_orders.core.security import hash_password
from kitchen_orders.models import Category, Restaurant, Supplier, UnitOfMeasure, User
from kitchen_orders.schemas.restaurant import RestaurantCreate
from kitchen_orders.services.restaurant_service import create_restaurant_with_staff

SUPERADMIN_EMAIL = os.getenv("SUPERADMIN_EMAIL", "superadmin@kitchenorders.it")
SUPERADMIN_PASSWORD = os.getenv("SUPERADMIN_PASSWORD", "superadmin123")
DEMO_RESTAURANT = os.getenv("DEMO_RESTAURANT", "Demo Restaurant")

DEFAULT_UNITS = [
    ("Kilograms", "kg", True),
    ("Grams", "g", False),
    ("Liters", "l", False),
    ("Pieces", "pz", False),
]
DEFAULT_CATEGORIES = ["Meat", "Fish", "Vegetables", "Dairy", "Dry goods"]


async def seed():
    superadmin, created = await User.get_or_create(
        email=SUPERADMIN_EMAIL,
        defaults={"name": "Super Admin", "password_hash": hash_password(SUPERADMIN_PASSWORD), "role": Role.SUPERADMIN},
    )
    print("Superadmin:", superadmin.email, "(created)" if created else "(exists)")

    restaurant = await Restaurant.get_or_none(name=DEMO_RESTAURANT)
    if restaurant is None:
        restaurant, users = await create_restaurant_with_staff(RestaurantCreate(name=DEMO_RESTAURANT))
        for u in users:
            print(f"  {u.role.value}: {u.email} / {u.password}")
    print("Restaurant:", restaurant.id)

    for name, abbreviation, is_default in DEFAULT_UNITS:
        await UnitOfMeasure.get_or_create(
            restaurant=restaurant, name=name,
            defaults={"abbreviation": abbreviation, "is_default": is_default},
        )
    for name in DEFAULT_CATEGORIES:
        await Category.get_or_create(restaurant=restaurant, name=name)
    supplier, _ = await Supplier.get_or_create(
        restaurant=restaurant, name="Demo Supplier",
        defaults={"email": "orders@demosupplier.it"},
    )
    print("Supplier:", supplier.id)
    print("Seed completed.")

async def main():
    await init_db()
    await seed()
    await close_db()

if __name__ == "__main__":
    asyncio.run(main())
