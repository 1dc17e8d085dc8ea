from tortoise import fields, models
import uuid

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


def all_weekdays():
    return list(WEEKDAYS)


class Supplier(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    restaurant = fields.ForeignKeyField("models.Restaurant", related_name="suppliers")
    name = fields.CharField(max_length=255)
    email = fields.CharField(max_length=255)
    phone = fields.CharField(max_length=64, default="")
    address = fields.CharField(max_length=500, default="")

    class Meta:
        table = "suppliers"
        indexes = [
            ("restaurant_id",),
        ]


class Category(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    restaurant = fields.ForeignKeyField("models.Restaurant", related_name="categories")
    name = fields.CharField(max_length=255)
    description = fields.TextField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "categories"
        indexes = [
            ("restaurant_id",),
        ]


class Item(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    restaurant = fields.ForeignKeyField("models.Restaurant", related_name="items")
    supplier = fields.ForeignKeyField("models.Supplier", related_name="items", on_delete=fields.RESTRICT)
    category = fields.ForeignKeyField("models.Category", related_name="items", null=True, on_delete=fields.SET_NULL)
    name = fields.CharField(max_length=255)
    description = fields.TextField(null=True)
    unit = fields.CharField(max_length=64)
    is_active = fields.BooleanField(default=True)
    # Weekday tokens on which the item may be ordered, never empty
    active_days = fields.JSONField(default=all_weekdays)

    class Meta:
        table = "items"
        indexes = [
            ("restaurant_id",),
            ("restaurant_id", "is_active"),  # Composite: restaurant's active items
            ("supplier_id",),
            ("category_id",),
        ]


class UnitOfMeasure(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    restaurant = fields.ForeignKeyField("models.Restaurant", related_name="units")
    name = fields.CharField(max_length=64)
    abbreviation = fields.CharField(max_length=16)
    is_default = fields.BooleanField(default=False)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "units_of_measure"
        unique_together = (("restaurant_id", "name"), ("restaurant_id", "abbreviation"))
