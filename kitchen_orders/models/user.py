from tortoise import fields, models
import uuid

from kitchen_orders.core.scope import Role


class User(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    name = fields.CharField(max_length=255)
    email = fields.CharField(max_length=255, unique=True)
    password_hash = fields.CharField(max_length=255)
    role = fields.CharEnumField(Role, default=Role.KITCHEN)
    # Nominal for the superadmin; kitchen/admin accounts are pinned to it
    restaurant = fields.ForeignKeyField("models.Restaurant", related_name="users", null=True, on_delete=fields.SET_NULL)
    active = fields.BooleanField(default=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "users"
        indexes = [
            ("restaurant_id",),
        ]
