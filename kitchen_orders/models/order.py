from tortoise import fields, models
import uuid

DEFAULT_ORDER_STATUS = "pending"


class Order(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    restaurant = fields.ForeignKeyField("models.Restaurant", related_name="orders")
    created_by = fields.ForeignKeyField("models.User", related_name="orders", null=True, on_delete=fields.SET_NULL)
    # Free-form; only ever changed through the status endpoint
    status = fields.CharField(max_length=64, default=DEFAULT_ORDER_STATUS)
    # supplier id (str) -> free-text note for that supplier
    supplier_notes = fields.JSONField(default=dict)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "orders"
        indexes = [
            ("restaurant_id",),          # Restaurant order queries
            ("status",),                 # Status-based filtering
            ("created_at",),             # Time-based queries
        ]


class OrderLine(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    order = fields.ForeignKeyField("models.Order", related_name="lines", on_delete=fields.CASCADE)
    position = fields.IntField()
    # Nulled when an item is force-deleted
    item = fields.ForeignKeyField("models.Item", related_name="order_lines", null=True, on_delete=fields.SET_NULL)
    quantity = fields.IntField()
    unit = fields.CharField(max_length=64, null=True)

    class Meta:
        table = "order_lines"
        ordering = ["position"]
        indexes = [
            ("order_id",),              # Order line items
            ("item_id",),               # Item usage checks
        ]
