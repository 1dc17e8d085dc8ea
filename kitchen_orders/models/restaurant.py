from tortoise import fields, models
import uuid


def default_email_config():
    return {
        "sender_name": "",
        "sender_email": "",
        "smtp_host": "smtp.gmail.com",
        "smtp_port": 587,
        "smtp_user": "",
        "smtp_password": "",
        "use_ssl": False,
    }


class Restaurant(models.Model):
    """Root tenant. Mail settings are embedded so each restaurant sends through its own account."""
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    name = fields.CharField(max_length=255)
    address = fields.CharField(max_length=500, default="")
    phone = fields.CharField(max_length=64, default="")
    email = fields.CharField(max_length=255, default="")
    email_config = fields.JSONField(default=default_email_config)
    active = fields.BooleanField(default=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "restaurants"
        ordering = ["name"]
        indexes = [
            ("active",),  # For filtering active restaurants
        ]
