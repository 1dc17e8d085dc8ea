import os

# Database Configuration
# Uses default credentials for local Docker Compose setup
DB_URL = os.getenv("DATABASE_URL", "postgres://user:password@db:5432/kitchen_orders")

# Application Metadata
PROJECT_NAME = "Kitchen Supply Orders"
VERSION = "1.0.0"
APP_ENV = os.getenv("APP_ENV", "development")

# Signed bearer tokens
SECRET_KEY = os.getenv("SECRET_KEY", "change-me-in-production")
TOKEN_MAX_AGE = int(os.getenv("TOKEN_MAX_AGE", 60 * 60 * 24)) # Tokens expire after one day

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()]

# Outgoing mail
SMTP_TIMEOUT = int(os.getenv("SMTP_TIMEOUT", 15))

# Fallback transport, only used outside production when a restaurant has no usable mail settings
FALLBACK_SMTP_HOST = os.getenv("FALLBACK_SMTP_HOST", "smtp.gmail.com")
FALLBACK_SMTP_PORT = int(os.getenv("FALLBACK_SMTP_PORT", 587))
FALLBACK_SMTP_USER = os.getenv("FALLBACK_SMTP_USER", "")
FALLBACK_SMTP_PASSWORD = os.getenv("FALLBACK_SMTP_PASSWORD", "")
FALLBACK_SENDER_NAME = os.getenv("FALLBACK_SENDER_NAME", PROJECT_NAME)

# Domain used for the staff accounts created with a new restaurant
SEED_EMAIL_DOMAIN = os.getenv("SEED_EMAIL_DOMAIN", "it")


def is_production() -> bool:
    return APP_ENV.lower() == "production"
