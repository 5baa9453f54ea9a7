"""
Application settings

Values come from the environment (optionally a .env file) and are exposed
as plain module constants. Other modules read them as ``config.NAME`` at call
time so they can be overridden in tests.
"""
import os

from dotenv import load_dotenv

load_dotenv()

ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

# Security settings
SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key-change")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24))
RESET_TOKEN_EXPIRE_MINUTES = 60

# Payments: "test" accepts any payment, "live" checks the signature
PAYMENT_MODE = os.getenv("PAYMENT_MODE", "test")
PAYMENT_KEY_SECRET = os.getenv("PAYMENT_KEY_SECRET", "dev-payment-secret")

# Mail
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL")
SMTP_HOST = os.getenv("SMTP_HOST")
SMTP_PORT = int(os.getenv("SMTP_PORT", 587))
SMTP_USER = os.getenv("SMTP_USER")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")

FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")
MAX_UPLOAD_BYTES = 5 * 1024 * 1024
ALLOWED_IMAGE_EXTENSIONS = {".jpeg", ".jpg", ".png", ".gif"}

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]


def is_development() -> bool:
    return ENVIRONMENT == "development"
