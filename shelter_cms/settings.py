import os

from dotenv import load_dotenv

load_dotenv()

# Environment
APP_ENV = os.getenv("APP_ENV", "production")
PORT = int(os.getenv("PORT", 8000))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Database
DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "shelter_cms")

# Auth
JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("JWT_EXPIRE_MINUTES", 60 * 24 * 30))

# Seed admin, only reachable in development
ADMIN_NAME = os.getenv("ADMIN_NAME", "prapti")
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@example.org")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")

ORGANIZATION_NAME = os.getenv("ORGANIZATION_NAME", "Prapti Foundation")

# Cloudinary
CLOUDINARY_CLOUD_NAME = os.getenv("CLOUDINARY_CLOUD_NAME", "")
CLOUDINARY_API_KEY = os.getenv("CLOUDINARY_API_KEY", "")
CLOUDINARY_API_SECRET = os.getenv("CLOUDINARY_API_SECRET", "")

# CORS
ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("ALLOWED_ORIGINS", "http://localhost:5173,http://localhost:5174").split(",")
    if origin.strip()
]

# reCAPTCHA
RECAPTCHA_SECRET_KEY = os.getenv("RECAPTCHA_SECRET_KEY", "")
RECAPTCHA_MIN_SCORE = float(os.getenv("RECAPTCHA_MIN_SCORE", 0.5))
ALLOW_DEV_BYPASS = os.getenv("ALLOW_DEV_BYPASS", "false").lower() in ("1", "true", "yes")

# Rate limiting
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() in ("1", "true", "yes")
API_LIMIT = "100/15 minutes"
AUTH_LIMIT = "10/hour"
FORM_LIMIT = "5/hour"


def is_production() -> bool:
    return APP_ENV == "production"
