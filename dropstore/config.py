import os

from dotenv import load_dotenv

load_dotenv()

# Store
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./data.sqlite")

# Auth
JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "1440"))
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@freak.local")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "")

# Stripe
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY", "")
STRIPE_PUBLISHABLE_KEY = os.getenv("STRIPE_PUBLISHABLE_KEY", "")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET", "")
STRIPE_CURRENCY = os.getenv("STRIPE_CURRENCY", "usd")
STRIPE_TIMEOUT_SECONDS = int(os.getenv("STRIPE_TIMEOUT_SECONDS", "10"))
# How long checkout holds stock; Stripe accepts 30 minutes to 24 hours.
CHECKOUT_HOLD_MINUTES = int(os.getenv("CHECKOUT_HOLD_MINUTES", "30"))

# Used to build success/cancel URLs for the hosted checkout page.
PUBLIC_URL = os.getenv("PUBLIC_URL", "http://localhost:8000")

# Brevo
BREVO_API_KEY = os.getenv("BREVO_API_KEY", "")
BREVO_API_URL = os.getenv("BREVO_API_URL", "https://api.brevo.com/v3")
BREVO_SENDER_NAME = os.getenv("BREVO_SENDER_NAME", "FREAK")
BREVO_SENDER_EMAIL = os.getenv("BREVO_SENDER_EMAIL", "no-reply@example.com")
BREVO_TIMEOUT_SECONDS = int(os.getenv("BREVO_TIMEOUT_SECONDS", "10"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
