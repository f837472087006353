import os
import logging
import stripe
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./pozhi.db")
SQLALCHEMY_DATABASE_URI = DATABASE_URL

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

# JWT Settings
SECRET_KEY: str = os.getenv("SECRET_KEY", "change_me_in_the_env_file_to_a_long_random_value")
ALGORITHM: str = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 30))

# "stripe" talks to the real API, "mock" keeps intents in process (local development)
PAYMENT_MODE: str = os.getenv("PAYMENT_MODE", "stripe").lower()

# Stripe API Keys
STRIPE_SECRET_KEY: str = os.getenv("STRIPE_SECRET_KEY", "sk_test_YOUR_STRIPE_SECRET_KEY")
STRIPE_WEBHOOK_SECRET: str = os.getenv("STRIPE_WEBHOOK_SECRET", "whsec_YOUR_STRIPE_WEBHOOK_SECRET")

# Every order is charged in the deployment currency, amounts in the smallest unit (paisa for INR)
PAYMENT_CURRENCY: str = os.getenv("PAYMENT_CURRENCY", "inr").lower()
PAYMENT_MIN_AMOUNT: int = int(os.getenv("PAYMENT_MIN_AMOUNT", 100))
PAYMENT_MAX_AMOUNT: int = int(os.getenv("PAYMENT_MAX_AMOUNT", 50_000_000))

# Shown on card statements and in the Stripe dashboard
PAYMENT_DESCRIPTION: str = os.getenv("PAYMENT_DESCRIPTION", "Pozhi Studio Order")

# Intent creation attempts allowed per user per window
PAYMENT_RATE_LIMIT: int = int(os.getenv("PAYMENT_RATE_LIMIT", 10))
PAYMENT_RATE_WINDOW_SECONDS: int = int(os.getenv("PAYMENT_RATE_WINDOW_SECONDS", 60 * 60))

# Cart and account writes allowed per user per window
CART_RATE_LIMIT: int = int(os.getenv("CART_RATE_LIMIT", 100))
ACCOUNT_RATE_LIMIT: int = int(os.getenv("ACCOUNT_RATE_LIMIT", 50))
GENERAL_RATE_WINDOW_SECONDS: int = int(os.getenv("GENERAL_RATE_WINDOW_SECONDS", 15 * 60))

# Initialize Stripe API key
if STRIPE_SECRET_KEY and "YOUR_STRIPE_SECRET_KEY" not in STRIPE_SECRET_KEY:
    stripe.api_key = STRIPE_SECRET_KEY
elif PAYMENT_MODE == "stripe":
    # Never log the key itself
    logger.warning("Stripe secret key is not configured or is using a placeholder value.")


def is_stripe_live_mode() -> bool:
    return STRIPE_SECRET_KEY.startswith("sk_live_")
