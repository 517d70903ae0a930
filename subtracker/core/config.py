import os
from dataclasses import dataclass

# ✅ Database
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./subtracker.db")
RUN_MIGRATIONS = os.getenv("RUN_MIGRATIONS", "0") == "1"

# ✅ Security (tokens are issued by the identity provider)
SECRET_KEY = os.getenv("SECRET_KEY")
ALGORITHM = os.getenv("ALGORITHM", "HS256")

# ✅ Telegram
TELEGRAM_BOT_TOKEN = os.getenv("TELEGRAM_BOT_TOKEN", "")
TELEGRAM_API_BASE = os.getenv("TELEGRAM_API_BASE", "https://api.telegram.org")

# ✅ Email
EMAIL_API_URL = os.getenv("EMAIL_API_URL", "")
EMAIL_API_KEY = os.getenv("EMAIL_API_KEY", "")
EMAIL_FROM = os.getenv("EMAIL_FROM", "reminders@subtracker.local")

# ✅ Delivery
PROVIDER_TIMEOUT_SECONDS = float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "10"))
NOTIFICATION_MAX_ATTEMPTS = int(os.getenv("NOTIFICATION_MAX_ATTEMPTS", "5"))
SERVICE_URL = os.getenv("SERVICE_URL", "")

# ✅ Dispatcher
RENEWAL_BATCH_SIZE = int(os.getenv("RENEWAL_BATCH_SIZE", "50"))
DISPATCH_BATCH_SIZE = int(os.getenv("DISPATCH_BATCH_SIZE", "100"))
DISPATCH_CONCURRENCY = int(os.getenv("DISPATCH_CONCURRENCY", "10"))
DISPATCH_TOKEN = os.getenv("DISPATCH_TOKEN", "")

# ✅ Telegram contact linking
LINK_TOKEN_TTL_MINUTES = int(os.getenv("LINK_TOKEN_TTL_MINUTES", "60"))

# ✅ Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", "logs/subtracker.log")


@dataclass(frozen=True)
class DeliverySettings:
    """Provider credentials and limits handed to the delivery worker."""
    telegram_bot_token: str = ""
    telegram_api_base: str = "https://api.telegram.org"
    email_api_url: str = ""
    email_api_key: str = ""
    email_from: str = "reminders@subtracker.local"
    timeout_seconds: float = 10.0
    service_url: str = ""


def build_delivery_settings() -> DeliverySettings:
    """Snapshot the environment into a DeliverySettings for the entry point."""
    return DeliverySettings(
        telegram_bot_token=TELEGRAM_BOT_TOKEN,
        telegram_api_base=TELEGRAM_API_BASE,
        email_api_url=EMAIL_API_URL,
        email_api_key=EMAIL_API_KEY,
        email_from=EMAIL_FROM,
        timeout_seconds=PROVIDER_TIMEOUT_SECONDS,
        service_url=SERVICE_URL,
    )
