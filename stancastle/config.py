import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./stancastle.db")

# Business calendar
BUSINESS_TIMEZONE = os.getenv("BUSINESS_TIMEZONE", "Europe/London")
# Unpaid reservations hold their slot for this long before the reaper releases them
PENDING_HOLD_MINUTES = int(os.getenv("PENDING_HOLD_MINUTES", "30"))
# Days ahead shown when the caller does not give an explicit range
AVAILABILITY_DEFAULT_DAYS = int(os.getenv("AVAILABILITY_DEFAULT_DAYS", "21"))
AVAILABILITY_MAX_RANGE_DAYS = int(os.getenv("AVAILABILITY_MAX_RANGE_DAYS", "62"))
AVAILABILITY_CACHE_TTL_SECONDS = int(os.getenv("AVAILABILITY_CACHE_TTL_SECONDS", "30"))

# Frontend base URL for redirects
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

# Dodo Payments Configuration
DODO_PAYMENTS_API_KEY = os.getenv("DODO_PAYMENTS_API_KEY")
DODO_PAYMENTS_WEBHOOK_SECRET = os.getenv("DODO_PAYMENTS_WEBHOOK_SECRET")
# "test_mode" or "live_mode" - default to test for safety
DODO_PAYMENTS_ENVIRONMENT = os.getenv("DODO_PAYMENTS_ENVIRONMENT", "test_mode")
DODO_DIAGNOSTIC_PRODUCT_ID = os.getenv("DODO_DIAGNOSTIC_PRODUCT_ID")
DODO_PARTNER_PRODUCT_ID = os.getenv("DODO_PARTNER_PRODUCT_ID")

# Outlook (Microsoft Graph) calendar used for free/busy and event mirroring
OUTLOOK_CLIENT_ID = os.getenv("OUTLOOK_CLIENT_ID")
OUTLOOK_CLIENT_SECRET = os.getenv("OUTLOOK_CLIENT_SECRET")
OUTLOOK_TENANT_ID = os.getenv("OUTLOOK_TENANT_ID", "common")
OUTLOOK_REFRESH_TOKEN = os.getenv("OUTLOOK_REFRESH_TOKEN")
OUTLOOK_EMAIL = os.getenv("OUTLOOK_EMAIL")

# Zoom: server-to-server OAuth is preferred, a static access token is the fallback
ZOOM_ACCOUNT_ID = os.getenv("ZOOM_ACCOUNT_ID")
ZOOM_CLIENT_ID = os.getenv("ZOOM_CLIENT_ID")
ZOOM_CLIENT_SECRET = os.getenv("ZOOM_CLIENT_SECRET")
ZOOM_ACCESS_TOKEN = os.getenv("ZOOM_ACCESS_TOKEN")

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "Stancastle <onboarding@resend.dev>")
PREP_FORM_URL = os.getenv("PREP_FORM_URL", "https://stancastle.com/prep")
CONTACT_PHONE = os.getenv("CONTACT_PHONE", "020 8064 2496")

# Redis is optional: without it caching and rate limiting are skipped
REDIS_URL = os.getenv("REDIS_URL")
