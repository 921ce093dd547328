import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./calltechcare.db")

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

# Public site URL used for redirects, emails and checkout return pages
BASE_URL = os.getenv("BASE_URL") or os.getenv("FRONTEND_URL", "http://localhost:3000")
# Canonical host for sitemap / RSS / robots output
SITE_URL = os.getenv("SITE_URL", "https://www.calltechcare.com")

# Cookies are marked Secure outside local development
COOKIE_SECURE = os.getenv("COOKIE_SECURE", "false").lower() == "true"
SESSION_TOKEN_EXPIRE_DAYS = int(os.getenv("SESSION_TOKEN_EXPIRE_DAYS", "7"))

# Stripe Configuration
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")

# Sanity CMS Configuration
SANITY_PROJECT_ID = os.getenv("SANITY_PROJECT_ID") or os.getenv("NEXT_PUBLIC_SANITY_PROJECT_ID")
SANITY_DATASET = os.getenv("SANITY_DATASET", "production")
SANITY_API_VERSION = os.getenv("SANITY_API_VERSION", "2024-01-01")
SANITY_WRITE_TOKEN = os.getenv("SANITY_WRITE_TOKEN") or os.getenv("SANITY_API_TOKEN")

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "CallTechCare <noreply@calltechcare.com>")
REPLY_TO_EMAIL = os.getenv("REPLY_TO_EMAIL")
BCC_EMAIL = os.getenv("BCC_EMAIL")
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "support@calltechcare.com")

# Mailchimp Configuration
MAILCHIMP_API_KEY = os.getenv("MAILCHIMP_API_KEY")
MAILCHIMP_SERVER_PREFIX = os.getenv("MAILCHIMP_SERVER_PREFIX")
MAILCHIMP_AUDIENCE_ID = os.getenv("MAILCHIMP_AUDIENCE_ID")
# "user:password" guarding the external sync endpoint; endpoint is disabled when unset
MAILCHIMP_SYNC_BASIC_AUTH = os.getenv("MAILCHIMP_SYNC_BASIC_AUTH")

# Discount popup
DISCOUNT_POPUP_CODE = os.getenv("DISCOUNT_POPUP_CODE", "MYFIRSTSERVICE#-10").strip().upper()
try:
    DISCOUNT_POPUP_PERCENT = max(0, min(100, int(os.getenv("DISCOUNT_POPUP_PERCENT", "10"))))
except ValueError:
    DISCOUNT_POPUP_PERCENT = 10

# CORS
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000")
