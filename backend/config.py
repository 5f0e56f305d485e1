"""
config.py — Central Configuration for the SmartVid Backend
===========================================================

All tuneable constants live here so they can be adjusted without
touching business logic.  Values are grouped by subsystem.
"""

import os


# ─────────────────────────────────────────────────────────────
# 1. SITE
# ─────────────────────────────────────────────────────────────

# Public marketing domain used in the sitemap
SITE_URL = os.getenv("SITE_URL", "https://smartvideofy.com")

# Dashboard origin, used for checkout callbacks and portal links
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173"
    ).split(",")
    if origin.strip()
]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


# ─────────────────────────────────────────────────────────────
# 2. PLANS & QUOTAS
# ─────────────────────────────────────────────────────────────

# Videos a user may generate per billing period (lifetime for free users)
PLAN_VIDEO_LIMITS = {
    "free": 2,
    "pro": 20,
    "business": 50,
}

# Prices in the smallest currency unit (cents)
PLAN_PRICES = {
    "pro": 2900,
    "business": 9900,
}

PLAN_CURRENCY = os.getenv("PLAN_CURRENCY", "USD")

# Length of a paid period when the provider does not tell us
SUBSCRIPTION_PERIOD_DAYS = 30

# Default storage allowance for a fresh quota row
DEFAULT_STORAGE_LIMIT_MB = 500


# ─────────────────────────────────────────────────────────────
# 3. RENDERING  (Shotstack)
# ─────────────────────────────────────────────────────────────

SHOTSTACK_API_KEY = os.getenv("SHOTSTACK_API_KEY", "")
SHOTSTACK_RENDER_URL = os.getenv("SHOTSTACK_RENDER_URL", "https://api.shotstack.io/v1/render")
SHOTSTACK_STATUS_URL = os.getenv("SHOTSTACK_STATUS_URL", "https://api.shotstack.io/v1/render")

# Seconds per scene when the scene does not specify one
DEFAULT_SCENE_DURATION_S = 5

# Output settings sent with every render request
RENDER_OUTPUT_FORMAT = "mp4"
RENDER_OUTPUT_RESOLUTION = "sd"

# Background polling: every 10 s for at most 30 minutes
RENDER_POLL_INTERVAL_S = 10
RENDER_POLL_MAX_ATTEMPTS = 180

# Mock renders (no API key): elapsed-seconds thresholds per label
MOCK_RENDER_QUEUED_S = 5
MOCK_RENDER_RENDERING_S = 15
MOCK_RENDER_SAVING_S = 25
MOCK_RENDER_VIDEO_URL = os.getenv(
    "MOCK_RENDER_VIDEO_URL",
    "https://shotstack-assets.s3.amazonaws.com/footage/beach-overhead.mp4",
)


# ─────────────────────────────────────────────────────────────
# 4. STOCK FOOTAGE  (Pexels)
# ─────────────────────────────────────────────────────────────

PEXELS_API_KEY = os.getenv("PEXELS_API_KEY", "")
PEXELS_SEARCH_URL = "https://api.pexels.com/videos/search"
STOCK_RESULTS_PER_QUERY = 3


# ─────────────────────────────────────────────────────────────
# 5. TEXT-TO-SPEECH  (ElevenLabs)
# ─────────────────────────────────────────────────────────────

ELEVEN_LABS_API_KEY = os.getenv("ELEVEN_LABS_API_KEY", "")
ELEVEN_LABS_TTS_URL = "https://api.elevenlabs.io/v1/text-to-speech"
ELEVEN_LABS_MODEL = "eleven_monolingual_v1"

# Rachel, used when the caller does not pick a voice
DEFAULT_VOICE_ID = "21m00Tcm4TlvDq8ikWAM"


# ─────────────────────────────────────────────────────────────
# 6. LLM KEYS  (scene breakdown & narration)
# ─────────────────────────────────────────────────────────────

GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY", "")
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")


# ─────────────────────────────────────────────────────────────
# 7. PAYMENTS  (Paystack primary, Stripe alternative)
# ─────────────────────────────────────────────────────────────

# "paystack" or "stripe"
PAYMENT_PROVIDER = os.getenv("PAYMENT_PROVIDER", "paystack")

PAYSTACK_SECRET_KEY = os.getenv("PAYSTACK_SECRET_KEY", "")
PAYSTACK_API_URL = os.getenv("PAYSTACK_API_URL", "https://api.paystack.co")

STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY", "")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET", "")
STRIPE_PRICE_IDS = {
    "pro": os.getenv("STRIPE_PRO_PRICE_ID", ""),
    "business": os.getenv("STRIPE_BUSINESS_PRICE_ID", ""),
}


# ─────────────────────────────────────────────────────────────
# 8. AUTH  (Supabase-compatible JWTs)
# ─────────────────────────────────────────────────────────────

JWT_SECRET = os.getenv("SUPABASE_JWT_SECRET", "your-secret-key-change-in-production")
JWT_ALGORITHM = "HS256"
JWT_AUDIENCE = os.getenv("JWT_AUDIENCE", "authenticated")


# ─────────────────────────────────────────────────────────────
# 9. STORAGE & QUEUE
# ─────────────────────────────────────────────────────────────

S3_BUCKET = os.getenv("S3_BUCKET", "smartvid-media")
S3_REGION = os.getenv("S3_REGION", "us-east-1")
S3_ENDPOINT = os.getenv("S3_ENDPOINT", "")  # Set for R2 / MinIO / Supabase storage
S3_PUBLIC_URL = os.getenv("S3_PUBLIC_URL", "")

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")


# ─────────────────────────────────────────────────────────────
# 10. NOTIFICATIONS
# ─────────────────────────────────────────────────────────────

# Identical notifications inside this window are dropped
NOTIFICATION_DEDUP_WINDOW_S = 3600
