"""
Runtime configuration.

Everything is read from the environment once, at import time.
"""

import os
from decimal import Decimal

ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

# Supabase
SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")

# Retell (voice-AI provider)
RETELL_API_KEY = os.getenv("RETELL_API_KEY", "")
RETELL_API_BASE = os.getenv("RETELL_API_BASE", "https://api.retellai.com/v2")

# Resend (invite email delivery)
RESEND_API_KEY = os.getenv("RESEND_API_KEY", "")
RESEND_FROM = os.getenv("RESEND_FROM", "no-reply@example.com")
PUBLIC_APP_URL = os.getenv("PUBLIC_APP_URL", "https://example.com")

# Inngest
INNGEST_APP_ID = os.getenv("INNGEST_APP_ID", "callboard")

# =============================================================================
# BILLING DEFAULTS
# =============================================================================

# Assumed per-minute rate when no agent rate is known
DEFAULT_RATE_PER_MINUTE = Decimal(os.getenv("DEFAULT_RATE_PER_MINUTE", "0.02"))

# Thresholds for a credit row created on first balance check
DEFAULT_WARNING_THRESHOLD = Decimal("10.00")
DEFAULT_CRITICAL_THRESHOLD = Decimal("5.00")

# Balance view / sync views are considered fresh for this long
CACHE_TTL_SECONDS = 5 * 60

# Invites
INVITE_EXPIRY_DAYS = 7
