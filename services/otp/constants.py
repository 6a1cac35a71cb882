"""
OTP policy constants and Redis key layout.

Shared by the restriction checker, issuer, verifier and pending-registration
store. Every key is scoped to a single email so operations on different
identities never contend.
"""

OTP_LENGTH = 6
OTP_EXPIRY_SECONDS = 300  # 5 minutes
OTP_COOLDOWN_SECONDS = 60  # 1 minute
OTP_DAILY_LIMIT = 10
OTP_MAX_ATTEMPTS = 3  # failed verifications before lockout

# Rolling window starting at the first issuance, not a calendar day
DAILY_WINDOW_SECONDS = 86400

OTP_EMAIL_SUBJECT = "Your OTP Code"
DEFAULT_OTP_TEMPLATE = "otp-template"

OTP_PREFIX = "otp:"
COOLDOWN_PREFIX = "otp_cooldown:"
DAILY_COUNT_PREFIX = "otp_daily_attempts:"
FAILURE_PREFIX = "otp_failures:"
PENDING_REGISTRATION_PREFIX = "pending_registration:"


def otp_key(email: str) -> str:
    return f"{OTP_PREFIX}{email}"


def cooldown_key(email: str) -> str:
    return f"{COOLDOWN_PREFIX}{email}"


def daily_count_key(email: str) -> str:
    return f"{DAILY_COUNT_PREFIX}{email}"


def failure_key(email: str) -> str:
    return f"{FAILURE_PREFIX}{email}"


def pending_registration_key(email: str) -> str:
    return f"{PENDING_REGISTRATION_PREFIX}{email}"
