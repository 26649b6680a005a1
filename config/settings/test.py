"""
With these settings, tests run faster.
"""

from .base import *  # noqa: F403
from .base import DATABASES
from .base import env

# GENERAL
# ------------------------------------------------------------------------------
# https://docs.djangoproject.com/en/dev/ref/settings/#secret-key
SECRET_KEY = env(
    "DJANGO_SECRET_KEY",
    default="AlGzerkUv160WCFbKM8vn2qyFYWS5jX0AHND8TnRj55iqlMSPtJsUllwpba1oqOO",
)
# https://docs.djangoproject.com/en/dev/ref/settings/#test-runner
TEST_RUNNER = "django.test.runner.DiscoverRunner"

# DATABASES
# ------------------------------------------------------------------------------
# SQLite unless DATABASE_URL points at a real server (the concurrent
# conversion test only runs against PostgreSQL).
DATABASES["default"] = env.db("DATABASE_URL", default="sqlite://:memory:")
if DATABASES["default"]["ENGINE"].endswith("postgresql"):
    # Force Postgres test DB to use template0 to avoid collation
    # version mismatch in containerized environments
    DATABASES["default"].setdefault("TEST", {})
    DATABASES["default"]["TEST"]["TEMPLATE"] = "template0"

# PASSWORDS
# ------------------------------------------------------------------------------
# https://docs.djangoproject.com/en/dev/ref/settings/#password-hashers
PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

# EMAIL
# ------------------------------------------------------------------------------
# https://docs.djangoproject.com/en/dev/ref/settings/#email-backend
EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"

# Your stuff...
# ------------------------------------------------------------------------------
# No oracle in tests: every test injects a stub client.
PREREGISTRATION_LLM_ENABLED = False
PREREGISTRATION_CLASSIFIER_TIMEOUT = 2.0
REALTIME_BROADCASTER = "local"
REALTIME_SOCKETIO_ENABLED = False
REALTIME_STREAM_KEEPALIVE = 0.05
