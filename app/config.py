import os
import logging
import logging.config
from pathlib import Path
from typing import Dict, Optional

# Base Paths
APP_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = APP_DIR.parent

# Resources
FEATURE_GATES_PATH = Path(
    os.getenv(
        "FEATURE_GATES_PATH",
        str(APP_DIR / "core" / "entitlements" / "feature_gates.json"),
    )
)

# Logging Setup
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG").upper()
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
LOG_FILE_PATH = os.getenv(
    "LOG_FILE_PATH",
    str((PROJECT_ROOT / "logs" / "app.log").resolve()),
)

LOG_DIR = Path(LOG_FILE_PATH).parent
LOG_DIR.mkdir(parents=True, exist_ok=True)

LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": LOG_FORMAT,
        }
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "level": LOG_LEVEL,
            "formatter": "standard",
            "stream": "ext://sys.stdout",
        },
        "file": {
            "class": "logging.handlers.RotatingFileHandler",
            "level": LOG_LEVEL,
            "formatter": "standard",
            "filename": LOG_FILE_PATH,
            "maxBytes": 10 * 1024 * 1024,  # 10 MB
            "backupCount": 5,
            "encoding": "utf8",
        },
    },
    "loggers": {
        "practiceplan": {
            "handlers": ["console", "file"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
        "uvicorn.error": {"level": "INFO"},
        "uvicorn.access": {"level": "INFO"},
    },
    "root": {
        "handlers": ["console"],
        "level": LOG_LEVEL,
    },
}

logging.config.dictConfig(LOGGING_CONFIG)
logger = logging.getLogger("practiceplan")


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _env_optional_float(name: str) -> Optional[float]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    value = float(raw)
    return value if value > 0 else None


# Firebase (current project)
FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID", "")
FIREBASE_CREDENTIALS_PATH = os.getenv("FIREBASE_CREDENTIALS_PATH", "")

# Firebase (legacy project, source of re-migrations)
LEGACY_FIREBASE_PROJECT_ID = os.getenv("LEGACY_FIREBASE_PROJECT_ID", "")
LEGACY_FIREBASE_CREDENTIALS_PATH = os.getenv("LEGACY_FIREBASE_CREDENTIALS_PATH", "")

# -----------------------------------------------------------------------------
# Re-migration
# -----------------------------------------------------------------------------

MIGRATION_ENABLED = _env_flag("MIGRATION_ENABLED")

# Per-category copy timeout in seconds. Unset or <= 0 waits indefinitely.
MIGRATION_STEP_TIMEOUT_SECONDS = _env_optional_float("MIGRATION_STEP_TIMEOUT_SECONDS")

# -----------------------------------------------------------------------------
# Billing (Stripe)
# -----------------------------------------------------------------------------

STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY", "")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET", "")

STRIPE_PRODUCT_TIERS: Dict[str, str] = {
    os.getenv("STRIPE_PRODUCT_COACH", "prod_MoC3n1zPGfPDUe"): "coach",
    os.getenv("STRIPE_PRODUCT_ORGANIZATION", "prod_TXVaDvv8HTviEb"): "organization",
}

# App Store product identifiers from the RevenueCat era
APP_STORE_PRODUCT_IDS = _split_csv(
    os.getenv("APP_STORE_PRODUCT_IDS", "headCoach_249,headCoach,organization_monthly")
)

# Security / domains
ALLOWED_HOSTS = _split_csv(
    os.getenv(
        "ALLOWED_HOSTS",
        "localhost,127.0.0.1,testserver,practiceplan.app,www.practiceplan.app",
    )
)

CORS_ORIGINS = _split_csv(
    os.getenv(
        "CORS_ORIGINS",
        "http://localhost:3000,https://practiceplan.app,https://www.practiceplan.app",
    )
)

# Environment
ENVIRONMENT = os.getenv("ENVIRONMENT", "development").lower()
IS_PRODUCTION = ENVIRONMENT == "production"
DEBUG = not IS_PRODUCTION
