import os
import sys

from dotenv import load_dotenv

from enums.runtime_environment import RuntimeEnvironment

# Load .env but don't override existing environment variables
# This allows test scripts to set RUNTIME_ENVIRONMENT=TEST before import
load_dotenv(".env", override=False)

# Parse RUNTIME_ENVIRONMENT with clear error message on misconfiguration
try:
    RUNTIME_ENVIRONMENT = RuntimeEnvironment(os.environ.get("RUNTIME_ENVIRONMENT", RuntimeEnvironment.DEV.value))
except ValueError as e:
    valid_values = [env.value for env in RuntimeEnvironment]
    print(f"\n ERROR: Invalid RUNTIME_ENVIRONMENT configuration\n", file=sys.stderr)
    print(f"Reason: {e}", file=sys.stderr)
    print(f"Valid values: {', '.join(valid_values)}", file=sys.stderr)
    print(f"\nAdd to .env: RUNTIME_ENVIRONMENT={valid_values[0]}\n", file=sys.stderr)
    sys.exit(1)


def _int_setting(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got '{raw}'")


# Database
DB_NAME = os.environ.get("DB_NAME", "shop.db")
DB_URL = os.environ.get("DB_URL", f"sqlite+aiosqlite:///data/{DB_NAME}")
DB_ECHO = os.environ.get("DB_ECHO", "false") == "true"  # SQL statement logging, never enable in prod

# Transactions
TRANSACTION_TIMEOUT = _int_setting("TRANSACTION_TIMEOUT", 30)  # Seconds before a transaction is reported as timed out
TRANSACTION_MAX_RETRIES = _int_setting("TRANSACTION_MAX_RETRIES", 3)

# Product images
UPLOADS_FOLDER = os.environ.get("UPLOADS_FOLDER", "./uploads")
FRONTEND_URL = os.environ.get("FRONTEND_URL", "http://localhost:3000")
ALLOWED_IMAGE_EXTENSIONS = ("jpg", "jpeg", "png", "gif")

# Logging Configuration
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")  # DEBUG, INFO, WARNING, ERROR, CRITICAL
LOG_DIR = os.environ.get("LOG_DIR", "logs")
LOG_MASK_SECRETS = os.environ.get("LOG_MASK_SECRETS", "true") == "true"  # Mask phone numbers and addresses

# Log Retention: Dev keeps logs longer for debugging
if RUNTIME_ENVIRONMENT == RuntimeEnvironment.DEV:
    LOG_RETENTION_DAYS = _int_setting("LOG_RETENTION_DAYS", 30)
else:
    LOG_RETENTION_DAYS = _int_setting("LOG_RETENTION_DAYS", 7)
