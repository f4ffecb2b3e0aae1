import os


VERSION = "v1.0.0"


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    """Read an integer env var, clamped to a lower bound."""
    raw = str(os.environ.get(name, "") or "").strip()
    if not raw:
        return int(default)
    try:
        return max(int(minimum), int(raw))
    except ValueError:
        return int(default)


HOST = str(os.environ.get("ONCESHARE_HOST", "0.0.0.0") or "0.0.0.0").strip()
PORT = _env_int("ONCESHARE_PORT", 0)
TIMEOUT_S = _env_int("ONCESHARE_TIMEOUT_S", 24 * 60 * 60, minimum=1)
GRACE_S = _env_int("ONCESHARE_GRACE_S", 0)
CHUNK_SIZE = _env_int("ONCESHARE_CHUNK", 64 * 1024, minimum=1024)
PUBLIC_HOST = str(os.environ.get("ONCESHARE_PUBLIC_HOST", "") or "").strip()

DEBUG = os.environ.get("ONCESHARE_DEBUG", "0") == "1"
LOG_ENABLED = os.environ.get("ONCESHARE_LOG", "1") == "1"
LOG_FILE = str(os.environ.get("ONCESHARE_LOG_FILE", "") or "").strip()
REDACT_TOKEN = os.environ.get("ONCESHARE_REDACT_TOKEN", "0") == "1"
IGNORE_VPN = os.environ.get("ONCESHARE_IGNORE_VPN", "0") == "1"


def reload_from_env() -> None:
    """Reload runtime configuration from environment variables."""
    global HOST, PORT, TIMEOUT_S, GRACE_S, CHUNK_SIZE, PUBLIC_HOST
    global DEBUG, LOG_ENABLED, LOG_FILE, REDACT_TOKEN, IGNORE_VPN

    HOST = str(os.environ.get("ONCESHARE_HOST", HOST) or "0.0.0.0").strip()
    PORT = _env_int("ONCESHARE_PORT", PORT)
    TIMEOUT_S = _env_int("ONCESHARE_TIMEOUT_S", TIMEOUT_S, minimum=1)
    GRACE_S = _env_int("ONCESHARE_GRACE_S", GRACE_S)
    CHUNK_SIZE = _env_int("ONCESHARE_CHUNK", CHUNK_SIZE, minimum=1024)
    PUBLIC_HOST = str(os.environ.get("ONCESHARE_PUBLIC_HOST", PUBLIC_HOST) or "").strip()

    DEBUG = os.environ.get("ONCESHARE_DEBUG", "0") == "1"
    LOG_ENABLED = os.environ.get("ONCESHARE_LOG", "1") == "1"
    LOG_FILE = str(os.environ.get("ONCESHARE_LOG_FILE", LOG_FILE) or "").strip()
    REDACT_TOKEN = os.environ.get("ONCESHARE_REDACT_TOKEN", "0") == "1"
    IGNORE_VPN = os.environ.get("ONCESHARE_IGNORE_VPN", "0") == "1"
