import os
import yaml

ROOT_PATH = os.path.dirname(__file__)
CONFIG_FILE_PATH = os.path.join(ROOT_PATH, "env.yaml")

if os.path.exists(CONFIG_FILE_PATH):
    with open(CONFIG_FILE_PATH, "r") as r_file:
        data = yaml.safe_load(r_file) or dict()
else:
    data = dict()


def _get(name, default=None):
    """Environment variable first, then env.yaml, then the default."""
    if name in os.environ:
        return os.environ[name]
    return data.get(name, default)


def _get_int(name, default):
    return int(_get(name, default))


def _get_float(name, default):
    return float(_get(name, default))


def _get_bool(name, default):
    value = _get(name, default)
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _get_list(name, default):
    value = _get(name, default)
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return list(value or [])


class ApplicationConfig:
    DB_URI = _get("DB_URI", "sqlite+aiosqlite:///./stoneguard.db")
    AUTO_CREATE_TABLES = _get_bool("AUTO_CREATE_TABLES", True)
    API_PORT = _get_int("API_PORT", 8000)
    API_HOST = _get("API_HOST", "0.0.0.0")
    CORS_ORIGINS = _get_list("CORS_ORIGINS", [])
    CORS_ALLOW_CREDENTIALS = _get_bool("CORS_ALLOW_CREDENTIALS", True)
    LOG_LEVEL = _get("LOG_LEVEL", "INFO")

    # No default: the application refuses to start without a signing secret
    JWT_SECRET = _get("JWT_SECRET")
    JWT_EXPIRY_MINUTES = _get_int("JWT_EXPIRY_MINUTES", 60 * 24)

    RECAPTCHA_SECRET_KEY = _get("RECAPTCHA_SECRET_KEY")
    RECAPTCHA_VERIFY_URL = _get(
        "RECAPTCHA_VERIFY_URL", "https://www.google.com/recaptcha/api/siteverify"
    )
    RECAPTCHA_TIMEOUT_SECONDS = _get_float("RECAPTCHA_TIMEOUT_SECONDS", 5)

    # Empty list disables the allowlist
    ADMIN_IP_ALLOWLIST = _get_list("ADMIN_IP_ALLOWLIST", [])
    # Peers whose X-Forwarded-For / X-Real-IP headers are believed
    TRUSTED_PROXIES = _get_list("TRUSTED_PROXIES", [])

    APPROVAL_WINDOW_SECONDS = _get_int("APPROVAL_WINDOW_SECONDS", 60 * 60)
    APPROVAL_MAX_PER_USER = _get_int("APPROVAL_MAX_PER_USER", 5)
    APPROVAL_MAX_PER_IP = _get_int("APPROVAL_MAX_PER_IP", 10)
    APPROVAL_CAPTCHA_THRESHOLD = _get_int("APPROVAL_CAPTCHA_THRESHOLD", 3)

    PAYMENT_WINDOW_SECONDS = _get_int("PAYMENT_WINDOW_SECONDS", 24 * 60 * 60)
    PAYMENT_MAX_PER_USER = _get_int("PAYMENT_MAX_PER_USER", 10)
    PAYMENT_MAX_PER_IP = _get_int("PAYMENT_MAX_PER_IP", 20)
    PAYMENT_CAPTCHA_THRESHOLD = _get_int("PAYMENT_CAPTCHA_THRESHOLD", 5)

    RATE_LIMIT_IDLE_TTL_SECONDS = _get_int("RATE_LIMIT_IDLE_TTL_SECONDS", 60 * 60)
    WAF_MAX_CAPTCHA_FAILURES = _get_int("WAF_MAX_CAPTCHA_FAILURES", 5)

    APPROVAL_MAX_CONCURRENT = _get_int("APPROVAL_MAX_CONCURRENT", 5)
    APPROVAL_RETRY_AFTER_SECONDS = _get_int("APPROVAL_RETRY_AFTER_SECONDS", 10)
    PAYMENT_MAX_CONCURRENT = _get_int("PAYMENT_MAX_CONCURRENT", 3)
    PAYMENT_RETRY_AFTER_SECONDS = _get_int("PAYMENT_RETRY_AFTER_SECONDS", 5)
    ANALYTICS_MAX_CONCURRENT = _get_int("ANALYTICS_MAX_CONCURRENT", 1)
    ANALYTICS_QUEUE_TIMEOUT_SECONDS = _get_float("ANALYTICS_QUEUE_TIMEOUT_SECONDS", 30)

    ANOMALY_RAPID_APPROVAL_SECONDS = _get_float("ANOMALY_RAPID_APPROVAL_SECONDS", 60)
    ANOMALY_RAPID_ANALYTICS_SECONDS = _get_float("ANOMALY_RAPID_ANALYTICS_SECONDS", 10)
    KNOWN_IP_RETENTION_DAYS = _get_int("KNOWN_IP_RETENTION_DAYS", 90)
    KNOWN_IP_MAX_ENTRIES = _get_int("KNOWN_IP_MAX_ENTRIES", 20)
    PAYMENT_RAPID_WINDOW_SECONDS = _get_int("PAYMENT_RAPID_WINDOW_SECONDS", 5 * 60)
    PAYMENT_RAPID_MAX_SUBMISSIONS = _get_int("PAYMENT_RAPID_MAX_SUBMISSIONS", 3)
    PAYMENT_AMOUNT_VARIANCE = _get_float("PAYMENT_AMOUNT_VARIANCE", 0.5)
