import os

# Read by config.ApplicationConfig at import time, before any test module imports it
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")
os.environ.setdefault("ADMIN_IP_ALLOWLIST", "")
os.environ.setdefault("TRUSTED_PROXIES", "")
