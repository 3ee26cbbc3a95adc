import os

SECRET_KEY = "test-secret"
JWT_SECRET = "test-jwt-secret"
JWT_EXPIRES_SHORT = "12h"
JWT_EXPIRES_LONG = "30d"

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "tutor_checkin_test"),
}

CORS_ALLOWED_ORIGINS = ""
CENTER_NAME = "Kumon"

CLICK_SEND_USERNAME = ""
CLICK_SEND_API_KEY = ""
CLICK_SEND_FROM = ""

QR_STORAGE = "local"
QR_DIR = os.getenv("QR_DIR", "qr_codes_test")
QR_REPO_DIR = "qr"

LOG_LEVEL = "WARNING"

DEBUG = False
TESTING = True

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))
