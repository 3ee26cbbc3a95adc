import os

SECRET_KEY = os.getenv("SECRET_KEY", "please-set-SECRET_KEY")
JWT_SECRET = os.getenv("JWT_SECRET", "please-set-JWT_SECRET")
JWT_EXPIRES_SHORT = os.getenv("JWT_EXPIRES_SHORT", "12h")
JWT_EXPIRES_LONG = os.getenv("JWT_EXPIRES_LONG", "30d")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "tutor_checkin"),
}

CORS_ALLOWED_ORIGINS = os.getenv("CORS_ALLOWED_ORIGINS") or os.getenv("FRONTEND_URL", "")

CENTER_NAME = os.getenv("CENTER_NAME", "Kumon")

CLICK_SEND_USERNAME = os.getenv("CLICK_SEND_USERNAME", "")
CLICK_SEND_API_KEY = os.getenv("CLICK_SEND_API_KEY", "")
CLICK_SEND_FROM = os.getenv("CLICK_SEND_FROM", "")

QR_STORAGE = os.getenv("QR_STORAGE", "github")
QR_DIR = os.getenv("QR_DIR", "qr_codes")
QR_REPO_DIR = os.getenv("QR_REPO_DIR", "qr")
GITHUB_TOKEN = os.getenv("GITHUB_TOKEN", "")
GITHUB_OWNER = os.getenv("GITHUB_OWNER", "")
GITHUB_REPO = os.getenv("GITHUB_REPO", "")
GITHUB_BRANCH = os.getenv("GITHUB_BRANCH", "main")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

DEBUG = False

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))
