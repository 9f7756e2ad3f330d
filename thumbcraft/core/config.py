# thumbcraft/core/config.py
import os
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv
from openai import OpenAI

# ================== ENV ==================

ROOT_DIR = Path(__file__).resolve().parents[2]
load_dotenv(ROOT_DIR / ".env", override=False)

def env(*names: str, default: Optional[str] = None) -> str:
    for n in names:
        v = os.environ.get(n)
        if v is not None and str(v).strip() != "":
            return v
    if default is not None:
        return default
    raise KeyError(f"Missing required env var. Tried: {', '.join(names)}")

# ================== JWT ==================

JWT_SECRET = os.environ.get("JWT_SECRET", "default_secret_key")
JWT_ALGORITHM = "HS256"
JWT_EXPIRATION_HOURS = int(os.environ.get("JWT_EXPIRATION_HOURS", "24"))

# ================== CREDITS ==================

GENERATION_COST = int(env("GENERATION_COST", default="10"))
STARTING_CREDITS = int(env("STARTING_CREDITS", default="50"))

# ================== IMAGE GENERATION ==================

IMAGE_API_BASE = env("IMAGE_API_BASE", default="https://image.pollinations.ai").rstrip("/")
IMAGE_REQUEST_TIMEOUT = float(env("IMAGE_REQUEST_TIMEOUT", default="90"))
IMAGE_MAX_ATTEMPTS = int(env("IMAGE_MAX_ATTEMPTS", default="2"))
IMAGE_BACKOFF_SECONDS = float(env("IMAGE_BACKOFF_SECONDS", default="0.5"))

# ================== ENHANCEMENT (OpenAI-compatible gateway) ==================

ENHANCE_MODEL = env("ENHANCE_MODEL", default="google/gemini-2.5-flash-image-preview")

def get_openai_client() -> OpenAI:
    """
    Lazy init: the server starts without a key.
    Only the enhancement endpoint requires ENHANCE_API_KEY.
    """
    key = os.environ.get("ENHANCE_API_KEY") or os.environ.get("OPENAI_API_KEY")
    if not key:
        raise RuntimeError("ENHANCE_API_KEY not configured (.env).")
    base_url = os.environ.get("ENHANCE_BASE_URL") or None
    return OpenAI(api_key=key, base_url=base_url)

# ================== RAZORPAY ==================

RAZORPAY_KEY_ID = os.environ.get("RAZORPAY_KEY_ID", "").strip()
RAZORPAY_KEY_SECRET = os.environ.get("RAZORPAY_KEY_SECRET", "").strip()
RAZORPAY_API_BASE = env("RAZORPAY_API_BASE", default="https://api.razorpay.com/v1").rstrip("/")

# ================== RENDERING ==================

THUMBNAIL_FONT_PATH = os.environ.get("THUMBNAIL_FONT_PATH", "")

# ================== LOGGING ==================

LOG_DIR = os.getenv("LOG_DIR", "logs")

# ================== DATABASE ==================

DATABASE_URL = os.environ.get("DATABASE_URL", "")

def get_database_url() -> str:
    """Get database URL - supports SQLite or MySQL."""
    if DATABASE_URL:
        return DATABASE_URL

    mysql_host = os.environ.get("MYSQL_HOST")
    if mysql_host:
        mysql_port = int(os.environ.get("MYSQL_PORT", "3306"))
        mysql_user = os.environ.get("MYSQL_USER", "root")
        mysql_password = os.environ.get("MYSQL_PASSWORD", "")
        mysql_db = os.environ.get("MYSQL_DB", "thumbcraft")
        return f"mysql+aiomysql://{mysql_user}:{mysql_password}@{mysql_host}:{mysql_port}/{mysql_db}?charset=utf8mb4"

    # Default to SQLite
    db_path = ROOT_DIR / "thumbcraft.db"
    return f"sqlite+aiosqlite:///{db_path}"

def get_billing_database_url() -> str:
    """
    Entitlement grants run under a separate DB role when BILLING_DATABASE_URL
    is set; otherwise they share the main connection.
    """
    return os.environ.get("BILLING_DATABASE_URL") or get_database_url()
