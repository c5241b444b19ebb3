import os
from dotenv import load_dotenv

load_dotenv()

UPLOAD_DIR = os.getenv(
    "UPLOAD_DIR", os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "uploads"))
)
DB_URL = os.getenv("DB_URL", "sqlite:///./files.db")
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
ROOT_PATH_MARKER = os.getenv("ROOT_PATH_MARKER", "/")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DB_CONNECT_ARGS = {"check_same_thread": False} if DB_URL.startswith("sqlite") else {}

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3000"))

# Orphaned blob sweep
ENABLE_ORPHAN_SWEEP = os.getenv("ENABLE_ORPHAN_SWEEP", "false").lower() in {"true", "1", "yes"}
ORPHAN_SWEEP_INTERVAL_MINUTES = max(1, int(os.getenv("ORPHAN_SWEEP_INTERVAL_MINUTES", "60")))
ORPHAN_GRACE_MINUTES = max(0, int(os.getenv("ORPHAN_GRACE_MINUTES", "10")))
