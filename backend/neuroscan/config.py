# backend/neuroscan/config.py
import os
from pathlib import Path

from dotenv import load_dotenv

ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=ENV_PATH)

APP_NAME = os.getenv("APP_NAME", "NeuroScan Dashboard")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./neuroscan.db")

# Service-account key for firebase_admin (JSON file path)
FIREBASE_CREDENTIALS = os.getenv("FIREBASE_CREDENTIALS", "")

UPLOAD_DIR = os.getenv("UPLOAD_DIR", str(Path(__file__).resolve().parent.parent / "uploads"))
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(50 * 1024 * 1024)))

CORS_ORIGINS = [
    o.strip()
    for o in os.getenv("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",")
    if o.strip()
]
