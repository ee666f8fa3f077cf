"""
Application configuration.

Values come from environment variables (a local .env file is honoured) with
defaults suitable for development.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(os.getenv("BRAINSCAN_HOME", Path.cwd()))

# -------------------- MODEL --------------------
# Local path or http(s) URL of a Keras model
MODEL_PATH = os.getenv("BRAINSCAN_MODEL_PATH", str(BASE_DIR / "models" / "best_model.h5"))
IMG_SIZE = int(os.getenv("IMG_SIZE", "224"))

# Unset means a fresh random jitter for every heuristic prediction
_seed = os.getenv("BRAINSCAN_HEURISTIC_SEED")
HEURISTIC_SEED = int(_seed) if _seed else None

# -------------------- STORAGE --------------------
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./brainscan.db")
UPLOAD_DIR = Path(os.getenv("UPLOAD_DIR", str(BASE_DIR / "uploads")))

MAX_UPLOAD_SIZE = int(os.getenv("MAX_UPLOAD_SIZE", str(50 * 1024 * 1024)))
HISTORY_LIMIT = int(os.getenv("HISTORY_LIMIT", "10"))
MAX_HISTORY_LIMIT = 100

# -------------------- AUTH --------------------
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24)))

# -------------------- SERVER --------------------
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))

# -------------------- LOGGING --------------------
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
