from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# SQLite file in the project root unless the environment says otherwise
DEFAULT_DB_PATH = Path(__file__).resolve().parents[1] / "physf.sqlite"
DATABASE_URL = os.getenv("PHYSF_DATABASE_URL", f"sqlite:///{DEFAULT_DB_PATH}")
DB_ECHO = os.getenv("PHYSF_DB_ECHO", "0").lower() in {"1", "true", "yes"}

# In production the secret must come from the environment
JWT_SECRET = os.getenv("JWT_SECRET", "CHANGE_ME_DEV_SECRET")
JWT_ALG = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("JWT_EXPIRE_MINUTES", "60"))

LOG_LEVEL = os.getenv("PHYSF_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(level: str | None = None) -> None:
    """Configure root logging once for the API and the CLI."""
    logging.basicConfig(level=level or LOG_LEVEL, format=LOG_FORMAT)
