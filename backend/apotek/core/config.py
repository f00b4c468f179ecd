"""Application configuration.

Environment variables override all defaults.
API_TOKEN must be set in production - startup fails fast without it.
"""

import os
from pathlib import Path
from typing import List


# Load .env for local development (safe no-op if not installed)
try:
    from dotenv import load_dotenv  # type: ignore

    _BACKEND_DIR = Path(__file__).resolve().parents[2]
    load_dotenv(dotenv_path=_BACKEND_DIR / ".env", override=False)
except ImportError:
    pass


def _split_origins(raw: str) -> List[str]:
    return [o.strip() for o in raw.split(",") if o and o.strip()]


class Settings:
    # Document store (SQLAlchemy URL)
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./apotek.db")

    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    DEBUG: bool = ENVIRONMENT == "development"

    # Authorization is delegated to the identity provider in front of this
    # service; we only check that the caller presents the shared bearer token.
    API_TOKEN: str = os.getenv("API_TOKEN", "")
    if not API_TOKEN:
        if ENVIRONMENT == "production":
            raise ValueError(
                "API_TOKEN must be set in production environment. "
                "Generate with: python -c 'import secrets; print(secrets.token_urlsafe(32))'"
            )
        import warnings
        warnings.warn(
            "API_TOKEN not set in environment. Using development default. "
            "Set API_TOKEN in .env before deploying.",
            RuntimeWarning
        )
        API_TOKEN = "development-only-token"

    # CORS (specific origins only, no wildcards)
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:3001",
        "http://127.0.0.1:3001",
    ] + _split_origins(os.getenv("CORS_ORIGINS", ""))

    # Retry budget for atomic operations that hit a concurrent writer
    ATOMIC_MAX_ATTEMPTS: int = int(os.getenv("ATOMIC_MAX_ATTEMPTS", "5"))

    # Reports
    LOW_STOCK_THRESHOLD: int = int(os.getenv("LOW_STOCK_THRESHOLD", "50"))

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()
