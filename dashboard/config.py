"""
Siteboard configuration — all environment variables in one place.

Read from environment at runtime. Never hardcode secrets.
"""

from __future__ import annotations

import os

BACKENDS = ("memory", "rest", "postgres")


class Settings:
    """Application settings from environment variables."""

    def __init__(self) -> None:
        # Backend selection
        self.BACKEND: str = os.environ.get("SITEBOARD_BACKEND", "memory").strip().lower()

        # Supabase / PostgREST
        self.SUPABASE_URL: str = os.environ.get("SUPABASE_URL", "").rstrip("/")
        self.SUPABASE_KEY: str = os.environ.get("SUPABASE_KEY", "")

        # Database
        self.DATABASE_URL: str = os.environ.get("DATABASE_URL", "")

        # HTTP
        self.REQUEST_TIMEOUT: float = float(os.environ.get("REQUEST_TIMEOUT", "10"))

        # Application
        self.LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO").upper()

    def validate(self) -> None:
        """Raise RuntimeError if the selected backend is missing its variables."""
        if self.BACKEND not in BACKENDS:
            raise RuntimeError(f"SITEBOARD_BACKEND must be one of {', '.join(BACKENDS)}, got '{self.BACKEND}'")

        missing: list[str] = []
        if self.BACKEND == "rest":
            if not self.SUPABASE_URL:
                missing.append("SUPABASE_URL")
            if not self.SUPABASE_KEY:
                missing.append("SUPABASE_KEY")
        elif self.BACKEND == "postgres" and not self.DATABASE_URL:
            missing.append("DATABASE_URL")

        if missing:
            raise RuntimeError(f"{', '.join(missing)} environment variable(s) required for the {self.BACKEND} backend")


# Singleton instance
settings = Settings()
