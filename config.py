"""Runtime settings for the dress rental service."""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

DEFAULT_ALLOWED_EMAIL_DOMAIN = "berkeley.edu"
DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024  # 10MB


@dataclass
class Settings:
    """Values read once from the environment (or a local ``.env`` file).

    Secrets default to development placeholders so the app can boot locally;
    a deployment is expected to inject real values.
    """

    database_url: Optional[str] = None
    database_name: Optional[str] = None
    jwt_secret: str = "dev-secret-change-me"
    access_ttl_min: int = 60
    google_client_id: Optional[str] = None
    google_client_secret: Optional[str] = None
    oauth_redirect_url: str = "http://localhost:8000/auth/callback"
    allowed_email_domain: Optional[str] = DEFAULT_ALLOWED_EMAIL_DOMAIN
    public_base_url: str = "http://localhost:8000"
    min_rental_days: int = 1
    max_rental_days: int = 7
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    log_level: str = "INFO"
    port: int = 8000

    @classmethod
    def from_env(cls) -> "Settings":
        # An empty ALLOWED_EMAIL_DOMAIN disables the domain policy.
        domain = os.getenv("ALLOWED_EMAIL_DOMAIN", DEFAULT_ALLOWED_EMAIL_DOMAIN).strip().lstrip("@")
        return cls(
            database_url=os.getenv("DATABASE_URL"),
            database_name=os.getenv("DATABASE_NAME"),
            jwt_secret=os.getenv("JWT_SECRET", "dev-secret-change-me"),
            access_ttl_min=int(os.getenv("ACCESS_TTL_MIN", "60")),
            google_client_id=os.getenv("GOOGLE_CLIENT_ID"),
            google_client_secret=os.getenv("GOOGLE_CLIENT_SECRET"),
            oauth_redirect_url=os.getenv("OAUTH_REDIRECT_URL", "http://localhost:8000/auth/callback"),
            allowed_email_domain=domain or None,
            public_base_url=os.getenv("PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/"),
            min_rental_days=int(os.getenv("MIN_RENTAL_DAYS", "1")),
            max_rental_days=int(os.getenv("MAX_RENTAL_DAYS", "7")),
            max_upload_bytes=int(os.getenv("MAX_UPLOAD_BYTES", str(DEFAULT_MAX_UPLOAD_BYTES))),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            port=int(os.getenv("PORT", "8000")),
        )


settings = Settings.from_env()
