from functools import lru_cache
from pathlib import Path
from typing import List, Literal
from urllib.parse import urlparse

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = Path(__file__).resolve().parents[2] / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=str(ENV_FILE), case_sensitive=False)

    APP_NAME: str = "Visitdesk Backend"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    API_V1_PREFIX: str = "/api/v1"
    BACKEND_HOST: str = "0.0.0.0"
    BACKEND_PORT: int = 8000

    DATABASE_URL: str = "sqlite:///./visitdesk.db"

    JWT_SECRET_KEY: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    CORS_ORIGINS: str = "http://localhost:3000,http://127.0.0.1:3000"
    # Dev-friendly default: localhost plus RFC1918 ranges so kiosks on the same LAN can reach the API.
    CORS_ALLOW_ORIGIN_REGEX: str = (
        r"^https?://("
        r"localhost|127\.0\.0\.1|"
        r"192\.168\.\d{1,3}\.\d{1,3}|"
        r"10\.\d{1,3}\.\d{1,3}\.\d{1,3}|"
        r"172\.(1[6-9]|2\d|3[0-1])\.\d{1,3}\.\d{1,3}"
        r")(\:\d+)?$"
    )

    SOCKET_PATH: str = "/socket.io"
    DASHBOARD_NAMESPACE: str = "/realtime/dashboard"

    FRONTEND_BASE_URL: str = "http://localhost:3000"

    # "checked_in" reproduces the legacy self-service intake; both are awaiting-decision states.
    VISIT_INITIAL_STATUS: Literal["pending_approval", "checked_in"] = "pending_approval"
    QR_IDENTIFIER_PREFIX: str = "qr"
    FRIENDLY_CODE_PREFIX: str = "VD"

    @property
    def cors_origins(self) -> List[str]:
        origins: list[str] = []
        for raw in self.CORS_ORIGINS.split(","):
            value = raw.strip()
            if not value:
                continue
            parsed = urlparse(value)
            if parsed.scheme and parsed.netloc:
                value = f"{parsed.scheme}://{parsed.netloc}"
            origins.append(value.rstrip("/"))
        return origins

    def scan_url(self, qr_identifier: str) -> str:
        return f"{self.FRONTEND_BASE_URL.rstrip('/')}/form/{qr_identifier}"


@lru_cache
def get_settings() -> Settings:
    return Settings()
