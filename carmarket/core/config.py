"""
Application configuration.

All values come from environment variables (typically via .env):

- ENVIRONMENT          development | production (default development)
- JWT_SECRET           signing key for access/refresh tokens
- CARMARKET_DATA_DIR   directory holding users.json, cars.json, audit.json
- HOST / PORT          bind address for the web server
- SSE_PING_SECONDS     keep-alive interval of the live feed
- FAUCET_SECRET        shared secret for the development faucet (optional)
- FAUCET_ALLOWED_HOSTS comma separated client hosts allowed to use the faucet
- ADMIN_USERNAME / ADMIN_PASSWORD / ADMIN_SEED_BALANCE  first-run admin
- BCRYPT_ROUNDS        bcrypt cost factor
- LOG_LEVEL / LOG_JSON logging setup
- CORS_ORIGINS         comma separated list of allowed origins
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from ..utils.exceptions import ConfigError

DEV_JWT_SECRET = "dev-secret-change-me"
DEFAULT_FAUCET_HOSTS = ["127.0.0.1", "::1", "localhost"]


class Settings(BaseModel):
    environment: str = "development"
    jwt_secret: str = DEV_JWT_SECRET
    data_dir: Path = Path("data")
    host: str = "0.0.0.0"
    port: int = 4000
    sse_ping_seconds: float = 30.0
    faucet_secret: Optional[str] = None
    faucet_allowed_hosts: List[str] = Field(default_factory=lambda: list(DEFAULT_FAUCET_HOSTS))
    admin_username: str = "admin"
    admin_password: str = "admin123"
    admin_seed_balance: float = 10000
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)
    log_level: str = "INFO"
    log_json: bool = False
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def cookie_secure(self) -> bool:
        return self.is_production


def _split(value: Optional[str]) -> List[str]:
    return [part.strip() for part in (value or "").split(",") if part.strip()]


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes")


def load_settings() -> Settings:
    """Build settings from the environment (after loading .env)."""
    load_dotenv()

    environment = (os.getenv("ENVIRONMENT") or "development").strip().lower()
    jwt_secret = os.getenv("JWT_SECRET") or ""
    if not jwt_secret:
        if environment == "production":
            raise ConfigError("JWT_SECRET must be set when ENVIRONMENT=production")
        jwt_secret = DEV_JWT_SECRET

    values = {
        "environment": environment,
        "jwt_secret": jwt_secret,
        "data_dir": Path(os.getenv("CARMARKET_DATA_DIR") or "data"),
        "host": os.getenv("HOST") or "0.0.0.0",
        "faucet_secret": os.getenv("FAUCET_SECRET") or None,
        "admin_username": os.getenv("ADMIN_USERNAME") or "admin",
        "admin_password": os.getenv("ADMIN_PASSWORD") or "admin123",
        "log_level": os.getenv("LOG_LEVEL") or "INFO",
        "log_json": _flag(os.getenv("LOG_JSON")) or environment == "production",
    }
    try:
        if os.getenv("PORT"):
            values["port"] = int(os.environ["PORT"])
        if os.getenv("SSE_PING_SECONDS"):
            values["sse_ping_seconds"] = float(os.environ["SSE_PING_SECONDS"])
        if os.getenv("ADMIN_SEED_BALANCE"):
            values["admin_seed_balance"] = float(os.environ["ADMIN_SEED_BALANCE"])
        if os.getenv("BCRYPT_ROUNDS"):
            values["bcrypt_rounds"] = int(os.environ["BCRYPT_ROUNDS"])
    except ValueError as e:
        raise ConfigError(f"Invalid numeric setting: {e}")

    hosts = _split(os.getenv("FAUCET_ALLOWED_HOSTS"))
    if hosts:
        values["faucet_allowed_hosts"] = hosts
    origins = _split(os.getenv("CORS_ORIGINS"))
    if origins:
        values["cors_origins"] = origins

    try:
        return Settings(**values)
    except ValueError as e:
        raise ConfigError(f"Invalid configuration: {e}")
