"""Application settings and validation."""

import os
from pathlib import Path
from typing import List


BASE = Path(__file__).resolve().parent.parent


def _csv(value: str) -> List[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


class Settings:
    ENV: str
    LOG_LEVEL: str
    DATABASE_URL: str
    JWT_SECRET: str
    JWT_ALGORITHM: str
    JWT_EXPIRE_HOURS: int
    ALLOW_INSECURE_JWT: bool
    ALLOWED_ORIGINS: List[str]
    COOKIE_SECURE: bool
    OTP_LENGTH: int
    OTP_TTL_MINUTES: int
    OTP_MAX_ATTEMPTS: int
    OTP_REQUIRED_ROLES: List[str]
    OTP_TOKEN_EXPIRE_MINUTES: int
    OTP_RESEND_COOLDOWN_SECONDS: int
    LOGIN_RATE_LIMIT_PER_MIN: int
    TRUST_PROXY: bool
    TENANTS: List[str]
    DEFAULT_TENANT: str
    SMTP_HOST: str
    SMTP_PORT: int
    SMTP_USER: str
    SMTP_PASSWORD: str
    SMTP_FROM: str
    SMTP_USE_TLS: bool

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
        self.DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE / 'admin.db'}")
        self.JWT_SECRET = os.getenv("JWT_SECRET", "change_me_for_prod")
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.JWT_EXPIRE_HOURS = int(os.getenv("JWT_EXPIRE_HOURS", "24"))
        self.ALLOW_INSECURE_JWT = os.getenv("ALLOW_INSECURE_JWT", "false").lower() == "true"
        # "*" is only honoured in dev; see main.py
        self.ALLOWED_ORIGINS = _csv(os.getenv("ALLOWED_ORIGINS", "http://localhost:5173"))
        self.COOKIE_SECURE = os.getenv("COOKIE_SECURE", str(self.ENV == "production")).lower() == "true"

        self.OTP_LENGTH = int(os.getenv("OTP_LENGTH", "6"))
        self.OTP_TTL_MINUTES = int(os.getenv("OTP_TTL_MINUTES", "10"))
        self.OTP_MAX_ATTEMPTS = int(os.getenv("OTP_MAX_ATTEMPTS", "5"))
        self.OTP_REQUIRED_ROLES = _csv(os.getenv("OTP_REQUIRED_ROLES", "admin"))
        self.OTP_TOKEN_EXPIRE_MINUTES = int(os.getenv("OTP_TOKEN_EXPIRE_MINUTES", "15"))
        self.OTP_RESEND_COOLDOWN_SECONDS = int(os.getenv("OTP_RESEND_COOLDOWN_SECONDS", "30"))
        self.LOGIN_RATE_LIMIT_PER_MIN = int(os.getenv("LOGIN_RATE_LIMIT_PER_MIN", "10"))
        # only set behind a reverse proxy that overwrites X-Forwarded-For
        self.TRUST_PROXY = os.getenv("TRUST_PROXY", "false").lower() == "true"

        self.TENANTS = _csv(os.getenv("TENANTS", "cybomb,rankseo,pdfworks,aitals,djittrading,startup-builder,hr-alva"))
        self.DEFAULT_TENANT = os.getenv("DEFAULT_TENANT", "cybomb")

        self.SMTP_HOST = os.getenv("SMTP_HOST", "")
        self.SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
        self.SMTP_USER = os.getenv("SMTP_USER", "")
        self.SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
        self.SMTP_FROM = os.getenv("SMTP_FROM", self.SMTP_USER)
        self.SMTP_USE_TLS = os.getenv("SMTP_USE_TLS", "true").lower() == "true"
        self._validate()

    @property
    def smtp_configured(self) -> bool:
        return bool(self.SMTP_HOST and self.SMTP_USER and self.SMTP_PASSWORD)

    def _validate(self):
        if self.ENV != "dev" and not self.ALLOW_INSECURE_JWT and self.JWT_SECRET == "change_me_for_prod":
            raise RuntimeError("JWT_SECRET must be set to a non-default value in non-dev environments")
        if self.OTP_LENGTH < 4 or self.OTP_LENGTH > 10:
            raise RuntimeError("OTP_LENGTH must be between 4 and 10")
        if self.DEFAULT_TENANT not in self.TENANTS:
            raise RuntimeError(f"DEFAULT_TENANT {self.DEFAULT_TENANT!r} is not listed in TENANTS")


settings = Settings()
