from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_csv(value: str | List[str]) -> List[str]:
    if isinstance(value, list):
        return value
    return [v.strip() for v in str(value).split(",") if v and v.strip()]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="ONEACCOUNT_",
        extra="ignore",
    )

    app_name: str = "OneAccount API"
    database_url: str = "sqlite:///./oneaccount.db"
    db_echo: bool = False

    # values must come from environment/.env to avoid hardcoding secrets
    jwt_secret: str = ""
    jwt_issuer: str = "oneaccount"
    jwt_lifetime_minutes: int = 60
    persistent_token_lifetime_minutes: int = 7 * 24 * 60
    encryption_key: str = ""

    # ordered; the first scheme that accepts a bearer token wins
    auth_schemes_raw: str = "persistent,jwt"
    # registry of verification methods the deployment supports
    mfa_methods_raw: str = "email_channel,google_authenticator"
    mfa_attempt_minutes: int = 8 * 60
    email_code_expiration_seconds: int = 10 * 60
    backup_code_count: int = 10
    totp_issuer: str = "OneAccount"

    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    mail_from: str = "no-reply@example.com"

    cors_origins_raw: str = "http://localhost:5173"
    enable_docs: bool = True
    log_level: str = "INFO"

    @property
    def cors_origins(self) -> List[str]:
        parsed = _split_csv(self.cors_origins_raw)
        return parsed or ["http://localhost:5173"]

    @property
    def auth_schemes(self) -> List[str]:
        return _split_csv(self.auth_schemes_raw)

    @property
    def mfa_methods(self) -> List[str]:
        return _split_csv(self.mfa_methods_raw)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
