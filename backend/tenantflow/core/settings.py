import logging
import secrets
from functools import lru_cache

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env(name: str) -> AliasChoices:
    return AliasChoices(f"TENANTFLOW_{name}", name)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = Field(default="TenantFlow API", validation_alias=_env("APP_NAME"))
    VERSION: str = "0.1.0"
    ENV: str = Field(default="lab", validation_alias=_env("ENV"))  # lab|prod
    DATABASE_URL: str = Field(default="sqlite:///./tenantflow.db", validation_alias=_env("DATABASE_URL"))
    API_PREFIX: str = Field(default="", validation_alias=_env("API_PREFIX"))

    # Auth (JWT)
    AUTH_JWT_SECRET: str = Field(default="", validation_alias=AliasChoices("TENANTFLOW_AUTH_JWT_SECRET", "AUTH_JWT_SECRET", "JWT_SECRET"))
    AUTH_JWT_EXPIRE_MINUTES: int = Field(default=24 * 60, ge=1, validation_alias=_env("AUTH_JWT_EXPIRE_MINUTES"))

    LOG_LEVEL: str = Field(default="INFO", validation_alias=_env("LOG_LEVEL"))

    # Bootstrap
    AUTO_CREATE_SCHEMA: bool = Field(default=True, validation_alias=_env("AUTO_CREATE_SCHEMA"))
    SEED_DEMO_DATA: bool = Field(default=False, validation_alias=_env("SEED_DEMO_DATA"))
    DEFAULT_SUPERADMIN_EMAIL: str = Field(default="superadmin@system.com", validation_alias=_env("DEFAULT_SUPERADMIN_EMAIL"))
    DEFAULT_SUPERADMIN_PASSWORD: str = Field(default="Admin@123", validation_alias=_env("DEFAULT_SUPERADMIN_PASSWORD"))

    HOST: str = Field(default="0.0.0.0", validation_alias=_env("HOST"))
    PORT: int = Field(default=5000, validation_alias=_env("PORT"))

    @property
    def is_production(self) -> bool:
        return self.ENV == "prod"

    @property
    def token_ttl_seconds(self) -> int:
        return self.AUTH_JWT_EXPIRE_MINUTES * 60

    @model_validator(mode="after")
    def _security_invariants(self):
        level = (self.LOG_LEVEL or "").strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"LOG_LEVEL must be a standard logging level, got {self.LOG_LEVEL!r}")
        self.LOG_LEVEL = level

        if self.ENV not in ("lab", "prod"):
            raise ValueError(f"ENV must be lab or prod, got {self.ENV!r}")

        sec = (self.AUTH_JWT_SECRET or "").strip()
        if self.is_production:
            if not sec:
                raise ValueError("SECURITY: AUTH_JWT_SECRET is required when ENV=prod")
            if len(sec) < 32:
                raise ValueError("SECURITY: AUTH_JWT_SECRET too short (min 32 chars)")
            if self.SEED_DEMO_DATA:
                raise ValueError("SECURITY: SEED_DEMO_DATA is not allowed with ENV=prod")
        elif not sec:
            # lab: ephemeral secret, tokens die with the process
            sec = secrets.token_urlsafe(48)
        self.AUTH_JWT_SECRET = sec

        self.API_PREFIX = self.API_PREFIX.rstrip("/")
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()
