"""Lightsail Panel Configuration."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Fallback secret for local development only. Production refuses to start with it.
DEV_SECRET = "dev-secret-change-me"

MIN_SECRET_LENGTH = 32


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_name: str = "Lightsail Panel"
    app_version: str = "0.1.0"
    environment: Literal["development", "production"] = "development"
    debug: bool = False
    log_level: str = "INFO"
    audit_log_level: str = "INFO"

    # Credentials
    panel_password_hash: str = ""
    panel_secret: str = DEV_SECRET

    # Network access
    panel_allowed_ips: str = ""
    trusted_proxy_ips: str = ""

    # Session policy
    session_max_age_seconds: int = Field(default=24 * 60 * 60, gt=0)

    # Login rate limiting
    login_max_attempts: int = Field(default=5, gt=0)
    login_window_seconds: int = Field(default=15 * 60, gt=0)
    lockout_attempts: int = Field(default=10, gt=0)
    lockout_duration_seconds: int = Field(default=30 * 60, gt=0)
    rate_limit_cleanup_interval_seconds: int = Field(default=5 * 60, gt=0)

    # Audit log (empty path logs audit lines through the application logger only)
    audit_log_path: str = ""

    # Service discovery
    systemd_dir: str = "/etc/systemd/system"
    excluded_services: str = "lightsail-panel,caddy"

    @field_validator("panel_secret")
    @classmethod
    def validate_panel_secret(cls, v: str) -> str:
        """Reject short signing secrets (the development default is exempt)."""
        if v != DEV_SECRET and len(v) < MIN_SECRET_LENGTH:
            raise ValueError(
                f"PANEL_SECRET must be at least {MIN_SECRET_LENGTH} characters. "
                'Generate one with: python -c "import secrets; print(secrets.token_hex(32))"'
            )
        return v

    @field_validator("log_level", "audit_log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return level

    @model_validator(mode="after")
    def validate_policy(self) -> "Settings":
        if self.lockout_attempts <= self.login_max_attempts:
            raise ValueError("LOCKOUT_ATTEMPTS must be greater than LOGIN_MAX_ATTEMPTS")
        if self.is_production and self.panel_secret == DEV_SECRET:
            raise ValueError("PANEL_SECRET must be set in production")
        return self

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def allowed_ips_list(self) -> list[str]:
        """Parse the comma-separated allowlist into a list of addresses/ranges."""
        return _split_csv(self.panel_allowed_ips)

    @property
    def trusted_proxy_ips_set(self) -> set[str]:
        return set(_split_csv(self.trusted_proxy_ips))

    @property
    def excluded_services_set(self) -> set[str]:
        return set(_split_csv(self.excluded_services))

    def check_security_configuration(self) -> list[str]:
        """Return human-readable warnings for weak but bootable configurations."""
        warnings = []
        if not self.panel_password_hash:
            warnings.append(
                "PANEL_PASSWORD_HASH is not set - login is disabled until "
                "scripts/hash_password.py has been run"
            )
        if self.panel_secret == DEV_SECRET:
            warnings.append("PANEL_SECRET is using the development default")
        if self.is_production and not self.allowed_ips_list:
            warnings.append("PANEL_ALLOWED_IPS is empty - the panel accepts logins from any address")
        if self.trusted_proxy_ips == "":
            warnings.append(
                "TRUSTED_PROXY_IPS is not set - X-Forwarded-For is trusted from any peer"
            )
        return warnings


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
