"""
Application configuration using pydantic-settings.
Loads from RELAY_* environment variables (or a .env file) with sensible defaults.
"""
import re
from functools import lru_cache

from fastapi import Request
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_SHA512_HEX = re.compile(r"[0-9a-fA-F]{128}")


class Settings(BaseSettings):
    """Relay server settings with production-safe defaults."""

    model_config = SettingsConfigDict(
        env_prefix="RELAY_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Application
    app_name: str = "Minerva Relay"
    app_version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 443

    # Credential: one shared username plus the SHA-512 hex digest of its password
    auth_username: str = "login"
    auth_password_hash: str = ""
    auth_delay_min_s: float = 1.0
    auth_delay_max_s: float = 30.0

    # Request bodies
    max_body_bytes: int = 256  # Hard cap for anything read or drained
    body_timeout_s: float = 10.0
    telemetry_max_bytes: int = 128
    telemetry_min_fields: int = 4  # lat,lng,alt,kmh
    telemetry_max_fields: int = 5  # battery,lat,lng,alt,kmh
    settings_max_bytes: int = 64
    settings_fields: int = 4  # sleep_after_send,sleep_between_samples,samples_before_send,sleep_while_no_signal

    # State after a (re)start
    default_sample: str = "0,0,0,0"
    default_settings: str = "45000,1000,3,3000"

    # Serve /info and /settings/tracker/* as used by older tracker and viewer builds
    legacy_paths: bool = True

    # TLS
    tls_enabled: bool = True
    tls_certfile: str = "cert.pem"
    tls_keyfile: str = "key.pem"
    tls_self_signed: bool = True

    @model_validator(mode="after")
    def check_security(self):
        """Require a real password digest outside debug mode and sane limits."""
        if self.auth_password_hash and not _SHA512_HEX.fullmatch(self.auth_password_hash):
            raise ValueError("RELAY_AUTH_PASSWORD_HASH must be a 128 character SHA-512 hex digest")
        if not self.debug and not self.auth_password_hash:
            raise ValueError(
                "SECURITY ERROR: Must set RELAY_AUTH_PASSWORD_HASH for production! "
                "Generate one with: minerva-relay hash-password"
            )
        if not 0 <= self.auth_delay_min_s <= self.auth_delay_max_s:
            raise ValueError("auth delay bounds must satisfy 0 <= min <= max")
        if not 1 <= self.telemetry_min_fields <= self.telemetry_max_fields:
            raise ValueError("telemetry field bounds must satisfy 1 <= min <= max")
        if self.settings_fields < 1:
            raise ValueError("settings_fields must be at least 1")
        if max(self.telemetry_max_bytes, self.settings_max_bytes) > self.max_body_bytes:
            raise ValueError("endpoint body limits cannot exceed max_body_bytes")
        return self


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()


def get_app_settings(request: Request) -> Settings:
    """Settings the running application was created with."""
    return request.app.state.settings
