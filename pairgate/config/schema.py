"""Configuration schema using Pydantic."""

from pathlib import Path
from typing import Literal
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class GatewayConfig(BaseModel):
    """Gateway/server configuration."""
    host: str = "0.0.0.0"
    port: int = 8000


class PairingConfig(BaseModel):
    """Pairing flow timing and retry configuration."""
    temp_dir: str = "~/.pairgate/temp"
    settle_seconds: float = 1.5  # Max wait for transport readiness before requesting a code
    retry_backoff_seconds: float = 2.0
    retry_backoff_factor: float = 2.0
    retry_backoff_max_seconds: float = 30.0
    max_retries: int = 5
    unauthorized_status: int = 401


class ExportConfig(BaseModel):
    """Credential export configuration."""
    settle_seconds: float = 5.0  # Max wait for the credential artifact to appear
    poll_interval_seconds: float = 0.25
    flush_seconds: float = 0.1  # Pause after sending messages before closing
    credentials_filename: str = "creds.json"


class TransportConfig(BaseModel):
    """Messaging bridge configuration."""
    bridge_url: str = "ws://localhost:3001"
    browser: list[str] = Field(default_factory=lambda: ["Mac OS", "Safari", "17.0"])
    request_timeout_seconds: float = 30.0


class StorageConfig(BaseModel):
    """Archival storage configuration."""
    backend: Literal["http", "local"] = "http"
    upload_url: str = ""
    api_key: str = ""
    locator_prefix: str = "https://mega.nz/file/"  # Stripped from locators to form the session token
    local_dir: str = "~/.pairgate/archive"
    timeout_seconds: float = 60.0


class BrandingConfig(BaseModel):
    """Texts and links used in the messages sent after a successful export."""
    bot_name: str = "RAHEEM-XMD-3"
    owner: str = "Raheem-cm"
    session_prefix: str = "RAHEEM-XMD-3"
    mode: str = "private"
    command_prefix: str = "."
    timezone: str = "Africa/Dar_es_Salaam"
    channel_url: str = "https://whatsapp.com/channel/0029VbAffhD2ZjChG9DX922r"
    repo_url: str = "https://github.com/Raheem-cm/RAHEEM-XMD-3"
    thumbnail_url: str = "https://files.catbox.moe/wtjh55.jpg"
    preview_title: str = "PEACE MD💚"


class Config(BaseSettings):
    """Root configuration for pairgate."""
    model_config = SettingsConfigDict(env_prefix="PAIRGATE_", env_nested_delimiter="__")

    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    pairing: PairingConfig = Field(default_factory=PairingConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)
    transport: TransportConfig = Field(default_factory=TransportConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    branding: BrandingConfig = Field(default_factory=BrandingConfig)

    @property
    def temp_path(self) -> Path:
        """Get expanded session workspace root."""
        return Path(self.pairing.temp_dir).expanduser()

    @property
    def archive_path(self) -> Path:
        """Get expanded local archive directory."""
        return Path(self.storage.local_dir).expanduser()
