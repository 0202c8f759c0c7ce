"""Configuration models for the application."""

from typing import Dict, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EtixConfig(BaseSettings):
    """Main configuration for the ticket registry service."""

    # Registry identity
    tickets_name: str = Field(default="Event Tickets", description="Display name of the registry")
    tickets_symbol: str = Field(default="ETIX", description="Display symbol of the registry")
    admin_principal: str = Field(default="deployer", description="Principal granted the administrator role")

    # Optional initial event, created at bootstrap
    create_initial_event: bool = False
    event_name: str = "Sample Event"
    organizer: Optional[str] = Field(default=None, description="Defaults to the admin principal")
    max_supply: int = Field(default=0, ge=0, description="0 = unlimited")
    base_uri: str = Field(default="", description="e.g. ipfs://<CID>/")

    # Notification log
    notification_history_limit: int = Field(default=0, ge=0, description="0 keeps the full history")
    notification_queue_size: int = Field(default=1000, ge=0, description="Per-subscriber queue bound, 0 for unbounded")

    # HTTP Server configuration
    http_host: str = "0.0.0.0"
    http_port: int = 8000
    etix_api_keys: Dict[str, str] = Field(
        default_factory=dict,
        description="JSON object mapping API keys to principals; empty trusts the X-Principal header",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("admin_principal")
    @classmethod
    def validate_admin_principal(cls, v):
        if not v or not v.strip():
            raise ValueError("admin_principal must be a non-empty principal")
        return v.strip()

    @property
    def initial_organizer(self) -> str:
        return self.organizer or self.admin_principal
