"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from functools import lru_cache
from pathlib import Path
from typing import List, Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="helpdesk-service", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/helpdesk",
        description="Async SQLAlchemy connection URL"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== Mailbox (IMAP) ==========
    imap_host: Optional[str] = Field(default=None, description="IMAP server host")
    imap_port: int = Field(default=993, description="IMAP server port", ge=1, le=65535)
    imap_user: Optional[str] = Field(default=None, description="IMAP login")
    imap_password: Optional[str] = Field(default=None, description="IMAP password")
    imap_tls: bool = Field(default=True, description="Connect over implicit TLS")
    imap_mailbox: str = Field(default="INBOX", description="Mailbox to poll")
    mailbox_timeout_seconds: float = Field(
        default=30.0,
        description="Timeout for each mailbox operation",
        ge=1,
        le=300
    )
    mailbox_failure_threshold: int = Field(
        default=3,
        description="Consecutive connection failures before cycles are skipped",
        ge=1
    )
    mailbox_recovery_seconds: float = Field(
        default=900.0,
        description="Seconds to wait before retrying a failing mailbox",
        ge=0
    )

    # ========== Mail submission (SMTP) ==========
    smtp_host: Optional[str] = Field(default=None, description="SMTP server host")
    smtp_port: int = Field(default=587, description="SMTP server port", ge=1, le=65535)
    smtp_secure: bool = Field(default=False, description="Use implicit TLS (SMTPS)")
    smtp_user: Optional[str] = Field(default=None, description="SMTP login")
    smtp_password: Optional[str] = Field(default=None, description="SMTP password")
    smtp_from: Optional[str] = Field(
        default=None,
        description="From address for notifications (defaults to smtp_user)"
    )
    smtp_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout for a single SMTP send",
        ge=0.1,
        le=120
    )

    # ========== Ingestion ==========
    ingestion_enabled: bool = Field(default=True, description="Start the mailbox poller")
    poll_interval_seconds: int = Field(
        default=300,
        description="Seconds between ingestion cycles",
        ge=10
    )
    allowed_reporter_domains: List[str] = Field(
        default=["gmail.com", "may-baker.com"],
        description="Sender domains allowed to open tickets"
    )
    resolution_keywords: List[str] = Field(
        default=["resolved", "completed", "fixed", "done"],
        description="Body keywords that mark a reply as a resolution"
    )
    excluded_senders: List[str] = Field(
        default=["hello@notify.railway.app"],
        description="System addresses that never open tickets"
    )
    assignment_subject_marker: str = Field(
        default="New Helpdesk Request Assigned",
        description="Phrase used in assignment subjects and matched in replies"
    )
    ingestion_rules_path: Path = Field(
        default=Path("ingestion_rules.yaml"),
        description="Optional YAML file overriding the ingestion rules"
    )
    ticket_api_base_url: Optional[str] = Field(
        default=None,
        description="Base URL of the ticket API (e.g. http://localhost:8000/api); unset uses the in-process store"
    )
    ticket_api_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout for ticket API calls",
        ge=0.1,
        le=120
    )
    user_cache_ttl_seconds: float = Field(
        default=60.0,
        description="How long the user roster is cached",
        ge=0
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @property
    def mailbox_configured(self) -> bool:
        """Whether enough IMAP settings are present to poll."""
        return bool(self.imap_host and self.imap_user and self.imap_password)

    @property
    def sender_address(self) -> Optional[str]:
        """From address used for outbound notifications."""
        return self.smtp_from or self.smtp_user


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class TicketStatus(str):
    """Ticket lifecycle statuses."""
    OPEN = "open"
    RESOLVED = "resolved"


class UserRole(str):
    """Roster roles."""
    USER = "user"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"


class NotificationKind(str):
    """Notification templates."""
    ASSIGNED = "assigned"
    RESOLVED = "resolved"


# ========== Lists for validation ==========

STAFF_ROLES = [UserRole.ADMIN, UserRole.SUPERADMIN]
