from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from nexus.core.moderation.durations import DURATION_TOKENS


PLACEHOLDER_REMOTE_URL = "https://placeholder-project.supabase.co"


class RemoteConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    base_url: str = PLACEHOLDER_REMOTE_URL
    api_key: str = ""
    access_token: str = ""
    timeout_seconds: float = Field(default=10.0, gt=0, le=120)
    profiles_table: str = "profiles"
    logs_table: str = "admin_logs"
    messages_table: str = "messages"


class StoreConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    data_dir: str = "data"
    seed_demo: bool = True
    watch: bool = True
    debounce_ms: int = Field(default=250, ge=0, le=10000)
    poll_interval_ms: int = Field(default=500, ge=50, le=60000)


class OperatorsConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    root_identities: List[str] = Field(default_factory=lambda: ["nexus-admin-master", "master@nexus.admin"])
    elevated_identities: List[str] = Field(default_factory=list)
    standard_max_duration: str = "1d"

    @field_validator("standard_max_duration")
    @classmethod
    def _known_fixed_token(cls, v: str) -> str:
        v = str(v or "").strip().lower()
        if v not in DURATION_TOKENS or v in {"permanent", "custom"}:
            raise ValueError("standard_max_duration must be a fixed duration token")
        return v


class CredentialEntry(BaseModel):
    """A static console login; the passphrase is stored only as an scrypt digest."""

    model_config = ConfigDict(extra="forbid")
    digest: str = Field(min_length=1)
    identity_ref: str = "nexus-admin-master"
    email: str = "master@nexus.admin"
    display_name: str = "Burak"


class AuthConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    session_ttl_seconds: int = Field(default=3600, ge=60, le=30 * 86400)
    credentials: List[CredentialEntry] = Field(default_factory=list)


class CommandsConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    sigil: str = Field(default="/", min_length=1, max_length=3)
    default_reason: str = "CLI Master Protocol"
    default_duration: str = "1d"
    max_messages: int = Field(default=500, ge=10, le=10000)

    @field_validator("default_duration")
    @classmethod
    def _known_token(cls, v: str) -> str:
        v = str(v or "").strip().lower()
        if v not in DURATION_TOKENS or v == "custom":
            raise ValueError("default_duration must be a fixed duration token or 'permanent'")
        return v


class WebConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    bind_host: str = "127.0.0.1"
    port: int = Field(default=8030, ge=1, le=65535)
    allowed_origins: List[str] = Field(default_factory=list)


class LoggingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    log_dir: str = "logs"
    level: str = "INFO"


class ConsoleConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    config_version: int = Field(default=1, ge=1)
    remote: RemoteConfig = Field(default_factory=RemoteConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    operators: OperatorsConfig = Field(default_factory=OperatorsConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    commands: CommandsConfig = Field(default_factory=CommandsConfig)
    web: WebConfig = Field(default_factory=WebConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def is_remote_configured(self) -> bool:
        url = (self.remote.base_url or "").strip()
        if not url or url == PLACEHOLDER_REMOTE_URL:
            return False
        return bool(self.remote.api_key)


def default_config_dict(credentials: Optional[List[CredentialEntry]] = None) -> dict:
    cfg = ConsoleConfig(auth=AuthConfig(credentials=list(credentials or [])))
    return cfg.model_dump(mode="json")
