from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict

from nexus.core.events.redaction import redact


class Severity(str, Enum):
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@dataclass
class NexusError(Exception):
    code: str
    user_message: str
    severity: Severity = Severity.ERROR
    recoverable: bool = True
    context: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.code)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "user_message": self.user_message,
            "severity": self.severity.value,
            "recoverable": bool(self.recoverable),
            "context": redact(self.context or {}),
        }


# ---- Resolution path (always recovered locally) ----
class StorageUnavailable(NexusError):
    def __init__(self, user_message: str = "Identity store is unreachable.", **ctx: Any):
        super().__init__("storage_unavailable", user_message, severity=Severity.WARN, recoverable=True, context=ctx)


class MalformedLocalSession(NexusError):
    def __init__(self, user_message: str = "Local session record is corrupt.", **ctx: Any):
        super().__init__("malformed_local_session", user_message, severity=Severity.WARN, recoverable=True, context=ctx)


# ---- Moderation path (surfaced as typed outcomes) ----
class MissingReason(NexusError):
    def __init__(self, user_message: str = "A reason is required to ban an identity.", **ctx: Any):
        super().__init__("missing_reason", user_message, severity=Severity.WARN, recoverable=False, context=ctx)


class IdentityNotFound(NexusError):
    def __init__(self, user_message: str = "Identity not found.", **ctx: Any):
        super().__init__("identity_not_found", user_message, severity=Severity.WARN, recoverable=False, context=ctx)


class MessageNotFound(NexusError):
    def __init__(self, user_message: str = "Message not found.", **ctx: Any):
        super().__init__("message_not_found", user_message, severity=Severity.WARN, recoverable=False, context=ctx)


class PermissionDeniedError(NexusError):
    def __init__(self, user_message: str = "Permission denied.", **ctx: Any):
        super().__init__("permission_denied", user_message, severity=Severity.WARN, recoverable=False, context=ctx)


class ValidationError(NexusError):
    def __init__(self, user_message: str = "Invalid request.", **ctx: Any):
        super().__init__("validation_error", user_message, severity=Severity.WARN, recoverable=False, context=ctx)


class AuditWriteFailed(NexusError):
    def __init__(self, user_message: str = "Audit log entry could not be persisted.", **ctx: Any):
        super().__init__("audit_write_failed", user_message, severity=Severity.WARN, recoverable=True, context=ctx)


class ConfigError(NexusError):
    def __init__(self, user_message: str = "Configuration error.", **ctx: Any):
        super().__init__("config_error", user_message, severity=Severity.CRITICAL, recoverable=False, context=ctx)
