# SiteLock: Audit Logging
#
# Append-only structured log of every blocking and settings decision:
# challenges issued, unlocks granted or denied, block-list edits and
# imports. Master passwords and their digests are never logged.

import logging
import os
import socket
import sys
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional
from uuid import uuid4

import structlog


class EventType(str, Enum):
    """Types of events written to the audit log."""

    # Blocking
    NAVIGATION_CHALLENGED = "navigation.challenged"
    UNLOCK_GRANTED = "unlock.granted"
    UNLOCK_DENIED = "unlock.denied"
    UNLOCK_NOT_CONFIGURED = "unlock.not_configured"
    CONTEXT_CLOSED = "context.closed"

    # Settings
    RULES_SAVED = "settings.rules.saved"
    MUTATION_REJECTED = "settings.mutation.rejected"
    REAUTH_REQUIRED = "settings.reauth.required"
    REAUTH_FAILED = "settings.reauth.failed"
    SECRET_CHANGED = "settings.secret.changed"
    SETTINGS_EXPORTED = "settings.exported"
    SETTINGS_IMPORTED = "settings.imported"
    STORAGE_ERROR = "settings.storage.error"

    # System
    SYSTEM_START = "system.start"
    SYSTEM_STOP = "system.stop"


class EventSeverity(str, Enum):
    """
    Severity levels for audit events.

    - INFO: normal activity
    - INVESTIGATE: a challenge was issued or a password was wrong
    - ALERT: a settings change was refused
    - CRITICAL: storage is failing
    """
    INFO = "info"
    INVESTIGATE = "investigate"
    ALERT = "alert"
    CRITICAL = "critical"


class AuditLogger:
    """
    Append-only audit logger.

    Writes one JSON object per line into ``<log_dir>/audit_YYYY-MM-DD.log``
    through structlog on top of the stdlib logging handlers.
    """

    def __init__(self, log_dir: Optional[Path] = None):
        """
        Args:
            log_dir: Directory for audit logs (default: ./audit_logs)
        """
        self.log_dir = Path(log_dir) if log_dir else Path("./audit_logs")
        self.log_dir.mkdir(parents=True, exist_ok=True)

        structlog.configure(
            processors=[
                structlog.stdlib.add_log_level,
                structlog.stdlib.add_logger_name,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer()
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )

        self._setup_file_handler()

        self.logger = structlog.get_logger("sitelock.audit")

    def _setup_file_handler(self):
        """Attach a daily file handler to the audit logger."""
        today = datetime.now().strftime("%Y-%m-%d")
        self.log_file = self.log_dir / f"audit_{today}.log"

        file_handler = logging.FileHandler(self.log_file, mode='a', encoding='utf-8')
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(logging.Formatter('%(message)s'))  # structlog renders

        audit_logger = logging.getLogger("sitelock.audit")
        audit_logger.addHandler(file_handler)
        audit_logger.setLevel(logging.INFO)
        self._file_handler = file_handler

    def close(self) -> None:
        """Detach and close the file handler."""
        logging.getLogger("sitelock.audit").removeHandler(self._file_handler)
        self._file_handler.close()

    def log_event(
        self,
        event_type: EventType,
        severity: EventSeverity,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        user_context: Optional[Dict[str, Any]] = None
    ) -> str:
        """
        Log an audit event.

        Args:
            event_type: Type of event (from EventType enum)
            severity: Severity level (from EventSeverity enum)
            message: Human-readable event description
            details: Additional event details (never secrets)
            user_context: Overrides the default OS user/host context

        Returns:
            str: Event ID (UUID) for reference
        """
        event_id = str(uuid4())

        self.logger.info(
            "audit_event",
            event_id=event_id,
            event_type=event_type.value,
            severity=severity.value,
            message=message,
            timestamp=datetime.now(timezone.utc).isoformat(),
            details=details or {},
            user_context=user_context or self._get_default_user_context(),
        )

        return event_id

    def log_blocker_event(
        self,
        event_type: EventType,
        context_id: Any,
        destination: str,
        severity: EventSeverity = EventSeverity.INFO,
        details: Optional[Dict[str, Any]] = None
    ) -> str:
        """Log a navigation/unlock event for one browsing context."""
        event_details = dict(details or {})
        event_details["context_id"] = str(context_id)
        event_details["destination"] = destination

        return self.log_event(
            event_type=event_type,
            severity=severity,
            message=f"Blocker: {event_type.value} - {destination}",
            details=event_details
        )

    def log_settings_event(
        self,
        event_type: EventType,
        message: str,
        severity: EventSeverity = EventSeverity.INFO,
        details: Optional[Dict[str, Any]] = None
    ) -> str:
        """Log a settings change (block list, password, import/export)."""
        return self.log_event(
            event_type=event_type,
            severity=severity,
            message=f"Settings: {message}",
            details=details
        )

    def _get_default_user_context(self) -> Dict[str, Any]:
        return {
            "os_user": os.getenv("USERNAME") or os.getenv("USER"),
            "hostname": socket.gethostname(),
            "platform": sys.platform,
        }


# Global logger instance
_audit_logger: Optional[AuditLogger] = None


def get_audit_logger() -> AuditLogger:
    """Get global audit logger (singleton pattern)."""
    global _audit_logger
    if _audit_logger is None:
        from ..config import get_config
        _audit_logger = AuditLogger(log_dir=get_config().audit_dir)
    return _audit_logger


def set_audit_logger(instance: Optional[AuditLogger]) -> None:
    """Replace the singleton (for testing)."""
    global _audit_logger
    _audit_logger = instance


def log_security_event(
    event_type: EventType,
    severity: EventSeverity,
    message: str,
    **kwargs
) -> str:
    """
    Convenience function for logging audit events.

    Usage:
        log_security_event(
            EventType.SETTINGS_EXPORTED,
            EventSeverity.INFO,
            "Exported settings",
            details={"rule_count": 12}
        )
    """
    return get_audit_logger().log_event(event_type, severity, message, **kwargs)
