"""
Audit Logger

DESIGN DECISION: Every mutation of the ledger is logged.
This provides:
1. Complete traceability of balances
2. Debugging capability
3. A record of refused operations

The audit logger:
- Is synchronous, like the ledger operations that call it
- Gracefully handles failures (an audit write never breaks a ledger write)
"""

import logging
import sys
from typing import Optional

import structlog

from expense_ledger.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from expense_ledger.services.storage import AuditStorageInterface


def configure_logging(level: str = "INFO", json_output: bool = False) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        level: Minimum log level name
        json_output: Render JSON lines instead of console output
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit store, when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("expense_ledger.audit")

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    def log_entity_changed(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: Optional[int],
        label: str,
        details: Optional[dict] = None,
    ) -> None:
        """Log a create, update or delete of a ledger entity."""
        self.log(AuditEventBuilder.entity_changed(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            label=label,
            details=details,
        ))

    def log_delete_blocked(self, category_id: int, name: str) -> None:
        """Log a category delete refused because of subcategories."""
        self.log(AuditEventBuilder.delete_blocked(category_id, name))

    def log_default_account_changed(
        self,
        account_id: int,
        previous_id: Optional[int],
    ) -> None:
        self.log(AuditEventBuilder.default_account_changed(account_id, previous_id))

    def log_validation_failed(
        self,
        entity_id: Optional[int],
        code: str,
        message: str,
        warnings: Optional[list[str]] = None,
    ) -> None:
        """Log a transaction rejected by validation."""
        self.log(AuditEventBuilder.validation_failed(
            entity_id=entity_id,
            code=code,
            message=message,
            warnings=warnings,
        ))

    def log_entry_saved(
        self,
        transaction_id: int,
        transaction_type: str,
        amount: str,
        updated: bool,
    ) -> None:
        self.log(AuditEventBuilder.entry_saved(
            transaction_id=transaction_id,
            transaction_type=transaction_type,
            amount=amount,
            updated=updated,
        ))

    def log_entry_rejected(
        self,
        code: str,
        message: str,
        transaction_id: Optional[int] = None,
    ) -> None:
        self.log(AuditEventBuilder.entry_rejected(code, message, transaction_id))

    def log_defaults_seeded(self, categories: int, accounts: int) -> None:
        self.log(AuditEventBuilder.defaults_seeded(categories, accounts))

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> None:
        """Log an error."""
        self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
        ))
