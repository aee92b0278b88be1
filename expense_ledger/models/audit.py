"""
Audit Models for the Expense Ledger

Every mutation of the ledger is logged for audit purposes.
This provides:
1. Traceability of every change to accounts, categories and transactions
2. Debugging information when a balance looks wrong
3. A record of refused operations (blocked deletes, failed validation)

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from expense_ledger.utils.date_utils import utc_now


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Category tree
    CATEGORY_CREATED = "category_created"
    CATEGORY_UPDATED = "category_updated"
    CATEGORY_DELETED = "category_deleted"
    CATEGORY_DELETE_BLOCKED = "category_delete_blocked"

    # Accounts
    ACCOUNT_CREATED = "account_created"
    ACCOUNT_UPDATED = "account_updated"
    ACCOUNT_DELETED = "account_deleted"
    DEFAULT_ACCOUNT_CHANGED = "default_account_changed"

    # Transaction log
    TRANSACTION_INSERTED = "transaction_inserted"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"
    VALIDATION_FAILED = "validation_failed"

    # Guided entry
    ENTRY_SAVED = "entry_saved"
    ENTRY_REJECTED = "entry_rejected"

    # Seeding
    DEFAULTS_SEEDED = "defaults_seeded"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'category', 'account', 'transaction')"
    )
    entity_id: Optional[int] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.entity_changed(AuditEventType.ACCOUNT_CREATED, "account", 3, "Cash")
        event = AuditEventBuilder.delete_blocked(category_id)
    """

    @staticmethod
    def entity_changed(
        event_type: AuditEventType,
        entity_type: str,
        entity_id: Optional[int],
        label: str,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        verb = event_type.value.rsplit("_", 1)[-1]
        return AuditEvent(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"{entity_type.capitalize()} {verb}: {label}",
            details=details or {},
        )

    @staticmethod
    def delete_blocked(category_id: int, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_DELETE_BLOCKED,
            severity=AuditSeverity.WARNING,
            entity_type="category",
            entity_id=category_id,
            description=f"Delete refused, category has subcategories: {name}",
            error_code="has_children",
        )

    @staticmethod
    def default_account_changed(
        account_id: int,
        previous_id: Optional[int],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEFAULT_ACCOUNT_CHANGED,
            entity_type="account",
            entity_id=account_id,
            description=f"Default account changed to {account_id}",
            details={"previous_default_id": previous_id},
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        entity_id: Optional[int],
        code: str,
        message: str,
        warnings: Optional[list[str]] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="transaction",
            entity_id=entity_id,
            description="Transaction rejected by validation",
            error_code=code,
            error_message=message,
            details={"warnings": warnings or []},
        )

    @staticmethod
    def entry_saved(
        transaction_id: int,
        transaction_type: str,
        amount: str,
        updated: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_SAVED,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"{'Updated' if updated else 'Saved'} {transaction_type}: {amount}",
            details={
                "transaction_type": transaction_type,
                "amount": amount,
                "updated": updated,
            },
            is_user_action=True,
        )

    @staticmethod
    def entry_rejected(
        code: str,
        message: str,
        transaction_id: Optional[int] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="transaction",
            entity_id=transaction_id,
            description="Entry could not be saved",
            error_code=code,
            error_message=message,
            is_user_action=True,
        )

    @staticmethod
    def defaults_seeded(categories: int, accounts: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEFAULTS_SEEDED,
            description=f"Seeded {categories} categories and {accounts} accounts",
            details={"categories": categories, "accounts": accounts},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
        )
