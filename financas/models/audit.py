"""
Audit Models for Financas

Every money movement in the system is logged for audit purposes.
This provides:
1. Complete traceability of balance changes
2. Debugging information when a payment is rejected
3. Ability to reconstruct history

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every public ledger operation has its own event type.
    """
    # People
    PERSON_CREATED = "person_created"
    PERSON_DELETED = "person_deleted"

    # Debts
    DEBT_REGISTERED = "debt_registered"
    DEBT_PAYMENT_APPLIED = "debt_payment_applied"
    DEBT_PAYMENT_REJECTED = "debt_payment_rejected"

    # Deposits and expenses
    DEPOSIT_REGISTERED = "deposit_registered"
    EXPENSE_REGISTERED = "expense_registered"

    # Rejections outside the payment path
    OPERATION_REJECTED = "operation_rejected"

    # System events
    SYSTEM_ERROR = "system_error"
    STORAGE_ERROR = "storage_error"


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

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'person', 'debt', 'expense')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )
    person_id: Optional[UUID] = Field(
        default=None,
        description="Owner of the ledger the event touched"
    )

    # Event details
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

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
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "person_id": str(self.person_id) if self.person_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.person_created(person_id, name)
        event = AuditEventBuilder.debt_payment_applied(person_id, debt_id, ...)
    """

    @staticmethod
    def person_created(person_id: UUID, name: str, balance: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSON_CREATED,
            entity_type="person",
            entity_id=person_id,
            person_id=person_id,
            description=f"Person created: {name}",
            details={"name": name, "initial_balance": balance},
        )

    @staticmethod
    def person_deleted(person_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSON_DELETED,
            severity=AuditSeverity.WARNING,
            entity_type="person",
            entity_id=person_id,
            person_id=person_id,
            description="Person deleted with all debts, deposits and expenses",
        )

    @staticmethod
    def debt_registered(
        person_id: UUID,
        debt_id: UUID,
        title: str,
        total_amount: Optional[str],
        total_installments: Optional[int],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEBT_REGISTERED,
            entity_type="debt",
            entity_id=debt_id,
            person_id=person_id,
            description=f"Debt registered: {title}",
            details={
                "title": title,
                "total_amount": total_amount,
                "total_installments": total_installments,
            },
        )

    @staticmethod
    def debt_payment_applied(
        person_id: UUID,
        debt_id: UUID,
        amount: str,
        installments: int,
        status: str,
        remaining_amount: Optional[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEBT_PAYMENT_APPLIED,
            entity_type="debt",
            entity_id=debt_id,
            person_id=person_id,
            description=f"Paid {amount} over {installments} installment(s), debt is {status}",
            details={
                "amount": amount,
                "installments": installments,
                "status": status,
                "remaining_amount": remaining_amount,
            },
        )

    @staticmethod
    def debt_payment_rejected(
        person_id: UUID,
        debt_id: Optional[UUID],
        error_code: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEBT_PAYMENT_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="debt",
            entity_id=debt_id,
            person_id=person_id,
            description="Debt payment rejected",
            error_code=error_code,
            error_message=error_message,
        )

    @staticmethod
    def deposit_registered(
        person_id: UUID,
        deposit_id: UUID,
        amount: str,
        is_loan: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEPOSIT_REGISTERED,
            entity_type="deposit",
            entity_id=deposit_id,
            person_id=person_id,
            description=f"Deposit registered: {amount}",
            details={"amount": amount, "is_loan": is_loan},
        )

    @staticmethod
    def expense_registered(
        person_id: UUID,
        expense_id: UUID,
        amount: str,
        tags: list[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_REGISTERED,
            entity_type="expense",
            entity_id=expense_id,
            person_id=person_id,
            description=f"Expense registered: {amount}",
            details={"amount": amount, "tags": tags},
        )

    @staticmethod
    def operation_rejected(
        operation: str,
        error_code: str,
        error_message: str,
        person_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OPERATION_REJECTED,
            severity=AuditSeverity.WARNING,
            person_id=person_id,
            description=f"Operation rejected: {operation}",
            details={"operation": operation},
            error_code=error_code,
            error_message=error_message,
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        person_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            person_id=person_id,
            description=f"Storage error during {operation}",
            details={"operation": operation},
            error_message=error_message,
        )
