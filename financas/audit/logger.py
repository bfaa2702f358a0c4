"""
Audit Logger

DESIGN DECISION: Every money movement in the system is logged.
This provides:
1. Complete traceability
2. Debugging capability
3. A history of rejected operations, not only successful ones

The audit logger:
- Is async to not block main flow
- Gracefully handles storage failures (doesn't fail a committed payment
  because its audit record could not be written)
"""

from typing import Optional
from uuid import UUID

import structlog

from financas.models.audit import AuditEvent, AuditEventBuilder
from financas.services.storage import AuditStorageInterface


# Configure structlog for local logging
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
        structlog.processors.JSONRenderer()
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
    2. Audit storage (for persistence), when one is configured
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
        self._logger = structlog.get_logger("financas.audit")

    async def log(self, event: AuditEvent) -> bool:
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
                return await self._storage.append_event(event)
            except Exception as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_person_created(self, person_id: UUID, name: str, balance: str) -> None:
        await self.log(AuditEventBuilder.person_created(person_id, name, balance))

    async def log_person_deleted(self, person_id: UUID) -> None:
        await self.log(AuditEventBuilder.person_deleted(person_id))

    async def log_debt_registered(
        self,
        person_id: UUID,
        debt_id: UUID,
        title: str,
        total_amount: Optional[str],
        total_installments: Optional[int],
    ) -> None:
        event = AuditEventBuilder.debt_registered(
            person_id=person_id,
            debt_id=debt_id,
            title=title,
            total_amount=total_amount,
            total_installments=total_installments,
        )
        await self.log(event)

    async def log_payment_applied(
        self,
        person_id: UUID,
        debt_id: UUID,
        amount: str,
        installments: int,
        status: str,
        remaining_amount: Optional[str],
    ) -> None:
        """Log a committed debt payment."""
        event = AuditEventBuilder.debt_payment_applied(
            person_id=person_id,
            debt_id=debt_id,
            amount=amount,
            installments=installments,
            status=status,
            remaining_amount=remaining_amount,
        )
        await self.log(event)

    async def log_payment_rejected(
        self,
        person_id: UUID,
        debt_id: Optional[UUID],
        error_code: str,
        error_message: str,
    ) -> None:
        """Log a payment that changed nothing."""
        event = AuditEventBuilder.debt_payment_rejected(
            person_id=person_id,
            debt_id=debt_id,
            error_code=error_code,
            error_message=error_message,
        )
        await self.log(event)

    async def log_deposit_registered(
        self,
        person_id: UUID,
        deposit_id: UUID,
        amount: str,
        is_loan: bool,
    ) -> None:
        event = AuditEventBuilder.deposit_registered(
            person_id=person_id,
            deposit_id=deposit_id,
            amount=amount,
            is_loan=is_loan,
        )
        await self.log(event)

    async def log_expense_registered(
        self,
        person_id: UUID,
        expense_id: UUID,
        amount: str,
        tags: list[str],
    ) -> None:
        event = AuditEventBuilder.expense_registered(
            person_id=person_id,
            expense_id=expense_id,
            amount=amount,
            tags=tags,
        )
        await self.log(event)

    async def log_rejected(
        self,
        operation: str,
        error_code: str,
        error_message: str,
        person_id: Optional[UUID] = None,
    ) -> None:
        """Log a rejected operation outside the payment path."""
        event = AuditEventBuilder.operation_rejected(
            operation=operation,
            error_code=error_code,
            error_message=error_message,
            person_id=person_id,
        )
        await self.log(event)

    async def log_storage_error(
        self,
        operation: str,
        error_message: str,
        person_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.storage_error(
            operation=operation,
            error_message=error_message,
            person_id=person_id,
        )
        await self.log(event)
