"""Tenant payments: recording payments and summing utility advances.

The settlement calculator only reads from here: advances are the PAID payments
of type UTILITIES whose paid_date falls inside the settlement period.
"""

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from src.models.payment import Payment, PaymentStatus, PaymentType
from src.models.tenant import Tenant
from src.services.db import atomic
from src.services.errors import InvalidStateError, NotFoundError, ValidationError
from src.services.smart_split import quantize_money

logger = logging.getLogger(__name__)


class PaymentService:
    """Tenant payment operations."""

    def __init__(self, db: Session):
        """Initialize payment service.

        Args:
            db: SQLAlchemy database session
        """
        self.db = db

    def record_payment(
        self,
        tenant_id: int,
        amount: Decimal,
        payment_type: PaymentType = PaymentType.UTILITIES,
        paid_date: date | None = None,
        description: str | None = None,
    ) -> Payment:
        """Record a payment received from a tenant.

        A payment with a paid_date is stored as PAID, otherwise as PENDING.

        Raises:
            NotFoundError: Tenant does not exist
            ValidationError: Amount is not positive
        """
        if amount <= Decimal(0):
            raise ValidationError("Payment amount must be positive")

        with atomic(self.db):
            tenant = self.db.get(Tenant, tenant_id)
            if tenant is None:
                raise NotFoundError(f"Tenant {tenant_id} not found")

            payment = Payment(
                tenant_id=tenant_id,
                property_id=tenant.property_id,
                payment_type=payment_type,
                status=PaymentStatus.PAID if paid_date else PaymentStatus.PENDING,
                amount=quantize_money(amount),
                paid_date=paid_date,
                description=description,
            )
            self.db.add(payment)
            self.db.flush()

        logger.info(
            f"Recorded {payment_type.value} payment: tenant_id={tenant_id}, amount={amount}, "
            f"paid_date={paid_date}, payment_id={payment.id}"
        )
        return payment

    def mark_paid(self, payment_id: int, paid_date: date) -> Payment:
        """Confirm a pending payment.

        Raises:
            NotFoundError: Payment does not exist
            InvalidStateError: Payment is already paid
        """
        with atomic(self.db):
            payment = self.db.get(Payment, payment_id)
            if payment is None:
                raise NotFoundError(f"Payment {payment_id} not found")
            if payment.status == PaymentStatus.PAID:
                raise InvalidStateError(f"Payment {payment_id} is already paid")

            payment.status = PaymentStatus.PAID
            payment.paid_date = paid_date

        logger.info(f"Marked payment {payment_id} as paid on {paid_date}")
        return payment

    def get_advances_paid(
        self,
        tenant_id: int,
        property_id: int,
        period_start: date,
        period_end: date,
    ) -> Decimal:
        """Sum utility advances a tenant paid within a period (both ends inclusive).

        Returns:
            Total rounded to 2 decimal places (0.00 when nothing was paid)
        """
        result = self.db.execute(
            select(func.sum(Payment.amount)).where(
                Payment.tenant_id == tenant_id,
                Payment.property_id == property_id,
                Payment.payment_type == PaymentType.UTILITIES,
                Payment.status == PaymentStatus.PAID,
                Payment.paid_date >= period_start,
                Payment.paid_date <= period_end,
            )
        ).scalar()
        return quantize_money(result)


__all__ = ["PaymentService"]
