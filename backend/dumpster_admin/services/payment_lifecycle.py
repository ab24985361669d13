"""
Payment lifecycle manager.

Local payment rows mirror invoices held by the invoicing provider. The
provider is always called first; the local row is written only after it
succeeds, so a provider failure leaves local state untouched.

Status flow:
    draft -> sent -> (viewed) -> partially_paid -> paid
    draft -> (deleted)          sent/viewed past due -> overdue
    any active -> canceled      paid -> refunded
"""

import uuid
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dumpster_admin.core.config import settings
from dumpster_admin.core.exceptions import (
    ActivePaymentExistsException,
    DatabaseException,
    InvoiceProviderException,
    OrderNotFoundException,
    PaymentNotFoundException,
    ValidationException,
)
from dumpster_admin.core.logging import get_logger
from dumpster_admin.core.metrics import PAYMENT_OPERATIONS
from dumpster_admin.models.base import utcnow
from dumpster_admin.models.order import Order
from dumpster_admin.models.payment import ACTIVE_PAYMENT_STATUSES, Payment, PaymentMethod, PaymentStatus
from dumpster_admin.services.invoice_provider import (
    InvoiceCustomer,
    InvoiceLineItem,
    InvoiceProvider,
    InvoiceWebhookEvent,
    ProviderInvoice,
)
from dumpster_admin.services.numbering import SequenceNumberGenerator

logger = get_logger(__name__)

CENTS = Decimal("0.01")

NON_CANCELABLE_STATUSES = frozenset(
    {PaymentStatus.PAID, PaymentStatus.CANCELED, PaymentStatus.REFUNDED, PaymentStatus.FAILED}
)
DELETABLE_STATUSES = frozenset({PaymentStatus.CANCELED})
OVERDUE_ELIGIBLE_STATUSES = frozenset({PaymentStatus.SENT, PaymentStatus.VIEWED})


class PaymentLifecycleManager:
    """Create, send, refresh, cancel and delete invoices for orders."""

    def __init__(
        self,
        session: AsyncSession,
        provider: InvoiceProvider,
        numbering: Optional[SequenceNumberGenerator] = None,
        tax_rate: Optional[Decimal] = None,
    ):
        self.session = session
        self.provider = provider
        self.numbering = numbering or SequenceNumberGenerator(session)
        self.tax_rate = Decimal(str(settings.SALES_TAX_RATE if tax_rate is None else tax_rate))

    # ==================== Lookups ====================

    async def get(self, payment_id: uuid.UUID) -> Payment:
        payment = await self.session.get(Payment, payment_id, populate_existing=True)
        if payment is None:
            raise PaymentNotFoundException(payment_id)
        return payment

    async def list_for_order(self, order_id: uuid.UUID) -> list[Payment]:
        result = await self.session.execute(
            select(Payment).where(Payment.order_id == order_id).order_by(Payment.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_active_payment(self, order_id: uuid.UUID) -> Optional[Payment]:
        return await self.session.scalar(
            select(Payment)
            .where(Payment.order_id == order_id, Payment.status.in_(list(ACTIVE_PAYMENT_STATUSES)))
            .limit(1)
        )

    async def get_by_provider_invoice_id(self, invoice_id: str) -> Optional[Payment]:
        return await self.session.scalar(
            select(Payment)
            .where(Payment.provider_invoice_id == invoice_id)
            .execution_options(populate_existing=True)
        )

    # ==================== Operations ====================

    async def create(
        self,
        order_id: uuid.UUID,
        due_date: Optional[date] = None,
        delivery_method: str = "EMAIL",
    ) -> Payment:
        """
        Invoice an order.

        Raises:
            OrderNotFoundException: unknown order
            ActivePaymentExistsException: the order already has an open invoice,
                including one recorded by a concurrent request
            ValidationException: nothing to bill
            InvoiceProviderException: provider rejected or was unreachable
        """
        order = await self.session.get(Order, order_id)
        if order is None:
            raise OrderNotFoundException(order_id)

        active = await self.get_active_payment(order_id)
        if active is not None:
            PAYMENT_OPERATIONS.labels(operation="create", result="conflict").inc()
            raise ActivePaymentExistsException(order_id, active.payment_number, active.status.value)

        if not order.line_items:
            raise ValidationException(
                message="Order has no services to invoice",
                details={"order_id": str(order_id)},
            )
        line_items = [
            InvoiceLineItem(
                name=item.name,
                quantity=item.quantity,
                unit_price=item.unit_price,
                description=item.invoice_text,
            )
            for item in order.line_items
        ]
        subtotal = sum((item.total for item in line_items), Decimal("0.00")).quantize(CENTS)
        tax = (subtotal * self.tax_rate).quantize(CENTS, rounding=ROUND_HALF_UP)
        total = subtotal + tax
        if total <= 0:
            raise ValidationException(
                message="Invoice total must be greater than zero",
                details={"order_id": str(order_id), "total": str(total)},
            )

        due_date = due_date or date.today() + timedelta(days=settings.INVOICE_DUE_DAYS)
        customer = InvoiceCustomer(
            given_name=order.first_name,
            family_name=order.last_name,
            email=order.email,
            phone=order.phone,
            reference_id=order.order_number,
        )

        invoice = await self._call_provider(
            "create",
            self.provider.create_invoice(
                line_items,
                due_date,
                delivery_method,
                order.order_number,
                customer,
                tax_rate=self.tax_rate,
            ),
        )

        try:
            payment = Payment(
                order_id=order.id,
                payment_number=await self.numbering.next_payment_number(),
                method=PaymentMethod.SQUARE_INVOICE,
                status=invoice.status,
                subtotal_amount=subtotal,
                tax_amount=tax,
                total_amount=total,
                paid_amount=invoice.paid_amount,
                provider_invoice_id=invoice.invoice_id,
                provider_status=invoice.provider_status,
                public_url=invoice.public_url,
                delivery_method=delivery_method,
                due_date=due_date,
            )
            self.session.add(payment)
            await self.session.commit()
        except IntegrityError as e:
            # Lost a race with another create; the unique index on active payments fired
            await self.session.rollback()
            PAYMENT_OPERATIONS.labels(operation="create", result="conflict").inc()
            await self._void_orphaned_invoice(invoice.invoice_id, order_id)
            active = await self.get_active_payment(order_id)
            if active is not None:
                raise ActivePaymentExistsException(order_id, active.payment_number, active.status.value) from e
            raise DatabaseException(
                message="Failed to record payment",
                details={"order_id": str(order_id), "provider_invoice_id": invoice.invoice_id},
            ) from e
        except SQLAlchemyError as e:
            await self.session.rollback()
            PAYMENT_OPERATIONS.labels(operation="create", result="error").inc()
            logger.exception(
                "Payment insert failed after provider invoice was created",
                extra={"order_id": str(order_id), "invoice_id": invoice.invoice_id},
            )
            raise DatabaseException(
                message="Failed to record payment",
                details={"order_id": str(order_id), "provider_invoice_id": invoice.invoice_id},
            ) from e

        PAYMENT_OPERATIONS.labels(operation="create", result="success").inc()
        logger.info(
            "Payment created",
            extra={
                "order_number": order.order_number,
                "payment_number": payment.payment_number,
                "total": str(total),
                "status": payment.status.value,
            },
        )
        return payment

    async def send(self, payment_id: uuid.UUID) -> Payment:
        """Publish a draft invoice to the customer."""
        payment = await self.get(payment_id)
        if payment.status != PaymentStatus.DRAFT:
            raise ValidationException(
                message=f"Only draft payments can be sent; {payment.payment_number} is {payment.status.value}",
                details={"payment_id": str(payment_id), "status": payment.status.value},
            )
        invoice_id = self._require_invoice_id(payment)

        invoice = await self._call_provider("send", self.provider.send_invoice(invoice_id))

        payment.status = PaymentStatus.SENT if invoice.status == PaymentStatus.DRAFT else invoice.status
        payment.provider_status = invoice.provider_status
        payment.public_url = invoice.public_url or payment.public_url
        payment.sent_at = utcnow()
        await self._commit(payment, "send")
        logger.info("Payment sent", extra={"payment_number": payment.payment_number})
        return payment

    async def refresh_status(self, payment_id: uuid.UUID) -> Payment:
        """Pull the provider's current state onto the local row."""
        payment = await self.get(payment_id)
        invoice_id = self._require_invoice_id(payment)

        invoice = await self._call_provider("refresh", self.provider.get_invoice(invoice_id))

        self._mirror(payment, invoice)
        self._mark_overdue(payment)
        await self._commit(payment, "refresh")
        return payment

    async def cancel(self, payment_id: uuid.UUID, reason: Optional[str] = None) -> Optional[Payment]:
        """
        Cancel an open invoice.

        Drafts are deleted outright (provider and local) and None is
        returned; anything else is kept as canceled.
        """
        payment = await self.get(payment_id)
        if payment.status in NON_CANCELABLE_STATUSES:
            raise ValidationException(
                message=f"Cannot cancel a {payment.status.value} payment",
                details={"payment_id": str(payment_id), "status": payment.status.value},
            )

        invoice = None
        if payment.provider_invoice_id:
            invoice = await self._call_provider(
                "cancel",
                self.provider.cancel_invoice(payment.provider_invoice_id, reason),
            )

        payment_number = payment.payment_number
        if payment.status == PaymentStatus.DRAFT:
            try:
                await self.session.delete(payment)
                await self.session.commit()
            except SQLAlchemyError as e:
                await self.session.rollback()
                raise DatabaseException(
                    message="Failed to delete draft payment",
                    details={"payment_id": str(payment_id)},
                ) from e
            PAYMENT_OPERATIONS.labels(operation="cancel", result="deleted").inc()
            logger.info("Draft payment deleted", extra={"payment_number": payment_number, "reason": reason})
            return None

        payment.status = PaymentStatus.CANCELED
        payment.canceled_at = utcnow()
        if invoice is not None:
            payment.provider_status = invoice.provider_status
        payment.notes = self._append_note(payment.notes, f"Canceled: {reason}" if reason else "Canceled")
        await self._commit(payment, "cancel")
        logger.info("Payment canceled", extra={"payment_number": payment_number, "reason": reason})
        return payment

    async def permanently_delete(self, payment_id: uuid.UUID) -> None:
        """Remove a canceled payment; drafts go through cancel()."""
        payment = await self.get(payment_id)
        if payment.status == PaymentStatus.DRAFT:
            await self.cancel(payment_id, reason="Deleted")
            return
        if payment.status not in DELETABLE_STATUSES:
            raise ValidationException(
                message="Only canceled payments can be deleted",
                details={"payment_id": str(payment_id), "status": payment.status.value},
            )

        payment_number = payment.payment_number
        try:
            await self.session.delete(payment)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise DatabaseException(
                message="Failed to delete payment",
                details={"payment_id": str(payment_id)},
            ) from e
        PAYMENT_OPERATIONS.labels(operation="delete", result="success").inc()
        logger.info("Payment deleted", extra={"payment_number": payment_number})

    async def apply_webhook_event(self, event: InvoiceWebhookEvent) -> Optional[Payment]:
        """
        Mirror a provider notification onto the matching payment.

        Returns the updated payment, or None when the invoice is unknown or
        the event was already applied.
        """
        invoice = event.invoice
        payment = await self.get_by_provider_invoice_id(invoice.invoice_id)
        if payment is None:
            logger.info(
                "Webhook for unknown invoice ignored",
                extra={"invoice_id": invoice.invoice_id, "event_type": event.event_type},
            )
            return None
        if event.event_id and payment.last_webhook_event_id == event.event_id:
            logger.info(
                "Duplicate webhook ignored",
                extra={"event_id": event.event_id, "payment_number": payment.payment_number},
            )
            return None

        now = utcnow()
        event_type = event.event_type

        if event_type in ("invoice.published", "invoice.sent"):
            if payment.status == PaymentStatus.DRAFT:
                payment.status = PaymentStatus.SENT
            payment.sent_at = payment.sent_at or now
            payment.public_url = invoice.public_url or payment.public_url
        elif event_type == "invoice.viewed":
            if payment.status in (PaymentStatus.SENT, PaymentStatus.OVERDUE):
                payment.status = PaymentStatus.VIEWED
            payment.viewed_at = payment.viewed_at or now
        elif event_type == "invoice.payment_made":
            payment.paid_amount = invoice.paid_amount
            if invoice.paid_amount >= payment.total_amount:
                payment.status = PaymentStatus.PAID
                payment.paid_at = payment.paid_at or now
            else:
                payment.status = PaymentStatus.PARTIALLY_PAID
        elif event_type == "invoice.canceled":
            payment.status = PaymentStatus.CANCELED
            payment.canceled_at = payment.canceled_at or now
            payment.notes = self._append_note(payment.notes, "Canceled via Square")
        elif event_type == "invoice.refunded":
            payment.status = (
                PaymentStatus.PARTIALLY_PAID
                if invoice.status == PaymentStatus.PARTIALLY_PAID
                else PaymentStatus.REFUNDED
            )
        elif event_type == "invoice.updated":
            self._mirror(payment, invoice)
        else:
            logger.info("Unhandled webhook event type", extra={"event_type": event_type})

        payment.provider_status = invoice.provider_status
        payment.last_webhook_event_id = event.event_id or None
        payment.last_webhook_at = now
        await self._commit(payment, "webhook")

        logger.info(
            "Webhook applied",
            extra={
                "event_type": event_type,
                "event_id": event.event_id,
                "payment_number": payment.payment_number,
                "status": payment.status.value,
            },
        )
        return payment

    # ==================== Helpers ====================

    async def _call_provider(self, operation: str, call) -> ProviderInvoice:
        try:
            return await call
        except InvoiceProviderException as e:
            PAYMENT_OPERATIONS.labels(operation=operation, result="provider_error").inc()
            logger.error(
                "Invoicing provider call failed",
                extra={"operation": operation, "provider": self.provider.name, "error": e.message},
            )
            raise

    async def _void_orphaned_invoice(self, invoice_id: str, order_id: uuid.UUID) -> None:
        """Cancel a provider invoice whose local row could not be written."""
        try:
            await self.provider.cancel_invoice(invoice_id, "Duplicate invoice")
        except InvoiceProviderException as e:
            logger.warning(
                "Orphaned provider invoice left open",
                extra={"order_id": str(order_id), "invoice_id": invoice_id, "error": e.message},
            )
            return
        logger.info("Orphaned provider invoice canceled", extra={"order_id": str(order_id), "invoice_id": invoice_id})

    async def _commit(self, payment: Payment, operation: str) -> None:
        payment.updated_at = utcnow()
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            PAYMENT_OPERATIONS.labels(operation=operation, result="error").inc()
            raise DatabaseException(
                message=f"Failed to save payment ({operation})",
                details={"operation": operation},
            ) from e
        PAYMENT_OPERATIONS.labels(operation=operation, result="success").inc()

    @staticmethod
    def _require_invoice_id(payment: Payment) -> str:
        if not payment.provider_invoice_id:
            raise ValidationException(
                message=f"Payment {payment.payment_number} has no provider invoice",
                details={"payment_id": str(payment.id)},
            )
        return payment.provider_invoice_id

    @staticmethod
    def _mirror(payment: Payment, invoice: ProviderInvoice) -> None:
        """Overwrite local state with the provider's."""
        now = utcnow()
        status = invoice.status
        # The provider has no viewed state; do not step back from it
        if status == PaymentStatus.SENT and payment.status in (PaymentStatus.VIEWED, PaymentStatus.OVERDUE):
            status = payment.status

        payment.status = status
        payment.provider_status = invoice.provider_status
        payment.public_url = invoice.public_url or payment.public_url
        payment.paid_amount = invoice.paid_amount

        if status == PaymentStatus.PAID and payment.paid_at is None:
            payment.paid_at = now
        elif status == PaymentStatus.CANCELED and payment.canceled_at is None:
            payment.canceled_at = now
        elif status == PaymentStatus.SENT and payment.sent_at is None:
            payment.sent_at = now

    @staticmethod
    def _mark_overdue(payment: Payment) -> None:
        if (
            payment.status in OVERDUE_ELIGIBLE_STATUSES
            and payment.due_date is not None
            and payment.due_date < date.today()
        ):
            payment.status = PaymentStatus.OVERDUE

    @staticmethod
    def _append_note(notes: Optional[str], line: str) -> str:
        return f"{notes}\n{line}" if notes else line
