"""PayFast notification reconciliation.

A notification passes three protocol checks (source host, signature, required
fields) before anything is written. The rest runs in one transaction holding a
row lock on the payment, so concurrent deliveries for the same payment are
applied one after the other:

    initiated -> processing -> completed | failed | cancelled

Terminal states are final. Entries held in the payment's pending snapshot are
created once, on the first completed notification, each in its own savepoint.
Every step appends a PaymentLog row; log rows are never updated.
"""

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from django.db import DatabaseError
from django.utils import timezone

from competitions.domain import EntryDraft, EntryPaymentStatus, Payment, PaymentState
from competitions.domain.errors import (
    DomainError,
    InvalidInputError,
    InvalidSignatureError,
    PaymentNotFoundError,
    UntrustedHostError,
)
from competitions.services.payfast import PayFastGateway, PayFastNotification
from competitions.services.registration_service import RegistrationFeeTracker
from competitions.stores.interfaces import EntryStore, PaymentStore

logger = logging.getLogger(__name__)

WEBHOOK_RECEIVED = "webhook_received"
STATUS_UPDATED = "status_updated"
DUPLICATE_SKIPPED = "duplicate_webhook_skipped"
ENTRIES_CREATED = "auto_entries_created"
CREATION_FAILED = "auto_creation_failed"
TRANSITION_REJECTED = "transition_rejected"
WEBHOOK_ERROR = "webhook_error"

_SNAPSHOT_ITEM_ERRORS = (KeyError, TypeError, ValueError, ArithmeticError, DomainError, DatabaseError)


@dataclass(frozen=True)
class WebhookOutcome:
    payment_id: str
    status: PaymentState
    message: str = ""
    entries_created: int = 0


@dataclass(frozen=True)
class _Request:
    client_ip: str
    user_agent: str


class PaymentWebhookReconciler:
    """Applies provider notifications to payments and their entries."""

    def __init__(
        self,
        payments: PaymentStore,
        entries: EntryStore,
        tracker: RegistrationFeeTracker,
        gateway: PayFastGateway,
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        self._payments = payments
        self._entries = entries
        self._tracker = tracker
        self._gateway = gateway
        self._clock = clock

    def _audit(self, payment_id: str, event_type: str, data: dict[str, Any], request: _Request) -> None:
        self._payments.append_log(
            payment_id,
            event_type,
            data,
            ip_address=request.client_ip,
            user_agent=request.user_agent,
        )

    def _authenticate(self, raw_body: str, client_ip: str) -> PayFastNotification:
        if not self._gateway.is_trusted_host(client_ip):
            logger.warning("Rejected PayFast notification from untrusted host %s", client_ip)
            raise UntrustedHostError(client_ip)

        if not self._gateway.verify_signature(raw_body):
            logger.warning("Rejected PayFast notification with invalid signature from %s", client_ip)
            raise InvalidSignatureError()
        if not self._gateway.confirm_with_provider(raw_body):
            logger.warning("PayFast did not confirm notification from %s", client_ip)
            raise InvalidSignatureError()

        notification = PayFastNotification.parse(raw_body)
        missing = notification.missing_fields()
        if missing:
            raise InvalidInputError(f"Missing required fields: {', '.join(missing)}", missing=missing)
        return notification

    def handle_notification(self, raw_body: str, *, client_ip: str = "", user_agent: str = "") -> WebhookOutcome:
        """Verify and apply one notification.

        Raises:
            UntrustedHostError, InvalidSignatureError: Protocol rejections, nothing is written.
            InvalidInputError: Required fields missing or amounts malformed.
            PaymentNotFoundError: No payment carries the notification's m_payment_id.
        """
        notification = self._authenticate(raw_body, client_ip)
        gross, fee, net = notification.amounts()
        payment_id = notification.payment_id
        request = _Request(client_ip, user_agent)

        if self._payments.get_payment(payment_id) is None:
            raise PaymentNotFoundError(payment_id)

        self._audit(payment_id, WEBHOOK_RECEIVED, notification.fields, request)
        requested = notification.state

        with self._payments.atomic():
            payment = self._payments.get_payment(payment_id, for_update=True)

            if payment.status.is_terminal:
                return self._handle_finalised(payment, requested, request)

            self._payments.record_notification(
                payment_id,
                status=requested,
                provider_status=notification.provider_status,
                provider_payment_id=notification.provider_payment_id,
                amount_gross=gross,
                amount_fee=fee,
                amount_net=net,
                signature=notification.signature,
                raw_response=notification.fields,
                paid_at=self._clock() if requested is PaymentState.COMPLETED else None,
            )
            updated = self._entries.update_entries_for_payment(
                payment_id, requested.entry_status, approve=requested is PaymentState.COMPLETED
            )
            self._audit(
                payment_id,
                STATUS_UPDATED,
                {
                    "old_status": payment.status.value,
                    "new_status": requested.value,
                    "entries_updated": updated,
                },
                request,
            )

            created = 0
            if requested is PaymentState.COMPLETED:
                created = self._materialise(payment, request)

            self._audit(
                payment_id,
                requested.value,
                {
                    "payment_status": notification.provider_status,
                    "amount_gross": str(gross.amount),
                    "entries_created": created,
                },
                request,
            )

        logger.info("Payment %s moved from %s to %s", payment_id, payment.status.value, requested.value)
        if requested is PaymentState.COMPLETED:
            self._mark_registrations(payment_id)
        return WebhookOutcome(payment_id, requested, entries_created=created)

    def _handle_finalised(self, payment: Payment, requested: PaymentState, request: _Request) -> WebhookOutcome:
        if requested is not payment.status:
            message = f"Payment already {payment.status.value}; {requested.value} ignored"
            logger.warning("Payment %s: %s", payment.payment_id, message)
            self._audit(
                payment.payment_id,
                TRANSITION_REJECTED,
                {"current_status": payment.status.value, "requested_status": requested.value},
                request,
            )
            return WebhookOutcome(payment.payment_id, payment.status, message=message)

        created = 0
        if payment.status is PaymentState.COMPLETED:
            created = self._materialise(payment, request)
        logger.info("Payment %s redelivered with status %s", payment.payment_id, payment.status.value)
        return WebhookOutcome(payment.payment_id, payment.status, message="Duplicate notification", entries_created=created)

    def _load_snapshot(self, payment: Payment) -> list[Any]:
        snapshot = payment.pending_entries_data
        if isinstance(snapshot, str):
            snapshot = json.loads(snapshot)
        if not isinstance(snapshot, list):
            raise TypeError(f"pending entries must be a list, got {type(snapshot).__name__}")
        return snapshot

    def _materialise(self, payment: Payment, request: _Request) -> int:
        """Create the snapshot's entries unless entries already exist for the payment."""
        if not payment.pending_entries_data:
            return 0

        if self._entries.entries_exist_for_payment(payment.payment_id):
            logger.info("Entries already exist for payment %s, skipping duplicate creation", payment.payment_id)
            self._audit(
                payment.payment_id,
                DUPLICATE_SKIPPED,
                {"message": "Entries already exist for this payment"},
                request,
            )
            return 0

        try:
            items = self._load_snapshot(payment)
        except (TypeError, ValueError) as exc:
            logger.exception("Unreadable pending entries for payment %s", payment.payment_id)
            self._audit(payment.payment_id, CREATION_FAILED, {"error": str(exc)}, request)
            return 0

        created, failures = 0, []
        for index, item in enumerate(items):
            try:
                with self._entries.atomic():
                    self._entries.create_entry(
                        EntryDraft.from_snapshot(item),
                        payment_status=EntryPaymentStatus.PAID,
                        approved=True,
                        payment_method="payfast",
                        payment_id=payment.payment_id,
                        snapshot_index=index,
                    )
            except _SNAPSHOT_ITEM_ERRORS as exc:
                logger.exception("Failed to create entry %d for payment %s", index, payment.payment_id)
                failures.append({"index": index, "error": str(exc)})
                continue
            created += 1

        if created:
            self._audit(
                payment.payment_id,
                ENTRIES_CREATED,
                {"entries_created": created, "total_entries": len(items), "failures": failures},
                request,
            )
        else:
            self._audit(
                payment.payment_id,
                CREATION_FAILED,
                {"total_entries": len(items), "failures": failures},
                request,
            )
        logger.info("Created %d of %d entries for payment %s", created, len(items), payment.payment_id)
        return created

    def _mark_registrations(self, payment_id: str) -> None:
        for entry in self._entries.list_entries_for_payment(payment_id):
            if entry.mastery:
                self._tracker.auto_mark_registration_for_participants(entry.participant_ids, entry.mastery)

    def record_failure(self, payment_id: str, exc: Exception, *, client_ip: str = "", user_agent: str = "") -> None:
        """Flag an unexpected error for operator follow-up. Never raises on a database failure."""
        try:
            self._audit(
                payment_id or "unknown",
                WEBHOOK_ERROR,
                {"error": type(exc).__name__, "message": str(exc)},
                _Request(client_ip, user_agent),
            )
        except DatabaseError:
            logger.exception("Could not record webhook error for payment %s", payment_id)
