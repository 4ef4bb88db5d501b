"""PayFast checkout initiation."""

import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass

from competitions.domain import EntryDraft, Money, Payment
from competitions.domain.errors import InvalidInputError
from competitions.services.entry_service import EntryService
from competitions.services.payfast import PayFastGateway
from competitions.stores.interfaces import PaymentStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutSession:
    payment: Payment
    process_url: str
    form_fields: dict[str, str]


class PaymentService:
    def __init__(self, payments: PaymentStore, entry_service: EntryService, gateway: PayFastGateway) -> None:
        self._payments = payments
        self._entry_service = entry_service
        self._gateway = gateway

    def initiate_payfast_payment(
        self,
        drafts: Sequence[EntryDraft],
        *,
        email: str,
        first_name: str = "",
        last_name: str = "",
        item_name: str = "",
    ) -> CheckoutSession:
        """Create an initiated payment whose snapshot holds the fee-validated drafts.

        Entries are only created when PayFast reports the payment complete.
        """
        if not drafts:
            raise InvalidInputError("At least one entry is required")
        prepared = self._entry_service.prepare_drafts(drafts)
        amount = sum((d.calculated_fee for d in prepared), Money.zero())
        event_ids = {d.event_id for d in prepared}

        payment = self._payments.create_payment(
            f"EODSA-{uuid.uuid4().hex[:16].upper()}",
            amount,
            event_id=next(iter(event_ids)) if len(event_ids) == 1 else None,
            email=email,
            pending_entries_data=[d.to_snapshot() for d in prepared],
        )

        config = self._gateway.config
        fields = [
            ("merchant_id", config.merchant_id),
            ("merchant_key", config.merchant_key),
            ("return_url", config.return_url),
            ("cancel_url", config.cancel_url),
            ("notify_url", config.notify_url),
            ("name_first", first_name),
            ("name_last", last_name),
            ("email_address", email),
            ("m_payment_id", payment.payment_id),
            ("amount", str(amount)),
            ("item_name", item_name or f"Competition entries ({len(prepared)})"),
        ]
        form_fields = {name: str(value).strip() for name, value in fields if str(value).strip() != ""}
        form_fields["signature"] = self._gateway.sign_fields(fields)

        logger.info("Initiated PayFast payment %s for R%s (%d entries)", payment.payment_id, amount, len(prepared))
        return CheckoutSession(payment=payment, process_url=config.process_url, form_fields=form_fields)
