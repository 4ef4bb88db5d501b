"""Store interfaces (repository pattern).

Stores must be swappable and return domain models.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from contextlib import AbstractContextManager
from datetime import datetime
from typing import Any

from competitions.domain import (
    CompetitionEvent,
    Dancer,
    EntryDraft,
    EntryId,
    EntryPaymentStatus,
    EventEntry,
    EventId,
    FeeSchedule,
    Money,
    Payment,
    PaymentState,
)


class EventStore(ABC):
    """Interface for competition event lookups."""

    @abstractmethod
    def get_event(self, event_id: EventId) -> CompetitionEvent | None:
        """Return an event by ID, or None if not found."""
        ...

    @abstractmethod
    def get_fee_schedule(self, event_id: EventId) -> FeeSchedule | None:
        """Return the event's fee schedule with defaults applied, or None if no such event."""
        ...


class DancerStore(ABC):
    """Interface for dancer records and their registration-fee state."""

    @abstractmethod
    def get_dancer_by_id(self, dancer_id: str) -> Dancer | None:
        """Return a dancer by internal id or public (EODSA) id."""
        ...

    @abstractmethod
    def get_dancer_by_public_id(self, public_id: str) -> Dancer | None:
        ...

    @abstractmethod
    def get_dancers_with_registration_status(self, dancer_ids: Iterable[str]) -> list[Dancer]:
        """Return dancers matching any of the ids. Unknown ids are omitted."""
        ...

    @abstractmethod
    def mark_registration_fee_paid(self, dancer_id: str, mastery_level: str, paid_at: datetime) -> None:
        ...

    @abstractmethod
    def add_registration_fee_columns(self) -> None:
        """Create any missing registration-fee columns. Safe to call repeatedly."""
        ...


class EntryStore(ABC):
    """Interface for event entry persistence."""

    @abstractmethod
    def atomic(self) -> AbstractContextManager:
        """Transaction (or savepoint, when nested) around the enclosed writes."""
        ...

    @abstractmethod
    def create_entry(
        self,
        draft: EntryDraft,
        *,
        payment_status: EntryPaymentStatus,
        approved: bool,
        payment_method: str = "",
        payment_reference: str = "",
        payment_id: str | None = None,
        snapshot_index: int | None = None,
    ) -> EventEntry:
        ...

    @abstractmethod
    def get_entry(self, entry_id: EntryId) -> EventEntry | None:
        ...

    @abstractmethod
    def approve_entry(self, entry_id: EntryId, approved_at: datetime) -> EventEntry:
        """Set approved, paymentStatus=paid and approvedAt."""
        ...

    @abstractmethod
    def count_solo_entries(self, event_id: EventId, identities: Iterable[str]) -> int:
        """Count live solo entries at the event whose single participant is one of ``identities``.

        Failed and cancelled entries are not counted.
        """
        ...

    @abstractmethod
    def list_entries_for_participant(self, identities: Iterable[str]) -> list[EventEntry]:
        """Return every entry listing one of ``identities`` among its participants."""
        ...

    @abstractmethod
    def list_entries_for_payment(self, payment_id: str) -> list[EventEntry]:
        ...

    @abstractmethod
    def entries_exist_for_payment(self, payment_id: str) -> bool:
        ...

    @abstractmethod
    def update_entries_for_payment(
        self, payment_id: str, payment_status: EntryPaymentStatus, *, approve: bool
    ) -> int:
        """Set the payment status of every entry for the payment; approve them too when asked."""
        ...


class PaymentStore(ABC):
    """Interface for payments and their audit trail."""

    @abstractmethod
    def atomic(self) -> AbstractContextManager:
        ...

    @abstractmethod
    def create_payment(
        self,
        payment_id: str,
        amount: Money,
        *,
        event_id: EventId | None,
        email: str,
        pending_entries_data: list[dict[str, Any]] | None,
    ) -> Payment:
        ...

    @abstractmethod
    def get_payment(self, payment_id: str, *, for_update: bool = False) -> Payment | None:
        """Return a payment; ``for_update`` locks the row until the transaction ends."""
        ...

    @abstractmethod
    def record_notification(
        self,
        payment_id: str,
        *,
        status: PaymentState,
        provider_status: str,
        provider_payment_id: str,
        amount_gross: Money,
        amount_fee: Money,
        amount_net: Money,
        signature: str,
        raw_response: dict[str, Any],
        paid_at: datetime | None,
    ) -> None:
        ...

    @abstractmethod
    def append_log(
        self,
        payment_id: str,
        event_type: str,
        event_data: dict[str, Any],
        *,
        ip_address: str = "",
        user_agent: str = "",
    ) -> None:
        """Append an audit row. Rows are never updated."""
        ...

    @abstractmethod
    def log_eft_submission(
        self,
        *,
        user_email: str,
        user_name: str,
        eodsa_id: str,
        amount: Money,
        invoice_number: str,
        item_description: str,
        entries_count: int,
    ) -> str:
        """Record an EFT submission and return its log id."""
        ...
