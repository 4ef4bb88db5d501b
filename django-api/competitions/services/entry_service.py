"""Entry service - submission, server-side fee validation, approval and EFT.

Services:
- Depend only on interfaces (stores)
- Validate domain invariants
- Perform orchestration and error mapping
- Return domain models or domain errors
"""

import logging
from collections import Counter
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime

from django.utils import timezone

from competitions.domain import (
    CompetitionEvent,
    EntryDraft,
    EntryId,
    EntryPaymentStatus,
    EventEntry,
    EventId,
    FeeSchedule,
    FeeValidation,
    Money,
    PerformanceType,
    RegistrationMarkResult,
)
from competitions.domain.errors import (
    DancerDisabledError,
    EntryNotFoundError,
    EventNotFoundError,
    InvalidIdError,
    InvalidInputError,
)
from competitions.domain.pricing import validate_and_correct_entry_fee
from competitions.domain.rules import check_performance_limits, is_age_eligible
from competitions.services.registration_service import RegistrationFeeTracker
from competitions.stores.interfaces import DancerStore, EntryStore, EventStore, PaymentStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApprovalResult:
    entry: EventEntry
    registration_results: tuple[RegistrationMarkResult, ...]


@dataclass(frozen=True)
class EftSubmission:
    payment_log_id: str
    entries: tuple[EventEntry, ...]
    total: Money


class EntryService:
    """Service for event entries."""

    def __init__(
        self,
        events: EventStore,
        dancers: DancerStore,
        entries: EntryStore,
        payments: PaymentStore,
        tracker: RegistrationFeeTracker,
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        self._events = events
        self._dancers = dancers
        self._entries = entries
        self._payments = payments
        self._tracker = tracker
        self._clock = clock

    def _get_event(self, event_id: EventId) -> CompetitionEvent:
        event = self._events.get_event(event_id)
        if event is None:
            raise EventNotFoundError(str(event_id))
        return event

    def _solo_identities(self, participant_id: str) -> frozenset[str]:
        """Identities of the dancer performing a solo, so studio and dancer submissions count together."""
        dancer = self._dancers.get_dancer_by_id(participant_id)
        return dancer.identities if dancer is not None else frozenset([participant_id])

    def validate_entry_fee(
        self,
        event_id: EventId,
        participant_ids: Sequence[str],
        submitted_fee: Money,
        *,
        schedule: FeeSchedule | None = None,
        pending_solos: int = 0,
    ) -> FeeValidation:
        """Re-derive the fee for an entry before it is stored.

        Existing solos are counted per performing dancer, not per submitting
        account. ``pending_solos`` adds solos for the same dancer that are in
        the same submission batch but not stored yet.
        """
        performance_type = PerformanceType.from_participant_count(len(participant_ids))
        if schedule is None:
            schedule = self._get_event(event_id).fee_schedule

        existing = 0
        if performance_type is PerformanceType.SOLO:
            identities = self._solo_identities(participant_ids[0])
            existing = self._entries.count_solo_entries(event_id, identities) + pending_solos

        validation = validate_and_correct_entry_fee(
            performance_type, len(participant_ids), submitted_fee, existing, schedule=schedule
        )
        if validation.was_correct:
            logger.info("Fee for event %s verified: %s", event_id, validation.explanation)
        elif performance_type is PerformanceType.SOLO:
            logger.warning(
                "Fee correction applied for %s at event %s: submitted R%s, corrected to R%s (%s)",
                participant_ids[0],
                event_id,
                submitted_fee.amount,
                validation.validated_fee.amount,
                validation.explanation,
            )
        else:
            logger.warning(
                "%s fee mismatch at event %s: submitted R%s, expected R%s. Keeping submitted fee for review",
                performance_type.value,
                event_id,
                submitted_fee.amount,
                validation.expected_fee.amount,
            )
        return validation

    def _check_participants(self, event: CompetitionEvent, participant_ids: Sequence[str]) -> None:
        for participant_id in participant_ids:
            dancer = self._dancers.get_dancer_by_id(participant_id)
            if dancer is None:
                continue
            if dancer.rejection_reason:
                raise DancerDisabledError(dancer.id, dancer.public_id or dancer.id)
            if not is_age_eligible(dancer.age, event.age_category):
                raise InvalidInputError(
                    f'Dancer {dancer.name} (age {dancer.age}) is not eligible for the "{event.age_category}" '
                    "age category. Please select an appropriate event for this dancer's age.",
                    dancer_id=dancer.id,
                )

    def _check_draft(self, draft: EntryDraft) -> CompetitionEvent:
        if not draft.contestant_id or not draft.eodsa_id or not draft.participant_ids:
            raise InvalidInputError("Missing required fields: eventId, contestantId, eodsaId, participantIds")
        if len(set(draft.participant_ids)) != len(draft.participant_ids):
            raise InvalidInputError("participantIds must be unique")

        event = self._get_event(draft.event_id)
        now = self._clock()
        if now > event.event_date:
            raise InvalidInputError("This event has already completed. Registration is no longer possible.")
        if now > event.registration_deadline:
            raise InvalidInputError("Registration deadline has passed for this event")

        self._check_participants(event, draft.participant_ids)
        check_performance_limits(draft.performance_type, len(draft.participant_ids), draft.estimated_duration)
        return event

    def prepare_drafts(self, drafts: Sequence[EntryDraft]) -> list[EntryDraft]:
        """Validate a batch of drafts and return them with authoritative fees.

        Raises:
            EventNotFoundError, InvalidInputError, DancerDisabledError
        """
        prepared = []
        batch_solos: Counter[tuple[EventId, frozenset[str]]] = Counter()
        for draft in drafts:
            event = self._check_draft(draft)
            pending = 0
            if draft.performance_type is PerformanceType.SOLO:
                key = (draft.event_id, self._solo_identities(draft.participant_ids[0]))
                pending = batch_solos[key]
                batch_solos[key] += 1
            validation = self.validate_entry_fee(
                draft.event_id,
                draft.participant_ids,
                draft.calculated_fee,
                schedule=event.fee_schedule,
                pending_solos=pending,
            )
            prepared.append(draft.with_fee(validation.validated_fee))
        return prepared

    def submit_entry(self, draft: EntryDraft) -> EventEntry:
        """Store a contestant's entry with a server-validated fee, pending payment and unapproved."""
        (prepared,) = self.prepare_drafts([draft])
        entry = self._entries.create_entry(prepared, payment_status=EntryPaymentStatus.PENDING, approved=False)
        logger.info("Created entry %s for event %s (fee R%s)", entry.id, entry.event_id, entry.calculated_fee.amount)
        return entry

    def approve_entry(self, entry_id: str) -> ApprovalResult:
        """Approve an entry and mark it paid. Registration marking failures never fail the approval.

        Raises:
            InvalidIdError: If the entry_id is not a valid UUID.
            EntryNotFoundError: If the entry does not exist.
        """
        try:
            parsed = EntryId.from_string(entry_id)
        except ValueError as exc:
            raise InvalidIdError() from exc
        if self._entries.get_entry(parsed) is None:
            raise EntryNotFoundError(entry_id)

        self._tracker.ensure_tracking_columns()
        entry = self._entries.approve_entry(parsed, self._clock())

        results: tuple[RegistrationMarkResult, ...] = ()
        if entry.participant_ids and entry.mastery:
            results = tuple(self._tracker.auto_mark_registration_for_participants(entry.participant_ids, entry.mastery))
            logger.info("Registration fee auto-marking results for entry %s: %s", entry_id, results)
        return ApprovalResult(entry=entry, registration_results=results)

    def submit_eft(
        self,
        drafts: Sequence[EntryDraft],
        *,
        invoice_number: str,
        user_email: str = "",
        user_name: str = "",
        eodsa_id: str = "",
        item_description: str = "",
    ) -> EftSubmission:
        """Insert EFT entries right away as pending, then log the submission for verification."""
        if not invoice_number:
            raise InvalidInputError("invoiceNumber is required")
        prepared = self.prepare_drafts(drafts)
        total = sum((d.calculated_fee for d in prepared), Money.zero())

        with self._entries.atomic():
            created = tuple(
                self._entries.create_entry(
                    draft,
                    payment_status=EntryPaymentStatus.PENDING,
                    approved=False,
                    payment_method="eft",
                    payment_reference=invoice_number,
                )
                for draft in prepared
            )
        log_id = self._payments.log_eft_submission(
            user_email=user_email,
            user_name=user_name,
            eodsa_id=eodsa_id,
            amount=total,
            invoice_number=invoice_number,
            item_description=item_description,
            entries_count=len(created),
        )
        logger.info("EFT submission %s stored %d pending entries (R%s)", invoice_number, len(created), total.amount)
        return EftSubmission(payment_log_id=log_id, entries=created, total=total)
