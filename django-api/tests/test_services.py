"""Unit tests for the services, run against in-memory stores.

These test orchestration and domain error mapping.
Run with: pytest tests/test_services.py -v
"""

import uuid
from datetime import timedelta
from decimal import Decimal

import pytest
from django.db import DatabaseError
from django.utils import timezone

from competitions.domain import (
    CompetitionEvent,
    Dancer,
    EntryDraft,
    EntryPaymentStatus,
    EventId,
    Money,
    PerformanceType,
)
from competitions.domain.errors import (
    DancerDisabledError,
    DancerNotFoundError,
    EntryNotFoundError,
    EventNotFoundError,
    InvalidIdError,
    InvalidInputError,
)
from competitions.domain.pricing import DEFAULT_FEE_SCHEDULE
from competitions.services.entry_service import EntryService
from competitions.services.fee_service import FeeService
from competitions.services.registration_service import (
    ALREADY_PAID,
    MARKED,
    NO_PUBLIC_ID,
    NOT_FOUND,
    RegistrationFeeTracker,
)
from fakes import InMemoryDancerStore, InMemoryEntryStore, InMemoryEventStore, InMemoryPaymentStore

FIRE = "Fire (Advanced)"


def make_event(**overrides) -> CompetitionEvent:
    now = timezone.now()
    fields = {
        "id": EventId(uuid.uuid4()),
        "name": "Regional",
        "event_date": now + timedelta(days=30),
        "registration_deadline": now + timedelta(days=20),
        "age_category": "All Ages",
        "fee_schedule": DEFAULT_FEE_SCHEDULE,
    }
    fields.update(overrides)
    return CompetitionEvent(**fields)


def dancer(public_id, **overrides) -> Dancer:
    fields = {"id": f"id-{public_id}", "public_id": public_id, "name": public_id, "age": 12}
    fields.update(overrides)
    return Dancer(**fields)


def draft(event, participants, fee=0, contestant="studio-1", **overrides) -> EntryDraft:
    fields = {
        "event_id": event.id,
        "contestant_id": contestant,
        "eodsa_id": participants[0],
        "participant_ids": tuple(participants),
        "calculated_fee": Money.of(fee),
        "mastery": FIRE,
        "estimated_duration": Decimal("1.5"),
    }
    fields.update(overrides)
    return EntryDraft(**fields)


class Harness:
    def __init__(self, *dancers, events=()):
        self.events = InMemoryEventStore(*events)
        self.dancers = InMemoryDancerStore(*dancers)
        self.entries = InMemoryEntryStore()
        self.payments = InMemoryPaymentStore()
        self.tracker = RegistrationFeeTracker(self.dancers)
        self.entry_service = EntryService(self.events, self.dancers, self.entries, self.payments, self.tracker)
        self.fee_service = FeeService(self.events, self.tracker)


class TestFeeService:
    def test_default_schedule_without_event(self):
        service = Harness().fee_service
        assert service.get_fee_schedule(None) is DEFAULT_FEE_SCHEDULE
        assert service.get_fee_schedule("") is DEFAULT_FEE_SCHEDULE

    def test_invalid_event_id(self):
        with pytest.raises(InvalidIdError):
            Harness().fee_service.get_fee_schedule("nope")

    def test_unknown_event(self):
        with pytest.raises(EventNotFoundError):
            Harness().fee_service.get_fee_schedule(str(uuid.uuid4()))

    def test_smart_fee_charges_only_unpaid_dancers(self):
        """Group of 5 at Fire, 3 already registered at Fire: registration for 2."""
        paid = [dancer(f"E{i}", registration_fee_paid=True, registration_fee_mastery_level=FIRE) for i in range(3)]
        unpaid = [dancer("E3"), dancer("E4", registration_fee_paid=True, registration_fee_mastery_level="Nationals")]
        service = Harness(*paid, *unpaid).fee_service

        breakdown = service.calculate_smart_fee(FIRE, PerformanceType.GROUP, ["E0", "E1", "E2", "E3", "E4"])

        assert breakdown.registration_fee == Money.of(500)
        assert breakdown.total == Money.of(220 * 5 + 500)
        assert breakdown.paid_registration_dancers == ("E0", "E1", "E2")
        assert breakdown.unpaid_registration_dancers == ("E3", "E4")

    def test_smart_fee_unknown_participants_owe(self):
        breakdown = Harness().fee_service.calculate_smart_fee("Nationals", PerformanceType.DUET, ["X1", "X2"])
        assert breakdown.registration_fee == Money.of(600)

    def test_smart_fee_changing_level_reincludes_registration(self):
        service = Harness(dancer("E1", registration_fee_paid=True, registration_fee_mastery_level=FIRE)).fee_service
        assert service.calculate_smart_fee(FIRE, PerformanceType.SOLO, ["E1"]).registration_fee == Money.zero()
        assert service.calculate_smart_fee("Nationals", PerformanceType.SOLO, ["E1"]).registration_fee == Money.of(300)

    def test_smart_fee_rejects_duplicate_participants(self):
        with pytest.raises(InvalidInputError):
            Harness().fee_service.calculate_smart_fee(FIRE, PerformanceType.DUET, ["E1", "E1"])


class TestRegistrationFeeTracker:
    def test_mark_paid_is_idempotent(self):
        harness = Harness(dancer("E1"))
        first = harness.tracker.mark_registration_fee_paid("E1", FIRE)
        second = harness.tracker.mark_registration_fee_paid("E1", FIRE)
        assert first == second
        assert harness.dancers.mark_calls == 1
        assert first.registration_fee_mastery_level == FIRE
        assert first.registration_fee_paid_at is not None

    def test_different_level_re_marks(self):
        harness = Harness(dancer("E1"))
        harness.tracker.mark_registration_fee_paid("id-E1", FIRE)
        updated = harness.tracker.mark_registration_fee_paid("id-E1", "Nationals")
        assert updated.registration_fee_mastery_level == "Nationals"

    def test_mark_unknown_dancer(self):
        with pytest.raises(DancerNotFoundError):
            Harness().tracker.mark_registration_fee_paid("E404", FIRE)

    def test_status_omits_unknown_dancers(self):
        harness = Harness(dancer("E1"))
        assert [d.public_id for d in harness.tracker.get_dancers_with_registration_status(["E1", "E404"])] == ["E1"]

    def test_auto_mark_results(self):
        harness = Harness(dancer("E1"), dancer("E2", registration_fee_paid=True, registration_fee_mastery_level=FIRE))
        assert harness.tracker.auto_mark_registration_fee_paid("E1", FIRE).reason == MARKED
        assert harness.tracker.auto_mark_registration_fee_paid("E2", FIRE).reason == ALREADY_PAID
        missing = harness.tracker.auto_mark_registration_fee_paid("E404", FIRE)
        assert missing.success is False
        assert missing.reason == NOT_FOUND

    def test_auto_mark_swallows_store_errors(self, monkeypatch):
        harness = Harness(dancer("E1"))

        def broken(*args):
            raise DatabaseError("connection lost")

        monkeypatch.setattr(harness.dancers, "mark_registration_fee_paid", broken)
        result = harness.tracker.auto_mark_registration_fee_paid("E1", FIRE)
        assert result.success is False

    def test_fan_out_reports_partial_failure(self):
        harness = Harness(dancer("E1"), Dancer(id="legacy-2", public_id=None, name="E2"))
        results = harness.tracker.auto_mark_registration_for_participants(["E1", "legacy-2", "ghost"], FIRE)
        assert [(r.participant_id, r.success) for r in results] == [
            ("E1", True),
            ("legacy-2", False),
            ("ghost", False),
        ]
        assert results[1].reason == NO_PUBLIC_ID


class TestEntryFeeValidation:
    def test_first_solo_corrected_upward(self, caplog):
        event = make_event()
        harness = Harness(dancer("E1"), events=[event])
        entry = harness.entry_service.submit_entry(draft(event, ["E1"], fee=0))
        assert entry.calculated_fee == Money.of(400)
        assert entry.payment_status is EntryPaymentStatus.PENDING
        assert entry.approved is False
        assert "Fee correction applied" in caplog.text

    def test_solos_counted_by_dancer_not_account(self):
        """Solos submitted by a studio and by the dancer count toward one package."""
        event = make_event()
        harness = Harness(dancer("E1"), events=[event])
        harness.entry_service.submit_entry(draft(event, ["E1"], contestant="studio-1"))
        second = harness.entry_service.submit_entry(draft(event, ["id-E1"], contestant="dancer-account"))
        assert second.calculated_fee == Money.of(750)

    def test_other_dancers_and_events_do_not_count(self):
        event, other_event = make_event(), make_event()
        harness = Harness(dancer("E1"), dancer("E2"), events=[event, other_event])
        harness.entry_service.submit_entry(draft(event, ["E2"]))
        harness.entry_service.submit_entry(draft(other_event, ["E1"]))
        assert harness.entry_service.submit_entry(draft(event, ["E1"])).calculated_fee == Money.of(400)

    def test_failed_solos_are_not_counted(self):
        event = make_event()
        harness = Harness(dancer("E1"), events=[event])
        harness.entries.create_entry(
            draft(event, ["E1"], fee=400), payment_status=EntryPaymentStatus.FAILED, approved=False
        )
        assert harness.entry_service.submit_entry(draft(event, ["E1"])).calculated_fee == Money.of(400)

    def test_batch_counts_earlier_solos(self):
        event = make_event()
        harness = Harness(dancer("E1"), events=[event])
        prepared = harness.entry_service.prepare_drafts([draft(event, ["E1"]), draft(event, ["E1"]), draft(event, ["E1"])])
        assert [d.calculated_fee for d in prepared] == [Money.of(400), Money.of(750), Money.of(1050)]

    def test_group_fee_kept_and_logged(self, caplog):
        event = make_event()
        harness = Harness(events=[event])
        entry = harness.entry_service.submit_entry(draft(event, ["A", "B", "C", "D"], fee=500))
        assert entry.calculated_fee == Money.of(500)
        assert "fee mismatch" in caplog.text


class TestEntrySubmission:
    def test_unknown_event(self):
        event = make_event()
        with pytest.raises(EventNotFoundError):
            Harness().entry_service.submit_entry(draft(event, ["E1"]))

    def test_deadline_passed(self):
        event = make_event(registration_deadline=timezone.now() - timedelta(days=1))
        with pytest.raises(InvalidInputError, match="deadline"):
            Harness(events=[event]).entry_service.submit_entry(draft(event, ["E1"]))

    def test_event_already_held(self):
        event = make_event(event_date=timezone.now() - timedelta(days=1))
        with pytest.raises(InvalidInputError, match="already completed"):
            Harness(events=[event]).entry_service.submit_entry(draft(event, ["E1"]))

    def test_disabled_dancer(self):
        event = make_event()
        harness = Harness(dancer("E1", rejection_reason="Duplicate account"), events=[event])
        with pytest.raises(DancerDisabledError):
            harness.entry_service.submit_entry(draft(event, ["E1"]))

    def test_age_ineligible(self):
        event = make_event(age_category="7-9")
        harness = Harness(dancer("E1", age=12), events=[event])
        with pytest.raises(InvalidInputError, match="not eligible"):
            harness.entry_service.submit_entry(draft(event, ["E1"]))

    def test_duplicate_participants(self):
        event = make_event()
        with pytest.raises(InvalidInputError, match="unique"):
            Harness(events=[event]).entry_service.submit_entry(draft(event, ["E1", "E1"]))

    def test_duration_limit(self):
        event = make_event()
        with pytest.raises(InvalidInputError):
            Harness(events=[event]).entry_service.submit_entry(
                draft(event, ["E1"], estimated_duration=Decimal("2.5"))
            )


class TestEntryApproval:
    def test_approve_marks_paid_and_registers_participants(self):
        event = make_event()
        harness = Harness(dancer("E1"), dancer("E2"), events=[event])
        entry = harness.entry_service.submit_entry(draft(event, ["E1", "E2"], fee=560))

        result = harness.entry_service.approve_entry(str(entry.id))

        assert result.entry.approved is True
        assert result.entry.payment_status is EntryPaymentStatus.PAID
        assert result.entry.approved_at is not None
        assert [r.reason for r in result.registration_results] == [MARKED, MARKED]
        assert harness.dancers.get_dancer_by_id("E1").has_paid_registration_for(FIRE)
        assert harness.dancers.column_checks == 1

    def test_approval_survives_registration_failures(self):
        event = make_event()
        harness = Harness(events=[event])
        entry = harness.entry_service.submit_entry(draft(event, ["ghost-1", "ghost-2"], fee=560))
        result = harness.entry_service.approve_entry(str(entry.id))
        assert result.entry.approved is True
        assert not any(r.success for r in result.registration_results)

    def test_invalid_id(self):
        with pytest.raises(InvalidIdError):
            Harness().entry_service.approve_entry("123")

    def test_unknown_entry(self):
        with pytest.raises(EntryNotFoundError):
            Harness().entry_service.approve_entry(str(uuid.uuid4()))


class TestEftSubmission:
    def test_entries_pending_with_invoice_reference(self):
        event = make_event()
        harness = Harness(dancer("E1"), events=[event])
        submission = harness.entry_service.submit_eft(
            [draft(event, ["E1"]), draft(event, ["E1"]), draft(event, ["A", "B"], fee=560)],
            invoice_number="INV-1001",
            user_email="parent@example.com",
        )
        assert [e.calculated_fee for e in submission.entries] == [Money.of(400), Money.of(750), Money.of(560)]
        assert all(e.payment_method == "eft" and e.payment_reference == "INV-1001" for e in submission.entries)
        assert all(e.payment_status is EntryPaymentStatus.PENDING for e in submission.entries)
        assert submission.total == Money.of(1710)
        assert harness.payments.eft_logs[0]["entries_count"] == 3

    def test_invoice_required(self):
        event = make_event()
        with pytest.raises(InvalidInputError):
            Harness(events=[event]).entry_service.submit_eft([draft(event, ["E1"])], invoice_number="")
