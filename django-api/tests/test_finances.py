"""Tests for per-dancer finances and fee attribution.

Run with: pytest tests/test_finances.py -v
"""

import uuid

import pytest
from django.utils import timezone

from competitions.domain import (
    EntryId,
    EntryPaymentStatus,
    EntryType,
    EventEntry,
    EventId,
    Money,
    PerformanceType,
)
from competitions.models import EventEntry as EventEntryRow
from competitions.services.finance_service import attribute_entry_fee


def entry(participants, fee) -> EventEntry:
    return EventEntry(
        id=EntryId(uuid.uuid4()),
        event_id=EventId(uuid.uuid4()),
        contestant_id="c1",
        eodsa_id=participants[0],
        participant_ids=tuple(participants),
        performance_type=PerformanceType.from_participant_count(len(participants)),
        calculated_fee=Money.of(fee),
        payment_status=EntryPaymentStatus.PENDING,
        approved=False,
        mastery="Nationals",
        item_name="Item",
        entry_type=EntryType.LIVE,
        submitted_at=timezone.now(),
    )


class TestAttribution:
    def test_even_split(self):
        duet = entry(["a", "b"], 560)
        assert attribute_entry_fee(duet, "a") == Money.of(280)
        assert attribute_entry_fee(duet, "b") == Money.of(280)

    def test_remainder_goes_to_first_participant(self):
        trio = entry(["a", "b", "c"], 1000)
        shares = [attribute_entry_fee(trio, p) for p in ("a", "b", "c")]
        assert shares == [Money.of(334), Money.of(333), Money.of(333)]
        assert sum(s.amount for s in shares) == 1000

    def test_non_participant_owes_nothing(self):
        assert attribute_entry_fee(entry(["a"], 400), "z") == Money.zero()


@pytest.mark.django_db
class TestDancerFinances:
    """Tests for GET /api/dancers/{eodsa_id}/finances"""

    def _entry(self, event, participants, fee, status="pending", mastery="Nationals"):
        return EventEntryRow.objects.create(
            event=event,
            contestant_id="c1",
            eodsa_id=participants[0],
            participant_ids=participants,
            participant_count=len(participants),
            performance_type=PerformanceType.from_participant_count(len(participants)).value,
            calculated_fee=fee,
            payment_status=status,
            mastery=mastery,
        )

    def test_totals(self, api_client, make_event, make_dancer):
        event = make_event()
        make_dancer("E1")
        self._entry(event, ["E1"], "400.00", status="paid")
        self._entry(event, ["E2", "E1"], "560.00")
        self._entry(event, ["E1", "E3", "E4", "E5"], "880.00", status="cancelled")

        response = api_client.get("/api/dancers/E1/finances")

        assert response.status_code == 200
        body = response.json()
        assert body["dancer"]["eodsaId"] == "E1"
        assert body["financial"]["totalPaid"] == 400
        assert body["financial"]["registrationFeeOutstanding"] == 300
        assert body["financial"]["totalEntryOutstanding"] == 280
        assert body["financial"]["totalOutstanding"] == 580
        assert sorted(e["participationRole"] for e in body["entries"]) == ["duet", "solo"]

    def test_paid_registration_not_outstanding(self, api_client, make_event, make_dancer):
        event = make_event()
        make_dancer("E1", registration_fee_paid=True, registration_fee_mastery_level="Nationals")
        self._entry(event, ["E1"], "400.00")

        body = api_client.get("/api/dancers/E1/finances").json()

        assert body["financial"]["registrationFeeOutstanding"] == 0
        assert body["financial"]["totalOutstanding"] == 400

    def test_event_registration_override(self, api_client, make_event, make_dancer):
        event = make_event(registration_fee_per_dancer="500.00")
        make_dancer("E1")
        self._entry(event, ["E1"], "400.00")

        body = api_client.get("/api/dancers/E1/finances").json()

        assert body["financial"]["registrationFeeOutstanding"] == 500
        assert body["financial"]["totalOutstanding"] == 900

    def test_unknown_dancer(self, api_client):
        assert api_client.get("/api/dancers/E404/finances").status_code == 404
