"""Per-dancer finances: entry fee shares and outstanding registration fees.

Attribution rule: an entry fee is split equally among its participants in
whole currency units. The remainder goes to the first listed participant, so
the shares of one entry always add up to its fee.
"""

from decimal import ROUND_DOWN, Decimal

from competitions.domain import (
    Dancer,
    DancerFinances,
    EntryPaymentStatus,
    EntryShare,
    EventEntry,
    EventId,
    FeeSchedule,
    Money,
)
from competitions.domain.errors import DancerNotFoundError
from competitions.domain.pricing import DEFAULT_FEE_SCHEDULE, registration_fee_for
from competitions.stores.interfaces import DancerStore, EntryStore, EventStore

_EXCLUDED = (EntryPaymentStatus.FAILED, EntryPaymentStatus.CANCELLED)


def attribute_entry_fee(entry: EventEntry, participant_id: str) -> Money:
    """Share of ``entry.calculated_fee`` owed by ``participant_id``; zero if not a participant."""
    participants = list(entry.participant_ids)
    if participant_id not in participants:
        return Money.zero()
    fee = entry.calculated_fee.amount
    base = (fee / len(participants)).quantize(Decimal("1"), rounding=ROUND_DOWN)
    if participants.index(participant_id) == 0:
        return Money(fee - base * (len(participants) - 1))
    return Money(base)


def _matching_participant(entry: EventEntry, dancer: Dancer) -> str | None:
    return next((p for p in entry.participant_ids if p in dancer.identities), None)


class FinanceService:
    def __init__(self, dancers: DancerStore, entries: EntryStore, events: EventStore) -> None:
        self._dancers = dancers
        self._entries = entries
        self._events = events

    def _schedule(self, event_id: EventId) -> FeeSchedule:
        return self._events.get_fee_schedule(event_id) or DEFAULT_FEE_SCHEDULE

    def dancer_finances(self, public_id: str) -> DancerFinances:
        """Raises DancerNotFoundError when no dancer has ``public_id``."""
        dancer = self._dancers.get_dancer_by_public_id(public_id)
        if dancer is None:
            raise DancerNotFoundError(public_id)

        shares = []
        outstanding = paid = Money.zero()
        levels: dict[str, EventId] = {}
        for entry in self._entries.list_entries_for_participant(dancer.identities):
            if entry.payment_status in _EXCLUDED:
                continue
            participant_id = _matching_participant(entry, dancer)
            if participant_id is None:
                continue
            share = attribute_entry_fee(entry, participant_id)
            shares.append(EntryShare(entry=entry, share=share, participation_role=entry.performance_type.value.lower()))
            if entry.payment_status is EntryPaymentStatus.PAID:
                paid += share
            else:
                outstanding += share
            if entry.mastery:
                levels.setdefault(entry.mastery, entry.event_id)

        # One registration fee per mastery level the dancer has entered but not paid for,
        # priced by the first counted event at that level.
        registration = sum(
            (
                registration_fee_for(level, self._schedule(event_id))
                for level, event_id in levels.items()
                if not dancer.has_paid_registration_for(level)
            ),
            Money.zero(),
        )
        return DancerFinances(
            dancer=dancer,
            registration_outstanding=registration,
            entries=tuple(shares),
            total_outstanding=outstanding + registration,
            total_paid=paid,
        )
