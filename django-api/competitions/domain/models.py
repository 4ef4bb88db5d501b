"""Domain models representing persisted state.

These are pure domain objects with no API input rules.
Django ORM models are in competitions/models.py (persistence layer).
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Self

from competitions.domain.errors import InvalidInputError
from competitions.domain.value_objects import EntryId, EventId, Money


class PerformanceType(Enum):
    """Solo/Duet/Trio/Group, derived from the participant count."""

    SOLO = "Solo"
    DUET = "Duet"
    TRIO = "Trio"
    GROUP = "Group"

    @classmethod
    def from_participant_count(cls, count: int) -> Self:
        if count < 1:
            raise InvalidInputError("Invalid participant count: must be at least 1 participant")
        if count == 1:
            return cls.SOLO
        if count == 2:
            return cls.DUET
        if count == 3:
            return cls.TRIO
        return cls.GROUP

    def accepts(self, count: int) -> bool:
        return count >= 1 and PerformanceType.from_participant_count(count) is self


class EntryPaymentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PaymentState(Enum):
    """Payment lifecycle: initiated -> processing -> completed|failed|cancelled."""

    INITIATED = "initiated"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (PaymentState.COMPLETED, PaymentState.FAILED, PaymentState.CANCELLED)

    @property
    def entry_status(self) -> EntryPaymentStatus:
        return {
            PaymentState.COMPLETED: EntryPaymentStatus.PAID,
            PaymentState.FAILED: EntryPaymentStatus.FAILED,
            PaymentState.CANCELLED: EntryPaymentStatus.CANCELLED,
        }.get(self, EntryPaymentStatus.PENDING)


class EntryType(Enum):
    LIVE = "live"
    VIRTUAL = "virtual"


@dataclass(frozen=True)
class Dancer:
    """A dancer with the registration-fee fields populated.

    ``registration_fee_paid`` defaults to False when the row has no value.
    """

    id: str
    public_id: str | None
    name: str
    age: int | None = None
    rejection_reason: str | None = None
    registration_fee_paid: bool = False
    registration_fee_paid_at: datetime | None = None
    registration_fee_mastery_level: str | None = None

    @property
    def identities(self) -> frozenset[str]:
        return frozenset(i for i in (self.id, self.public_id) if i)

    def has_paid_registration_for(self, mastery_level: str) -> bool:
        return self.registration_fee_paid and self.registration_fee_mastery_level == mastery_level


@dataclass(frozen=True)
class FeeSchedule:
    """Per-event price table. Solo amounts are package totals."""

    solo_1: Money
    solo_2: Money
    solo_3: Money
    solo_additional: Money
    duo_trio_per_dancer: Money
    group_per_dancer: Money
    large_group_per_dancer: Money
    registration_per_dancer: Money | None = None
    large_group_threshold: int = 10
    currency: str = "ZAR"


@dataclass(frozen=True)
class CompetitionEvent:
    """Domain representation of a competition event."""

    id: EventId
    name: str
    event_date: datetime
    registration_deadline: datetime
    age_category: str
    fee_schedule: FeeSchedule


@dataclass(frozen=True)
class FeeBreakdown:
    """Itemised fee for one entry. Not persisted."""

    mastery_level: str
    performance_type: PerformanceType
    participant_count: int
    performance_fee: Money
    per_participant_fee: Money | None
    registration_fee_per_dancer: Money
    registration_fee: Money
    total: Money
    explanation: str
    unpaid_registration_dancers: tuple[str, ...] = ()
    paid_registration_dancers: tuple[str, ...] = ()


@dataclass(frozen=True)
class FeeValidation:
    """Outcome of re-deriving a client-submitted entry fee."""

    validated_fee: Money
    expected_fee: Money
    was_correct: bool
    explanation: str


def _snapshot_participants(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list) or not value or not all(isinstance(i, str) and i for i in value):
        raise ValueError(f"participantIds must be a non-empty list of ids, got {value!r}")
    return tuple(value)


@dataclass(frozen=True)
class EntryDraft:
    """A not-yet-persisted entry, as submitted or held in a payment snapshot."""

    event_id: EventId
    contestant_id: str
    eodsa_id: str
    participant_ids: tuple[str, ...]
    calculated_fee: Money
    item_name: str = ""
    choreographer: str = ""
    mastery: str = ""
    item_style: str = ""
    estimated_duration: Decimal = Decimal("0")
    entry_type: EntryType = EntryType.LIVE
    music_file_url: str = ""
    video_external_url: str = ""

    @property
    def performance_type(self) -> PerformanceType:
        return PerformanceType.from_participant_count(len(self.participant_ids))

    def with_fee(self, fee: Money) -> "EntryDraft":
        return replace(self, calculated_fee=fee)

    def to_snapshot(self) -> dict[str, Any]:
        return {
            "eventId": str(self.event_id),
            "contestantId": self.contestant_id,
            "eodsaId": self.eodsa_id,
            "participantIds": list(self.participant_ids),
            "calculatedFee": str(self.calculated_fee.amount),
            "itemName": self.item_name,
            "choreographer": self.choreographer,
            "mastery": self.mastery,
            "itemStyle": self.item_style,
            "estimatedDuration": str(self.estimated_duration),
            "entryType": self.entry_type.value,
            "musicFileUrl": self.music_file_url,
            "videoExternalUrl": self.video_external_url,
        }

    @classmethod
    def from_snapshot(cls, data: dict[str, Any]) -> Self:
        """Rebuild a draft from a pending-entries item. Raises KeyError/ValueError on bad data."""
        return cls(
            event_id=EventId.from_string(data["eventId"]),
            contestant_id=data["contestantId"],
            eodsa_id=data.get("eodsaId", ""),
            participant_ids=_snapshot_participants(data["participantIds"]),
            calculated_fee=Money.of(data["calculatedFee"]),
            item_name=data.get("itemName") or "",
            choreographer=data.get("choreographer") or "",
            mastery=data.get("mastery") or "",
            item_style=data.get("itemStyle") or "",
            estimated_duration=Decimal(str(data.get("estimatedDuration") or 0)),
            entry_type=EntryType(data.get("entryType") or EntryType.LIVE.value),
            music_file_url=data.get("musicFileUrl") or "",
            video_external_url=data.get("videoExternalUrl") or "",
        )


@dataclass(frozen=True)
class EventEntry:
    """Domain representation of a submitted performance item."""

    id: EntryId
    event_id: EventId
    contestant_id: str
    eodsa_id: str
    participant_ids: tuple[str, ...]
    performance_type: PerformanceType
    calculated_fee: Money
    payment_status: EntryPaymentStatus
    approved: bool
    mastery: str
    item_name: str
    entry_type: EntryType
    submitted_at: datetime
    payment_method: str = ""
    payment_id: str | None = None
    payment_reference: str = ""
    approved_at: datetime | None = None
    choreographer: str = ""
    item_style: str = ""
    estimated_duration: Decimal = Decimal("0")


@dataclass(frozen=True)
class Payment:
    """Provider-tracked payment. Terminal once completed, failed or cancelled."""

    payment_id: str
    status: PaymentState
    amount: Money
    created_at: datetime
    provider_status: str = ""
    provider_payment_id: str = ""
    amount_gross: Money | None = None
    amount_fee: Money | None = None
    amount_net: Money | None = None
    raw_response: dict[str, Any] | None = None
    pending_entries_data: list[dict[str, Any]] | None = None
    event_id: EventId | None = None
    paid_at: datetime | None = None


@dataclass(frozen=True)
class RegistrationMarkResult:
    """Per-participant outcome of registration-fee auto-marking."""

    participant_id: str
    success: bool
    reason: str
    public_id: str | None = None


@dataclass(frozen=True)
class EntryShare:
    """A dancer's attributed share of one entry's fee."""

    entry: EventEntry
    share: Money
    participation_role: str


@dataclass(frozen=True)
class DancerFinances:
    dancer: Dancer
    registration_outstanding: Money
    entries: tuple[EntryShare, ...] = field(default_factory=tuple)
    total_outstanding: Money = field(default_factory=Money.zero)
    total_paid: Money = field(default_factory=Money.zero)
