from competitions.domain.models import (
    CompetitionEvent,
    Dancer,
    DancerFinances,
    EntryDraft,
    EntryPaymentStatus,
    EntryShare,
    EntryType,
    EventEntry,
    FeeBreakdown,
    FeeSchedule,
    FeeValidation,
    Payment,
    PaymentState,
    PerformanceType,
    RegistrationMarkResult,
)
from competitions.domain.value_objects import EntryId, EventId, Money

__all__ = [
    "CompetitionEvent",
    "Dancer",
    "DancerFinances",
    "EntryDraft",
    "EntryPaymentStatus",
    "EntryShare",
    "EntryType",
    "EventEntry",
    "FeeBreakdown",
    "FeeSchedule",
    "FeeValidation",
    "Payment",
    "PaymentState",
    "PerformanceType",
    "RegistrationMarkResult",
    "EntryId",
    "EventId",
    "Money",
]
