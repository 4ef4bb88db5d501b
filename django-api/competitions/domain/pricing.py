"""Fee rules: schedule defaults, the entry fee calculator and the fee validator.

Everything in here is pure. Registration-paid state reaches the calculator as
already-fetched ``Dancer`` records; the services layer does the fetching.
"""

import logging
from collections.abc import Iterable

from competitions.domain.errors import ParticipantCountMismatchError
from competitions.domain.models import Dancer, FeeBreakdown, FeeSchedule, FeeValidation, PerformanceType
from competitions.domain.value_objects import Money

logger = logging.getLogger(__name__)

# Registration fee per dancer by mastery level. Unknown levels fall back to
# DEFAULT_REGISTRATION_FEE for backward compatibility with older tiers.
REGISTRATION_FEES: dict[str, Money] = {
    "Water (Competitive)": Money.of(250),
    "Fire (Advanced)": Money.of(250),
    "Nationals": Money.of(300),
}
DEFAULT_REGISTRATION_FEE = Money.of(250)

DEFAULT_FEE_SCHEDULE = FeeSchedule(
    solo_1=Money.of(400),
    solo_2=Money.of(750),
    solo_3=Money.of(1050),
    solo_additional=Money.of(100),
    duo_trio_per_dancer=Money.of(280),
    group_per_dancer=Money.of(220),
    large_group_per_dancer=Money.of(190),
)


def registration_fee_for(mastery_level: str, schedule: FeeSchedule = DEFAULT_FEE_SCHEDULE) -> Money:
    """Per-dancer registration fee; an event override beats the mastery table."""
    if schedule.registration_per_dancer is not None:
        return schedule.registration_per_dancer
    try:
        return REGISTRATION_FEES[mastery_level]
    except KeyError:
        logger.warning("Unknown mastery level %r, using default registration fee", mastery_level)
        return DEFAULT_REGISTRATION_FEE


def solo_package_total(solo_count: int, schedule: FeeSchedule = DEFAULT_FEE_SCHEDULE) -> Money:
    """Package price for ``solo_count`` solos by one dancer at one event."""
    if solo_count <= 0:
        return Money.zero()
    if solo_count == 1:
        return schedule.solo_1
    if solo_count == 2:
        return schedule.solo_2
    if solo_count == 3:
        return schedule.solo_3
    return schedule.solo_3 + schedule.solo_additional * (solo_count - 3)


def per_dancer_rate(
    performance_type: PerformanceType, participant_count: int, schedule: FeeSchedule = DEFAULT_FEE_SCHEDULE
) -> Money:
    if performance_type in (PerformanceType.DUET, PerformanceType.TRIO):
        return schedule.duo_trio_per_dancer
    if participant_count >= schedule.large_group_threshold:
        return schedule.large_group_per_dancer
    return schedule.group_per_dancer


def _solo_explanation(solo_count: int, schedule: FeeSchedule) -> str:
    total = solo_package_total(solo_count, schedule)
    if solo_count <= 3:
        return f"{solo_count}-solo package R{total.amount}"
    return f"3-solo package plus {solo_count - 3} additional solo(s), R{total.amount}"


def calculate_fee(
    mastery_level: str,
    performance_type: PerformanceType,
    participant_count: int,
    *,
    schedule: FeeSchedule = DEFAULT_FEE_SCHEDULE,
    solo_count: int = 1,
    include_registration: bool = False,
    participant_dancers: Iterable[Dancer] | None = None,
) -> FeeBreakdown:
    """Turn an entry description into a fee breakdown.

    ``solo_count`` is the position of this solo among the dancer's solos at the
    event and is only read for solos. With ``include_registration`` every
    participant owes the registration fee unless ``participant_dancers`` shows
    them already paid at ``mastery_level``.

    Raises:
        ParticipantCountMismatchError: If the type does not fit the count.
    """
    if not performance_type.accepts(participant_count):
        raise ParticipantCountMismatchError(performance_type.value, participant_count)

    if performance_type is PerformanceType.SOLO:
        per_participant = None
        performance_fee = solo_package_total(max(solo_count, 1), schedule)
        explanation = f"Solo entry #{max(solo_count, 1)}: {_solo_explanation(max(solo_count, 1), schedule)}"
    else:
        per_participant = per_dancer_rate(performance_type, participant_count, schedule)
        performance_fee = per_participant * participant_count
        explanation = f"{performance_type.value} with {participant_count} participants at R{per_participant.amount} each"

    registration_rate = registration_fee_for(mastery_level, schedule)
    registration_fee = Money.zero()
    paid_ids: tuple[str, ...] = ()
    if include_registration:
        if participant_dancers is not None:
            paid_ids = tuple(d.id for d in participant_dancers if d.has_paid_registration_for(mastery_level))
        owing = max(participant_count - len(paid_ids), 0)
        registration_fee = registration_rate * owing
        if owing:
            explanation += f"; registration R{registration_rate.amount} x {owing}"

    return FeeBreakdown(
        mastery_level=mastery_level,
        performance_type=performance_type,
        participant_count=participant_count,
        performance_fee=performance_fee,
        per_participant_fee=per_participant,
        registration_fee_per_dancer=registration_rate,
        registration_fee=registration_fee,
        total=performance_fee + registration_fee,
        explanation=explanation,
        paid_registration_dancers=paid_ids,
    )


def validate_and_correct_entry_fee(
    performance_type: PerformanceType,
    participant_count: int,
    submitted_fee: Money,
    existing_solo_count: int = 0,
    *,
    schedule: FeeSchedule = DEFAULT_FEE_SCHEDULE,
) -> FeeValidation:
    """Re-derive an entry fee on the server.

    Solo fees are always replaced by the computed package price for solo number
    ``existing_solo_count + 1``. Duet, trio and group fees are compared but the
    submitted value is kept, since those may carry special pricing.
    """
    if performance_type is PerformanceType.SOLO:
        position = existing_solo_count + 1
        expected = solo_package_total(position, schedule)
        return FeeValidation(
            validated_fee=expected,
            expected_fee=expected,
            was_correct=submitted_fee == expected,
            explanation=f"Solo entry #{position}: {_solo_explanation(position, schedule)}",
        )

    expected = per_dancer_rate(performance_type, participant_count, schedule) * participant_count
    return FeeValidation(
        validated_fee=submitted_fee,
        expected_fee=expected,
        was_correct=submitted_fee == expected,
        explanation=f"{performance_type.value} with {participant_count} participants",
    )
