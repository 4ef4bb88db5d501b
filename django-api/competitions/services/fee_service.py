"""Fee service: resolves fee schedules and runs the calculator against live registration state."""

from dataclasses import replace

from competitions.domain import EventId, FeeBreakdown, FeeSchedule, PerformanceType
from competitions.domain.errors import EventNotFoundError, InvalidIdError, InvalidInputError
from competitions.domain.pricing import DEFAULT_FEE_SCHEDULE, calculate_fee
from competitions.services.registration_service import RegistrationFeeTracker
from competitions.stores.interfaces import EventStore


def parse_event_id(event_id: str) -> EventId:
    try:
        return EventId.from_string(str(event_id))
    except ValueError as exc:
        raise InvalidIdError() from exc


class FeeService:
    """Service for fee quotes."""

    def __init__(self, events: EventStore, tracker: RegistrationFeeTracker) -> None:
        self._events = events
        self._tracker = tracker

    def get_fee_schedule(self, event_id: str | EventId | None) -> FeeSchedule:
        """Return the event's schedule, or the default schedule when no event is given.

        Raises:
            InvalidIdError: If the event_id is not a valid UUID.
            EventNotFoundError: If the event does not exist.
        """
        if event_id is None or event_id == "":
            return DEFAULT_FEE_SCHEDULE
        if not isinstance(event_id, EventId):
            event_id = parse_event_id(event_id)
        schedule = self._events.get_fee_schedule(event_id)
        if schedule is None:
            raise EventNotFoundError(str(event_id))
        return schedule

    def calculate_fee(
        self,
        mastery_level: str,
        performance_type: PerformanceType,
        participant_count: int,
        *,
        event_id: str | EventId | None = None,
        solo_count: int = 1,
        include_registration: bool = True,
    ) -> FeeBreakdown:
        return calculate_fee(
            mastery_level,
            performance_type,
            participant_count,
            schedule=self.get_fee_schedule(event_id),
            solo_count=solo_count,
            include_registration=include_registration,
        )

    def calculate_smart_fee(
        self,
        mastery_level: str,
        performance_type: PerformanceType,
        participant_ids: list[str],
        *,
        event_id: str | EventId | None = None,
        solo_count: int = 1,
    ) -> FeeBreakdown:
        """Fee that charges registration only to participants who still owe it.

        Participants with no dancer record are treated as owing.
        """
        if len(set(participant_ids)) != len(participant_ids):
            raise InvalidInputError("participantIds must be unique")

        dancers = self._tracker.get_dancers_with_registration_status(participant_ids)
        by_identity = {identity: dancer for dancer in dancers for identity in dancer.identities}
        paid, unpaid = [], []
        for participant_id in participant_ids:
            dancer = by_identity.get(participant_id)
            if dancer is not None and dancer.has_paid_registration_for(mastery_level):
                paid.append(participant_id)
            else:
                unpaid.append(participant_id)

        breakdown = calculate_fee(
            mastery_level,
            performance_type,
            len(participant_ids),
            schedule=self.get_fee_schedule(event_id),
            solo_count=solo_count,
            include_registration=True,
            participant_dancers=[by_identity[p] for p in paid],
        )
        return replace(
            breakdown,
            unpaid_registration_dancers=tuple(unpaid),
            paid_registration_dancers=tuple(paid),
        )
