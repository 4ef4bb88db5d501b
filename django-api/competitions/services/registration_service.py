"""Registration fee tracking: the one-time, per-mastery-level fee each dancer owes.

The auto-mark operations run as side effects of approvals and payments. They
report failures in their results and never raise, so the parent operation
always proceeds.
"""

import logging
from collections.abc import Callable, Iterable
from datetime import datetime

from django.db import DatabaseError
from django.utils import timezone

from competitions.domain import Dancer, RegistrationMarkResult
from competitions.domain.errors import DancerNotFoundError, DomainError
from competitions.stores.interfaces import DancerStore

logger = logging.getLogger(__name__)

MARKED = "Marked as paid"
ALREADY_PAID = "Already paid for this mastery level"
NOT_FOUND = "Dancer not found"
NO_PUBLIC_ID = "No EODSA ID found"
FAILED = "Error occurred"


class RegistrationFeeTracker:
    """Service for registration-fee state."""

    def __init__(self, store: DancerStore, clock: Callable[[], datetime] = timezone.now) -> None:
        self._store = store
        self._clock = clock

    def ensure_tracking_columns(self) -> None:
        self._store.add_registration_fee_columns()

    def get_dancers_with_registration_status(self, dancer_ids: Iterable[str]) -> list[Dancer]:
        """Dancers that are not found are omitted, so the result may be shorter than the input."""
        return self._store.get_dancers_with_registration_status(dancer_ids)

    def mark_registration_fee_paid(self, dancer_id: str, mastery_level: str) -> Dancer:
        """Mark the fee paid at ``mastery_level``.

        Repeating the call with the same level leaves the dancer untouched; a
        different level re-marks, since the fee is level-specific.

        Raises:
            DancerNotFoundError: If no dancer matches ``dancer_id``.
        """
        dancer = self._store.get_dancer_by_id(dancer_id)
        if dancer is None:
            raise DancerNotFoundError(dancer_id)
        if dancer.has_paid_registration_for(mastery_level):
            return dancer
        self._store.mark_registration_fee_paid(dancer.id, mastery_level, self._clock())
        return self._store.get_dancer_by_id(dancer.id)

    def auto_mark_registration_fee_paid(self, public_id: str, mastery_level: str) -> RegistrationMarkResult:
        logger.info("Auto-marking registration fee for dancer %s (%s)", public_id, mastery_level)
        try:
            dancer = self._store.get_dancer_by_public_id(public_id)
            if dancer is None:
                logger.warning("No dancer found with EODSA ID %s", public_id)
                return RegistrationMarkResult(public_id, success=False, reason=NOT_FOUND, public_id=public_id)

            if dancer.has_paid_registration_for(mastery_level):
                return RegistrationMarkResult(dancer.id, success=True, reason=ALREADY_PAID, public_id=public_id)

            self._store.mark_registration_fee_paid(dancer.id, mastery_level, self._clock())
        except (DomainError, DatabaseError):
            logger.exception("Failed to auto-mark registration fee for %s", public_id)
            return RegistrationMarkResult(public_id, success=False, reason=FAILED, public_id=public_id)
        return RegistrationMarkResult(dancer.id, success=True, reason=MARKED, public_id=public_id)

    def auto_mark_registration_for_participants(
        self, participant_ids: Iterable[str], mastery_level: str
    ) -> list[RegistrationMarkResult]:
        """Fan auto-marking out over every participant. Partial failure is expected."""
        results = []
        for participant_id in participant_ids:
            try:
                dancer = self._store.get_dancer_by_id(participant_id)
            except DatabaseError:
                logger.exception("Error processing participant %s", participant_id)
                results.append(RegistrationMarkResult(participant_id, success=False, reason=FAILED))
                continue

            if dancer is None or not dancer.public_id:
                logger.warning("Participant %s has no EODSA ID, registration fee not marked", participant_id)
                results.append(RegistrationMarkResult(participant_id, success=False, reason=NO_PUBLIC_ID))
                continue

            result = self.auto_mark_registration_fee_paid(dancer.public_id, mastery_level)
            results.append(
                RegistrationMarkResult(participant_id, result.success, result.reason, public_id=dancer.public_id)
            )
        return results
