"""Read-through cache in front of an EventStore.

Cache keys:
- events:{id}:fees  per-event fee schedule

Entries are dropped by the Event post_save/post_delete signals.
"""

from django.conf import settings
from django.core.cache import cache

from competitions.domain import CompetitionEvent, EventId, FeeSchedule
from competitions.stores.interfaces import EventStore


def fee_schedule_key(event_id: EventId | str) -> str:
    return f"events:{event_id}:fees"


class CachedEventStore(EventStore):
    def __init__(self, store: EventStore) -> None:
        self._store = store

    def get_event(self, event_id: EventId) -> CompetitionEvent | None:
        return self._store.get_event(event_id)

    def get_fee_schedule(self, event_id: EventId) -> FeeSchedule | None:
        key = fee_schedule_key(event_id)
        schedule = cache.get(key)
        if schedule is None:
            schedule = self._store.get_fee_schedule(event_id)
            if schedule is not None:
                cache.set(key, schedule, settings.COMPETITIONS_FEE_CACHE_SECONDS)
        return schedule
