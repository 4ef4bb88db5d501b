"""Django signals for cache invalidation."""

from django.core.cache import cache
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from competitions.models import Event
from competitions.stores.cached_store import fee_schedule_key


@receiver([post_save, post_delete], sender=Event)
def invalidate_fee_schedule_cache(sender, instance, **kwargs):
    """Drop the cached fee schedule when an event is saved or deleted."""
    cache.delete(fee_schedule_key(instance.id))
