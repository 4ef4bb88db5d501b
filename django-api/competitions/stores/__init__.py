from competitions.stores.interfaces import DancerStore, EntryStore, EventStore, PaymentStore

__all__ = ["DancerStore", "EntryStore", "EventStore", "PaymentStore"]
