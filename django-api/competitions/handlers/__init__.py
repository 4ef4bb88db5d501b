from competitions.handlers.views import (
    DancerFinancesView,
    EftPaymentView,
    EntryApproveView,
    EventEntryCreateView,
    FeeQuoteView,
    PayFastInitiateView,
    PayFastWebhookView,
)

__all__ = [
    "DancerFinancesView",
    "EftPaymentView",
    "EntryApproveView",
    "EventEntryCreateView",
    "FeeQuoteView",
    "PayFastInitiateView",
    "PayFastWebhookView",
]
