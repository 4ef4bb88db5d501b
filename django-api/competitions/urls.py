from django.urls import path

from competitions.handlers import (
    DancerFinancesView,
    EftPaymentView,
    EntryApproveView,
    EventEntryCreateView,
    FeeQuoteView,
    PayFastInitiateView,
    PayFastWebhookView,
)

urlpatterns = [
    path("fees", FeeQuoteView.as_view(), name="fee-quote"),
    path("event-entries", EventEntryCreateView.as_view(), name="event-entry-create"),
    path(
        "event-entries/<str:entry_id>/approve",
        EntryApproveView.as_view(),
        name="event-entry-approve",
    ),
    path("payments/eft", EftPaymentView.as_view(), name="payment-eft"),
    path("payments/payfast/initiate", PayFastInitiateView.as_view(), name="payfast-initiate"),
    path("payments/payfast/webhook", PayFastWebhookView.as_view(), name="payfast-webhook"),
    path("dancers/<str:eodsa_id>/finances", DancerFinancesView.as_view(), name="dancer-finances"),
]
