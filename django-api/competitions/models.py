"""Django ORM models (persistence layer).

These models handle database concerns. Domain logic lives in domain/.
"""

import uuid

from django.db import models


class Event(models.Model):
    """Persistence model for competition events.

    Fee columns are nullable; NULL means "use the default schedule".
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    venue = models.CharField(max_length=255, blank=True)
    event_date = models.DateTimeField()
    registration_deadline = models.DateTimeField()
    age_category = models.CharField(max_length=50, default="All Ages")
    currency = models.CharField(max_length=3, default="ZAR")
    registration_fee_per_dancer = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    solo_1_fee = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    solo_2_fee = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    solo_3_fee = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    solo_additional_fee = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    duo_trio_fee_per_dancer = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    group_fee_per_dancer = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    large_group_fee_per_dancer = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-event_date"]

    def __str__(self) -> str:
        return self.name


class Dancer(models.Model):
    """Persistence model for dancers, including registration-fee tracking."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    eodsa_id = models.CharField(max_length=20, unique=True, null=True, blank=True)
    name = models.CharField(max_length=255)
    age = models.PositiveSmallIntegerField(null=True, blank=True)
    rejection_reason = models.TextField(blank=True)
    registration_fee_paid = models.BooleanField(default=False)
    registration_fee_paid_at = models.DateTimeField(null=True, blank=True)
    registration_fee_mastery_level = models.CharField(max_length=50, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    REGISTRATION_FEE_FIELDS = (
        "registration_fee_paid",
        "registration_fee_paid_at",
        "registration_fee_mastery_level",
    )

    def __str__(self) -> str:
        return f"{self.name} ({self.eodsa_id})"


class EventEntry(models.Model):
    """Persistence model for event entries. Never deleted, only status-transitioned."""

    PAYMENT_STATUS_CHOICES = [
        ("pending", "Pending"),
        ("paid", "Paid"),
        ("failed", "Failed"),
        ("cancelled", "Cancelled"),
    ]
    ENTRY_TYPE_CHOICES = [("live", "Live"), ("virtual", "Virtual")]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    event = models.ForeignKey(Event, on_delete=models.PROTECT, related_name="entries")
    contestant_id = models.CharField(max_length=64)
    eodsa_id = models.CharField(max_length=64)
    participant_ids = models.JSONField(default=list)
    participant_count = models.PositiveSmallIntegerField()
    performance_type = models.CharField(max_length=10)
    calculated_fee = models.DecimalField(max_digits=10, decimal_places=2)
    payment_status = models.CharField(max_length=10, choices=PAYMENT_STATUS_CHOICES, default="pending")
    payment_method = models.CharField(max_length=20, blank=True)
    payment_reference = models.CharField(max_length=100, blank=True)
    payment_id = models.CharField(max_length=100, null=True, blank=True, db_index=True)
    snapshot_index = models.PositiveIntegerField(null=True, blank=True)
    approved = models.BooleanField(default=False)
    approved_at = models.DateTimeField(null=True, blank=True)
    item_name = models.CharField(max_length=255, blank=True)
    choreographer = models.CharField(max_length=255, blank=True)
    mastery = models.CharField(max_length=50, blank=True)
    item_style = models.CharField(max_length=100, blank=True)
    estimated_duration = models.DecimalField(max_digits=5, decimal_places=2, default=0)
    entry_type = models.CharField(max_length=10, choices=ENTRY_TYPE_CHOICES, default="live")
    music_file_url = models.URLField(max_length=500, blank=True)
    video_external_url = models.URLField(max_length=500, blank=True)
    submitted_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["submitted_at"]
        indexes = [
            models.Index(fields=["event", "participant_count"], name="entry_event_count_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["payment_id", "snapshot_index"],
                condition=models.Q(payment_id__isnull=False, snapshot_index__isnull=False),
                name="unique_snapshot_entry_per_payment",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.item_name} ({self.performance_type})"


class Payment(models.Model):
    """Persistence model for provider-tracked payments."""

    STATUS_CHOICES = [
        ("initiated", "Initiated"),
        ("processing", "Processing"),
        ("completed", "Completed"),
        ("failed", "Failed"),
        ("cancelled", "Cancelled"),
    ]

    payment_id = models.CharField(max_length=100, unique=True)
    provider_payment_id = models.CharField(max_length=100, blank=True)
    status = models.CharField(max_length=12, choices=STATUS_CHOICES, default="initiated")
    provider_status = models.CharField(max_length=20, blank=True)
    event = models.ForeignKey(Event, on_delete=models.SET_NULL, null=True, blank=True, related_name="payments")
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    amount_gross = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    amount_fee = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    amount_net = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    signature = models.CharField(max_length=64, blank=True)
    raw_response = models.JSONField(null=True, blank=True)
    pending_entries_data = models.JSONField(null=True, blank=True)
    email = models.EmailField(blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"{self.payment_id} ({self.status})"


class PaymentLog(models.Model):
    """Append-only audit trail of provider notifications and their outcome."""

    payment_id = models.CharField(max_length=100, db_index=True)
    event_type = models.CharField(max_length=50)
    event_data = models.JSONField(default=dict)
    ip_address = models.CharField(max_length=64, blank=True)
    user_agent = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]

    def __str__(self) -> str:
        return f"{self.payment_id} {self.event_type}"


class EftPaymentLog(models.Model):
    """Record of an EFT submission awaiting manual verification."""

    user_email = models.EmailField(blank=True)
    user_name = models.CharField(max_length=255, blank=True)
    eodsa_id = models.CharField(max_length=64, blank=True)
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    invoice_number = models.CharField(max_length=100)
    item_description = models.CharField(max_length=255, blank=True)
    entries_count = models.PositiveIntegerField(default=0)
    status = models.CharField(max_length=30, default="pending_verification")
    submitted_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"EFT {self.invoice_number}"
