import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Dancer",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("eodsa_id", models.CharField(blank=True, max_length=20, null=True, unique=True)),
                ("name", models.CharField(max_length=255)),
                ("age", models.PositiveSmallIntegerField(blank=True, null=True)),
                ("rejection_reason", models.TextField(blank=True)),
                ("registration_fee_paid", models.BooleanField(default=False)),
                ("registration_fee_paid_at", models.DateTimeField(blank=True, null=True)),
                ("registration_fee_mastery_level", models.CharField(blank=True, max_length=50, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
        ),
        migrations.CreateModel(
            name="EftPaymentLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("user_email", models.EmailField(blank=True, max_length=254)),
                ("user_name", models.CharField(blank=True, max_length=255)),
                ("eodsa_id", models.CharField(blank=True, max_length=64)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=10)),
                ("invoice_number", models.CharField(max_length=100)),
                ("item_description", models.CharField(blank=True, max_length=255)),
                ("entries_count", models.PositiveIntegerField(default=0)),
                ("status", models.CharField(default="pending_verification", max_length=30)),
                ("submitted_at", models.DateTimeField(auto_now_add=True)),
            ],
        ),
        migrations.CreateModel(
            name="Event",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=255)),
                ("venue", models.CharField(blank=True, max_length=255)),
                ("event_date", models.DateTimeField()),
                ("registration_deadline", models.DateTimeField()),
                ("age_category", models.CharField(default="All Ages", max_length=50)),
                ("currency", models.CharField(default="ZAR", max_length=3)),
                (
                    "registration_fee_per_dancer",
                    models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True),
                ),
                ("solo_1_fee", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("solo_2_fee", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("solo_3_fee", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("solo_additional_fee", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                (
                    "duo_trio_fee_per_dancer",
                    models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True),
                ),
                ("group_fee_per_dancer", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                (
                    "large_group_fee_per_dancer",
                    models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["-event_date"],
            },
        ),
        migrations.CreateModel(
            name="PaymentLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("payment_id", models.CharField(db_index=True, max_length=100)),
                ("event_type", models.CharField(max_length=50)),
                ("event_data", models.JSONField(default=dict)),
                ("ip_address", models.CharField(blank=True, max_length=64)),
                ("user_agent", models.CharField(blank=True, max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "ordering": ["created_at", "id"],
            },
        ),
        migrations.CreateModel(
            name="EventEntry",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("contestant_id", models.CharField(max_length=64)),
                ("eodsa_id", models.CharField(max_length=64)),
                ("participant_ids", models.JSONField(default=list)),
                ("participant_count", models.PositiveSmallIntegerField()),
                ("performance_type", models.CharField(max_length=10)),
                ("calculated_fee", models.DecimalField(decimal_places=2, max_digits=10)),
                (
                    "payment_status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("paid", "Paid"),
                            ("failed", "Failed"),
                            ("cancelled", "Cancelled"),
                        ],
                        default="pending",
                        max_length=10,
                    ),
                ),
                ("payment_method", models.CharField(blank=True, max_length=20)),
                ("payment_reference", models.CharField(blank=True, max_length=100)),
                ("payment_id", models.CharField(blank=True, db_index=True, max_length=100, null=True)),
                ("snapshot_index", models.PositiveIntegerField(blank=True, null=True)),
                ("approved", models.BooleanField(default=False)),
                ("approved_at", models.DateTimeField(blank=True, null=True)),
                ("item_name", models.CharField(blank=True, max_length=255)),
                ("choreographer", models.CharField(blank=True, max_length=255)),
                ("mastery", models.CharField(blank=True, max_length=50)),
                ("item_style", models.CharField(blank=True, max_length=100)),
                ("estimated_duration", models.DecimalField(decimal_places=2, default=0, max_digits=5)),
                (
                    "entry_type",
                    models.CharField(choices=[("live", "Live"), ("virtual", "Virtual")], default="live", max_length=10),
                ),
                ("music_file_url", models.URLField(blank=True, max_length=500)),
                ("video_external_url", models.URLField(blank=True, max_length=500)),
                ("submitted_at", models.DateTimeField(auto_now_add=True)),
                (
                    "event",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="entries",
                        to="competitions.event",
                    ),
                ),
            ],
            options={
                "ordering": ["submitted_at"],
                "indexes": [models.Index(fields=["event", "participant_count"], name="entry_event_count_idx")],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("payment_id__isnull", False), ("snapshot_index__isnull", False)),
                        fields=("payment_id", "snapshot_index"),
                        name="unique_snapshot_entry_per_payment",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("payment_id", models.CharField(max_length=100, unique=True)),
                ("provider_payment_id", models.CharField(blank=True, max_length=100)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("initiated", "Initiated"),
                            ("processing", "Processing"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                            ("cancelled", "Cancelled"),
                        ],
                        default="initiated",
                        max_length=12,
                    ),
                ),
                ("provider_status", models.CharField(blank=True, max_length=20)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=10)),
                ("amount_gross", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("amount_fee", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("amount_net", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("signature", models.CharField(blank=True, max_length=64)),
                ("raw_response", models.JSONField(blank=True, null=True)),
                ("pending_entries_data", models.JSONField(blank=True, null=True)),
                ("email", models.EmailField(blank=True, max_length=254)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "event",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="payments",
                        to="competitions.event",
                    ),
                ),
            ],
        ),
    ]
