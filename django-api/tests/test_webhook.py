"""Integration tests for the PayFast notification endpoint.

Run with: pytest tests/test_webhook.py -v
"""

from unittest.mock import patch

import pytest
from rest_framework.test import APIClient

from competitions.models import Dancer, EventEntry, Payment, PaymentLog

URL = "/api/payments/payfast/webhook"
MASTERY = "Water (Competitive)"


def snapshot_item(event, participants, fee, **overrides):
    item = {
        "eventId": str(event.id),
        "contestantId": "studio-1",
        "eodsaId": participants[0],
        "participantIds": list(participants),
        "calculatedFee": str(fee),
        "itemName": f"Item for {len(participants)}",
        "mastery": MASTERY,
        "estimatedDuration": "1.5",
    }
    item.update(overrides)
    return item


def itn(payment_id="EODSA-1", status="COMPLETE", gross="1710.00"):
    return [
        ("m_payment_id", payment_id),
        ("pf_payment_id", "1089250"),
        ("payment_status", status),
        ("item_name", "Competition entries"),
        ("amount_gross", gross),
        ("amount_fee", "-39.33"),
        ("amount_net", "1670.67"),
    ]


def log_types(payment_id="EODSA-1"):
    return list(PaymentLog.objects.filter(payment_id=payment_id).values_list("event_type", flat=True))


@pytest.fixture
def event(make_event):
    return make_event()


@pytest.fixture
def payment(event, make_dancer):
    make_dancer("E1")
    make_dancer("E2")
    return Payment.objects.create(
        payment_id="EODSA-1",
        amount="1710.00",
        event=event,
        email="parent@example.com",
        pending_entries_data=[
            snapshot_item(event, ["E1"], 400),
            snapshot_item(event, ["E1", "E2"], 560),
            snapshot_item(event, ["A", "B", "C", "D"], 750),
        ],
    )


def post(client: APIClient, body: str, **extra):
    return client.post(URL, data=body, content_type="application/x-www-form-urlencoded", **extra)


@pytest.mark.django_db
class TestWebhookCompletion:
    """Tests for POST /api/payments/payfast/webhook with payment_status=COMPLETE"""

    def test_creates_snapshot_entries(self, api_client, payment, signed_itn):
        response = post(api_client, signed_itn(itn()))

        assert response.status_code == 200
        assert response.json() == {"success": True, "payment_id": "EODSA-1", "status": "completed"}

        entries = EventEntry.objects.filter(payment_id="EODSA-1")
        assert entries.count() == 3
        assert all(e.payment_status == "paid" and e.approved for e in entries)
        assert sorted(e.snapshot_index for e in entries) == [0, 1, 2]

        payment.refresh_from_db()
        assert payment.status == "completed"
        assert payment.provider_status == "COMPLETE"
        assert payment.provider_payment_id == "1089250"
        assert str(payment.amount_fee) == "39.33"
        assert payment.paid_at is not None
        assert log_types() == ["webhook_received", "status_updated", "auto_entries_created", "completed"]

    def test_duplicate_delivery_creates_entries_once(self, api_client, payment, signed_itn):
        body = signed_itn(itn())
        post(api_client, body)
        response = post(api_client, body)

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert EventEntry.objects.filter(payment_id="EODSA-1").count() == 3
        assert log_types().count("duplicate_webhook_skipped") == 1

    def test_marks_registration_for_participants(self, api_client, payment, signed_itn):
        post(api_client, signed_itn(itn()))

        for eodsa_id in ("E1", "E2"):
            dancer = Dancer.objects.get(eodsa_id=eodsa_id)
            assert dancer.registration_fee_paid is True
            assert dancer.registration_fee_mastery_level == MASTERY

    def test_bad_items_do_not_stop_the_batch(self, api_client, event, signed_itn):
        bad = snapshot_item(event, ["E9"], 400)
        del bad["contestantId"]
        flattened = snapshot_item(event, ["E3"], 400, participantIds="E3")
        Payment.objects.create(
            payment_id="EODSA-1",
            amount="1200.00",
            pending_entries_data=[
                snapshot_item(event, ["E1"], 400),
                bad,
                snapshot_item(event, ["E2"], 400),
                flattened,
            ],
        )

        response = post(api_client, signed_itn(itn()))

        assert response.status_code == 200
        assert EventEntry.objects.filter(payment_id="EODSA-1").count() == 2
        created = PaymentLog.objects.get(payment_id="EODSA-1", event_type="auto_entries_created")
        assert created.event_data["entries_created"] == 2
        assert [f["index"] for f in created.event_data["failures"]] == [1, 3]
        assert not EventEntry.objects.filter(participant_count=2).exists()

    def test_unreadable_snapshot_is_logged(self, api_client, signed_itn):
        Payment.objects.create(payment_id="EODSA-1", amount="400.00", pending_entries_data=[{"eventId": "x"}])

        response = post(api_client, signed_itn(itn()))

        assert response.status_code == 200
        assert EventEntry.objects.count() == 0
        assert "auto_creation_failed" in log_types()

    def test_existing_entries_are_approved(self, api_client, event, signed_itn):
        Payment.objects.create(payment_id="EODSA-1", amount="400.00")
        entry = EventEntry.objects.create(
            event=event,
            contestant_id="c1",
            eodsa_id="E1",
            participant_ids=["E1"],
            participant_count=1,
            performance_type="Solo",
            calculated_fee="400.00",
            payment_id="EODSA-1",
        )

        post(api_client, signed_itn(itn()))

        entry.refresh_from_db()
        assert entry.payment_status == "paid"
        assert entry.approved is True
        assert EventEntry.objects.count() == 1


@pytest.mark.django_db
class TestWebhookFailure:
    def test_failed_payment_marks_entries_failed(self, api_client, event, signed_itn):
        Payment.objects.create(payment_id="EODSA-1", amount="400.00")
        entry = EventEntry.objects.create(
            event=event,
            contestant_id="c1",
            eodsa_id="E1",
            participant_ids=["E1"],
            participant_count=1,
            performance_type="Solo",
            calculated_fee="400.00",
            payment_id="EODSA-1",
        )

        response = post(api_client, signed_itn(itn(status="FAILED")))

        assert response.json()["status"] == "failed"
        entry.refresh_from_db()
        assert entry.payment_status == "failed"
        assert entry.approved is False
        assert EventEntry.objects.count() == 1
        assert log_types()[-1] == "failed"

    def test_failed_payment_creates_no_snapshot_entries(self, api_client, payment, signed_itn):
        post(api_client, signed_itn(itn(status="FAILED")))
        assert EventEntry.objects.count() == 0

    def test_terminal_state_is_final(self, api_client, payment, signed_itn):
        post(api_client, signed_itn(itn()))
        response = post(api_client, signed_itn(itn(status="CANCELLED")))

        assert response.status_code == 200
        assert response.json()["status"] == "completed"
        assert response.json()["message"] == "Payment already completed; cancelled ignored"
        payment.refresh_from_db()
        assert payment.status == "completed"
        assert all(e.payment_status == "paid" for e in EventEntry.objects.all())
        assert log_types()[-1] == "transition_rejected"

    def test_pending_notification_moves_to_processing(self, api_client, payment, signed_itn):
        response = post(api_client, signed_itn(itn(status="PENDING")))

        assert response.json()["status"] == "processing"
        payment.refresh_from_db()
        assert payment.status == "processing"
        assert EventEntry.objects.count() == 0


@pytest.mark.django_db
class TestWebhookRejections:
    def test_invalid_signature(self, api_client, payment, signed_itn):
        body = signed_itn(itn()).replace("amount_gross=1710.00", "amount_gross=1.00")

        response = post(api_client, body)

        assert response.status_code == 403
        payment.refresh_from_db()
        assert payment.status == "initiated"
        assert log_types() == []

    def test_reordered_fields(self, api_client, payment, signed_itn):
        pairs, signature = signed_itn(itn()).rsplit("&", 1)
        fields = pairs.split("&")
        body = "&".join([fields[2], *fields[:2], *fields[3:], signature])

        assert post(api_client, body).status_code == 403

    def test_untrusted_host(self, api_client, payment, signed_itn):
        response = post(api_client, signed_itn(itn()), REMOTE_ADDR="203.0.113.9")

        assert response.status_code == 403
        assert response.json()["error"] == "Invalid host"
        assert EventEntry.objects.count() == 0

    def test_forwarded_header_is_not_trusted_without_proxies(self, api_client, payment, signed_itn):
        response = post(api_client, signed_itn(itn()), REMOTE_ADDR="203.0.113.9", HTTP_X_FORWARDED_FOR="127.0.0.1")

        assert response.status_code == 403
        payment.refresh_from_db()
        assert payment.status == "initiated"
        assert EventEntry.objects.count() == 0

    def test_host_is_read_from_trusted_proxy_hop(self, api_client, payment, signed_itn, settings):
        """Only the hop appended by our own proxy counts; earlier hops are client-supplied."""
        settings.REST_FRAMEWORK = {**settings.REST_FRAMEWORK, "NUM_PROXIES": 1}
        body = signed_itn(itn())

        spoofed = post(api_client, body, REMOTE_ADDR="10.0.0.2", HTTP_X_FORWARDED_FOR="127.0.0.1, 203.0.113.9")
        proxied = post(api_client, body, REMOTE_ADDR="10.0.0.2", HTTP_X_FORWARDED_FOR="203.0.113.9, 127.0.0.1")

        assert spoofed.status_code == 403
        assert proxied.status_code == 200
        assert EventEntry.objects.filter(payment_id="EODSA-1").count() == 3

    def test_unknown_payment(self, api_client, signed_itn):
        response = post(api_client, signed_itn(itn(payment_id="EODSA-404")))

        assert response.status_code == 404
        assert log_types("EODSA-404") == []

    def test_missing_required_fields(self, api_client, payment, signed_itn):
        response = post(api_client, signed_itn([("m_payment_id", "EODSA-1"), ("amount_gross", "10.00")]))

        assert response.status_code == 400

    def test_unexpected_error_is_success_shaped(self, api_client, payment, signed_itn):
        with patch(
            "competitions.stores.django_store.DjangoEntryStore.update_entries_for_payment",
            side_effect=RuntimeError("boom"),
        ):
            response = post(api_client, signed_itn(itn()))

        assert response.status_code == 200
        assert response.json() == {"success": False, "error": "Internal server error"}
        payment.refresh_from_db()
        assert payment.status == "initiated"
        assert EventEntry.objects.count() == 0
        assert log_types() == ["webhook_received", "webhook_error"]


@pytest.mark.django_db
class TestWebhookLiveness:
    def test_get_returns_success(self, api_client):
        response = api_client.get(URL)

        assert response.status_code == 200
        assert response.json()["success"] is True
