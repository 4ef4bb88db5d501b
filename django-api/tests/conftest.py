"""Pytest configuration and shared fixtures."""

import hashlib
from datetime import timedelta
from urllib.parse import quote_plus

import pytest
from django.utils import timezone
from rest_framework.test import APIClient

PASSPHRASE = "jt7NOE43FZPn"


@pytest.fixture
def api_client() -> APIClient:
    return APIClient()


@pytest.fixture(autouse=True)
def clear_cache():
    from django.core.cache import cache
    cache.clear()
    yield
    cache.clear()


@pytest.fixture(autouse=True)
def payfast_settings(settings):
    settings.PAYFAST_MERCHANT_ID = "10000100"
    settings.PAYFAST_MERCHANT_KEY = "46f0cd694581a"
    settings.PAYFAST_PASSPHRASE = PASSPHRASE
    settings.PAYFAST_SANDBOX = True
    settings.PAYFAST_VALID_HOSTS = []
    settings.PAYFAST_TRUSTED_IPS = ["127.0.0.1"]
    settings.PAYFAST_SERVER_VALIDATION = False
    settings.PAYFAST_NOTIFY_URL = "https://example.test/api/payments/payfast/webhook"
    return settings


@pytest.fixture
def make_event(db):
    from competitions.models import Event

    def factory(**overrides):
        now = timezone.now()
        fields = {
            "name": "Gauteng Regional",
            "venue": "Joburg Theatre",
            "event_date": now + timedelta(days=30),
            "registration_deadline": now + timedelta(days=20),
        }
        fields.update(overrides)
        return Event.objects.create(**fields)

    return factory


@pytest.fixture
def make_dancer(db):
    from competitions.models import Dancer

    def factory(eodsa_id, **overrides):
        fields = {"name": f"Dancer {eodsa_id}", "eodsa_id": eodsa_id, "age": 12}
        fields.update(overrides)
        return Dancer.objects.create(**fields)

    return factory


@pytest.fixture
def entry_payload():
    def factory(event, participant_ids, **overrides):
        payload = {
            "eventId": str(event.id),
            "contestantId": "contestant-1",
            "eodsaId": participant_ids[0],
            "participantIds": list(participant_ids),
            "calculatedFee": "0",
            "itemName": "Swan Song",
            "choreographer": "A. Mokoena",
            "mastery": "Water (Competitive)",
            "itemStyle": "Contemporary",
            "estimatedDuration": "1.5",
        }
        payload.update(overrides)
        return payload

    return factory


@pytest.fixture
def signed_itn():
    """Build a raw ITN body signed the way PayFast signs it."""

    def build(pairs):
        body = "&".join(f"{name}={quote_plus(str(value))}" for name, value in pairs)
        signature = hashlib.md5(f"{body}&passphrase={quote_plus(PASSPHRASE)}".encode()).hexdigest()
        return f"{body}&signature={signature}"

    return build
