"""Django ORM implementation of the stores."""

import logging
import uuid
from collections.abc import Iterable
from contextlib import AbstractContextManager
from datetime import datetime
from decimal import Decimal
from typing import Any

from django.db import connection, transaction
from django.db.models import Q
from django.utils import timezone

from competitions import models
from competitions.domain import (
    CompetitionEvent,
    Dancer,
    EntryDraft,
    EntryId,
    EntryPaymentStatus,
    EntryType,
    EventEntry,
    EventId,
    FeeSchedule,
    Money,
    Payment,
    PaymentState,
    PerformanceType,
)
from competitions.domain.pricing import DEFAULT_FEE_SCHEDULE
from competitions.stores.interfaces import DancerStore, EntryStore, EventStore, PaymentStore

logger = logging.getLogger(__name__)

_NOT_COUNTED_AS_SOLO = (EntryPaymentStatus.FAILED.value, EntryPaymentStatus.CANCELLED.value)


def _money(value: Decimal | None, default: Money | None = None) -> Money | None:
    return Money(value) if value is not None else default


def _uuids(values: Iterable[str]) -> list[uuid.UUID]:
    parsed = []
    for value in values:
        try:
            parsed.append(uuid.UUID(str(value)))
        except ValueError:
            continue
    return parsed


def _schedule_from_row(row: models.Event) -> FeeSchedule:
    default = DEFAULT_FEE_SCHEDULE
    return FeeSchedule(
        solo_1=_money(row.solo_1_fee, default.solo_1),
        solo_2=_money(row.solo_2_fee, default.solo_2),
        solo_3=_money(row.solo_3_fee, default.solo_3),
        solo_additional=_money(row.solo_additional_fee, default.solo_additional),
        duo_trio_per_dancer=_money(row.duo_trio_fee_per_dancer, default.duo_trio_per_dancer),
        group_per_dancer=_money(row.group_fee_per_dancer, default.group_per_dancer),
        large_group_per_dancer=_money(row.large_group_fee_per_dancer, default.large_group_per_dancer),
        registration_per_dancer=_money(row.registration_fee_per_dancer),
        currency=row.currency or default.currency,
    )


def _dancer_to_domain(row: models.Dancer) -> Dancer:
    return Dancer(
        id=str(row.id),
        public_id=row.eodsa_id,
        name=row.name,
        age=row.age,
        rejection_reason=row.rejection_reason or None,
        registration_fee_paid=bool(row.registration_fee_paid),
        registration_fee_paid_at=row.registration_fee_paid_at,
        registration_fee_mastery_level=row.registration_fee_mastery_level,
    )


def _entry_to_domain(row: models.EventEntry) -> EventEntry:
    return EventEntry(
        id=EntryId(row.id),
        event_id=EventId(row.event_id),
        contestant_id=row.contestant_id,
        eodsa_id=row.eodsa_id,
        participant_ids=tuple(row.participant_ids),
        performance_type=PerformanceType(row.performance_type),
        calculated_fee=Money(row.calculated_fee),
        payment_status=EntryPaymentStatus(row.payment_status),
        approved=row.approved,
        mastery=row.mastery,
        item_name=row.item_name,
        entry_type=EntryType(row.entry_type),
        submitted_at=row.submitted_at,
        payment_method=row.payment_method,
        payment_id=row.payment_id,
        payment_reference=row.payment_reference,
        approved_at=row.approved_at,
        choreographer=row.choreographer,
        item_style=row.item_style,
        estimated_duration=row.estimated_duration,
    )


def _payment_to_domain(row: models.Payment) -> Payment:
    return Payment(
        payment_id=row.payment_id,
        status=PaymentState(row.status),
        amount=Money(row.amount),
        created_at=row.created_at,
        provider_status=row.provider_status,
        provider_payment_id=row.provider_payment_id,
        amount_gross=_money(row.amount_gross),
        amount_fee=_money(row.amount_fee),
        amount_net=_money(row.amount_net),
        raw_response=row.raw_response,
        pending_entries_data=row.pending_entries_data,
        event_id=EventId(row.event_id) if row.event_id else None,
        paid_at=row.paid_at,
    )


class DjangoEventStore(EventStore):
    """PostgreSQL-backed event store using Django ORM."""

    def get_event(self, event_id: EventId) -> CompetitionEvent | None:
        row = models.Event.objects.filter(id=event_id.value).first()
        if row is None:
            return None
        return CompetitionEvent(
            id=EventId(row.id),
            name=row.name,
            event_date=row.event_date,
            registration_deadline=row.registration_deadline,
            age_category=row.age_category,
            fee_schedule=_schedule_from_row(row),
        )

    def get_fee_schedule(self, event_id: EventId) -> FeeSchedule | None:
        row = models.Event.objects.filter(id=event_id.value).first()
        return _schedule_from_row(row) if row is not None else None


class DjangoDancerStore(DancerStore):
    def _lookup(self, ids: Iterable[str]) -> Q:
        ids = [str(i) for i in ids]
        return Q(id__in=_uuids(ids)) | Q(eodsa_id__in=ids)

    def get_dancer_by_id(self, dancer_id: str) -> Dancer | None:
        row = models.Dancer.objects.filter(self._lookup([dancer_id])).first()
        return _dancer_to_domain(row) if row is not None else None

    def get_dancer_by_public_id(self, public_id: str) -> Dancer | None:
        row = models.Dancer.objects.filter(eodsa_id=public_id).first()
        return _dancer_to_domain(row) if row is not None else None

    def get_dancers_with_registration_status(self, dancer_ids: Iterable[str]) -> list[Dancer]:
        dancer_ids = list(dancer_ids)
        if not dancer_ids:
            return []
        return [_dancer_to_domain(row) for row in models.Dancer.objects.filter(self._lookup(dancer_ids))]

    def mark_registration_fee_paid(self, dancer_id: str, mastery_level: str, paid_at: datetime) -> None:
        models.Dancer.objects.filter(self._lookup([dancer_id])).update(
            registration_fee_paid=True,
            registration_fee_paid_at=paid_at,
            registration_fee_mastery_level=mastery_level,
        )

    def add_registration_fee_columns(self) -> None:
        table = models.Dancer._meta.db_table
        with connection.cursor() as cursor:
            existing = {column.name for column in connection.introspection.get_table_description(cursor, table)}
        missing = [
            models.Dancer._meta.get_field(name)
            for name in models.Dancer.REGISTRATION_FEE_FIELDS
            if models.Dancer._meta.get_field(name).column not in existing
        ]
        if not missing:
            return
        with connection.schema_editor() as editor:
            for field in missing:
                logger.info("Adding registration fee column %s.%s", table, field.column)
                editor.add_field(models.Dancer, field)


class DjangoEntryStore(EntryStore):
    def atomic(self) -> AbstractContextManager:
        return transaction.atomic()

    def create_entry(
        self,
        draft: EntryDraft,
        *,
        payment_status: EntryPaymentStatus,
        approved: bool,
        payment_method: str = "",
        payment_reference: str = "",
        payment_id: str | None = None,
        snapshot_index: int | None = None,
    ) -> EventEntry:
        row = models.EventEntry.objects.create(
            event_id=draft.event_id.value,
            contestant_id=draft.contestant_id,
            eodsa_id=draft.eodsa_id,
            participant_ids=list(draft.participant_ids),
            participant_count=len(draft.participant_ids),
            performance_type=draft.performance_type.value,
            calculated_fee=draft.calculated_fee.amount,
            payment_status=payment_status.value,
            payment_method=payment_method,
            payment_reference=payment_reference,
            payment_id=payment_id,
            snapshot_index=snapshot_index,
            approved=approved,
            item_name=draft.item_name,
            choreographer=draft.choreographer,
            mastery=draft.mastery,
            item_style=draft.item_style,
            estimated_duration=draft.estimated_duration,
            entry_type=draft.entry_type.value,
            music_file_url=draft.music_file_url,
            video_external_url=draft.video_external_url,
        )
        return _entry_to_domain(row)

    def get_entry(self, entry_id: EntryId) -> EventEntry | None:
        row = models.EventEntry.objects.filter(id=entry_id.value).first()
        return _entry_to_domain(row) if row is not None else None

    def approve_entry(self, entry_id: EntryId, approved_at: datetime) -> EventEntry:
        models.EventEntry.objects.filter(id=entry_id.value).update(
            approved=True,
            payment_status=EntryPaymentStatus.PAID.value,
            approved_at=approved_at,
        )
        return _entry_to_domain(models.EventEntry.objects.get(id=entry_id.value))

    def count_solo_entries(self, event_id: EventId, identities: Iterable[str]) -> int:
        identities = set(identities)
        participants = (
            models.EventEntry.objects.filter(event_id=event_id.value, participant_count=1)
            .exclude(payment_status__in=_NOT_COUNTED_AS_SOLO)
            .values_list("participant_ids", flat=True)
        )
        return sum(1 for ids in participants if ids and str(ids[0]) in identities)

    def list_entries_for_participant(self, identities: Iterable[str]) -> list[EventEntry]:
        identities = {str(i) for i in identities}
        if not identities:
            return []
        if connection.features.supports_json_field_contains:
            query = Q()
            for identity in identities:
                query |= Q(participant_ids__contains=[identity])
            rows = models.EventEntry.objects.filter(query)
        else:
            # No JSON containment lookup on this backend (SQLite).
            rows = [row for row in models.EventEntry.objects.all() if identities.intersection(map(str, row.participant_ids))]
        return [_entry_to_domain(row) for row in rows]

    def list_entries_for_payment(self, payment_id: str) -> list[EventEntry]:
        return [_entry_to_domain(row) for row in models.EventEntry.objects.filter(payment_id=payment_id)]

    def entries_exist_for_payment(self, payment_id: str) -> bool:
        return models.EventEntry.objects.filter(payment_id=payment_id).exists()

    def update_entries_for_payment(
        self, payment_id: str, payment_status: EntryPaymentStatus, *, approve: bool
    ) -> int:
        changes: dict[str, Any] = {"payment_status": payment_status.value}
        if approve:
            changes["approved"] = True
        return models.EventEntry.objects.filter(payment_id=payment_id).update(**changes)


class DjangoPaymentStore(PaymentStore):
    def atomic(self) -> AbstractContextManager:
        return transaction.atomic()

    def create_payment(
        self,
        payment_id: str,
        amount: Money,
        *,
        event_id: EventId | None,
        email: str,
        pending_entries_data: list[dict[str, Any]] | None,
    ) -> Payment:
        row = models.Payment.objects.create(
            payment_id=payment_id,
            amount=amount.amount,
            event_id=event_id.value if event_id else None,
            email=email,
            pending_entries_data=pending_entries_data,
        )
        return _payment_to_domain(row)

    def get_payment(self, payment_id: str, *, for_update: bool = False) -> Payment | None:
        query = models.Payment.objects.filter(payment_id=payment_id)
        if for_update:
            query = query.select_for_update()
        row = query.first()
        return _payment_to_domain(row) if row is not None else None

    def record_notification(
        self,
        payment_id: str,
        *,
        status: PaymentState,
        provider_status: str,
        provider_payment_id: str,
        amount_gross: Money,
        amount_fee: Money,
        amount_net: Money,
        signature: str,
        raw_response: dict[str, Any],
        paid_at: datetime | None,
    ) -> None:
        models.Payment.objects.filter(payment_id=payment_id).update(
            status=status.value,
            provider_status=provider_status,
            provider_payment_id=provider_payment_id,
            amount_gross=amount_gross.amount,
            amount_fee=amount_fee.amount,
            amount_net=amount_net.amount,
            signature=signature,
            raw_response=raw_response,
            paid_at=paid_at,
            updated_at=timezone.now(),
        )

    def append_log(
        self,
        payment_id: str,
        event_type: str,
        event_data: dict[str, Any],
        *,
        ip_address: str = "",
        user_agent: str = "",
    ) -> None:
        models.PaymentLog.objects.create(
            payment_id=payment_id,
            event_type=event_type,
            event_data=event_data,
            ip_address=ip_address[:64],
            user_agent=user_agent[:255],
        )

    def log_eft_submission(
        self,
        *,
        user_email: str,
        user_name: str,
        eodsa_id: str,
        amount: Money,
        invoice_number: str,
        item_description: str,
        entries_count: int,
    ) -> str:
        row = models.EftPaymentLog.objects.create(
            user_email=user_email,
            user_name=user_name,
            eodsa_id=eodsa_id,
            amount=amount.amount,
            invoice_number=invoice_number,
            item_description=item_description,
            entries_count=entries_count,
        )
        return str(row.id)
