"""Serializers for request input and for rendering domain models.

Input serializers check format only (types, required fields); business rules
live in the services. Field names are camelCase to match the web client.
"""

from decimal import Decimal

from rest_framework import serializers

from competitions.domain import EntryDraft, EntryType, EventId, Money, PerformanceType


class FeeQuoteSerializer(serializers.Serializer):
    masteryLevel = serializers.CharField(source="mastery_level")
    performanceType = serializers.ChoiceField(
        source="performance_type", choices=[t.value for t in PerformanceType]
    )
    numberOfParticipants = serializers.IntegerField(source="participant_count", min_value=1, required=False)
    soloCount = serializers.IntegerField(source="solo_count", min_value=1, default=1)
    includeRegistration = serializers.BooleanField(source="include_registration", default=True)
    participantIds = serializers.ListField(
        source="participant_ids", child=serializers.CharField(), allow_empty=False, required=False
    )
    eventId = serializers.UUIDField(source="event_id", required=False, allow_null=True)

    def validate(self, attrs):
        attrs["performance_type"] = PerformanceType(attrs["performance_type"])
        if "participant_count" not in attrs:
            if "participant_ids" not in attrs:
                raise serializers.ValidationError("numberOfParticipants or participantIds is required")
            attrs["participant_count"] = len(attrs["participant_ids"])
        return attrs


class EntryDraftSerializer(serializers.Serializer):
    eventId = serializers.UUIDField(source="event_id")
    contestantId = serializers.CharField(source="contestant_id")
    eodsaId = serializers.CharField(source="eodsa_id")
    participantIds = serializers.ListField(source="participant_ids", child=serializers.CharField(), allow_empty=False)
    calculatedFee = serializers.DecimalField(
        source="calculated_fee", max_digits=10, decimal_places=2, min_value=Decimal("0"), default=Decimal("0")
    )
    itemName = serializers.CharField(source="item_name", required=False, allow_blank=True, default="")
    choreographer = serializers.CharField(required=False, allow_blank=True, default="")
    mastery = serializers.CharField(required=False, allow_blank=True, default="")
    itemStyle = serializers.CharField(source="item_style", required=False, allow_blank=True, default="")
    estimatedDuration = serializers.DecimalField(
        source="estimated_duration", max_digits=5, decimal_places=2, min_value=Decimal("0"), default=Decimal("0")
    )
    entryType = serializers.ChoiceField(
        source="entry_type", choices=[t.value for t in EntryType], default=EntryType.LIVE.value
    )
    musicFileUrl = serializers.CharField(source="music_file_url", required=False, allow_blank=True, default="")
    videoExternalUrl = serializers.CharField(source="video_external_url", required=False, allow_blank=True, default="")

    @staticmethod
    def to_draft(data: dict) -> EntryDraft:
        return EntryDraft(
            event_id=EventId(data["event_id"]),
            contestant_id=data["contestant_id"],
            eodsa_id=data["eodsa_id"],
            participant_ids=tuple(data["participant_ids"]),
            calculated_fee=Money(data["calculated_fee"]),
            item_name=data["item_name"],
            choreographer=data["choreographer"],
            mastery=data["mastery"],
            item_style=data["item_style"],
            estimated_duration=data["estimated_duration"],
            entry_type=EntryType(data["entry_type"]),
            music_file_url=data["music_file_url"],
            video_external_url=data["video_external_url"],
        )


class EftPaymentSerializer(serializers.Serializer):
    entries = EntryDraftSerializer(many=True, allow_empty=False)
    invoiceNumber = serializers.CharField(source="invoice_number")
    userEmail = serializers.EmailField(source="user_email", required=False, allow_blank=True, default="")
    userName = serializers.CharField(source="user_name", required=False, allow_blank=True, default="")
    eodsaId = serializers.CharField(source="eodsa_id", required=False, allow_blank=True, default="")
    itemDescription = serializers.CharField(source="item_description", required=False, allow_blank=True, default="")


class PayFastInitiateSerializer(serializers.Serializer):
    entries = EntryDraftSerializer(many=True, allow_empty=False)
    email = serializers.EmailField()
    firstName = serializers.CharField(source="first_name", required=False, allow_blank=True, default="")
    lastName = serializers.CharField(source="last_name", required=False, allow_blank=True, default="")
    itemName = serializers.CharField(source="item_name", required=False, allow_blank=True, default="")


def _amount(money: Money | None) -> Decimal | None:
    return money.amount if money is not None else None


class FeeBreakdownSerializer(serializers.Serializer):
    masteryLevel = serializers.CharField(source="mastery_level")
    performanceType = serializers.CharField(source="performance_type.value")
    participantCount = serializers.IntegerField(source="participant_count")
    performanceFee = serializers.DecimalField(source="performance_fee.amount", max_digits=10, decimal_places=2)
    perParticipantFee = serializers.SerializerMethodField()
    registrationFeePerDancer = serializers.DecimalField(
        source="registration_fee_per_dancer.amount", max_digits=10, decimal_places=2
    )
    registrationFee = serializers.DecimalField(source="registration_fee.amount", max_digits=10, decimal_places=2)
    totalFee = serializers.DecimalField(source="total.amount", max_digits=10, decimal_places=2)
    explanation = serializers.CharField()
    unpaidRegistrationDancers = serializers.ListField(source="unpaid_registration_dancers", child=serializers.CharField())
    paidRegistrationDancers = serializers.ListField(source="paid_registration_dancers", child=serializers.CharField())

    def get_perParticipantFee(self, obj):
        return _amount(obj.per_participant_fee)


class EventEntrySerializer(serializers.Serializer):
    id = serializers.CharField()
    eventId = serializers.CharField(source="event_id")
    contestantId = serializers.CharField(source="contestant_id")
    eodsaId = serializers.CharField(source="eodsa_id")
    participantIds = serializers.ListField(source="participant_ids", child=serializers.CharField())
    performanceType = serializers.CharField(source="performance_type.value")
    calculatedFee = serializers.DecimalField(source="calculated_fee.amount", max_digits=10, decimal_places=2)
    paymentStatus = serializers.CharField(source="payment_status.value")
    paymentMethod = serializers.CharField(source="payment_method")
    paymentId = serializers.CharField(source="payment_id", allow_null=True)
    paymentReference = serializers.CharField(source="payment_reference")
    approved = serializers.BooleanField()
    approvedAt = serializers.DateTimeField(source="approved_at", allow_null=True)
    mastery = serializers.CharField()
    itemName = serializers.CharField(source="item_name")
    itemStyle = serializers.CharField(source="item_style")
    choreographer = serializers.CharField()
    estimatedDuration = serializers.DecimalField(source="estimated_duration", max_digits=5, decimal_places=2)
    entryType = serializers.CharField(source="entry_type.value")
    submittedAt = serializers.DateTimeField(source="submitted_at")


class EntryShareSerializer(serializers.Serializer):
    entry = EventEntrySerializer()
    dancerShare = serializers.DecimalField(source="share.amount", max_digits=10, decimal_places=2)
    participationRole = serializers.CharField(source="participation_role")


class DancerFinancesSerializer(serializers.Serializer):
    dancer = serializers.SerializerMethodField()
    financial = serializers.SerializerMethodField()
    entries = EntryShareSerializer(many=True)

    def get_dancer(self, obj):
        dancer = obj.dancer
        return {
            "id": dancer.id,
            "name": dancer.name,
            "eodsaId": dancer.public_id,
            "registrationFeePaid": dancer.registration_fee_paid,
            "registrationFeePaidAt": dancer.registration_fee_paid_at,
            "registrationFeeMasteryLevel": dancer.registration_fee_mastery_level,
        }

    def get_financial(self, obj):
        return {
            "registrationFeeOutstanding": obj.registration_outstanding.amount,
            "totalEntryOutstanding": obj.total_outstanding.amount - obj.registration_outstanding.amount,
            "totalOutstanding": obj.total_outstanding.amount,
            "totalPaid": obj.total_paid.amount,
        }
