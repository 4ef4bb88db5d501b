from django.contrib import admin

from competitions.models import Dancer, EftPaymentLog, Event, EventEntry, Payment, PaymentLog


class EventEntryInline(admin.TabularInline):
    model = EventEntry
    extra = 0
    fields = ["item_name", "performance_type", "calculated_fee", "payment_status", "approved"]
    readonly_fields = fields
    can_delete = False


@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    list_display = ["name", "venue", "event_date", "registration_deadline", "age_category"]
    search_fields = ["name", "venue"]
    inlines = [EventEntryInline]


@admin.register(Dancer)
class DancerAdmin(admin.ModelAdmin):
    list_display = ["name", "eodsa_id", "age", "registration_fee_paid", "registration_fee_mastery_level"]
    list_filter = ["registration_fee_paid", "registration_fee_mastery_level"]
    search_fields = ["name", "eodsa_id"]


@admin.register(EventEntry)
class EventEntryAdmin(admin.ModelAdmin):
    list_display = ["item_name", "event", "performance_type", "calculated_fee", "payment_status", "approved"]
    list_filter = ["event", "payment_status", "approved", "payment_method"]
    search_fields = ["item_name", "eodsa_id", "payment_id", "payment_reference"]


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ["payment_id", "status", "amount", "email", "paid_at"]
    list_filter = ["status"]
    search_fields = ["payment_id", "provider_payment_id", "email"]


@admin.register(PaymentLog)
class PaymentLogAdmin(admin.ModelAdmin):
    list_display = ["payment_id", "event_type", "ip_address", "created_at"]
    list_filter = ["event_type"]
    search_fields = ["payment_id"]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(EftPaymentLog)
class EftPaymentLogAdmin(admin.ModelAdmin):
    list_display = ["invoice_number", "user_email", "amount", "entries_count", "status", "submitted_at"]
    list_filter = ["status"]
    search_fields = ["invoice_number", "user_email", "eodsa_id"]
