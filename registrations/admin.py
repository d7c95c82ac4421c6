"""
Django admin configuration for registrations app.
"""
from django.contrib import admin, messages

from . import bazik
from .models import Registration, PromoCode, PaymentActivity, SeminarSettings
from .reconciliation import verify_and_reconcile


@admin.register(Registration)
class RegistrationAdmin(admin.ModelAdmin):
    """
    Admin interface for managing registrations.
    Status is read-only here; use the reconcile action to re-check a payment with Bazik.
    """
    list_display = [
        'full_name', 'email', 'phone', 'payment_percentage', 'amount_paid',
        'amount_total', 'promo_code', 'status', 'created_at'
    ]
    list_filter = ['status', 'payment_percentage', 'experience_level', 'created_at']
    search_fields = ['full_name', 'email', 'phone', 'transaction_id', 'remaining_transaction_id']
    readonly_fields = [
        'id', 'status', 'transaction_id', 'remaining_transaction_id', 'created_at', 'updated_at'
    ]
    fieldsets = (
        ('Registrant', {
            'fields': ('full_name', 'email', 'phone', 'experience_level', 'motivation')
        }),
        ('Payment Information', {
            'fields': (
                'payment_percentage', 'amount_paid', 'amount_total', 'promo_code',
                'status', 'transaction_id', 'remaining_transaction_id'
            )
        }),
        ('Additional Information', {
            'fields': ('id', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    actions = ['reconcile_with_bazik']

    def reconcile_with_bazik(self, request, queryset):
        """
        Ask Bazik for the latest payment status of each selected registration
        (remaining-balance transaction first, when one exists).
        """
        for registration in queryset:
            transaction_id = registration.remaining_transaction_id or registration.transaction_id
            if not transaction_id:
                messages.warning(request, f'{registration.full_name}: no transaction to verify.')
                continue
            try:
                outcome, _payment_data, result = verify_and_reconcile(transaction_id, source='admin')
            except bazik.BazikError as e:
                messages.error(request, f'{registration.full_name}: {e.message}')
                continue
            status = result.registration.status if result and result.registration else registration.status
            messages.info(request, f'{registration.full_name}: Bazik says {outcome}, registration is {status}.')

    reconcile_with_bazik.short_description = "Verify selected payments with Bazik"


@admin.register(PromoCode)
class PromoCodeAdmin(admin.ModelAdmin):
    list_display = ['code', 'discount_type', 'value', 'current_uses', 'max_uses', 'expires_at', 'is_active']
    list_filter = ['is_active', 'discount_type']
    search_fields = ['code']
    readonly_fields = ['current_uses', 'created_at']


@admin.register(PaymentActivity)
class PaymentActivityAdmin(admin.ModelAdmin):
    """
    Admin interface for viewing all payment activity (initiated, completed, failed).
    """
    list_display = ['created_at', 'reference', 'status', 'source', 'registration', 'amount', 'message']
    list_filter = ['status', 'source', 'created_at']
    search_fields = ['reference', 'registration__full_name', 'registration__email', 'message']
    readonly_fields = ['id', 'created_at', 'raw_payload']
    date_hierarchy = 'created_at'


@admin.register(SeminarSettings)
class SeminarSettingsAdmin(admin.ModelAdmin):
    """
    Admin interface for seminar pricing.
    """
    fieldsets = (
        ('Seminar', {
            'fields': ('title', ('base_price', 'currency'))
        }),
    )

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
