"""
Database models for the Konekte seminar registrations.
"""
import uuid
from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import F
from django.utils import timezone


class Registration(models.Model):
    """
    One person's registration for the seminar.

    `status` is the authoritative gate for course access. It is only ever
    changed by the reconciliation policy (see reconciliation.py), which
    writes it with conditional updates so it can only leave PENDING.
    """
    STATUS_PENDING = 'PENDING'
    STATUS_CONFIRMED = 'CONFIRMED'
    STATUS_CANCELLED = 'CANCELLED'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'En attente'),
        (STATUS_CONFIRMED, 'Confirmé'),
        (STATUS_CANCELLED, 'Annulé'),
    ]

    EXPERIENCE_CHOICES = [
        ('BEGINNER', 'Débutant'),
        ('INTERMEDIATE', 'Intermédiaire'),
        ('ADVANCED', 'Avancé'),
    ]

    PERCENTAGE_CHOICES = [
        ('25', '25%'),
        ('50', '50%'),
        ('100', '100%'),
    ]

    # Multiplier used to back-compute the full price from the first installment
    PERCENTAGE_MULTIPLIERS = {
        '100': 1,
        '50': 2,
        '25': 4,
    }

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # Registrant identity
    full_name = models.CharField(max_length=200)
    email = models.EmailField(db_index=True)
    phone = models.CharField(max_length=20)
    experience_level = models.CharField(max_length=15, choices=EXPERIENCE_CHOICES)
    motivation = models.TextField(blank=True, null=True)

    # Payment plan
    payment_percentage = models.CharField(max_length=3, choices=PERCENTAGE_CHOICES, default='100')
    amount_paid = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    amount_total = models.DecimalField(
        max_digits=10, decimal_places=2, null=True, blank=True,
        help_text="Full price owed; back-computed from amount_paid when empty"
    )
    promo_code = models.ForeignKey(
        'PromoCode', on_delete=models.SET_NULL, null=True, blank=True, related_name='registrations'
    )

    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    transaction_id = models.CharField(max_length=100, unique=True, blank=True, null=True)
    remaining_transaction_id = models.CharField(max_length=100, unique=True, blank=True, null=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        verbose_name = 'Registration'
        verbose_name_plural = 'Registrations'

    def __str__(self):
        return f"{self.full_name} - {self.payment_percentage}% - {self.status}"

    def get_amount_total(self):
        """
        Full price owed for the seminar.
        Uses the stored total when present, otherwise scales amount_paid
        back up from the installment percentage (50% -> x2, 25% -> x4).
        """
        if self.amount_total is not None and self.amount_total > 0:
            return self.amount_total
        paid = self.amount_paid or Decimal('0.00')
        return paid * self.PERCENTAGE_MULTIPLIERS.get(self.payment_percentage, 1)

    def get_remaining_balance(self):
        """Calculate remaining balance to be paid"""
        remaining = self.get_amount_total() - (self.amount_paid or Decimal('0.00'))
        return max(remaining, Decimal('0.00'))

    def is_confirmed(self):
        return self.status == self.STATUS_CONFIRMED

    def is_full_plan(self):
        return self.payment_percentage == '100'

    def split_name(self):
        """Return (first_name, last_name) as the payment provider expects them."""
        parts = (self.full_name or '').split()
        if not parts:
            return '', ''
        first_name = parts[0]
        last_name = ' '.join(parts[1:]) or first_name
        return first_name, last_name


class PromoCode(models.Model):
    """
    Discount codes that can be applied once per registration.
    """
    TYPE_PERCENTAGE = 'percentage'
    TYPE_FIXED = 'fixed'

    TYPE_CHOICES = [
        (TYPE_PERCENTAGE, 'Percentage'),
        (TYPE_FIXED, 'Fixed amount'),
    ]

    code = models.CharField(max_length=50, unique=True)
    discount_type = models.CharField(max_length=10, choices=TYPE_CHOICES, default=TYPE_PERCENTAGE)
    value = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(0)])
    expires_at = models.DateTimeField(null=True, blank=True)
    max_uses = models.PositiveIntegerField(default=0, help_text="0 means unlimited")
    current_uses = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']
        verbose_name = 'Promo Code'
        verbose_name_plural = 'Promo Codes'

    def __str__(self):
        suffix = '%' if self.discount_type == self.TYPE_PERCENTAGE else ' HTG'
        return f"{self.code} (-{self.value}{suffix})"

    def save(self, *args, **kwargs):
        self.code = (self.code or '').strip().upper()
        super().save(*args, **kwargs)

    def compute_discount(self, base_amount):
        base_amount = Decimal(base_amount)
        if self.discount_type == self.TYPE_PERCENTAGE:
            discount = (base_amount * self.value / Decimal('100')).quantize(Decimal('0.01'))
        else:
            discount = self.value
        return min(discount, base_amount)

    def validate(self, base_amount):
        """
        Check whether the code can be applied to `base_amount`.

        Returns:
            dict: {'valid', 'discount', 'final_amount', 'error'}
        """
        base_amount = Decimal(base_amount)
        error = None
        if not self.is_active:
            error = 'Kòd promosyon sa a pa aktif.'
        elif self.expires_at and self.expires_at < timezone.now():
            error = 'Kòd promosyon sa a ekspire.'
        elif self.max_uses and self.current_uses >= self.max_uses:
            error = 'Kòd promosyon sa a rive nan limit itilizasyon li.'

        if error:
            return {'valid': False, 'discount': Decimal('0.00'), 'final_amount': base_amount, 'error': error}

        discount = self.compute_discount(base_amount)
        return {
            'valid': True,
            'discount': discount,
            'final_amount': base_amount - discount,
            'error': None,
        }

    def increment_usage(self):
        """Atomically count one more use of this code."""
        PromoCode.objects.filter(pk=self.pk).update(current_uses=F('current_uses') + 1)
        self.refresh_from_db(fields=['current_uses'])


class PaymentActivity(models.Model):
    """
    Logs every payment-related event: checkout initiated, webhook received,
    verification polled. Audit trail only; decisions are made from Registration.
    """
    STATUS_CHOICES = [
        ('initiated', 'Initiated'),
        ('completed', 'Completed'),
        ('failed', 'Failed'),
        ('pending', 'Pending'),
    ]
    SOURCE_CHOICES = [
        ('checkout', 'Checkout'),
        ('webhook', 'Webhook'),
        ('verification', 'Verification'),
        ('admin', 'Admin'),
    ]
    id = models.BigAutoField(primary_key=True)
    registration = models.ForeignKey(
        Registration, on_delete=models.CASCADE, null=True, blank=True, related_name='payment_activities'
    )
    reference = models.CharField(max_length=100, db_index=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, db_index=True)
    source = models.CharField(max_length=20, choices=SOURCE_CHOICES)
    amount = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    message = models.CharField(max_length=255, blank=True, null=True)
    raw_payload = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']
        verbose_name = 'Payment Activity'
        verbose_name_plural = 'Payment Activities'

    def __str__(self):
        return f"{self.reference} – {self.get_source_display()} – {self.get_status_display()}"


class SeminarSettings(models.Model):
    """
    Seminar pricing and labels managed by admin.
    """
    title = models.CharField(max_length=200, default="Devlope Aplikasyon Web ak AI")
    base_price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('5000.00'))
    currency = models.CharField(max_length=3, default='HTG')
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Seminar Settings'
        verbose_name_plural = 'Seminar Settings'

    def save(self, *args, **kwargs):
        """Ensure only one settings instance exists"""
        self.pk = 1
        super().save(*args, **kwargs)

    @classmethod
    def load(cls):
        """Load or create the settings instance"""
        obj, created = cls.objects.get_or_create(pk=1)
        return obj

    def installment_amount(self, payment_percentage):
        """Share of the base price due for the chosen plan, before any promo."""
        return (self.base_price * Decimal(payment_percentage) / Decimal('100')).quantize(Decimal('0.01'))

    def __str__(self):
        return "Seminar Settings"
