"""
Django forms for registration.
"""
import re

from django import forms

from .models import Registration, PromoCode

HAITIAN_PHONE_RE = re.compile(r'^(\+?509)?[234]\d{7}$')


class RegistrationForm(forms.ModelForm):
    """
    Registration submitted from the landing page inscription modal.
    `promo_code` is the code text; it is resolved to a PromoCode in clean().
    """

    promo_code = forms.CharField(required=False, max_length=50)

    class Meta:
        model = Registration
        fields = [
            'full_name', 'email', 'phone', 'experience_level',
            'motivation', 'payment_percentage',
        ]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['motivation'].required = False
        self.fields['payment_percentage'].required = True

    def clean_full_name(self):
        full_name = (self.cleaned_data.get('full_name') or '').strip()
        if len(full_name) < 3:
            raise forms.ValidationError('Non obligatwa (omwen 3 karaktè)')
        return full_name

    def clean_email(self):
        return (self.cleaned_data.get('email') or '').strip().lower()

    def clean_phone(self):
        phone = self.cleaned_data.get('phone') or ''
        cleaned = re.sub(r'[\s\-\(\)]', '', phone)
        if not HAITIAN_PHONE_RE.match(cleaned):
            raise forms.ValidationError('Nimewo ayisyen pa valid (egz: 3712-3456 oubyen +509 3712-3456)')
        return cleaned

    def clean_promo_code(self):
        code = (self.cleaned_data.get('promo_code') or '').strip().upper()
        if not code:
            return None
        try:
            return PromoCode.objects.get(code=code)
        except PromoCode.DoesNotExist:
            raise forms.ValidationError('Kòd promosyon sa a pa valid.')

    def save(self, commit=True):
        registration = super().save(commit=False)
        registration.promo_code = self.cleaned_data.get('promo_code')
        if commit:
            registration.save()
        return registration
