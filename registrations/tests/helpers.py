import json
from decimal import Decimal
from unittest.mock import MagicMock

from registrations.models import Registration
from registrations.utils import generate_transaction_id


BAZIK_TEST_SETTINGS = {
    'BAZIK_BASE_URL': 'https://bazik.test',
    'BAZIK_USER_ID': 'user-123',
    'BAZIK_API_KEY': 'sk_test_key',
    'BAZIK_WEBHOOK_SECRET': '',
    'APP_URL': 'https://konekte.test',
    'FORMATION_ACCESS_URL': 'https://learn.konekte.test/kou',
    'EMAIL_BACKEND': 'django.core.mail.backends.locmem.EmailBackend',
}


def mock_response(status_code=200, json_data=None):
    """A stand-in for requests.Response with just what registrations.bazik reads."""
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.json.return_value = json_data
    response.text = json.dumps(json_data) if json_data is not None else ''
    return response


def make_registration(**kwargs):
    percentage = kwargs.get('payment_percentage', '100')
    paid = Decimal('5000.00') * Decimal(percentage) / Decimal('100')
    defaults = {
        'full_name': 'Jean Baptiste',
        'email': 'jean@example.com',
        'phone': '37123456',
        'experience_level': 'BEGINNER',
        'payment_percentage': percentage,
        'amount_paid': paid,
        'amount_total': Decimal('5000.00'),
        'transaction_id': generate_transaction_id(),
        'status': Registration.STATUS_PENDING,
    }
    defaults.update(kwargs)
    return Registration.objects.create(**defaults)


def verified_payment(transaction_id, amount=5000, **extra):
    """Body of a Bazik status lookup for a payment that went through."""
    payment = {
        'reference': transaction_id,
        'transactionCode': 'MC-889900',
        'status': 'successful',
        'amount': amount,
    }
    payment.update(extra)
    return {'payment': payment}
