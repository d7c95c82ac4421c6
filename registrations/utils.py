"""
Utility functions for the registrations app.
"""
import json
import logging
import secrets
import string
import time
from decimal import Decimal, InvalidOperation

logger = logging.getLogger(__name__)

# Initial payments: KONEKTE-<ms>-<suffix>; remaining balance: KONEKTE-RESTE-<ms>-<suffix>
TRANSACTION_PREFIX = 'KONEKTE'
REMAINING_TRANSACTION_PREFIX = 'KONEKTE-RESTE'

_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits
_SUFFIX_LENGTH = 9

# Largest value a DecimalField(max_digits=10, decimal_places=2) can hold
MAX_AMOUNT = Decimal('99999999.99')


def generate_transaction_id(prefix=TRANSACTION_PREFIX):
    """
    Mint a transaction id for one payment attempt.
    Millisecond timestamp plus a random base36 suffix; never reused.
    """
    suffix = ''.join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(_SUFFIX_LENGTH))
    return f"{prefix}-{int(time.time() * 1000)}-{suffix}"


def generate_remaining_transaction_id():
    return generate_transaction_id(REMAINING_TRANSACTION_PREFIX)


def to_decimal(value, default=None):
    """
    Convert provider/JSON amounts (int, float, str) to Decimal.
    Returns `default` if unparseable or too large for an amount column.
    """
    if value is None or value == '' or isinstance(value, bool):
        return default
    try:
        amount = Decimal(str(value)).quantize(Decimal('0.01'))
    except (InvalidOperation, ValueError):
        logger.warning(f"Could not parse amount value: {value!r}")
        return default
    if not amount.is_finite() or abs(amount) > MAX_AMOUNT:
        logger.warning(f"Amount out of range: {value!r}")
        return default
    return amount


def parse_body_json(request):
    """Read JSON body and return dict. Return {} if not JSON or invalid."""
    if request.content_type and 'application/json' in request.content_type:
        try:
            body = json.loads(request.body)
        except (json.JSONDecodeError, TypeError, UnicodeDecodeError):
            return {}
        return body if isinstance(body, dict) else {}
    return {}


def format_htg(amount):
    """Format an amount the way it is shown to registrants, e.g. 2 500 HTG."""
    amount = to_decimal(amount, Decimal('0.00'))
    whole = f"{amount:,.0f}".replace(',', ' ')
    return f"{whole} HTG"
