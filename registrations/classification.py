"""
Signature checking and outcome classification for Bazik payment signals.

Bazik has not kept its webhook header names or payload field names stable
across integration paths, so every lookup here tries a list of candidate
names in priority order. Add new variants to the tables below.
"""
import hashlib
import hmac
import logging

logger = logging.getLogger(__name__)

COMPLETED = 'COMPLETED'
FAILED = 'FAILED'
PENDING = 'PENDING'

SIGNATURE_HEADERS = (
    'x-bazik-signature',
    'bazik-signature',
    'x-signature',
    'signature',
    'x-webhook-signature',
)

TRANSACTION_ID_FIELDS = ('transaction_id', 'reference', 'order_id', 'id')

# (container, field); container None means the top level of the event
STATUS_FIELDS = (
    (None, 'status'),
    (None, 'payment_status'),
    (None, 'state'),
    ('payment', 'status'),
    ('payment', 'state'),
)

COMPLETED_FLAGS = ('paid', 'success', 'completed')

WEBHOOK_COMPLETED_STATUSES = {'paid', 'success', 'completed', 'successful'}
WEBHOOK_COMPLETED_EVENT_TYPES = {'payment.completed', 'payment.success'}
WEBHOOK_FAILED_STATUSES = {'failed', 'cancelled', 'canceled'}
WEBHOOK_FAILED_EVENT_TYPES = {'payment.failed', 'payment.cancelled'}

VERIFIED_STATUSES = {'successful', 'paid', 'completed'}
VERIFICATION_STATUS_FIELDS = ('message', 'status', 'state')

PROOF_FIELDS = (
    'transactionCode',
    'transaction_code',
    'reference',
    'bankReference',
    'paymentReference',
    'moncash_transaction_id',
)

AMOUNT_FIELDS = ('amount', 'amountPaid', 'paidAmount')

SECRET_PREFIX = 'whsec_'
SIGNATURE_PREFIXES = ('whsec_', 'sha256=')


def _strip_prefix(value, prefixes):
    for prefix in prefixes:
        if value.startswith(prefix):
            return value[len(prefix):]
    return value


def get_signature_header(headers):
    """Return the first non-empty signature header. `headers` must be case-insensitive (request.headers)."""
    for name in SIGNATURE_HEADERS:
        value = headers.get(name)
        if value:
            return value.strip()
    return ''


def compute_signature(raw_body, secret):
    key = _strip_prefix(secret, (SECRET_PREFIX,))
    if isinstance(raw_body, str):
        raw_body = raw_body.encode('utf-8')
    return hmac.new(key.encode('utf-8'), raw_body, hashlib.sha256).hexdigest()


def verify_signature(raw_body, signature, secret):
    """
    HMAC-SHA256 over the exact raw body, hex encoded.
    Must be called on the bytes as received, before any JSON parsing.
    """
    if not signature:
        return False
    received = _strip_prefix(signature.strip(), SIGNATURE_PREFIXES)
    expected = compute_signature(raw_body, secret)
    return hmac.compare_digest(expected, received.lower())


def extract_transaction_id(event):
    for field in TRANSACTION_ID_FIELDS:
        value = event.get(field)
        if value not in (None, ''):
            return str(value)
    return None


def extract_status_text(event):
    for container, field in STATUS_FIELDS:
        source = event.get(container) if container else event
        if isinstance(source, dict):
            value = source.get(field)
            if value not in (None, ''):
                return str(value)
    return ''


def extract_amount(data):
    """First amount found at the top level or under `payment`, or None."""
    for source in (data, data.get('payment')):
        if not isinstance(source, dict):
            continue
        for field in AMOUNT_FIELDS:
            value = source.get(field)
            if value not in (None, '') and not isinstance(value, bool):
                return value
    return None


def _has_truthy_flag(event):
    for source in (event, event.get('payment')):
        if isinstance(source, dict) and any(source.get(flag) for flag in COMPLETED_FLAGS):
            return True
    return False


def classify_webhook_event(event):
    """
    Tolerant classification of a pushed webhook event.

    Best-effort: any recognisable success marker counts as COMPLETED, because
    the provider's own push already corroborates the payment.
    """
    status_text = extract_status_text(event).lower()
    event_type = str(event.get('type') or '').lower()

    if (status_text in WEBHOOK_COMPLETED_STATUSES
            or _has_truthy_flag(event)
            or event_type in WEBHOOK_COMPLETED_EVENT_TYPES):
        return COMPLETED
    if status_text in WEBHOOK_FAILED_STATUSES or event_type in WEBHOOK_FAILED_EVENT_TYPES:
        return FAILED
    return PENDING


def has_transaction_proof(payment):
    return any(payment.get(field) for field in PROOF_FIELDS)


def has_confirmed_amount(payment):
    return any(payment.get(field) for field in AMOUNT_FIELDS)


def classify_verification(payment_data):
    """
    Strict classification of a polled transaction status.

    The status text must be exactly successful/paid/completed (or an explicit
    `true` flag), and a transaction-proof field must be present. Anything
    else is PENDING; this path never reports FAILED.
    """
    payment = payment_data.get('payment') if isinstance(payment_data.get('payment'), dict) else payment_data

    status_texts = [
        str(payment.get(field) or payment_data.get(field) or '').strip().lower()
        for field in VERIFICATION_STATUS_FIELDS
    ]
    status_completed = any(text in VERIFIED_STATUSES for text in status_texts)
    flag_completed = any(payment.get(flag) is True for flag in COMPLETED_FLAGS)
    proof = has_transaction_proof(payment)

    logger.info(
        f"Strict payment check: statuses={status_texts} flag={flag_completed} "
        f"proof={proof} amount={has_confirmed_amount(payment)}"
    )
    if (status_completed or flag_completed) and proof:
        return COMPLETED
    return PENDING
