"""
Client for the Bazik payment API.

Two credentials are in play: the secret key is sent as a bearer token when
creating payments, and userID + secretKey are exchanged at /token for a
short-lived access token before querying a transaction's status.
"""
import logging

import requests
from django.conf import settings

logger = logging.getLogger(__name__)

PAYMENT_URL_FIELDS = ('payment_url', 'paymentUrl', 'url')
TOKEN_FIELDS = ('access_token', 'token')


class BazikError(Exception):
    """Base error for any failed call to Bazik."""

    def __init__(self, message, status_code=None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class BazikAuthError(BazikError):
    """Credentials missing, or the token exchange was refused."""


class BazikTimeout(BazikError):
    """Bazik did not answer in time. Callers should ask the user to retry."""


def _timeout():
    return getattr(settings, 'BAZIK_TIMEOUT', 10)


def _first_present(data, fields):
    for field in fields:
        value = data.get(field)
        if value:
            return value
    return None


def callback_url():
    return f"{settings.APP_URL}/payment-callback"


def create_payment_intent(amount, transaction_id, contact, description, metadata=None):
    """
    Ask Bazik for a hosted payment page.

    `amount` must already be discounted and scaled to the chosen installment.
    `contact` is a dict with email, phone, first_name, last_name.

    Never raises: any failure comes back as {'success': False, 'message': ...}
    and the payment should be treated as not started.
    """
    api_key = (settings.BAZIK_API_KEY or '').strip()
    if not api_key:
        logger.error("Bazik API key not configured; cannot create payment")
        return {'success': False, 'message': 'Bazik API key not configured'}

    url = f"{settings.BAZIK_BASE_URL}/v1/payments"
    headers = {
        'Authorization': f'Bearer {api_key}',
        'Content-Type': 'application/json',
    }
    payload = {
        'amount': float(amount),
        'currency': settings.BAZIK_CURRENCY,
        'transaction_id': transaction_id,
        'customer': {
            'email': contact.get('email', ''),
            'phone': contact.get('phone', ''),
            'first_name': contact.get('first_name', ''),
            'last_name': contact.get('last_name', ''),
        },
        'description': description,
        'callback_url': callback_url(),
        'return_url': callback_url(),
        'metadata': metadata or {},
    }

    try:
        response = requests.post(url, headers=headers, json=payload, timeout=_timeout())
    except requests.exceptions.Timeout:
        logger.error(f"Bazik payment creation timed out for {transaction_id}")
        return {'success': False, 'message': 'Payment provider did not respond in time'}
    except requests.exceptions.RequestException as e:
        logger.error(f"Bazik payment creation failed for {transaction_id}: {str(e)}")
        return {'success': False, 'message': f'Could not reach payment provider: {str(e)}'}

    if not response.ok:
        logger.error(f"Bazik payment creation returned {response.status_code} for {transaction_id}: {response.text[:300]}")
        return {'success': False, 'message': f'Payment provider error (HTTP {response.status_code})'}

    try:
        data = response.json()
    except ValueError:
        logger.error(f"Bazik payment creation returned a non-JSON body for {transaction_id}")
        return {'success': False, 'message': 'Malformed response from payment provider'}

    payment_url = _first_present(data, PAYMENT_URL_FIELDS) if isinstance(data, dict) else None
    if not payment_url:
        logger.error(f"Bazik payment creation returned no payment URL for {transaction_id}")
        return {'success': False, 'message': data.get('message', 'No payment URL returned') if isinstance(data, dict) else 'No payment URL returned'}

    logger.info(f"Bazik payment created for {transaction_id}")
    return {'success': True, 'payment_url': payment_url}


def get_access_token():
    """
    Exchange userID + secretKey for a bearer token.

    Raises:
        BazikAuthError: credentials missing or rejected
        BazikTimeout: no answer within BAZIK_TIMEOUT
    """
    user_id = (settings.BAZIK_USER_ID or '').strip()
    api_key = (settings.BAZIK_API_KEY or '').strip()
    if not user_id or not api_key:
        raise BazikAuthError('Bazik credentials not configured (API key or User ID missing)')

    try:
        response = requests.post(
            f"{settings.BAZIK_BASE_URL}/token",
            headers={'Content-Type': 'application/json'},
            json={'userID': user_id, 'secretKey': api_key},
            timeout=_timeout(),
        )
    except requests.exceptions.Timeout:
        raise BazikTimeout('Timed out authenticating with Bazik')
    except requests.exceptions.RequestException as e:
        raise BazikAuthError(f'Failed to authenticate with Bazik: {str(e)}')

    if not response.ok:
        logger.error(f"Bazik token error {response.status_code}: {response.text[:300]}")
        raise BazikAuthError('Failed to authenticate with Bazik', status_code=response.status_code)

    try:
        data = response.json()
    except ValueError:
        raise BazikAuthError('Malformed token response from Bazik')

    token = _first_present(data, TOKEN_FIELDS) if isinstance(data, dict) else None
    if not token:
        raise BazikAuthError('No access token received from Bazik')
    return token


def fetch_transaction_status(transaction_id):
    """
    Query Bazik directly for a transaction's current state.

    Returns:
        dict: the provider's JSON body, or None when Bazik answers 404
        (transaction not known yet, i.e. still pending).

    Raises:
        BazikAuthError, BazikTimeout, BazikError
    """
    token = get_access_token()
    url = f"{settings.BAZIK_BASE_URL}/moncash/payments/{transaction_id}"
    headers = {
        'Authorization': f'Bearer {token}',
        'Content-Type': 'application/json',
    }

    try:
        response = requests.get(url, headers=headers, timeout=_timeout())
    except requests.exceptions.Timeout:
        raise BazikTimeout('Timed out verifying payment with Bazik')
    except requests.exceptions.RequestException as e:
        raise BazikError(f'Failed to verify payment with Bazik: {str(e)}')

    if response.status_code == 404:
        return None
    if not response.ok:
        logger.error(f"Bazik verification error {response.status_code} for {transaction_id}: {response.text[:300]}")
        raise BazikError('Failed to verify payment with Bazik', status_code=response.status_code)

    try:
        data = response.json()
    except ValueError:
        raise BazikError('Malformed verification response from Bazik')
    if not isinstance(data, dict):
        raise BazikError('Malformed verification response from Bazik')
    return data
