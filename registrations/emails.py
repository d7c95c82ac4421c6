"""
Email sending functions for course access and remaining-balance requests.
"""
import logging

from django.conf import settings
from django.core.mail import send_mail
from django.template.loader import render_to_string
from django.utils.html import strip_tags

from .utils import format_htg

logger = logging.getLogger(__name__)

FORMATION_ACCESS = 'formation_access'
REMAINING_PAYMENT = 'remaining_payment'

REQUIRED_FIELDS = {
    FORMATION_ACCESS: ('to', 'nomComplet'),
    REMAINING_PAYMENT: ('to', 'nomComplet', 'montantRestant', 'pourcentagePaye', 'lienPaiement'),
}

SUBJECTS = {
    FORMATION_ACCESS: 'Aksè Fòmasyon Ou - Konekte Group',
    REMAINING_PAYMENT: 'Enskripsyon Konfime - Konplete Peman Ou',
}


class NotificationError(Exception):
    """The notification payload is unusable (unknown type or missing field)."""


def validate_notification(payload):
    notification_type = payload.get('type')
    if notification_type not in REQUIRED_FIELDS:
        raise NotificationError(f"Unknown notification type: {notification_type!r}")
    missing = [
        field for field in REQUIRED_FIELDS[notification_type]
        if payload.get(field) in (None, '')
    ]
    if missing:
        raise NotificationError(f"{notification_type} requires: {', '.join(missing)}")


def _build_context(payload):
    context = {
        'nom_complet': payload['nomComplet'],
        'support_email': getattr(settings, 'SUPPORT_EMAIL', 'support@konektegroup.com'),
        'formation_access_url': getattr(settings, 'FORMATION_ACCESS_URL', ''),
    }
    if payload['type'] == REMAINING_PAYMENT:
        percentage_paid = int(payload['pourcentagePaye'])
        context.update({
            'montant_restant': format_htg(payload['montantRestant']),
            'pourcentage_paye': percentage_paid,
            'pourcentage_restant': 100 - percentage_paid,
            'lien_paiement': payload['lienPaiement'],
        })
    return context


def dispatch_notification(payload):
    """
    Send one transactional email.

    Args:
        payload: {'type': 'formation_access'|'remaining_payment', 'to', 'nomComplet',
                  'montantRestant'?, 'pourcentagePaye'?, 'lienPaiement'?}

    Returns:
        bool: True if the mail was handed to the backend.

    Raises:
        NotificationError: unknown type or a required field is missing.
    """
    validate_notification(payload)
    notification_type = payload['type']

    if notification_type == FORMATION_ACCESS and not getattr(settings, 'FORMATION_ACCESS_URL', ''):
        logger.warning("FORMATION_ACCESS_URL is not set; access email will not contain a link")

    try:
        html_message = render_to_string(
            f'registrations/emails/{notification_type}.html', _build_context(payload)
        )
        send_mail(
            subject=SUBJECTS[notification_type],
            message=strip_tags(html_message),
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[payload['to']],
            html_message=html_message,
            fail_silently=False,
        )
        logger.info(f"{notification_type} email sent to {payload['to']}")
        return True
    except Exception as e:
        logger.error(f"Failed to send {notification_type} email to {payload['to']}: {str(e)}")
        return False


def send_formation_access_email(registration):
    """Send the full-access email once a registration is confirmed."""
    return dispatch_notification({
        'type': FORMATION_ACCESS,
        'to': registration.email,
        'nomComplet': registration.full_name or registration.email,
    })


def send_remaining_payment_email(registration, amount_remaining, percentage_paid, payment_link):
    """
    Ask a partially-paid registrant to settle the balance.

    Args:
        registration: Registration instance
        amount_remaining: Decimal balance still owed
        percentage_paid: plan percentage already paid ('25' or '50')
        payment_link: direct payment URL, or the registration page as fallback
    """
    return dispatch_notification({
        'type': REMAINING_PAYMENT,
        'to': registration.email,
        'nomComplet': registration.full_name,
        'montantRestant': amount_remaining,
        'pourcentagePaye': percentage_paid,
        'lienPaiement': payment_link,
    })
