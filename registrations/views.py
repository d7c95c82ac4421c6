"""
Views for seminar registration and Bazik payment processing.
"""
import json
import logging
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import validate_email
from django.db import DatabaseError
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from . import bazik
from .classification import (
    COMPLETED, FAILED, classify_webhook_event, extract_amount, extract_status_text,
    extract_transaction_id, get_signature_header, verify_signature,
)
from .emails import send_formation_access_email
from .forms import RegistrationForm
from .models import PaymentActivity, PromoCode, Registration, SeminarSettings
from .reconciliation import reconcile, verify_and_reconcile
from .utils import generate_transaction_id, parse_body_json

logger = logging.getLogger(__name__)


def _request_data(request):
    """JSON body if the client sent JSON, otherwise form data."""
    return parse_body_json(request) or request.POST


@csrf_exempt
@require_http_methods(["POST"])
def initialize_payment(request):
    """
    Store a new registration and start its Bazik payment.

    The registration is saved as PENDING with its transaction id *before* the
    provider is called, so a record exists even if payment creation fails.
    A registration whose amount is fully covered by a promo is confirmed
    straight away without going through Bazik.
    """
    form = RegistrationForm(_request_data(request))
    if not form.is_valid():
        return JsonResponse({
            'error': 'Form validation failed',
            'errors': form.errors,
        }, status=400)

    seminar = SeminarSettings.load()
    promo = form.cleaned_data.get('promo_code')
    installment = seminar.installment_amount(form.cleaned_data['payment_percentage'])

    discount = Decimal('0.00')
    if promo:
        check = promo.validate(installment)
        if not check['valid']:
            return JsonResponse({'error': 'Invalid promo code', 'message': check['error']}, status=400)
        discount = check['discount']

    amount = installment - discount
    registration = form.save(commit=False)

    if amount <= 0:
        registration.amount_paid = Decimal('0.00')
        registration.amount_total = Decimal('0.00')
        registration.status = Registration.STATUS_CONFIRMED
        registration.save()
        if promo:
            promo.increment_usage()
        logger.info(f"Free registration {registration.id} confirmed for {registration.email}")
        send_formation_access_email(registration)
        return JsonResponse({
            'status': 'confirmed',
            'registration_id': str(registration.id),
            'message': 'Registration confirmed; access email sent.',
        })

    transaction_id = generate_transaction_id()
    registration.amount_paid = amount
    registration.amount_total = seminar.base_price - discount
    registration.transaction_id = transaction_id
    registration.status = Registration.STATUS_PENDING
    registration.save()

    PaymentActivity.objects.create(
        registration=registration,
        reference=transaction_id,
        status='initiated',
        source='checkout',
        amount=amount,
        message=f"{registration.payment_percentage}% plan",
    )

    first_name, last_name = registration.split_name()
    result = bazik.create_payment_intent(
        amount=amount,
        transaction_id=transaction_id,
        contact={
            'email': registration.email,
            'phone': registration.phone,
            'first_name': first_name,
            'last_name': last_name,
        },
        description=f"Inscription séminaire - {registration.full_name}",
        metadata={
            'registration_id': str(registration.id),
            'type': 'initial_payment',
            'payment_percentage': registration.payment_percentage,
        },
    )

    if not result['success']:
        return JsonResponse({
            'error': 'Payment initialization failed',
            'message': result.get('message') or 'Pa kapab kreye peman an. Enskripsyon w ap tann.',
            'transaction_id': transaction_id,
        }, status=502)

    if promo:
        promo.increment_usage()

    return JsonResponse({
        'status': 'success',
        'payment_url': result['payment_url'],
        'transaction_id': transaction_id,
    })


@csrf_exempt
@require_http_methods(["POST"])
def validate_promo(request):
    """
    API: Check a promo code against the amount due for a payment plan.
    """
    data = _request_data(request)
    code = (data.get('code') or data.get('promo_code') or '').strip().upper()
    payment_percentage = str(data.get('payment_percentage') or '100')

    if not code:
        return JsonResponse({'valid': False, 'error': 'Tanpri antre yon kòd promosyon.'}, status=400)
    if payment_percentage not in dict(Registration.PERCENTAGE_CHOICES):
        return JsonResponse({'valid': False, 'error': 'Invalid payment percentage'}, status=400)

    base_amount = SeminarSettings.load().installment_amount(payment_percentage)
    try:
        promo = PromoCode.objects.get(code=code)
    except PromoCode.DoesNotExist:
        return JsonResponse({'valid': False, 'error': 'Kòd promosyon sa a pa valid.'})

    check = promo.validate(base_amount)
    return JsonResponse({
        'valid': check['valid'],
        'code': promo.code,
        'discount_type': promo.discount_type,
        'discount': float(check['discount']),
        'final_amount': float(check['final_amount']),
        'error': check['error'],
    })


@csrf_exempt
@require_http_methods(["POST"])
def bazik_webhook(request):
    """
    Handle Bazik webhook notifications.

    Always answers 200 once the event is authentic and carries a transaction
    id, even when no registration matches, so Bazik does not keep retrying
    events we can never match.
    """
    # Signature is computed over the exact bytes Bazik sent
    raw_body = request.body

    secret = (settings.BAZIK_WEBHOOK_SECRET or '').strip()
    if secret:
        signature = get_signature_header(request.headers)
        if not verify_signature(raw_body, signature, secret):
            logger.warning("Rejected Bazik webhook with invalid signature")
            return JsonResponse({'success': False, 'message': 'Invalid signature'}, status=401)
    else:
        logger.warning("BAZIK_WEBHOOK_SECRET not set; processing unverified webhook")

    try:
        event = json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return JsonResponse({'success': False, 'message': 'Invalid JSON'}, status=400)
    if not isinstance(event, dict):
        return JsonResponse({'success': False, 'message': 'Invalid JSON'}, status=400)

    transaction_id = extract_transaction_id(event)
    if not transaction_id:
        return JsonResponse({'success': False, 'message': 'Missing transaction_id in webhook'}, status=400)

    outcome = classify_webhook_event(event)
    logger.info(
        f"Bazik webhook for {transaction_id}: status={extract_status_text(event)!r} "
        f"type={event.get('type')!r} outcome={outcome}"
    )

    registration_status = None
    if outcome in (COMPLETED, FAILED):
        try:
            result = reconcile(
                transaction_id, outcome,
                amount=extract_amount(event),
                source='webhook',
                raw_payload=event,
            )
        except DatabaseError:
            logger.exception(f"Webhook: failed to update registration for {transaction_id}")
            return JsonResponse({'success': False, 'message': 'Failed to update registration'}, status=500)
        if result.registration is not None:
            registration_status = result.registration.status
    else:
        logger.info(f"Webhook: payment not completed for transaction {transaction_id}")

    return JsonResponse({
        'success': True,
        'message': 'Webhook processed',
        'transaction_id': transaction_id,
        'status': outcome,
        'registration_status': registration_status,
    })


@csrf_exempt
@require_http_methods(["POST"])
def verify_payment(request):
    """
    Verify a payment directly with Bazik after the user is redirected back.

    The answer is built from Bazik's live response only. The stored
    registration is consulted (and reconciled) only when Bazik proves the
    payment is complete.
    """
    data = _request_data(request)
    transaction_id = str(data.get('transaction_id') or '').strip()
    if not transaction_id:
        return JsonResponse({'success': False, 'message': 'Missing transaction_id'}, status=400)

    try:
        outcome, payment_data, result = verify_and_reconcile(transaction_id)
    except bazik.BazikTimeout as e:
        logger.warning(f"Verification of {transaction_id} timed out: {e.message}")
        return JsonResponse({
            'success': False,
            'retryable': True,
            'transaction_id': transaction_id,
            'message': 'Payment provider is slow to respond. Please wait and try again.',
        }, status=503)
    except bazik.BazikError as e:
        logger.error(f"Verification of {transaction_id} failed: {e.message}")
        return JsonResponse({'success': False, 'message': e.message}, status=500)
    except DatabaseError:
        logger.exception(f"Verification: failed to update registration for {transaction_id}")
        return JsonResponse({'success': False, 'message': 'Failed to update registration'}, status=500)

    pourcentage_paye = None
    full_access = False
    if result is not None and result.registration is not None:
        pourcentage_paye = result.registration.payment_percentage
        full_access = result.full_access

    payment_details = None
    if payment_data is not None:
        payment_details = payment_data.get('payment') or payment_data

    return JsonResponse({
        'success': True,
        'payment_status': outcome,
        'transaction_id': transaction_id,
        'message': 'Paiement confirmé' if outcome == COMPLETED else 'Paiement en attente',
        'pourcentage_paye': pourcentage_paye,
        'full_access': full_access,
        'payment_details': payment_details,
    })


@csrf_exempt
@require_http_methods(["POST"])
def send_formation_access(request):
    """
    API: Re-send the course access email to a confirmed registrant, looked up by email.
    """
    data = _request_data(request)
    email = str(data.get('email') or '').strip()
    try:
        validate_email(email)
    except ValidationError:
        return JsonResponse({'success': False, 'error': 'Email obligatwa epi valid'}, status=400)

    registration = (
        Registration.objects.filter(email__iexact=email, status=Registration.STATUS_CONFIRMED)
        .order_by('-created_at')
        .first()
    )
    if not registration:
        return JsonResponse({'success': False, 'error': 'Pa gen enskripsyon konfime pou imèl sa a'}, status=404)

    if not send_formation_access_email(registration):
        return JsonResponse({'success': False, 'error': 'Pa kapab voye imèl la.'}, status=500)

    return JsonResponse({'success': True, 'message': 'Imèl aksè fòmasyon voye'})
