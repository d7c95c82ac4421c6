"""
Reconciliation of payment outcomes into a Registration's stored status.

Both the webhook and the verification endpoint call `reconcile()`; they only
differ in how they classify the provider's answer (tolerant vs strict).

`decide()` reads only the stored registration and the classified outcome and
never writes. `apply()` performs the resulting write as a conditional UPDATE that
only matches rows still in PENDING, so duplicate or concurrent deliveries
update at most once and only the winning call sends emails.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal

from django.conf import settings
from django.db.models import Q
from django.utils import timezone

from . import bazik
from .classification import COMPLETED, FAILED, PENDING, classify_verification, extract_amount
from .emails import NotificationError, send_formation_access_email, send_remaining_payment_email
from .models import PaymentActivity, Registration
from .utils import generate_remaining_transaction_id, to_decimal

logger = logging.getLogger(__name__)

CONFIRM = 'confirm'
AWAIT_BALANCE = 'await_balance'
CONFIRM_BALANCE = 'confirm_balance'
CANCEL = 'cancel'
NO_OP = 'no_op'


@dataclass
class Decision:
    action: str
    updates: dict = field(default_factory=dict)
    send_access_email: bool = False
    request_remaining_link: bool = False
    reason: str = ''


@dataclass
class ReconciliationResult:
    transaction_id: str
    outcome: str
    registration: Registration = None
    decision: Decision = None
    applied: bool = False
    is_remaining_match: bool = False

    @property
    def full_access(self):
        """Confirmed by a 100% plan or by settling the remaining balance."""
        if self.registration is None or not self.registration.is_confirmed():
            return False
        return self.is_remaining_match or self.registration.is_full_plan()


def decide(registration, outcome, is_remaining_match=False, amount=None):
    """
    Map (stored registration, classified outcome) to the action to take.

    | plan / match               | COMPLETED                                  | FAILED    |
    |----------------------------|--------------------------------------------|-----------|
    | first payment, 100%        | CONFIRMED + access email                   | CANCELLED |
    | first payment, 25% or 50%  | stays PENDING + remaining-balance link     | CANCELLED |
    | remaining-balance payment  | amount_paid += amount, 100%, CONFIRMED     | CANCELLED |

    Registrations already CONFIRMED or CANCELLED never change.
    """
    if registration.status != Registration.STATUS_PENDING:
        return Decision(NO_OP, reason=f'registration already {registration.status}')

    if outcome == FAILED:
        return Decision(CANCEL, {'status': Registration.STATUS_CANCELLED})

    if outcome != COMPLETED:
        return Decision(NO_OP, reason='payment not completed')

    amount_total = registration.get_amount_total()

    if is_remaining_match:
        remaining = registration.get_remaining_balance()
        credited = to_decimal(amount)
        if credited is None or credited <= 0:
            credited = remaining
        elif credited > remaining:
            logger.warning(
                f"Registration {registration.id}: reported amount {credited} exceeds "
                f"remaining balance {remaining}; crediting {remaining}"
            )
            credited = remaining
        return Decision(
            CONFIRM_BALANCE,
            {
                'status': Registration.STATUS_CONFIRMED,
                'amount_paid': (registration.amount_paid or Decimal('0.00')) + credited,
                'amount_total': amount_total,
                'payment_percentage': '100',
            },
            send_access_email=True,
        )

    if registration.is_full_plan():
        return Decision(
            CONFIRM,
            {'status': Registration.STATUS_CONFIRMED, 'amount_total': amount_total},
            send_access_email=True,
        )

    if registration.remaining_transaction_id:
        return Decision(NO_OP, reason='remaining balance already requested')

    return Decision(
        AWAIT_BALANCE,
        {'amount_total': amount_total},
        request_remaining_link=True,
    )


def apply(registration, decision):
    """
    Write the decision with a conditional update.

    Returns:
        (registration, applied): the refreshed registration, and whether this
        call is the one that changed the row.
    """
    if decision.action == NO_OP:
        return registration, False

    rows = Registration.objects.filter(pk=registration.pk, status=Registration.STATUS_PENDING)
    updates = dict(decision.updates, updated_at=timezone.now())

    if decision.action == CONFIRM_BALANCE:
        rows = rows.filter(remaining_transaction_id=registration.remaining_transaction_id)
    elif decision.action == AWAIT_BALANCE:
        rows = rows.filter(remaining_transaction_id__isnull=True)
        updates['remaining_transaction_id'] = generate_remaining_transaction_id()

    applied = rows.update(**updates) == 1
    registration.refresh_from_db()
    if not applied:
        logger.info(f"Registration {registration.id}: {decision.action} already applied by another delivery")
    return registration, applied


def request_remaining_payment_link(registration):
    """
    Create the Bazik payment for the remaining balance.
    Returns the payment URL, or None if the provider call failed.
    """
    first_name, last_name = registration.split_name()
    result = bazik.create_payment_intent(
        amount=registration.get_remaining_balance(),
        transaction_id=registration.remaining_transaction_id,
        contact={
            'email': registration.email,
            'phone': registration.phone,
            'first_name': first_name,
            'last_name': last_name,
        },
        description=f"Solde restant - {registration.full_name}",
        metadata={
            'registration_id': str(registration.id),
            'type': 'remaining_payment',
            'original_transaction_id': registration.transaction_id,
        },
    )
    if not result['success']:
        logger.warning(
            f"Could not create remaining payment link for registration {registration.id}: {result.get('message')}"
        )
        return None
    return result['payment_url']


def release_remaining_transaction_id(registration):
    """
    Forget a remaining-balance id Bazik never accepted, so it is not polled
    and the next completed signal for the first payment asks for a new link.
    """
    Registration.objects.filter(
        pk=registration.pk,
        status=Registration.STATUS_PENDING,
        remaining_transaction_id=registration.remaining_transaction_id,
    ).update(remaining_transaction_id=None, updated_at=timezone.now())
    registration.refresh_from_db()


def perform_side_effects(registration, decision):
    try:
        if decision.send_access_email:
            send_formation_access_email(registration)
        elif decision.request_remaining_link:
            payment_link = request_remaining_payment_link(registration)
            if payment_link is None:
                release_remaining_transaction_id(registration)
                payment_link = f"{settings.APP_URL}/#inscription"
            send_remaining_payment_email(
                registration,
                amount_remaining=registration.get_remaining_balance(),
                percentage_paid=registration.payment_percentage,
                payment_link=payment_link,
            )
    except NotificationError as e:
        logger.error(f"Notification for registration {registration.id} not sent: {str(e)}")


def find_registration(transaction_id):
    """Look up by the initial or the remaining-balance transaction id."""
    return Registration.objects.filter(
        Q(transaction_id=transaction_id) | Q(remaining_transaction_id=transaction_id)
    ).first()


def _log_activity(result, source, amount, raw_payload):
    PaymentActivity.objects.create(
        registration=result.registration,
        reference=result.transaction_id[:100],
        status=result.outcome.lower(),
        source=source,
        amount=to_decimal(amount),
        message=(result.decision.action if result.decision else 'unmatched')[:255],
        raw_payload=raw_payload or {},
    )


def reconcile(transaction_id, outcome, amount=None, source='webhook', raw_payload=None):
    """
    Merge a classified payment outcome into the matching registration.

    Raises:
        django.db.DatabaseError: the store could not be read or written.
    """
    result = ReconciliationResult(transaction_id=transaction_id, outcome=outcome)
    registration = find_registration(transaction_id)

    if registration is None:
        logger.warning(f"No registration found for transaction {transaction_id} ({source})")
        _log_activity(result, source, amount, raw_payload)
        return result

    result.registration = registration
    result.is_remaining_match = registration.remaining_transaction_id == transaction_id
    result.decision = decide(registration, outcome, result.is_remaining_match, amount)
    result.registration, result.applied = apply(registration, result.decision)

    logger.info(
        f"Reconciled {transaction_id} ({source}): outcome={outcome} action={result.decision.action} "
        f"applied={result.applied} status={result.registration.status}"
    )

    if result.applied:
        perform_side_effects(result.registration, result.decision)

    _log_activity(result, source, amount, raw_payload)
    return result


def verify_and_reconcile(transaction_id, source='verification'):
    """
    Poll Bazik for a transaction and reconcile it if the payment is proven.

    Returns:
        (outcome, payment_data, result): `payment_data` is None when Bazik does
        not know the transaction yet; `result` is None unless the outcome is
        COMPLETED.

    Raises:
        bazik.BazikTimeout, bazik.BazikError: the provider could not answer.
        django.db.DatabaseError: the store could not be read or written.
    """
    payment_data = bazik.fetch_transaction_status(transaction_id)
    if payment_data is None:
        return PENDING, None, None

    outcome = classify_verification(payment_data)
    if outcome != COMPLETED:
        logger.info(f"Payment not completed yet for transaction {transaction_id}")
        return outcome, payment_data, None

    result = reconcile(
        transaction_id, outcome,
        amount=extract_amount(payment_data),
        source=source,
        raw_payload=payment_data,
    )
    return outcome, payment_data, result
