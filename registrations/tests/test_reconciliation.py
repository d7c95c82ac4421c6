from decimal import Decimal
from unittest.mock import patch

from django.core import mail
from django.test import TestCase, override_settings

from registrations.classification import COMPLETED, FAILED, PENDING
from registrations.emails import FORMATION_ACCESS, REMAINING_PAYMENT, SUBJECTS
from registrations.models import PaymentActivity, Registration
from registrations.reconciliation import (
    AWAIT_BALANCE, CANCEL, CONFIRM, CONFIRM_BALANCE, NO_OP, decide, reconcile,
)
from registrations.utils import generate_remaining_transaction_id

from .helpers import BAZIK_TEST_SETTINGS, make_registration

REMAINING_LINK = {'success': True, 'payment_url': 'https://pay.bazik.test/p/rest'}


class DecideTests(TestCase):
    """The policy table, without touching the database."""

    def test_full_plan_completed_confirms(self):
        registration = make_registration()
        decision = decide(registration, COMPLETED)
        self.assertEqual(decision.action, CONFIRM)
        self.assertEqual(decision.updates['status'], Registration.STATUS_CONFIRMED)
        self.assertTrue(decision.send_access_email)

    def test_partial_plan_completed_awaits_balance(self):
        registration = make_registration(payment_percentage='25')
        decision = decide(registration, COMPLETED)
        self.assertEqual(decision.action, AWAIT_BALANCE)
        self.assertNotIn('status', decision.updates)
        self.assertTrue(decision.request_remaining_link)
        self.assertFalse(decision.send_access_email)

    def test_remaining_match_confirms_balance(self):
        registration = make_registration(
            payment_percentage='50', remaining_transaction_id=generate_remaining_transaction_id()
        )
        decision = decide(registration, COMPLETED, is_remaining_match=True, amount='2500')
        self.assertEqual(decision.action, CONFIRM_BALANCE)
        self.assertEqual(decision.updates['amount_paid'], Decimal('5000.00'))
        self.assertEqual(decision.updates['payment_percentage'], '100')

    def test_failed_cancels_pending(self):
        self.assertEqual(decide(make_registration(), FAILED).action, CANCEL)

    def test_pending_outcome_is_no_op(self):
        self.assertEqual(decide(make_registration(), PENDING).action, NO_OP)

    def test_settled_registrations_never_change(self):
        for status in (Registration.STATUS_CONFIRMED, Registration.STATUS_CANCELLED):
            registration = make_registration(status=status)
            for outcome in (COMPLETED, FAILED):
                self.assertEqual(decide(registration, outcome).action, NO_OP)


@override_settings(**BAZIK_TEST_SETTINGS)
class ReconcileTests(TestCase):

    def test_full_plan_confirmation(self):
        registration = make_registration()

        result = reconcile(registration.transaction_id, COMPLETED)

        registration.refresh_from_db()
        self.assertEqual(registration.status, Registration.STATUS_CONFIRMED)
        self.assertTrue(result.applied)
        self.assertTrue(result.full_access)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].subject, SUBJECTS[FORMATION_ACCESS])
        self.assertTrue(
            PaymentActivity.objects.filter(reference=registration.transaction_id, status='completed').exists()
        )

    def test_repeated_delivery_confirms_once(self):
        registration = make_registration()

        results = [reconcile(registration.transaction_id, COMPLETED) for _ in range(3)]

        self.assertEqual([r.applied for r in results], [True, False, False])
        self.assertEqual(len(mail.outbox), 1)
        registration.refresh_from_db()
        self.assertEqual(registration.status, Registration.STATUS_CONFIRMED)

    @patch('registrations.reconciliation.bazik.create_payment_intent', return_value=REMAINING_LINK)
    def test_partial_plan_requests_remaining_balance(self, mock_intent):
        registration = make_registration(payment_percentage='50')

        result = reconcile(registration.transaction_id, COMPLETED)

        registration.refresh_from_db()
        self.assertEqual(registration.status, Registration.STATUS_PENDING)
        self.assertFalse(result.full_access)
        self.assertTrue(registration.remaining_transaction_id.startswith('KONEKTE-RESTE-'))

        kwargs = mock_intent.call_args[1]
        self.assertEqual(kwargs['amount'], Decimal('2500.00'))
        self.assertEqual(kwargs['transaction_id'], registration.remaining_transaction_id)
        self.assertEqual(kwargs['metadata']['type'], 'remaining_payment')
        self.assertEqual(kwargs['metadata']['original_transaction_id'], registration.transaction_id)

        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].subject, SUBJECTS[REMAINING_PAYMENT])
        self.assertIn('https://pay.bazik.test/p/rest', mail.outbox[0].body)
        self.assertIn('2 500 HTG', mail.outbox[0].body)

    @patch('registrations.reconciliation.bazik.create_payment_intent', return_value=REMAINING_LINK)
    def test_partial_plan_duplicate_delivery_requests_link_once(self, mock_intent):
        registration = make_registration(payment_percentage='25')

        reconcile(registration.transaction_id, COMPLETED)
        remaining_id = Registration.objects.get(pk=registration.pk).remaining_transaction_id
        second = reconcile(registration.transaction_id, COMPLETED)

        self.assertFalse(second.applied)
        self.assertEqual(mock_intent.call_count, 1)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(Registration.objects.get(pk=registration.pk).remaining_transaction_id, remaining_id)

    @patch('registrations.reconciliation.bazik.create_payment_intent',
           return_value={'success': False, 'message': 'provider down'})
    def test_remaining_link_failure_falls_back_to_registration_page(self, mock_intent):
        registration = make_registration(payment_percentage='50')

        reconcile(registration.transaction_id, COMPLETED)

        self.assertEqual(len(mail.outbox), 1)
        self.assertIn('https://konekte.test/#inscription', mail.outbox[0].body)
        registration.refresh_from_db()
        self.assertIsNone(registration.remaining_transaction_id)
        self.assertEqual(registration.status, Registration.STATUS_PENDING)

    @patch('registrations.reconciliation.bazik.create_payment_intent')
    def test_remaining_link_is_requested_again_after_failure(self, mock_intent):
        registration = make_registration(payment_percentage='50')
        mock_intent.return_value = {'success': False, 'message': 'provider down'}
        reconcile(registration.transaction_id, COMPLETED)

        mock_intent.return_value = REMAINING_LINK
        result = reconcile(registration.transaction_id, COMPLETED)

        self.assertTrue(result.applied)
        self.assertEqual(mock_intent.call_count, 2)
        registration.refresh_from_db()
        self.assertTrue(registration.remaining_transaction_id.startswith('KONEKTE-RESTE-'))
        self.assertEqual(
            mock_intent.call_args[1]['transaction_id'], registration.remaining_transaction_id
        )
        self.assertIn('https://pay.bazik.test/p/rest', mail.outbox[-1].body)

    def test_remaining_balance_completion(self):
        remaining_id = generate_remaining_transaction_id()
        registration = make_registration(payment_percentage='50', remaining_transaction_id=remaining_id)
        self.assertEqual(registration.amount_paid, Decimal('2500.00'))

        result = reconcile(remaining_id, COMPLETED, amount=2500)

        registration.refresh_from_db()
        self.assertEqual(registration.status, Registration.STATUS_CONFIRMED)
        self.assertEqual(registration.amount_paid, Decimal('5000.00'))
        self.assertEqual(registration.amount_total, Decimal('5000.00'))
        self.assertEqual(registration.payment_percentage, '100')
        self.assertTrue(result.is_remaining_match)
        self.assertTrue(result.full_access)
        self.assertEqual(mail.outbox[0].subject, SUBJECTS[FORMATION_ACCESS])

    def test_remaining_balance_double_delivery_credits_once(self):
        remaining_id = generate_remaining_transaction_id()
        registration = make_registration(payment_percentage='50', remaining_transaction_id=remaining_id)

        reconcile(remaining_id, COMPLETED, amount=2500)
        reconcile(remaining_id, COMPLETED, amount=2500)

        registration.refresh_from_db()
        self.assertEqual(registration.amount_paid, Decimal('5000.00'))
        self.assertEqual(len(mail.outbox), 1)

    def test_remaining_balance_overpayment_is_capped(self):
        remaining_id = generate_remaining_transaction_id()
        registration = make_registration(payment_percentage='50', remaining_transaction_id=remaining_id)

        with self.assertLogs('registrations.reconciliation', level='WARNING'):
            reconcile(remaining_id, COMPLETED, amount=5000)

        registration.refresh_from_db()
        self.assertEqual(registration.amount_paid, Decimal('5000.00'))
        self.assertEqual(registration.amount_paid, registration.amount_total)
        self.assertEqual(len(mail.outbox), 1)

    def test_remaining_balance_out_of_range_amount_credits_balance(self):
        for amount in (99999999, 10 ** 12):
            remaining_id = generate_remaining_transaction_id()
            registration = make_registration(payment_percentage='50', remaining_transaction_id=remaining_id)

            result = reconcile(remaining_id, COMPLETED, amount=amount)

            registration.refresh_from_db()
            self.assertTrue(result.applied)
            self.assertEqual(registration.status, Registration.STATUS_CONFIRMED)
            self.assertEqual(registration.amount_paid, Decimal('5000.00'))
        self.assertEqual(len(mail.outbox), 2)

    def test_remaining_balance_without_amount_credits_balance(self):
        remaining_id = generate_remaining_transaction_id()
        registration = make_registration(payment_percentage='25', remaining_transaction_id=remaining_id)

        reconcile(remaining_id, COMPLETED)

        registration.refresh_from_db()
        self.assertEqual(registration.amount_paid, Decimal('5000.00'))

    def test_failed_payment_cancels(self):
        registration = make_registration()
        reconcile(registration.transaction_id, FAILED)
        registration.refresh_from_db()
        self.assertEqual(registration.status, Registration.STATUS_CANCELLED)
        self.assertEqual(len(mail.outbox), 0)

    def test_status_never_regresses(self):
        confirmed = make_registration(status=Registration.STATUS_CONFIRMED)
        cancelled = make_registration(status=Registration.STATUS_CANCELLED, email='other@example.com')

        reconcile(confirmed.transaction_id, FAILED)
        reconcile(cancelled.transaction_id, COMPLETED)

        confirmed.refresh_from_db()
        cancelled.refresh_from_db()
        self.assertEqual(confirmed.status, Registration.STATUS_CONFIRMED)
        self.assertEqual(cancelled.status, Registration.STATUS_CANCELLED)
        self.assertEqual(len(mail.outbox), 0)

    def test_unmatched_transaction(self):
        with self.assertLogs('registrations.reconciliation', level='WARNING'):
            result = reconcile('KONEKTE-0-unknown', COMPLETED)
        self.assertIsNone(result.registration)
        self.assertFalse(result.applied)
        activity = PaymentActivity.objects.get(reference='KONEKTE-0-unknown')
        self.assertIsNone(activity.registration)
        self.assertEqual(activity.message, 'unmatched')
