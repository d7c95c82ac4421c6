from django.test import SimpleTestCase
from django.test.client import RequestFactory

from registrations.classification import (
    COMPLETED, FAILED, PENDING, classify_verification, classify_webhook_event,
    compute_signature, extract_amount, extract_transaction_id, get_signature_header,
    verify_signature,
)


class SignatureTests(SimpleTestCase):
    secret = 'whsec_test_secret'
    body = b'{"transaction_id": "KONEKTE-1700000000000-abc123xyz", "status": "paid"}'

    def test_valid_signature(self):
        signature = compute_signature(self.body, self.secret)
        self.assertTrue(verify_signature(self.body, signature, self.secret))

    def test_secret_prefix_is_optional(self):
        signature = compute_signature(self.body, 'test_secret')
        self.assertTrue(verify_signature(self.body, signature, self.secret))

    def test_signature_prefixes_and_case_are_accepted(self):
        signature = compute_signature(self.body, self.secret)
        self.assertTrue(verify_signature(self.body, f'sha256={signature}', self.secret))
        self.assertTrue(verify_signature(self.body, signature.upper(), self.secret))

    def test_single_byte_tamper_is_rejected(self):
        signature = compute_signature(self.body, self.secret)
        tampered = bytearray(self.body)
        tampered[10] = tampered[10] ^ 0x01
        self.assertFalse(verify_signature(bytes(tampered), signature, self.secret))

    def test_missing_signature_is_rejected(self):
        self.assertFalse(verify_signature(self.body, '', self.secret))

    def test_signature_header_candidates(self):
        request = RequestFactory().post('/', HTTP_X_SIGNATURE='abc')
        self.assertEqual(get_signature_header(request.headers), 'abc')
        request = RequestFactory().post('/', HTTP_X_BAZIK_SIGNATURE='first', HTTP_SIGNATURE='second')
        self.assertEqual(get_signature_header(request.headers), 'first')


class ExtractionTests(SimpleTestCase):

    def test_transaction_id_candidates_in_priority_order(self):
        self.assertEqual(extract_transaction_id({'reference': 'R1', 'id': 'X'}), 'R1')
        self.assertEqual(extract_transaction_id({'order_id': 'O1'}), 'O1')
        self.assertEqual(extract_transaction_id({'id': 42}), '42')
        self.assertIsNone(extract_transaction_id({'status': 'paid'}))

    def test_amount_top_level_or_nested(self):
        self.assertEqual(extract_amount({'amount': 2500}), 2500)
        self.assertEqual(extract_amount({'payment': {'amountPaid': '2500.00'}}), '2500.00')
        self.assertIsNone(extract_amount({'payment': {'amount': True}}))


class WebhookClassificationTests(SimpleTestCase):
    """Pushed events are classified tolerantly."""

    def test_completed_markers(self):
        self.assertEqual(classify_webhook_event({'status': 'PAID'}), COMPLETED)
        self.assertEqual(classify_webhook_event({'payment_status': 'success'}), COMPLETED)
        self.assertEqual(classify_webhook_event({'payment': {'state': 'completed'}}), COMPLETED)
        self.assertEqual(classify_webhook_event({'paid': True}), COMPLETED)
        self.assertEqual(classify_webhook_event({'type': 'payment.completed'}), COMPLETED)

    def test_failed_markers(self):
        self.assertEqual(classify_webhook_event({'status': 'failed'}), FAILED)
        self.assertEqual(classify_webhook_event({'status': 'canceled'}), FAILED)
        self.assertEqual(classify_webhook_event({'type': 'payment.cancelled'}), FAILED)

    def test_anything_else_is_pending(self):
        self.assertEqual(classify_webhook_event({'status': 'processing'}), PENDING)
        self.assertEqual(classify_webhook_event({}), PENDING)


class VerificationClassificationTests(SimpleTestCase):
    """Polled statuses need an exact status and a proof field."""

    def test_successful_with_proof(self):
        data = {'payment': {'status': 'successful', 'transactionCode': 'MC-1'}}
        self.assertEqual(classify_verification(data), COMPLETED)

    def test_top_level_payment_fields(self):
        self.assertEqual(classify_verification({'message': 'paid', 'reference': 'R1'}), COMPLETED)

    def test_explicit_true_flag_with_proof(self):
        self.assertEqual(classify_verification({'paid': True, 'bankReference': 'B1'}), COMPLETED)

    def test_truthy_but_not_true_flag_is_not_enough(self):
        self.assertEqual(classify_verification({'paid': 'yes', 'bankReference': 'B1'}), PENDING)

    def test_status_without_proof_is_pending(self):
        self.assertEqual(classify_verification({'payment': {'status': 'successful', 'amount': 5000}}), PENDING)

    def test_loose_status_words_are_pending(self):
        data = {'payment': {'status': 'success', 'transactionCode': 'MC-1'}}
        self.assertEqual(classify_verification(data), PENDING)
        self.assertEqual(classify_webhook_event(data), COMPLETED)

    def test_descriptive_message_does_not_hide_status(self):
        data = {'message': 'Transaction found', 'status': 'successful', 'transactionCode': 'MC-1'}
        self.assertEqual(classify_verification(data), COMPLETED)

    def test_failed_status_is_reported_pending(self):
        data = {'payment': {'status': 'failed', 'transactionCode': 'MC-1'}}
        self.assertEqual(classify_verification(data), PENDING)
