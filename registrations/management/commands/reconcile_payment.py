"""
Reconcile a payment by transaction id when the webhook was missed.
Usage: python manage.py reconcile_payment KONEKTE-1700000000000-abc123xyz
"""
from django.core.management.base import BaseCommand, CommandError

from registrations import bazik
from registrations.reconciliation import verify_and_reconcile


class Command(BaseCommand):
    help = 'Verify a transaction with Bazik and update the matching registration'

    def add_arguments(self, parser):
        parser.add_argument('transaction_id', help='Initial or remaining-balance transaction id')

    def handle(self, *args, **options):
        transaction_id = options['transaction_id'].strip()

        try:
            outcome, payment_data, result = verify_and_reconcile(transaction_id, source='admin')
        except bazik.BazikError as e:
            raise CommandError(f'Bazik verification failed: {e.message}')

        if payment_data is None:
            self.stdout.write(self.style.WARNING(f'Bazik does not know {transaction_id} yet (PENDING).'))
            return

        if result is None:
            self.stdout.write(self.style.WARNING(f'Payment {transaction_id} is {outcome}; nothing to reconcile.'))
            return

        if result.registration is None:
            raise CommandError(f'No registration found for transaction {transaction_id}')

        registration = result.registration
        if result.applied:
            self.stdout.write(self.style.SUCCESS(
                f'✓ {registration.full_name} ({registration.email}): {result.decision.action}, '
                f'status is now {registration.status}'
            ))
        else:
            self.stdout.write(
                f'{registration.full_name} ({registration.email}) already up to date: '
                f'status {registration.status} ({result.decision.reason or result.decision.action})'
            )
