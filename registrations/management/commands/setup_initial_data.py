"""
Management command to set up initial seminar data.
Run this after migrations: python manage.py setup_initial_data
"""
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction
from registrations.models import PromoCode, SeminarSettings


class Command(BaseCommand):
    help = 'Sets up initial seminar data (pricing settings, launch promo code)'

    def add_arguments(self, parser):
        parser.add_argument('--base-price', type=Decimal, default=Decimal('5000.00'),
                            help='Seminar price in HTG (default: 5000)')
        parser.add_argument('--promo-code', default='KONEKTE25',
                            help='Launch promo code to create (default: KONEKTE25)')

    def handle(self, *args, **options):
        self.stdout.write('Setting up initial seminar data...')

        try:
            with transaction.atomic():
                seminar, created = SeminarSettings.objects.get_or_create(
                    pk=1,
                    defaults={'base_price': options['base_price'], 'currency': 'HTG'}
                )
                if created:
                    self.stdout.write(self.style.SUCCESS(f'✓ Created Seminar Settings ({seminar.base_price} HTG)'))
                else:
                    self.stdout.write(self.style.WARNING('Seminar Settings already exists'))

                promo, created = PromoCode.objects.get_or_create(
                    code=options['promo_code'].strip().upper(),
                    defaults={
                        'discount_type': PromoCode.TYPE_PERCENTAGE,
                        'value': Decimal('25.00'),
                        'max_uses': 50,
                    }
                )
                if created:
                    self.stdout.write(self.style.SUCCESS(f'✓ Created Promo Code: {promo}'))
                else:
                    self.stdout.write(self.style.WARNING(f'Promo Code {promo.code} already exists'))

        except Exception as e:
            self.stdout.write(self.style.ERROR(f'Error setting up initial data: {str(e)}'))
            raise

        self.stdout.write(self.style.SUCCESS('\n✓ Initial data setup complete!'))
