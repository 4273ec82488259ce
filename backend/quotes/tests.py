"""
Test suite for the quotes module
Tests: public submission, sanitization and validation, duplicate
detection, notification e-mails and quote management
"""
from decimal import Decimal
from unittest.mock import patch

from django.conf import settings
from django.core import mail
from django.core.cache import cache
from django.test import TestCase
from rest_framework import status

from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.core.throttling import QuoteSubmitThrottle
from .models import QuoteRequest, QuoteStatus, generate_quote_number
from .validation import sanitize_quote_request, validate_quote_request, sanitize_string


def quote_payload(products, **overrides):
    payload = {
        'customer_name': 'John Doe',
        'customer_email': 'john@example.com',
        'customer_phone': '555-0100',
        'company': 'Doe Plumbing',
        'message': 'Need delivery by Friday',
        'products': [{'product_id': product.id, 'quantity': quantity} for product, quantity in products],
    }
    payload.update(overrides)
    return payload


class QuoteModelTests(TestCase):
    """Test quote numbers and estimated totals"""

    def test_quote_number_format(self):
        self.assertRegex(generate_quote_number(), r'^Q-\d{8}-[A-Z0-9]{8}$')

    def test_estimated_total_applies_bulk_discounts(self):
        pipe = TestDataFactory.create_product(base_price='100.00', discounts=[(10, '0.05')])
        fitting = TestDataFactory.create_product(base_price='12.00')
        quote = TestDataFactory.create_quote(products=[(pipe, 10), (fitting, 3)])
        self.assertEqual(quote.estimated_total(), (Decimal('986.00'), 'USD'))

    def test_empty_quote_total(self):
        quote = TestDataFactory.create_quote()
        self.assertEqual(quote.estimated_total(), (Decimal('0.00'), None))


class QuoteValidationTests(TestCase):
    """Test sanitization and validation of public submissions"""

    def codes(self, data):
        return [error['code'] for error in validate_quote_request(sanitize_quote_request(data))]

    def base(self, **overrides):
        data = {
            'customer_name': 'Jane',
            'customer_email': 'jane@example.com',
            'products': [{'product_id': 1, 'quantity': 2}],
        }
        data.update(overrides)
        return data

    def test_valid_submission(self):
        self.assertEqual(self.codes(self.base()), [])

    def test_sanitize_string(self):
        self.assertEqual(sanitize_string('  John <Doe> '), 'John Doe')
        self.assertEqual(sanitize_string(42), 42)

    def test_numeric_strings_are_parsed(self):
        data = sanitize_quote_request(self.base(products=[{'product_id': '7', 'quantity': '3', 'notes': ' cut <to> size '}]))
        self.assertEqual(data['products'], [{'product_id': 7, 'quantity': 3, 'notes': 'cut to size'}])

    def test_required_fields(self):
        codes = self.codes({'customer_name': '  ', 'products': []})
        self.assertEqual(codes, ['REQUIRED_FIELD_MISSING', 'REQUIRED_FIELD_MISSING', 'PRODUCTS_REQUIRED'])

    def test_invalid_email(self):
        self.assertEqual(self.codes(self.base(customer_email='bad@')), ['INVALID_EMAIL'])

    def test_optional_field_rules(self):
        self.assertEqual(self.codes(self.base(company=123)), ['INVALID_FIELD_TYPE'])
        self.assertEqual(self.codes(self.base(zip_code='9' * 21)), ['FIELD_TOO_LONG'])
        self.assertEqual(self.codes(self.base(message='x' * 5000)), [])

    def test_product_line_rules(self):
        codes = self.codes(self.base(products=[
            {'product_id': 'abc', 'quantity': 1},
            {'product_id': 1, 'quantity': -1},
            {'product_id': 1, 'quantity': 1.5},
            {'product_id': 1, 'quantity': 1, 'notes': 5},
            'not-a-line',
        ]))
        self.assertEqual(codes, [
            'INVALID_PRODUCT_ID',
            'INVALID_QUANTITY',
            'INVALID_QUANTITY',
            'INVALID_NOTES',
            'INVALID_PRODUCT_ID',
            'INVALID_QUANTITY',
        ])

    def test_quantity_and_id_bounds(self):
        codes = self.codes(self.base(products=[
            {'product_id': 1, 'quantity': 2147483647},
            {'product_id': 1, 'quantity': 10 ** 20},
            {'product_id': '\u00b2', 'quantity': 1},
            {'product_id': 10 ** 20, 'quantity': 1},
        ]))
        self.assertEqual(codes, ['INVALID_QUANTITY', 'INVALID_PRODUCT_ID', 'INVALID_PRODUCT_ID'])

    def test_products_must_be_a_list(self):
        self.assertEqual(self.codes(self.base(products='1,2')), ['PRODUCTS_REQUIRED'])

    def test_too_many_products(self):
        products = [{'product_id': index + 1, 'quantity': 1} for index in range(51)]
        self.assertEqual(self.codes(self.base(products=products)), ['TOO_MANY_PRODUCTS'])


class QuoteSubmissionTests(TestCase):
    """Test the public quote submission endpoint"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.pipe = TestDataFactory.create_product(name='Steel Pipe', base_price='100.00', discounts=[(10, '0.05')])
        self.fitting = TestDataFactory.create_product(name='Elbow Fitting', base_price='12.00')

    def submit(self, payload):
        return self.client.post('/api/v1/quotes/', payload, format='json')

    def test_submit_quote(self):
        response = self.submit(quote_payload([(self.pipe, 10), (self.fitting, 3)]))
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertRegex(response.data['quote_number'], r'^Q-\d{8}-[A-Z0-9]{8}$')
        self.assertEqual(response.data['status'], QuoteStatus.PENDING)
        self.assertEqual(response.data['estimated_total'], 986.0)
        self.assertEqual([line['line_total'] for line in response.data['products']], [950.0, 36.0])

        quote = QuoteRequest.objects.get(pk=response.data['id'])
        self.assertEqual(quote.ip_address, '127.0.0.1')
        self.assertEqual(quote.company, 'Doe Plumbing')
        self.assertTrue(AuditLog.objects.filter(action='CREATE', model_name='QuoteRequest').exists())

    def test_submission_sends_notifications(self):
        response = self.submit(quote_payload([(self.pipe, 2)]))
        quote_number = response.data['quote_number']

        self.assertEqual(len(mail.outbox), 2)
        admin_mail, customer_mail = mail.outbox
        self.assertEqual(admin_mail.to, [settings.ADMIN_EMAIL])
        self.assertEqual(admin_mail.subject, f'New Quote Request - {quote_number}')
        self.assertIn('Steel Pipe (Qty: 2)', admin_mail.body)
        self.assertEqual(customer_mail.to, ['john@example.com'])
        self.assertEqual(customer_mail.subject, f'Quote Request Confirmation - {quote_number}')

    @patch('backend.quotes.emails.send_mail', side_effect=OSError('smtp down'))
    def test_mail_failure_does_not_lose_quote(self, _send_mail):
        response = self.submit(quote_payload([(self.pipe, 2)]))
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(QuoteRequest.objects.count(), 1)

    def test_submission_is_sanitized(self):
        response = self.submit(quote_payload([(self.pipe, 1)], customer_name='  <script>John</script> '))
        self.assertEqual(response.data['customer_name'], 'scriptJohn/script')

    def test_invalid_submission(self):
        response = self.submit(quote_payload([(self.pipe, 0)], customer_email='nope'))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(
            [error['code'] for error in response.data['validation_errors']],
            ['INVALID_EMAIL', 'INVALID_QUANTITY'],
        )
        self.assertEqual(QuoteRequest.objects.count(), 0)

    def test_oversized_quantity_is_rejected(self):
        response = self.submit(quote_payload([(self.pipe, 10 ** 20)]))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['validation_errors'][0]['code'], 'INVALID_QUANTITY')
        self.assertEqual(QuoteRequest.objects.count(), 0)

    def test_unknown_products(self):
        payload = quote_payload([(self.pipe, 1)])
        payload['products'] += [{'product_id': 999998, 'quantity': 1}, {'product_id': 999999, 'quantity': 1}]
        response = self.submit(payload)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['details'], 'Products not found: 999998, 999999')
        self.assertEqual(response.data['validation_errors'][0]['code'], 'PRODUCT_NOT_FOUND')

    def test_duplicate_submission_conflicts(self):
        first = self.submit(quote_payload([(self.pipe, 1), (self.fitting, 1)]))
        second = self.submit(quote_payload(
            [(self.fitting, 5), (self.pipe, 2)], customer_email='JOHN@example.com',
        ))
        self.assertEqual(second.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(second.data['quote_number'], first.data['quote_number'])
        self.assertEqual(QuoteRequest.objects.count(), 1)

    def test_different_products_are_not_duplicates(self):
        self.submit(quote_payload([(self.pipe, 1)]))
        response = self.submit(quote_payload([(self.pipe, 1), (self.fitting, 1)]))
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_responded_quote_is_not_a_duplicate(self):
        first = self.submit(quote_payload([(self.pipe, 1)]))
        QuoteRequest.objects.filter(pk=first.data['id']).update(status=QuoteStatus.RESPONDED)
        response = self.submit(quote_payload([(self.pipe, 1)]))
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    @patch.object(QuoteSubmitThrottle, 'rate', '2/15m', create=True)
    def test_submissions_are_rate_limited_per_client(self):
        """A rotating X-Forwarded-For header does not reset the limit"""
        statuses = []
        for index in range(3):
            payload = quote_payload([(self.pipe, 1)], customer_email=f'buyer{index}@example.com')
            response = self.client.post(
                '/api/v1/quotes/', payload, format='json', HTTP_X_FORWARDED_FOR=f'203.0.113.{index}',
            )
            statuses.append(response.status_code)
        self.assertEqual(statuses, [201, 201, 429])
        self.assertIn('Retry-After', response)
        self.assertEqual(QuoteRequest.objects.count(), 2)

    def test_listing_requires_quote_permission(self):
        self.assertEqual(self.client.get('/api/v1/quotes/').status_code, status.HTTP_401_UNAUTHORIZED)
        self.client.authenticate_user(TestDataFactory.create_user())
        self.assertEqual(self.client.get('/api/v1/quotes/').status_code, status.HTTP_403_FORBIDDEN)


class QuoteManagementTests(TestCase):
    """Test listing, responding to and deleting quotes"""

    def setUp(self):
        cache.clear()
        self.manager = TestDataFactory.create_content_manager()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.manager)
        self.product = TestDataFactory.create_product(name='Copper Pipe', base_price='67.25')
        self.quote = TestDataFactory.create_quote(
            products=[(self.product, 4)], email='buyer@acme.com', company='Acme Builders',
        )

    def test_list_quotes(self):
        TestDataFactory.create_quote(products=[(self.product, 1)], status=QuoteStatus.CLOSED)
        response = self.client.get('/api/v1/quotes/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pagination']['limit'], 10)
        self.assertEqual(response.data['pagination']['total'], 2)

        response = self.client.get('/api/v1/quotes/?status=PENDING')
        self.assertEqual([quote['id'] for quote in response.data['quotes']], [self.quote.id])

        response = self.client.get('/api/v1/quotes/?search=acme')
        self.assertEqual(response.data['pagination']['total'], 1)

        response = self.client.get('/api/v1/quotes/?status=OPEN')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['validation_errors'][0]['code'], 'INVALID_STATUS')

    def test_retrieve_quote(self):
        response = self.client.get(f'/api/v1/quotes/{self.quote.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['products'][0]['product']['name'], 'Copper Pipe')
        self.assertEqual(response.data['estimated_total'], 269.0)

    def test_respond_to_quote(self):
        response = self.client.patch(
            f'/api/v1/quotes/{self.quote.id}/',
            {'status': QuoteStatus.RESPONDED, 'response': '  $269 delivered  '},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['response'], '$269 delivered')
        self.assertIsNotNone(response.data['responded_at'])

        audit = AuditLog.objects.get(model_name='QuoteRequest')
        self.assertEqual(audit.action, 'STATUS_CHANGE')
        self.assertEqual(audit.changes['status'], {'from': 'PENDING', 'to': 'RESPONDED'})

        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['buyer@acme.com'])
        self.assertIn('$269 delivered', mail.outbox[0].body)

    def test_responded_at_is_kept_on_later_edits(self):
        self.client.patch(f'/api/v1/quotes/{self.quote.id}/', {'status': QuoteStatus.RESPONDED}, format='json')
        self.quote.refresh_from_db()
        first_response_at = self.quote.responded_at

        response = self.client.patch(
            f'/api/v1/quotes/{self.quote.id}/',
            {'status': QuoteStatus.RESPONDED, 'response': 'Updated pricing'},
            format='json',
        )
        self.quote.refresh_from_db()
        self.assertEqual(self.quote.responded_at, first_response_at)
        self.assertEqual(response.data['response'], 'Updated pricing')
        self.assertEqual(
            list(AuditLog.objects.filter(model_name='QuoteRequest').order_by('id').values_list('action', flat=True)),
            ['STATUS_CHANGE', 'UPDATE'],
        )
        # no response text on the transition, no mail on the later edit
        self.assertEqual(len(mail.outbox), 0)

    def test_update_validation(self):
        response = self.client.put(
            f'/api/v1/quotes/{self.quote.id}/', {'status': 'DONE', 'response': 5}, format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(
            [error['code'] for error in response.data['validation_errors']],
            ['INVALID_STATUS', 'INVALID_RESPONSE'],
        )

    def test_update_ignores_non_object_body(self):
        response = self.client.patch(f'/api/v1/quotes/{self.quote.id}/', [QuoteStatus.CLOSED], format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.quote.refresh_from_db()
        self.assertEqual(self.quote.status, QuoteStatus.PENDING)

    def test_delete_requires_admin(self):
        response = self.client.delete(f'/api/v1/quotes/{self.quote.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['error'], 'Admin access required')

        self.client.authenticate_user(TestDataFactory.create_admin())
        response = self.client.delete(f'/api/v1/quotes/{self.quote.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(QuoteRequest.objects.filter(pk=self.quote.pk).exists())
        self.assertTrue(AuditLog.objects.filter(action='DELETE', model_name='QuoteRequest').exists())
