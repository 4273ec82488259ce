"""
Quote notification e-mails

Sending is best effort: a failure is logged and reported as False, never
raised, so a broken mail server cannot lose a customer's quote.
"""
import logging

from django.conf import settings
from django.core.mail import send_mail
from django.template.loader import render_to_string

logger = logging.getLogger(__name__)


def _context(quote):
    items = list(quote.products.select_related('product'))
    estimated_total, currency = quote.estimated_total()
    return {
        'quote': quote,
        'items': items,
        'estimated_total': estimated_total,
        'currency': currency or '',
        'contact_email': settings.CONTACT_EMAIL,
        'contact_phone': settings.CONTACT_PHONE,
    }


def _send(subject, template, context, recipient):
    try:
        body = render_to_string(template, context)
        send_mail(subject, body, settings.DEFAULT_FROM_EMAIL, [recipient], fail_silently=False)
        return True
    except Exception as e:
        logger.error(f"Failed to send '{subject}' to {recipient}: {e}", exc_info=True)
        return False


def send_quote_notification_to_admin(quote):
    return _send(
        f'New Quote Request - {quote.quote_number}',
        'quotes/email/admin_notification.txt',
        _context(quote),
        settings.ADMIN_EMAIL,
    )


def send_quote_confirmation_to_customer(quote):
    return _send(
        f'Quote Request Confirmation - {quote.quote_number}',
        'quotes/email/customer_confirmation.txt',
        _context(quote),
        quote.customer_email,
    )


def send_quote_response_to_customer(quote):
    return _send(
        f'Response to your Quote Request - {quote.quote_number}',
        'quotes/email/customer_response.txt',
        _context(quote),
        quote.customer_email,
    )
