"""
Quote request sanitization and validation

Submissions come from an anonymous public form, so every string is
trimmed and stripped of angle brackets before it is validated or stored.
"""
import re

from backend.core.sanitizers import parse_record_id
from .models import QuoteStatus

# Optional customer fields and their maximum stored length
OPTIONAL_FIELDS = {
    'customer_phone': 50,
    'company': 255,
    'address': 500,
    'city': 100,
    'state': 100,
    'zip_code': 20,
    'country': 100,
    'message': 5000,
}

FIELD_LABELS = {
    'customer_phone': 'Customer phone',
    'company': 'Company',
    'address': 'Address',
    'city': 'City',
    'state': 'State',
    'zip_code': 'Zip code',
    'country': 'Country',
    'message': 'Message',
}

MAX_QUOTE_PRODUCTS = 50

# Quantity column is a 32-bit integer
MAX_QUANTITY = 2147483647

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
ANGLE_BRACKETS = re.compile(r'[<>]')


def _error(field, message, code):
    return {'field': field, 'message': message, 'code': code}


def sanitize_string(value):
    """Trim and drop `<` / `>`; non-strings are returned untouched"""
    if not isinstance(value, str):
        return value
    return ANGLE_BRACKETS.sub('', value.strip())


def _is_ascii_digits(value):
    return value.isascii() and value.isdigit()


def _parse_quantity(value):
    if isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, str) and _is_ascii_digits(value.strip().lstrip('-')):
        return int(value.strip())
    return None


def sanitize_quote_request(data):
    sanitized = {
        'customer_name': sanitize_string(data.get('customer_name')),
        'customer_email': sanitize_string(data.get('customer_email')),
    }
    for field in OPTIONAL_FIELDS:
        value = data.get(field)
        if value is not None and value != '':
            sanitized[field] = sanitize_string(value)

    products = data.get('products')
    if isinstance(products, list):
        sanitized['products'] = []
        for item in products:
            if not isinstance(item, dict):
                sanitized['products'].append({'product_id': None, 'quantity': None, 'notes': None})
                continue
            sanitized['products'].append({
                'product_id': parse_record_id(item.get('product_id')),
                'quantity': _parse_quantity(item.get('quantity')),
                'notes': sanitize_string(item.get('notes')) if item.get('notes') is not None else None,
            })
    else:
        sanitized['products'] = products
    return sanitized


def validate_quote_request(data):
    """Return a list of {field, message, code} errors for a sanitized submission"""
    errors = []

    name = data.get('customer_name')
    if not isinstance(name, str) or not name:
        errors.append(_error('customer_name', 'Customer name is required', 'REQUIRED_FIELD_MISSING'))
    elif len(name) > 255:
        errors.append(_error('customer_name', 'Customer name must be 255 characters or less', 'FIELD_TOO_LONG'))

    email = data.get('customer_email')
    if not isinstance(email, str) or not email:
        errors.append(_error('customer_email', 'Customer email is required', 'REQUIRED_FIELD_MISSING'))
    elif len(email) > 254 or not EMAIL_PATTERN.match(email):
        errors.append(_error('customer_email', 'Invalid email format', 'INVALID_EMAIL'))

    for field, max_length in OPTIONAL_FIELDS.items():
        if field not in data:
            continue
        value = data[field]
        if not isinstance(value, str):
            errors.append(_error(field, f'{FIELD_LABELS[field]} must be a string', 'INVALID_FIELD_TYPE'))
        elif len(value) > max_length:
            errors.append(_error(
                field, f'{FIELD_LABELS[field]} must be {max_length} characters or less', 'FIELD_TOO_LONG'
            ))

    products = data.get('products')
    if not isinstance(products, list):
        errors.append(_error('products', 'Products array is required', 'PRODUCTS_REQUIRED'))
    elif not products:
        errors.append(_error('products', 'At least one product is required', 'PRODUCTS_REQUIRED'))
    elif len(products) > MAX_QUOTE_PRODUCTS:
        errors.append(_error(
            'products', f'A quote can include at most {MAX_QUOTE_PRODUCTS} products', 'TOO_MANY_PRODUCTS'
        ))
    else:
        for index, item in enumerate(products):
            if item['product_id'] is None:
                errors.append(_error(f'products[{index}].product_id', 'Product ID is required', 'INVALID_PRODUCT_ID'))
            if item['quantity'] is None or item['quantity'] <= 0:
                errors.append(_error(
                    f'products[{index}].quantity', 'Quantity must be a positive integer', 'INVALID_QUANTITY'
                ))
            elif item['quantity'] > MAX_QUANTITY:
                errors.append(_error(
                    f'products[{index}].quantity', f'Quantity cannot exceed {MAX_QUANTITY}', 'INVALID_QUANTITY'
                ))
            if item['notes'] is not None and not isinstance(item['notes'], str):
                errors.append(_error(f'products[{index}].notes', 'Notes must be a string', 'INVALID_NOTES'))

    return errors


def validate_quote_status(value):
    return value in QuoteStatus.values
