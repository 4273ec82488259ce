"""
Product payload sanitization and validation

Errors are reported as {field, message, code} so the client can map them
back onto form fields.
"""
from decimal import Decimal, InvalidOperation

from .models import ProductCategory, AvailabilityStatus, Currency

REQUIRED_FIELDS = [
    'name', 'description', 'category', 'brand', 'diameter',
    'length', 'material', 'pressure_rating', 'temperature',
    'base_price', 'price_per_unit',
]

STRING_FIELDS = [
    'name', 'description', 'brand', 'diameter', 'length', 'material',
    'pressure_rating', 'temperature', 'currency', 'price_per_unit',
]

SPECIFICATION_FIELDS = ['diameter', 'length', 'material', 'pressure_rating', 'temperature', 'price_per_unit']

MAX_BASE_PRICE = Decimal('1000000')
MAX_MIN_QUANTITY = 2147483647


def _error(field, message, code):
    return {'field': field, 'message': message, 'code': code}


def _is_number(value):
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def sanitize_product_data(data):
    """Trim strings and drop blank list entries; unknown keys are discarded"""
    sanitized = {}

    for field in STRING_FIELDS:
        if field in data:
            value = data[field]
            sanitized[field] = value.strip() if isinstance(value, str) else value

    for field in ('standards', 'applications'):
        if field in data:
            value = data[field]
            if isinstance(value, list):
                sanitized[field] = [
                    item.strip() if isinstance(item, str) else item
                    for item in value
                    if not (isinstance(item, str) and not item.strip())
                ]
            else:
                sanitized[field] = value

    for field in ('category', 'availability', 'base_price', 'bulk_discounts'):
        if field in data:
            sanitized[field] = data[field]

    return sanitized


def validate_product_data(data, is_update=False):
    """Return a list of validation errors (empty when the payload is valid)"""
    errors = []

    if not is_update:
        for field in REQUIRED_FIELDS:
            value = data.get(field)
            if value is None or value == '' or value == []:
                errors.append(_error(field, f'{field} is required', 'REQUIRED_FIELD_MISSING'))

    if 'name' in data and data['name'] is not None:
        name = data['name']
        if not isinstance(name, str) or not name.strip():
            errors.append(_error('name', 'Product name must be a non-empty string', 'INVALID_NAME'))
        elif len(name) > 255:
            errors.append(_error('name', 'Product name must be 255 characters or less', 'NAME_TOO_LONG'))

    if 'description' in data and data['description'] is not None:
        description = data['description']
        if not isinstance(description, str):
            errors.append(_error('description', 'Description must be a string', 'INVALID_DESCRIPTION'))
        elif len(description) > 2000:
            errors.append(_error('description', 'Description must be 2000 characters or less', 'DESCRIPTION_TOO_LONG'))

    if 'category' in data and data['category'] is not None:
        if data['category'] not in ProductCategory.values:
            errors.append(_error(
                'category', f"Category must be one of: {', '.join(ProductCategory.values)}", 'INVALID_CATEGORY'
            ))

    if 'brand' in data and data['brand'] is not None:
        brand = data['brand']
        if not isinstance(brand, str) or not brand.strip():
            errors.append(_error('brand', 'Brand must be a non-empty string', 'INVALID_BRAND'))
        elif len(brand) > 100:
            errors.append(_error('brand', 'Brand must be 100 characters or less', 'BRAND_TOO_LONG'))

    for field in SPECIFICATION_FIELDS:
        if field in data and data[field] is not None:
            value = data[field]
            if not isinstance(value, str) or not value.strip():
                errors.append(_error(field, f'{field} must be a non-empty string', 'INVALID_SPECIFICATION'))
            elif len(value) > 100:
                errors.append(_error(field, f'{field} must be 100 characters or less', 'SPECIFICATION_TOO_LONG'))

    if 'base_price' in data and data['base_price'] is not None:
        price = parse_price(data['base_price'])
        if price is None:
            errors.append(_error('base_price', 'Base price must be a valid number', 'INVALID_PRICE'))
        elif price < 0:
            errors.append(_error('base_price', 'Base price must be positive', 'NEGATIVE_PRICE'))
        elif price > MAX_BASE_PRICE:
            errors.append(_error('base_price', 'Base price must be less than $1,000,000', 'PRICE_TOO_HIGH'))

    if 'currency' in data and data['currency'] is not None:
        if data['currency'] not in Currency.values:
            errors.append(_error(
                'currency', f"Currency must be one of: {', '.join(Currency.values)}", 'INVALID_CURRENCY'
            ))

    if 'availability' in data and data['availability'] is not None:
        if data['availability'] not in AvailabilityStatus.values:
            errors.append(_error(
                'availability', f"Availability must be one of: {', '.join(AvailabilityStatus.values)}", 'INVALID_AVAILABILITY'
            ))

    for field, item_code, list_code, label in (
        ('standards', 'INVALID_STANDARD', 'INVALID_STANDARDS', 'standard'),
        ('applications', 'INVALID_APPLICATION', 'INVALID_APPLICATIONS', 'application'),
    ):
        if field not in data or data[field] is None:
            continue
        values = data[field]
        if not isinstance(values, list):
            errors.append(_error(field, f'{field.capitalize()} must be an array', list_code))
            continue
        for index, value in enumerate(values):
            if not isinstance(value, str) or not value.strip():
                errors.append(_error(f'{field}[{index}]', f'Each {label} must be a non-empty string', item_code))

    if 'bulk_discounts' in data and data['bulk_discounts'] is not None:
        errors.extend(validate_bulk_discounts(data['bulk_discounts']))

    return errors


def validate_bulk_discounts(discounts):
    errors = []
    if not isinstance(discounts, list):
        return [_error('bulk_discounts', 'Bulk discounts must be an array', 'INVALID_BULK_DISCOUNTS')]

    for index, entry in enumerate(discounts):
        entry = entry if isinstance(entry, dict) else {}
        min_quantity = entry.get('min_quantity')
        if (not _is_number(min_quantity) or min_quantity < 1 or min_quantity > MAX_MIN_QUANTITY
                or int(min_quantity) != min_quantity):
            errors.append(_error(
                f'bulk_discounts[{index}].min_quantity', 'Minimum quantity must be a positive integer', 'INVALID_MIN_QUANTITY'
            ))
        discount = parse_price(entry.get('discount'))
        if discount is None or discount < 0 or discount > 1:
            errors.append(_error(
                f'bulk_discounts[{index}].discount', 'Discount must be a number between 0 and 1', 'INVALID_DISCOUNT'
            ))

    min_quantities = [
        entry['min_quantity'] for entry in discounts
        if isinstance(entry, dict) and _is_number(entry.get('min_quantity'))
    ]
    if len(min_quantities) != len(set(min_quantities)):
        errors.append(_error(
            'bulk_discounts', 'Bulk discounts cannot have duplicate minimum quantities', 'DUPLICATE_MIN_QUANTITIES'
        ))
    return errors


def parse_price(value):
    """Decimal from a JSON number or numeric string; None when not a finite number"""
    if isinstance(value, bool) or value is None:
        return None
    if not isinstance(value, (int, float, Decimal, str)):
        return None
    try:
        price = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not price.is_finite():
        return None
    return price
