"""Input sanitization helpers shared by the API views"""
import math
import re

from django.contrib.auth.base_user import BaseUserManager
from django.core.exceptions import ValidationError
from django.core.validators import URLValidator, validate_email
from django.utils.html import escape, strip_tags

CONTROL_CHARS = re.compile(r'[\x00-\x1f\x7f]')
FILE_NAME_UNSAFE = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
SEARCH_UNSAFE = re.compile(r'[<>\'";&|`$(){}\[\]\\]')

WINDOWS_RESERVED_NAMES = {
    'CON', 'PRN', 'AUX', 'NUL',
    *(f'COM{i}' for i in range(1, 10)),
    *(f'LPT{i}' for i in range(1, 10)),
}

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
MAX_PAGE = 100000
MAX_RECORD_ID = 9223372036854775807
MAX_INTEGER = 2147483647

_url_validator = URLValidator(schemes=['http', 'https'])


def sanitize_text(value):
    """Strip control characters and markup, HTML-escape, trim"""
    if not value or not isinstance(value, str):
        return ''
    cleaned = CONTROL_CHARS.sub('', value)
    cleaned = strip_tags(cleaned)
    return str(escape(cleaned)).strip()


def sanitize_email(value):
    if not value or not isinstance(value, str):
        return None
    email = BaseUserManager.normalize_email(value.strip())
    try:
        validate_email(email)
    except ValidationError:
        return None
    return email


def sanitize_phone(value):
    """Keep digits and '+'; 10 to 15 characters or None"""
    if not value or not isinstance(value, str):
        return None
    cleaned = re.sub(r'[^\d+]', '', value)
    if len(cleaned) < 10 or len(cleaned) > 15:
        return None
    return cleaned


def sanitize_url(value):
    if not value or not isinstance(value, str):
        return None
    url = value.strip()
    if not url.startswith(('http://', 'https://')):
        url = 'https://' + url
    try:
        _url_validator(url)
    except ValidationError:
        return None
    return url


def sanitize_number(value, min_value=None, max_value=None, integer=False):
    """Parse a number; None when missing, not finite, or out of bounds"""
    if value is None or value == '' or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    if integer:
        if not number.is_integer():
            return None
        number = int(number)
    if min_value is not None and number < min_value:
        return None
    if max_value is not None and number > max_value:
        return None
    return number


def parse_record_id(value):
    """Positive integer id from an int or an ASCII digit string, else None"""
    if isinstance(value, str):
        value = value.strip()
        if not (value.isascii() and value.isdigit()):
            return None
        value = int(value)
    if not isinstance(value, int) or isinstance(value, bool):
        return None
    return value if 0 < value <= MAX_RECORD_ID else None


def sanitize_file_name(value):
    if not value or not isinstance(value, str):
        return None
    cleaned = FILE_NAME_UNSAFE.sub('', value)
    cleaned = cleaned.lstrip('.').strip()
    if not cleaned or len(cleaned) > 255:
        return None
    if cleaned.upper() in WINDOWS_RESERVED_NAMES:
        return None
    return cleaned


def sanitize_search_query(value):
    if not value or not isinstance(value, str):
        return None
    cleaned = SEARCH_UNSAFE.sub('', value).strip()
    if not cleaned or len(cleaned) > 200:
        return None
    return cleaned


def sanitize_pagination(page=None, limit=None, default_limit=DEFAULT_PAGE_SIZE):
    """Return (page, limit, offset) with 1 <= page <= 100000 and 1 <= limit <= 100"""
    page = min(sanitize_number(page, min_value=1, integer=True) or 1, MAX_PAGE)
    limit = sanitize_number(limit, min_value=1, max_value=MAX_PAGE_SIZE, integer=True) or default_limit
    return page, limit, (page - 1) * limit
