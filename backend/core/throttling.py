"""
Request throttles

Rates accept an optional window multiplier, e.g. "200/15m" allows 200
requests per 15 minutes. Plain DRF rates ("100/hour") keep working.
"""
import re

from rest_framework.throttling import SimpleRateThrottle

RATE_PATTERN = re.compile(r'^\s*(\d+)\s*/\s*(\d*)\s*([smhd])[a-z]*\s*$', re.IGNORECASE)

UNIT_SECONDS = {'s': 1, 'm': 60, 'h': 3600, 'd': 86400}


def parse_window_rate(rate):
    """Return (num_requests, duration_seconds) for "<n>/<k><unit>" rates"""
    if rate is None:
        return None, None
    match = RATE_PATTERN.match(rate)
    if not match:
        raise ValueError(f"Invalid throttle rate: {rate!r}")
    num_requests = int(match.group(1))
    multiplier = int(match.group(2) or 1)
    duration = multiplier * UNIT_SECONDS[match.group(3).lower()]
    return num_requests, duration


class WindowRateThrottle(SimpleRateThrottle):
    """
    SimpleRateThrottle keyed by user id when authenticated, else client IP.

    The IP comes from DRF's get_ident, so X-Forwarded-For is only trusted
    for the NUM_PROXIES hops configured in REST_FRAMEWORK.
    """

    def parse_rate(self, rate):
        return parse_window_rate(rate)

    def get_cache_key(self, request, view):
        if request.user and request.user.is_authenticated:
            ident = f'user-{request.user.pk}'
        else:
            ident = self.get_ident(request)
        return self.cache_format % {'scope': self.scope, 'ident': ident}


class IPRateThrottle(WindowRateThrottle):
    """Always keyed by client IP"""

    def get_cache_key(self, request, view):
        return self.cache_format % {'scope': self.scope, 'ident': self.get_ident(request)}


class ProductsReadThrottle(WindowRateThrottle):
    scope = 'products_read'


class ProductsWriteThrottle(WindowRateThrottle):
    scope = 'products_write'


class QuoteSubmitThrottle(IPRateThrottle):
    scope = 'quote_submit'


class LoginThrottle(IPRateThrottle):
    scope = 'login'


class UploadThrottle(WindowRateThrottle):
    scope = 'uploads'


class WriteOnlyThrottleMixin:
    """Only count unsafe methods"""

    def allow_request(self, request, view):
        if request.method in ('GET', 'HEAD', 'OPTIONS'):
            return True
        return super().allow_request(request, view)


class ReadOnlyThrottleMixin:
    """Only count safe methods"""

    def allow_request(self, request, view):
        if request.method not in ('GET', 'HEAD', 'OPTIONS'):
            return True
        return super().allow_request(request, view)


class ProductsReadOnlyThrottle(ReadOnlyThrottleMixin, ProductsReadThrottle):
    pass


class ProductsWriteOnlyThrottle(WriteOnlyThrottleMixin, ProductsWriteThrottle):
    pass


class QuoteSubmitOnlyThrottle(WriteOnlyThrottleMixin, QuoteSubmitThrottle):
    pass
