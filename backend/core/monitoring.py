"""
Request metrics and error tracking
In-process collectors exposed through the /metrics endpoint
"""
import logging
import os
import resource
import sys
import threading
import time
from collections import Counter, deque

from django.conf import settings
from django.utils import timezone

logger = logging.getLogger(__name__)

PROCESS_STARTED_AT = time.monotonic()


def get_uptime():
    """Seconds since this process imported the monitoring module"""
    return round(time.monotonic() - PROCESS_STARTED_AT, 3)


def current_rss_bytes():
    """Resident set size right now, from /proc; None where /proc is missing"""
    try:
        with open('/proc/self/statm') as handle:
            resident_pages = int(handle.read().split()[1])
    except (OSError, ValueError, IndexError):
        return None
    return resident_pages * os.sysconf('SC_PAGE_SIZE')


def peak_rss_bytes():
    usage = resource.getrusage(resource.RUSAGE_SELF)
    # ru_maxrss is kilobytes on Linux, bytes on macOS
    return usage.ru_maxrss if sys.platform == 'darwin' else usage.ru_maxrss * 1024


def get_memory_usage():
    """
    Current resident memory of this process in MB, its share of physical
    memory, and the peak so far. Without /proc the peak stands in for the
    current figure.
    """
    peak_bytes = peak_rss_bytes()
    rss_bytes = current_rss_bytes()
    if rss_bytes is None:
        rss_bytes = peak_bytes
    try:
        total_bytes = os.sysconf('SC_PAGE_SIZE') * os.sysconf('SC_PHYS_PAGES')
    except (ValueError, OSError, AttributeError):
        total_bytes = 0
    percentage = round(rss_bytes / total_bytes * 100, 2) if total_bytes else 0
    return {
        'used': round(rss_bytes / 1024 / 1024),
        'peak': round(peak_bytes / 1024 / 1024),
        'total': round(total_bytes / 1024 / 1024),
        'percentage': percentage,
    }


class MetricsCollector:
    """Keeps the most recent requests in a bounded buffer"""

    def __init__(self, max_size=1000):
        self._requests = deque(maxlen=max_size)
        self._lock = threading.Lock()

    def record_request(self, method, path, status_code, duration_ms):
        entry = {
            'method': method,
            'path': path,
            'status_code': status_code,
            'duration': duration_ms,
            'timestamp': timezone.now().isoformat(),
        }
        with self._lock:
            self._requests.append(entry)
        threshold = getattr(settings, 'SLOW_REQUEST_THRESHOLD_MS', 1000)
        if duration_ms > threshold:
            logger.warning(f"Slow request detected: {method} {path} took {duration_ms}ms")
        return entry

    def get_summary(self):
        with self._lock:
            requests = list(self._requests)

        if not requests:
            return {
                'total_requests': 0,
                'average_duration': 0,
                'slowest_request': None,
                'error_rate': 0,
                'status_codes': {},
                'paths': {},
            }

        total_duration = sum(r['duration'] for r in requests)
        error_count = sum(1 for r in requests if r['status_code'] >= 400)
        return {
            'total_requests': len(requests),
            'average_duration': round(total_duration / len(requests)),
            'slowest_request': max(requests, key=lambda r: r['duration']),
            'error_rate': error_count / len(requests) * 100,
            'status_codes': dict(Counter(str(r['status_code']) for r in requests)),
            'paths': dict(Counter(r['path'] for r in requests).most_common(20)),
        }

    def clear(self):
        with self._lock:
            self._requests.clear()


class ErrorTracker:
    """Counts unhandled errors by exception type"""

    def __init__(self):
        self._counts = Counter()
        self._last_seen = {}
        self._lock = threading.Lock()

    def track(self, error_type):
        with self._lock:
            self._counts[error_type] += 1
            self._last_seen[error_type] = timezone.now().isoformat()
            count = self._counts[error_type]
        logger.error(f"Error tracked: {error_type} (count={count})")

    def get_stats(self):
        with self._lock:
            return {
                error_type: {'count': count, 'last_occurrence': self._last_seen.get(error_type)}
                for error_type, count in self._counts.items()
            }

    def reset(self):
        with self._lock:
            self._counts.clear()
            self._last_seen.clear()


metrics_collector = MetricsCollector()
error_tracker = ErrorTracker()


class RequestMetricsMiddleware:
    """Times every request and records it with the metrics collector"""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        started = time.perf_counter()
        response = self.get_response(request)
        duration_ms = int((time.perf_counter() - started) * 1000)
        try:
            metrics_collector.record_request(request.method, request.path, response.status_code, duration_ms)
        except Exception as e:
            logger.warning(f"Could not record request metrics: {e}")
        return response
