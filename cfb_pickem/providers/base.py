import logging
import time
from functools import wraps

import requests

from cfb_pickem.exceptions import (
    MalformedProviderData,
    ProviderError,
    ProviderRateLimited,
    ProviderUnavailable,
)

logger = logging.getLogger(__name__)


def retry_with_backoff(backoff_factor=2.0):
    """
    Decorator to retry transient provider failures with exponential backoff

    Connection errors, timeouts and 5xx responses are retried; 429 and other
    4xx responses are raised straight away.
    """

    def decorator(func):
        @wraps(func)
        def wrapper(self, *args, **kwargs):
            attempts = max(1, self.max_retries)
            for attempt in range(attempts):
                try:
                    return func(self, *args, **kwargs)
                except ProviderUnavailable as e:
                    retryable = e.status_code is None or e.status_code >= 500
                    if not retryable or attempt == attempts - 1:
                        raise

                    delay = self.retry_delay * (backoff_factor**attempt)
                    logger.warning(
                        f"{self.service} request failed: {e}. Waiting {delay}s before retry {attempt + 1}/{attempts}"
                    )
                    if delay > 0:
                        time.sleep(delay)

        return wrapper

    return decorator


class ProviderClient:
    """
    Shared HTTP plumbing for every external data source

    Each call is rate limited, retried on transient failures, recorded with
    the usage monitor and turned into a typed ProviderError on failure.
    """

    service = None
    credits_header = None
    user_agent = "Mozilla/5.0 (compatible; CFBPickem/1.0)"
    timeout = 10

    def __init__(
        self,
        usage_monitor=None,
        session=None,
        timeout=None,
        min_request_interval=0.5,
        max_retries=3,
        retry_delay=1.0,
    ):
        self.usage_monitor = usage_monitor
        if session is None:
            session = requests.Session()
            session.headers.update({"User-Agent": self.user_agent})
        self.session = session
        if timeout is not None:
            self.timeout = timeout

        # Rate limiting configuration
        self.min_request_interval = min_request_interval
        self.last_request_time = 0
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    def _enforce_rate_limit(self):
        """Enforce a minimum interval between requests"""
        time_since_last = time.time() - self.last_request_time
        if time_since_last < self.min_request_interval:
            time.sleep(self.min_request_interval - time_since_last)

        self.last_request_time = time.time()

    def _headers(self, extra=None):
        headers = {"User-Agent": self.user_agent}
        if extra:
            headers.update(extra)
        return headers

    @retry_with_backoff()
    def _send(self, endpoint, url, params=None, headers=None, timeout=None):
        """Single GET with transport and status errors mapped to ProviderError"""
        self._enforce_rate_limit()

        try:
            response = self.session.get(
                url,
                params=params,
                headers=self._headers(headers),
                timeout=timeout or self.timeout,
            )
        except requests.exceptions.Timeout:
            raise ProviderUnavailable(self.service, f"Request timeout for {url}", endpoint)
        except requests.exceptions.RequestException as e:
            raise ProviderUnavailable(
                self.service, f"Connection error for {url}: {e.__class__.__name__}", endpoint
            )

        if response.status_code == 429:
            raise ProviderRateLimited(self.service, f"Rate limited: {url}", endpoint)
        if not 200 <= response.status_code < 300:
            raise ProviderUnavailable(
                self.service,
                f"HTTP error {response.status_code}: {url}",
                endpoint,
                status_code=response.status_code,
            )
        return response

    def _read_credits(self, response):
        if not self.credits_header:
            return None
        value = response.headers.get(self.credits_header)
        if value is None:
            return None
        try:
            return int(float(value))
        except (TypeError, ValueError):
            return None

    def _log_usage(self, endpoint, success, error=None, credits_remaining=None):
        if self.usage_monitor is None:
            return
        self.usage_monitor.log_call(
            self.service,
            endpoint,
            success,
            error=error,
            credits_remaining=credits_remaining,
        )

    def _call(self, endpoint, url, params=None, headers=None, timeout=None, parse=None):
        """Fetch, parse and record one logical provider call"""
        try:
            response = self._send(endpoint, url, params=params, headers=headers, timeout=timeout)
            result = parse(response) if parse else response
        except ProviderError as e:
            self._log_usage(endpoint, False, error=str(e))
            logger.warning(f"{self.service} call to {endpoint} failed: {e}")
            raise

        self._log_usage(endpoint, True, credits_remaining=self._read_credits(response))
        return result

    def _get_json(self, endpoint, url, params=None, headers=None, timeout=None, expect=None):
        def parse(response):
            try:
                data = response.json()
            except ValueError as e:
                raise MalformedProviderData(
                    self.service, f"Invalid JSON from {endpoint}: {e}", endpoint
                )
            if expect is not None and not isinstance(data, expect):
                raise MalformedProviderData(
                    self.service,
                    f"Expected {expect.__name__} from {endpoint}, got {type(data).__name__}",
                    endpoint,
                )
            return data

        return self._call(endpoint, url, params=params, headers=headers, timeout=timeout, parse=parse)

    def _get_text(self, endpoint, url, params=None, headers=None, timeout=None):
        return self._call(
            endpoint, url, params=params, headers=headers, timeout=timeout, parse=lambda r: r.text
        )
