"""Shared HTTP plumbing: retry policy and session factory."""

from dataclasses import dataclass

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

RETRY_STATUSES = (429, 500, 502, 503, 504)
DEFAULT_TIMEOUT = 30


@dataclass
class RetryPolicy:
    """Bounded retry with exponential backoff for every outbound call.

    ``max_attempts`` counts the first try, so 3 means two retries.
    """

    max_attempts: int = 3
    backoff_factor: float = 0.5
    retry_statuses: tuple[int, ...] = RETRY_STATUSES

    @property
    def retries(self) -> int:
        return max(0, self.max_attempts - 1)

    def urllib3_retry(self) -> Retry:
        return Retry(
            total=self.retries,
            backoff_factor=self.backoff_factor,
            status_forcelist=self.retry_statuses,
            allowed_methods=None,
            respect_retry_after_header=True,
            raise_on_status=False,
        )

    def session(self) -> requests.Session:
        """A session that retries transient failures on both schemes."""
        session = requests.Session()
        adapter = HTTPAdapter(max_retries=self.urllib3_retry())
        session.mount("https://", adapter)
        session.mount("http://", adapter)
        return session

    @classmethod
    def from_config(cls, config) -> "RetryPolicy":
        return cls(max_attempts=config.retry_attempts, backoff_factor=config.retry_backoff)
