"""Tests for the shared retry policy."""

from cadence.adapters.http import RETRY_STATUSES, RetryPolicy
from cadence.config import Config


class TestRetryPolicy:
    def test_retries_exclude_first_attempt(self):
        assert RetryPolicy(max_attempts=3).retries == 2
        assert RetryPolicy(max_attempts=0).retries == 0

    def test_urllib3_retry(self):
        retry = RetryPolicy(max_attempts=4, backoff_factor=1.0).urllib3_retry()
        assert retry.total == 3
        assert retry.backoff_factor == 1.0
        assert set(retry.status_forcelist) == set(RETRY_STATUSES)

    def test_session_mounts_retrying_adapter(self):
        session = RetryPolicy(max_attempts=5).session()
        assert session.get_adapter("https://api.ticktick.com").max_retries.total == 4

    def test_from_config(self):
        policy = RetryPolicy.from_config(Config(retry_attempts=2, retry_backoff=0.1))
        assert policy.max_attempts == 2
        assert policy.backoff_factor == 0.1
