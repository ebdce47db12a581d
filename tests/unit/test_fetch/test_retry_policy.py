"""Unit tests for retry policy decisions."""

import pytest

from fetcher.models import FailureKind, RetryPolicy
from tests.helpers.transport import make_response


class TestRetryPolicy:
    """Tests for RetryPolicy model."""

    def test_default_values(self) -> None:
        """Test default retry policy values."""
        policy = RetryPolicy()

        assert policy.initial_delay_ms == 1000
        assert policy.max_delay_ms == 5000
        assert policy.exponential_base == 2.0
        assert policy.jitter_factor == 0.1
        assert policy.hang_up_max_retries == 1
        assert policy.retryable_statuses == frozenset(
            {408, 409, 425, 500, 502, 503, 504}
        )

    def test_custom_values(self) -> None:
        """Test custom retry policy values."""
        policy = RetryPolicy(
            initial_delay_ms=500,
            max_delay_ms=60000,
            exponential_base=1.5,
            jitter_factor=0.2,
            hang_up_max_retries=0,
        )

        assert policy.initial_delay_ms == 500
        assert policy.max_delay_ms == 60000
        assert policy.exponential_base == 1.5
        assert policy.jitter_factor == 0.2
        assert policy.hang_up_max_retries == 0

    def test_frozen(self) -> None:
        """Test that policies are immutable."""
        policy = RetryPolicy()

        with pytest.raises(ValueError):
            policy.initial_delay_ms = 10  # type: ignore[misc]


class TestShouldRetryResponse:
    """Tests for response-driven retry decisions."""

    @pytest.fixture
    def policy(self) -> RetryPolicy:
        """Create a standard retry policy."""
        return RetryPolicy()

    @pytest.mark.parametrize("status", [408, 409, 425, 500, 502, 503, 504])
    def test_retry_on_transient_status(self, policy: RetryPolicy, status: int) -> None:
        """Test that transient statuses are retried within budget."""
        response = make_response(status)

        assert policy.should_retry_response(response, attempt=0, retries=2) is True
        assert policy.should_retry_response(response, attempt=1, retries=2) is True
        assert policy.should_retry_response(response, attempt=2, retries=2) is False

    @pytest.mark.parametrize("status", [400, 401, 403, 404, 429, 501, 505])
    def test_no_retry_on_other_errors(self, policy: RetryPolicy, status: int) -> None:
        """Test that other error statuses are not retried."""
        response = make_response(status)

        assert policy.should_retry_response(response, attempt=0, retries=3) is False

    def test_no_retry_on_success(self, policy: RetryPolicy) -> None:
        """Test that ok responses are never retried."""
        for status in (200, 204, 304):
            response = make_response(status)
            assert policy.should_retry_response(response, attempt=0, retries=3) is False

    def test_zero_retries(self, policy: RetryPolicy) -> None:
        """Test that a zero budget disables status retries."""
        response = make_response(503)

        assert policy.should_retry_response(response, attempt=0, retries=0) is False

    def test_custom_retryable_statuses(self) -> None:
        """Test that the retryable set can be overridden."""
        policy = RetryPolicy(retryable_statuses=frozenset({429}))

        assert policy.should_retry_response(make_response(429), 0, 1) is True
        assert policy.should_retry_response(make_response(503), 0, 1) is False


class TestShouldRetryFailure:
    """Tests for failure-driven retry decisions."""

    @pytest.fixture
    def policy(self) -> RetryPolicy:
        """Create a standard retry policy."""
        return RetryPolicy()

    def test_hang_up_ignores_budget(self, policy: RetryPolicy) -> None:
        """Test that hang-ups retry once regardless of the request budget."""
        assert policy.should_retry_failure(FailureKind.HANG_UP, 0, retries=0) is True
        assert policy.should_retry_failure(FailureKind.HANG_UP, 1, retries=5) is False

    def test_unretryable_never_retried(self, policy: RetryPolicy) -> None:
        """Test that unretryable failures are never retried."""
        assert (
            policy.should_retry_failure(FailureKind.UNRETRYABLE, 0, retries=5) is False
        )

    def test_other_uses_budget(self, policy: RetryPolicy) -> None:
        """Test that other failures retry while budget remains."""
        assert policy.should_retry_failure(FailureKind.OTHER, 0, retries=2) is True
        assert policy.should_retry_failure(FailureKind.OTHER, 1, retries=2) is True
        assert policy.should_retry_failure(FailureKind.OTHER, 2, retries=2) is False


class TestGetDelayMs:
    """Tests for retry delay calculation."""

    def test_exponential_backoff(self) -> None:
        """Test that delays increase exponentially."""
        policy = RetryPolicy(
            initial_delay_ms=1000,
            max_delay_ms=60000,
            exponential_base=2.0,
            jitter_factor=0.0,  # No jitter for deterministic test
        )

        assert policy.get_delay_ms(0) == 1000
        assert policy.get_delay_ms(1) == 2000
        assert policy.get_delay_ms(2) == 4000
        assert policy.get_delay_ms(3) == 8000

    def test_max_delay_cap(self) -> None:
        """Test that delay is capped at max_delay_ms."""
        policy = RetryPolicy(jitter_factor=0.0)

        assert policy.get_delay_ms(2) == 4000
        assert policy.get_delay_ms(3) == 5000  # Capped at max
        assert policy.get_delay_ms(10) == 5000

    def test_jitter_adds_variation(self) -> None:
        """Test that jitter stays within ten percent."""
        policy = RetryPolicy(initial_delay_ms=1000, jitter_factor=0.1)

        for _ in range(10):
            assert 1000 <= policy.get_delay_ms(0) <= 1100

    def test_custom_exponential_base(self) -> None:
        """Test custom exponential base."""
        policy = RetryPolicy(
            initial_delay_ms=1000,
            max_delay_ms=60000,
            exponential_base=3.0,
            jitter_factor=0.0,
        )

        assert policy.get_delay_ms(1) == 3000
        assert policy.get_delay_ms(2) == 9000

    def test_jitter_never_exceeds_max_delay(self) -> None:
        """Test that jitter on a capped delay stays at max_delay_ms."""
        policy = RetryPolicy(jitter_factor=0.1)

        for _ in range(50):
            assert policy.get_delay_ms(10) == 5000
            assert policy.get_delay_ms(3) == 5000

    def test_jitter_past_cap_is_clamped(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that jitter pushing a delay past the cap is clamped."""
        monkeypatch.setattr("fetcher.models.random.random", lambda: 0.5)
        policy = RetryPolicy(initial_delay_ms=1000, jitter_factor=1.0)

        assert policy.get_delay_ms(1) == 3000
        assert policy.get_delay_ms(2) == 5000
