"""
Bounded Retry Tests
"""

from pathlib import Path

import pytest

import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from dispute_workspace.retry import attempt, AttemptResult


class TestAttempt:
    """Tests for the bounded retry combinator"""

    def test_first_value_stops_immediately(self):
        """A value on the first try should not trigger more calls"""
        calls = []

        def probe(n):
            calls.append(n)
            return "ok"

        result = attempt(probe, 8)

        assert result.value == "ok"
        assert result.attempts == 1
        assert result.succeeded
        assert calls == [1]

    def test_retries_until_value(self):
        """None asks for another try; attempt numbers are 1-based"""
        seen = []

        def probe(n):
            seen.append(n)
            return "found" if n == 3 else None

        result = attempt(probe, 8)

        assert result.value == "found"
        assert result.attempts == 3
        assert seen == [1, 2, 3]

    def test_exhaustion(self):
        """Budget spent without a value reports failure"""
        result = attempt(lambda n: None, 4)

        assert result == AttemptResult(value=None, attempts=4)
        assert not result.succeeded

    def test_exceptions_are_not_retried(self):
        """Errors from the probe propagate on the first occurrence"""
        calls = []

        def probe(n):
            calls.append(n)
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            attempt(probe, 5)
        assert calls == [1]

    @pytest.mark.parametrize("max_tries", [0, -1])
    def test_invalid_budget(self, max_tries):
        """max_tries below one is a programming error"""
        with pytest.raises(ValueError):
            attempt(lambda n: "x", max_tries)
