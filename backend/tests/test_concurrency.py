"""
Tests for retry handling around optimistic-concurrency failures.
"""

import pytest
from sqlalchemy.orm.exc import StaleDataError

from pharmapos.services import concurrency


def test_retries_stale_data_then_succeeds(app, db_session, monkeypatch):
    monkeypatch.setattr(concurrency.time, "sleep", lambda _s: None)
    calls = []

    def _op():
        calls.append(1)
        if len(calls) < 3:
            raise StaleDataError("version mismatch")
        return "done"

    assert concurrency.run_with_retry(_op) == "done"
    assert len(calls) == 3


def test_gives_up_after_attempts(app, db_session, monkeypatch):
    monkeypatch.setattr(concurrency.time, "sleep", lambda _s: None)

    def _op():
        raise StaleDataError("version mismatch")

    with pytest.raises(StaleDataError):
        concurrency.run_with_retry(_op, attempts=2)


def test_other_errors_are_not_retried(app, db_session):
    calls = []

    def _op():
        calls.append(1)
        raise ValueError("bad input")

    with pytest.raises(ValueError):
        concurrency.run_with_retry(_op)
    assert len(calls) == 1
