"""Unit tests for dispatch context binding."""

from concurrent.futures import ThreadPoolExecutor

import pytest
import structlog

from infrastructure.logging import (
    bind_dispatch_context,
    clear_dispatch_context,
    get_correlation_id,
    run_in_context,
)


@pytest.fixture(autouse=True)
def clean_context():
    clear_dispatch_context()
    yield
    clear_dispatch_context()


@pytest.mark.unit
class TestBindDispatchContext:
    def test_generates_correlation_id(self):
        with bind_dispatch_context():
            assert get_correlation_id()
        assert get_correlation_id() is None

    def test_binds_dispatch_fields(self):
        with bind_dispatch_context(
            correlation_id="corr-1",
            notification_key="kickoff",
            event_id="kickoff:12:1",
            broadcast=True,
        ):
            ctx = structlog.contextvars.get_contextvars()
            assert ctx["correlation_id"] == "corr-1"
            assert ctx["notification_key"] == "kickoff"
            assert ctx["event_id"] == "kickoff:12:1"
            assert ctx["broadcast"] is True

        assert structlog.contextvars.get_contextvars() == {}

    def test_unbinds_on_exception(self):
        with pytest.raises(ValueError):
            with bind_dispatch_context(correlation_id="corr-2"):
                raise ValueError("boom")
        assert get_correlation_id() is None


@pytest.mark.unit
class TestRunInContext:
    def test_worker_threads_see_bound_context(self):
        with bind_dispatch_context(correlation_id="corr-3"):
            wrapped = run_in_context(get_correlation_id)
            with ThreadPoolExecutor(max_workers=2) as executor:
                results = list(executor.map(lambda _: wrapped(), range(4)))

        assert results == ["corr-3"] * 4
