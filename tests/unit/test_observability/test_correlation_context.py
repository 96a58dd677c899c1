"""Tests for correlation ID context management."""

import asyncio

import pytest

from claim_notifier.observability.context import (
    clear_correlation_id,
    correlation_id_context,
    get_correlation_id,
    set_correlation_id,
)


@pytest.fixture(autouse=True)
def reset_correlation_id():
    clear_correlation_id()
    yield
    clear_correlation_id()


class TestCorrelationId:
    def test_default_is_none(self):
        assert get_correlation_id() is None

    def test_set_explicit_id(self):
        assert set_correlation_id("req-1") == "req-1"
        assert get_correlation_id() == "req-1"

    def test_set_generates_uuid(self):
        corr_id = set_correlation_id()

        assert len(corr_id) == 36
        assert get_correlation_id() == corr_id

    def test_clear(self):
        set_correlation_id("req-1")
        clear_correlation_id()

        assert get_correlation_id() is None


class TestCorrelationIdContext:
    def test_scopes_and_restores(self):
        set_correlation_id("outer")

        with correlation_id_context("inner") as corr_id:
            assert corr_id == "inner"
            assert get_correlation_id() == "inner"

        assert get_correlation_id() == "outer"

    def test_restores_after_exception(self):
        with pytest.raises(RuntimeError):
            with correlation_id_context("req-1"):
                raise RuntimeError("fail")

        assert get_correlation_id() is None

    def test_generates_id_when_none(self):
        with correlation_id_context() as corr_id:
            assert corr_id
            assert get_correlation_id() == corr_id

    @pytest.mark.asyncio
    async def test_worker_tasks_inherit_id(self):
        async def read_id():
            return get_correlation_id()

        with correlation_id_context("batch-7"):
            results = await asyncio.gather(read_id(), read_id())

        assert results == ["batch-7", "batch-7"]
