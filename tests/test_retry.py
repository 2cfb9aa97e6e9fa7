"""Tests for bounded store retry."""

import asyncio

import pytest

from ctrlw.config import StoreConfig
from ctrlw.errors import ConflictError, TransientStoreError
from ctrlw.retry import call_store, store_caller


class FlakyOp:
    """Fails with the given errors in order, then returns "ok"."""

    def __init__(self, *errors):
        self.errors = list(errors)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "ok"


class TestCallStore:
    @pytest.mark.asyncio
    async def test_success(self):
        op = FlakyOp()
        assert await call_store(op, retry_delays=[0, 0]) == "ok"
        assert op.calls == 1

    @pytest.mark.asyncio
    async def test_retries_transient_errors(self):
        op = FlakyOp(TransientStoreError("blip"), TransientStoreError("blip"))
        assert await call_store(op, retry_delays=[0, 0]) == "ok"
        assert op.calls == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_schedule(self):
        op = FlakyOp(*(TransientStoreError("down") for _ in range(5)))
        with pytest.raises(TransientStoreError) as exc_info:
            await call_store(op, retry_delays=[0, 0])
        assert op.calls == 3
        assert isinstance(exc_info.value.__cause__, TransientStoreError)

    @pytest.mark.asyncio
    async def test_timeout_is_transient(self):
        calls = 0

        async def slow():
            nonlocal calls
            calls += 1
            await asyncio.sleep(1)

        with pytest.raises(TransientStoreError):
            await call_store(slow, timeout=0.01, retry_delays=[0])
        assert calls == 2

    @pytest.mark.asyncio
    async def test_other_errors_not_retried(self):
        op = FlakyOp(ConflictError("taken"))
        with pytest.raises(ConflictError):
            await call_store(op, retry_delays=[0, 0])
        assert op.calls == 1

    @pytest.mark.asyncio
    async def test_store_caller_uses_config(self):
        call = store_caller(StoreConfig(op_timeout=1.0, retry_delays=[0]))
        op = FlakyOp(TransientStoreError("blip"))
        assert await call(op) == "ok"

        op = FlakyOp(TransientStoreError("a"), TransientStoreError("b"))
        with pytest.raises(TransientStoreError):
            await call(op)
