"""Tests for the long-running operation handle."""

from __future__ import annotations

import asyncio
import threading

import pytest
from azure.core.exceptions import HttpResponseError
from azure_mock import MockPoller, http_error

from converge.operations import LongRunningOperation


class TestLongRunningOperation:
    """Tests for LongRunningOperation."""

    @pytest.mark.asyncio
    async def test_wait_then_result(self) -> None:
        poller = MockPoller(result="pool0")
        operation = LongRunningOperation(poller, "create_or_update")

        assert operation.done() is False
        await operation.wait(timeout_seconds=5)

        assert operation.done() is True
        assert operation.status() == "Succeeded"
        assert await operation.result() == "pool0"
        assert poller.wait_calls == 1
        assert poller.result_calls == 1

    @pytest.mark.asyncio
    async def test_wait_timeout(self) -> None:
        block = threading.Event()
        operation = LongRunningOperation(MockPoller(block=block), "delete")

        try:
            with pytest.raises(TimeoutError):
                await operation.wait(timeout_seconds=0.05)
        finally:
            block.set()

        assert operation.operation_name == "delete"

    @pytest.mark.asyncio
    async def test_wait_error_propagates(self) -> None:
        operation = LongRunningOperation(MockPoller(wait_error=http_error(500)), "delete")

        with pytest.raises(HttpResponseError) as exc_info:
            await operation.wait(timeout_seconds=5)

        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_result_error_propagates(self) -> None:
        operation = LongRunningOperation(
            MockPoller(result_error=http_error(400, "bad request")), "create_or_update"
        )
        await operation.wait(timeout_seconds=5)

        with pytest.raises(HttpResponseError) as exc_info:
            await operation.result()

        assert "bad request" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_cancel_during_wait(self) -> None:
        """Cancelling the awaiting task raises CancelledError unchanged."""
        block = threading.Event()
        poller = MockPoller(block=block)
        operation = LongRunningOperation(poller, "create_or_update")

        task = asyncio.create_task(operation.wait(timeout_seconds=5))
        try:
            while poller.wait_calls == 0:
                await asyncio.sleep(0.01)
            task.cancel()

            with pytest.raises(asyncio.CancelledError):
                await task
        finally:
            block.set()

        assert task.cancelled()
