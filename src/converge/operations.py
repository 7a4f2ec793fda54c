"""Long-running operation handle.

Wraps an Azure SDK LROPoller so that waiting and result retrieval are
explicit awaitable steps with a timeout chosen at the call site. The
blocking SDK calls run in the default executor; cancelling the awaiting
task abandons the wait without touching remote state.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from azure.core.polling import LROPoller

logger = logging.getLogger(__name__)


class LongRunningOperation:
    """Handle for one submitted create, update or delete request.

    Owned by a single reconciliation attempt and discarded afterwards.
    """

    def __init__(self, poller: LROPoller[Any], operation_name: str) -> None:
        self._poller = poller
        self._operation_name = operation_name

    @property
    def operation_name(self) -> str:
        return self._operation_name

    def done(self) -> bool:
        return self._poller.done()

    def status(self) -> str:
        return self._poller.status()

    async def wait(self, timeout_seconds: float) -> None:
        """Block until the remote operation finishes.

        Raises:
            asyncio.TimeoutError: If the operation exceeds timeout_seconds.
            AzureError: If polling reports a failed operation.
        """
        loop = asyncio.get_running_loop()
        try:
            await asyncio.wait_for(
                loop.run_in_executor(None, self._poller.wait),
                timeout=timeout_seconds,
            )
        except TimeoutError:
            logger.error(
                f"{self._operation_name} timed out",
                extra={"timeout_seconds": timeout_seconds},
            )
            raise

    async def result(self) -> Any:
        """Fetch the final resource from the completed operation.

        Surfaces server-reported errors that arrived after completion.
        """
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._poller.result)
