"""Error taxonomy for reconciliation.

Callers distinguish outcomes by exception type:

- NotFoundError: the named resource does not exist remotely
- TransientError: retry later, carries a suggested retry-after delay
- SpecValidationError: malformed or incomplete spec input, fatal for the attempt
- ProviderError: network or remote API failure, wrapped with attempt context
- SecretGenerationError: the secure randomness source failed
"""

from __future__ import annotations

from azure.core.exceptions import HttpResponseError, ResourceNotFoundError

HTTP_NOT_FOUND = 404


class ReconcileError(Exception):
    """Base class for all classified reconciliation errors."""

    pass


class NotFoundError(ReconcileError):
    """Raised when a resource does not exist remotely."""

    def __init__(self, message: str, resource_name: str = "", resource_group: str = "") -> None:
        super().__init__(message)
        self.resource_name = resource_name
        self.resource_group = resource_group


class DependencyNotFoundError(NotFoundError):
    """Raised when a sub-resource needed to build a payload is missing.

    Fatal for the current attempt; the caller's outer loop decides when to retry.
    """

    pass


class TransientError(ReconcileError):
    """A condition expected to resolve with time.

    Attributes:
        retry_after: Suggested minimum delay in seconds before re-attempting.
    """

    def __init__(self, message: str, retry_after: float) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class SpecValidationError(ReconcileError):
    """Raised when spec input is malformed or incomplete."""

    pass


class SecretGenerationError(ReconcileError):
    """Raised when credential material cannot be generated securely."""

    pass


class ProviderError(ReconcileError):
    """A remote API or transport failure during fetch, submit or wait.

    The original exception is available as ``__cause__``.
    """

    def __init__(
        self,
        message: str,
        operation: str,
        resource_name: str,
        resource_group: str,
    ) -> None:
        super().__init__(
            f"{message} (operation={operation}, resource={resource_name}, "
            f"resource_group={resource_group})"
        )
        self.operation = operation
        self.resource_name = resource_name
        self.resource_group = resource_group

    @property
    def status_code(self) -> int | None:
        """HTTP status of the underlying Azure error, if any."""
        cause = self.__cause__
        if isinstance(cause, HttpResponseError):
            return cause.status_code
        return None


def is_resource_not_found(exc: BaseException) -> bool:
    """Check whether an Azure SDK error means the resource does not exist."""
    if isinstance(exc, ResourceNotFoundError | NotFoundError):
        return True
    return isinstance(exc, HttpResponseError) and exc.status_code == HTTP_NOT_FOUND


def is_transient(exc: BaseException) -> bool:
    """Check whether an error is retry-worthy with a suggested delay."""
    return isinstance(exc, TransientError)


def retry_after(exc: BaseException) -> float | None:
    """Extract the suggested retry delay in seconds, if the error carries one."""
    if isinstance(exc, TransientError):
        return exc.retry_after
    return None
