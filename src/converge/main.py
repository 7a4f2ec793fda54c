"""Logging setup and async entry points for one-shot reconcile operations.

The outer controller loop is expected to call these repeatedly; exit codes
let it tell retry-worthy outcomes from fatal ones without parsing logs.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Callable
from datetime import UTC, datetime

from .errors import (
    NotFoundError,
    ProviderError,
    ReconcileError,
    SecretGenerationError,
    SpecValidationError,
    TransientError,
)
from .models import ResourceSpec
from .service import ReconcileService

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_SECURITY = 2
EXIT_TRANSIENT = 3
EXIT_NOT_FOUND = 4

OPERATIONS = ("get", "reconcile", "delete")

# LogRecord attributes that are not user-supplied extra fields
_RESERVED_RECORD_KEYS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
    }
)


class JsonFormatter(logging.Formatter):
    """Format logs as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging to stdout."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        if isinstance(existing.formatter, JsonFormatter):
            root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(level.upper())

    # Reduce noise from Azure SDK
    logging.getLogger("azure").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


async def run_operation(
    operation: str,
    spec: ResourceSpec,
    service: ReconcileService,
    output: Callable[[str], None] = print,
) -> int:
    """Run one operation against one spec and map the outcome to an exit code.

    Args:
        operation: One of get, reconcile, delete.
        spec: Validated resource spec.
        service: Reconcile service with clients for the spec's kind.
        output: Sink for the one-line result document.

    Returns:
        Exit code.
    """
    logger = logging.getLogger(__name__)
    result: dict[str, object] = {
        "operation": operation,
        "kind": spec.kind.value,
        "name": spec.resource_name(),
        "resourceGroup": spec.resource_group_name(),
    }

    try:
        match operation:
            case "get":
                status = await service.get(spec)
                result.update(
                    id=status.id,
                    provisioningState=status.provisioning_state,
                    location=status.location,
                    tags=status.tags,
                )
            case "reconcile":
                result["outcome"] = (await service.reconcile(spec)).value
            case "delete":
                result["outcome"] = (await service.delete(spec)).value
            case _:
                raise ValueError(f"Unknown operation '{operation}'. Valid: {OPERATIONS}")

    except TransientError as e:
        logger.warning(
            "Transient condition, retry later",
            extra={"error": str(e), "retry_after_seconds": e.retry_after},
        )
        output(json.dumps({**result, "error": str(e), "retryAfterSeconds": e.retry_after}))
        return EXIT_TRANSIENT
    except NotFoundError as e:
        logger.error("Resource not found", extra={"error": str(e)})
        output(json.dumps({**result, "error": str(e)}))
        return EXIT_NOT_FOUND
    except SecretGenerationError as e:
        logger.critical("Secret generation failed", extra={"error": str(e)})
        output(json.dumps({**result, "error": str(e)}))
        return EXIT_SECURITY
    except SpecValidationError as e:
        logger.error("Invalid spec", extra={"error": str(e)})
        output(json.dumps({**result, "error": str(e)}))
        return EXIT_FAILURE
    except ProviderError as e:
        logger.error(
            "Azure API error",
            extra={"error": str(e), "status_code": e.status_code, "operation": e.operation},
        )
        output(json.dumps({**result, "error": str(e)}))
        return EXIT_FAILURE
    except ReconcileError as e:
        logger.error("Reconciliation failed", extra={"error": str(e)})
        output(json.dumps({**result, "error": str(e)}))
        return EXIT_FAILURE

    output(json.dumps(result, default=str))
    return EXIT_OK
