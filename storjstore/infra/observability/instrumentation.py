"""Instrumentation of storage adapter operations.

Every public adapter operation runs inside :func:`instrument`, which times
it, counts it by outcome (ok, error or aborted) and emits one structured log
line.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Any, Generator

from storjstore.common.logging import STORAGE_LOGGER
from storjstore.infra.observability.metrics import STORAGE_LATENCY, STORAGE_OPERATIONS

logger = logging.getLogger(STORAGE_LOGGER)


@contextmanager
def instrument(operation: str, **payload: Any) -> Generator[dict[str, Any], None, None]:
    """Instrument a storage operation.

    Yields the payload dict so the operation can attach results
    (for example ``payload["exist"] = True``) before it is logged.
    """
    start = time.perf_counter()
    status = "ok"
    try:
        yield payload
    except GeneratorExit:
        # Consumer stopped a streaming operation early.
        status = "aborted"
        raise
    except Exception as exc:
        status = "error"
        payload["exception"] = repr(exc)
        raise
    finally:
        elapsed = time.perf_counter() - start
        STORAGE_OPERATIONS.labels(operation, status).inc()
        STORAGE_LATENCY.labels(operation).observe(elapsed)
        logger.log(
            logging.INFO if status == "ok" else logging.WARNING,
            "storage_operation op=%s status=%s duration_ms=%.3f",
            operation,
            status,
            round(elapsed * 1000, 3),
            extra={
                "extra": {
                    "operation": operation,
                    "status": status,
                    "duration_ms": round(elapsed * 1000, 3),
                    **payload,
                }
            },
        )
