"""
Module: extractor.diagnostics

Captures partial failures during extraction and generation: a chunk whose
response could not be parsed, a localization batch whose call failed, an
image that could not be cropped or uploaded, a record that failed
validation. Failures are values collected here, never raised through the
batch loops.
"""

from __future__ import annotations

import logging
import threading
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class FailureScope(str, Enum):
    """Unit of work a partial failure belongs to."""

    CHUNK = "chunk"
    RECORD = "record"
    BATCH = "batch"
    IMAGE = "image"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class PartialFailure:
    """
    One unit of work that failed while the run continued.

    Fields:
    - scope: chunk / record / batch / image
    - unit: Identifier of the unit, e.g. "chunk 2", "q7", "question_q7_option_B"
    - message: Human-readable cause
    - error_type: Exception class name, when one was caught
    - context: Extra diagnostic fields (page, byte offset, stage errors)
    """

    scope: FailureScope
    unit: str
    message: str
    error_type: str = ""
    context: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "scope": self.scope.value,
            "unit": self.unit,
            "message": self.message,
        }
        if self.error_type:
            d["error_type"] = self.error_type
        if self.context:
            d["context"] = dict(self.context)
        return d


class DiagnosticsCollector:
    """
    Thread-safe collector for partial failures.

    Chunk workers and localization batches running on separate threads
    record into the same collector.
    """

    def __init__(self):
        self._failures: List[PartialFailure] = []
        self._lock = threading.Lock()

    def add(self, failure: PartialFailure) -> None:
        with self._lock:
            self._failures.append(failure)
        logger.warning(
            f"Partial failure ({failure.scope}) {failure.unit}: {failure.message}",
            extra={"scope": failure.scope.value, "unit": failure.unit, "failure_context": failure.context},
        )

    def add_error(
        self,
        scope: FailureScope,
        unit: str,
        error: BaseException,
        **context: Any,
    ) -> PartialFailure:
        """Record a caught exception as a partial failure."""
        for attr in ("offset", "status", "field"):
            value: Optional[Any] = getattr(error, attr, None)
            if value not in (None, ""):
                context.setdefault(attr, value)
        failure = PartialFailure(
            scope=scope,
            unit=unit,
            message=str(error),
            error_type=type(error).__name__,
            context=context,
        )
        self.add(failure)
        return failure

    @property
    def failures(self) -> List[PartialFailure]:
        with self._lock:
            return list(self._failures)

    def by_scope(self, scope: FailureScope) -> List[PartialFailure]:
        return [f for f in self.failures if f.scope is scope]

    def __len__(self) -> int:
        with self._lock:
            return len(self._failures)

    def summary(self) -> Dict[str, int]:
        """Failure counts per scope."""
        counts = Counter(f.scope.value for f in self.failures)
        return dict(counts)
