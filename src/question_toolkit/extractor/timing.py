"""
Module: extractor.timing

Purpose:
    Timing instrumentation for the extraction and generation pipelines.
    Records how long each run-level phase and each unit of work (chunk,
    localization batch, generation batch) took.

Key Classes:
    - TimingLog: Collects timing metrics for run and unit phases

Key Functions:
    - timed_phase: Context manager for timing code blocks

Dependencies:
    - time (std)
    - contextlib (std)
    - dataclasses (std)

Used By:
    - extractor.pipeline: Chunking, extraction and localization phases
    - generator.pipeline: Batch calls
"""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Generator, List, Optional, Tuple


@dataclass
class TimingLog:
    """
    Timing metrics for one pipeline run.

    Thread-safe: concurrent chunk and batch workers log into one instance.

    Attributes:
        run_timings: Dict of phase_name -> duration_seconds
        unit_timings: Dict of unit_id -> {phase_name -> duration_seconds}

    Example:
        >>> log = TimingLog()
        >>> log.log_run("chunking", 0.234)
        >>> log.log_unit("chunk 0", "extraction_call", 12.5)
        >>> log.to_dict()["run_timings"]
        {'chunking': 0.234}
    """

    run_timings: Dict[str, float] = field(default_factory=dict)
    unit_timings: Dict[str, Dict[str, float]] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def log_run(self, phase: str, duration: float) -> None:
        """Log a run-level timing metric."""
        with self._lock:
            self.run_timings[phase] = duration

    def log_unit(self, unit_id: str, phase: str, duration: float) -> None:
        """Log a unit-level timing metric."""
        with self._lock:
            self.unit_timings.setdefault(unit_id, {})[phase] = duration

    def get_slowest_units(self, n: int = 3) -> List[Tuple[str, float]]:
        """Get the N slowest units with their total time."""
        with self._lock:
            totals = [(uid, sum(phases.values())) for uid, phases in self.unit_timings.items()]
        totals.sort(key=lambda x: x[1], reverse=True)
        return totals[:n]

    def to_dict(self) -> Dict[str, Any]:
        """Export timing data as dictionary."""
        with self._lock:
            run = dict(self.run_timings)
            units = {uid: dict(phases) for uid, phases in self.unit_timings.items()}
        return {
            "run_timings": run,
            "unit_timings": units,
            "slowest_units": [
                {"id": uid, "total": total} for uid, total in self.get_slowest_units(5)
            ],
        }


@contextmanager
def timed_phase(
    log: TimingLog,
    phase: str,
    unit_id: Optional[str] = None,
) -> Generator[None, None, None]:
    """
    Context manager for timing a code phase.

    Args:
        log: TimingLog instance to record metrics
        phase: Name of the phase being timed
        unit_id: If provided, records as a unit-level metric;
                 otherwise records as a run-level metric

    Example:
        >>> log = TimingLog()
        >>> with timed_phase(log, "chunking"):
        ...     chunks = chunk_document(doc)
        >>> with timed_phase(log, "extraction_call", unit_id="chunk 0"):
        ...     text = client.call(parts, EndpointVariant.EXTRACTION)
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        if unit_id:
            log.log_unit(unit_id, phase, elapsed)
        else:
            log.log_run(phase, elapsed)
