"""
Module: generator.pipeline

Purpose:
    Prompt-driven question generation. Requests questions in batches with
    over-generation, drops near-duplicates, tops up any shortfall with a
    bounded number of extra calls, and returns exactly the requested count
    when the model supplies enough distinct questions.

Key Functions:
    - generate(): Generate questions for a topic
    - QuestionGenerator: Same, with the client injected once

Dependencies:
    - client.transport: GENERATION calls
    - extractor.repair: Response repair and record validation
    - generator.dedup / batching / prompts

Used By:
    - Application code (web handlers, batch jobs)
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from question_toolkit.client.transport import EndpointVariant, GenerationClient, TextPart
from question_toolkit.common.errors import PayloadError, TransportError
from question_toolkit.core.models.records import CandidateRecord, QuestionType
from question_toolkit.extractor.diagnostics import DiagnosticsCollector, FailureScope, PartialFailure
from question_toolkit.extractor.repair import repair_records
from question_toolkit.extractor.timing import TimingLog, timed_phase

from .batching import avoid_hint, plan_batches, topup_size
from .config import GenerationRequest, GeneratorConfig
from .dedup import filter_near_duplicates
from .prompts import build_generation_prompt, difficulty_label

logger = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    """
    Envelope returned by generate().

    Attributes:
        success: False only when no question was produced
        records: At most ``requested`` distinct records
        requested: Count asked for
        shortfall: ``requested - len(records)``
        calls_made: Model calls attempted, top-ups included
        metadata: generated_at, model, request echo, batch counts, timings
        error: Human-readable cause when success is False
        failures: Failed batches and rejected records
    """

    success: bool
    records: List[CandidateRecord] = field(default_factory=list)
    requested: int = 0
    shortfall: int = 0
    calls_made: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    failures: List[PartialFailure] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "questions": [record.to_dict() for record in self.records],
            "total_questions": len(self.records),
            "requested": self.requested,
            "shortfall": self.shortfall,
            "calls_made": self.calls_made,
            "metadata": self.metadata,
            "error": self.error,
            "failures": [failure.to_dict() for failure in self.failures],
        }


@dataclass
class _BatchOutcome:
    records: List[CandidateRecord] = field(default_factory=list)
    error: Optional[str] = None


class QuestionGenerator:
    """
    Batch question generator.

    Batches run sequentially by default so each later batch can be told
    which questions already exist. With ``config.parallel`` the planned
    batches run concurrently and the hint is only used for top-ups.

    Example:
        >>> generator = QuestionGenerator(GenerationClient(ClientConfig.from_env()))
        >>> result = generator.generate(GenerationRequest("Photosynthesis", "Biology", "10", 15))
        >>> len(result.records), result.calls_made
        (15, 2)
    """

    def __init__(self, client: GenerationClient, config: Optional[GeneratorConfig] = None):
        self.client = client
        self.config = config or GeneratorConfig()

    def generate(self, request: GenerationRequest) -> GenerationResult:
        diagnostics = DiagnosticsCollector()
        timing = TimingLog()
        started = datetime.now(timezone.utc)
        run_id = int(started.timestamp() * 1000)

        sizes = plan_batches(request.count, self.config.batch_size, self.config.overgeneration_factor)
        logger.info(
            f"Generating {request.count} {request.type} question(s) on {request.topic!r} "
            f"in {len(sizes)} batch(es) {sizes}",
            extra={"requested": request.count, "batches": len(sizes)},
        )

        with timed_phase(timing, "planned_batches"):
            outcomes = self._run_planned(request, sizes, diagnostics, timing)
        calls_made = len(outcomes)

        raw: List[CandidateRecord] = [r for outcome in outcomes for r in outcome.records]
        unique = filter_near_duplicates(raw, self.config.similarity_threshold)
        logger.info(
            f"Planned batches returned {len(raw)} question(s), {len(unique)} distinct",
            extra={"raw_count": len(raw), "unique_count": len(unique)},
        )

        extra_batches = 0
        while len(unique) < request.count and extra_batches < self.config.max_extra_batches:
            needed = request.count - len(unique)
            size = topup_size(needed, self.config.topup_factor)
            unit = f"topup {extra_batches + 1}"
            logger.info(f"{unit}: {needed} question(s) short, requesting {size}")
            with timed_phase(timing, "topup_batches"):
                outcome = self._run_batch(request, size, avoid_hint(unique), unit, diagnostics, timing)
            outcomes.append(outcome)
            calls_made += 1
            extra_batches += 1
            raw.extend(outcome.records)
            unique = filter_near_duplicates(unique + outcome.records, self.config.similarity_threshold)

        records = unique[: request.count]
        for index, record in enumerate(records, start=1):
            record.local_id = f"gen_{run_id}_{index}"

        shortfall = request.count - len(records)
        if shortfall:
            logger.warning(
                f"Generated {len(records)} of {request.count} requested question(s)",
                extra={"shortfall": shortfall},
            )

        error = None
        if not records:
            batch_errors = [o.error for o in outcomes if o.error]
            error = batch_errors[0] if batch_errors else "No questions generated"

        metadata = {
            "generated_at": started.isoformat(),
            "model": self.client.model_for(EndpointVariant.GENERATION),
            "topic": request.topic,
            "subject": request.subject,
            "grade": request.grade,
            "type": request.type.value,
            "difficulty": difficulty_label(request.difficulty).lower(),
            "planned_batches": sizes,
            "extra_batches": extra_batches,
            "raw_count": len(raw),
            "unique_count": len(unique),
            "timings": timing.to_dict(),
        }
        return GenerationResult(
            success=bool(records),
            records=records,
            requested=request.count,
            shortfall=shortfall,
            calls_made=calls_made,
            metadata=metadata,
            error=error,
            failures=diagnostics.failures,
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Batches
    # ─────────────────────────────────────────────────────────────────────────

    def _run_planned(
        self,
        request: GenerationRequest,
        sizes: List[int],
        diagnostics: DiagnosticsCollector,
        timing: TimingLog,
    ) -> List[_BatchOutcome]:
        if self.config.parallel and len(sizes) > 1:
            workers = min(self.config.max_workers, len(sizes))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="generate") as pool:
                futures = [
                    pool.submit(self._run_batch, request, size, None, f"batch {i + 1}", diagnostics, timing)
                    for i, size in enumerate(sizes)
                ]
                return [future.result() for future in futures]

        outcomes: List[_BatchOutcome] = []
        seen: List[CandidateRecord] = []
        for i, size in enumerate(sizes):
            hint = avoid_hint(filter_near_duplicates(seen, self.config.similarity_threshold))
            outcome = self._run_batch(request, size, hint or None, f"batch {i + 1}", diagnostics, timing)
            outcomes.append(outcome)
            seen.extend(outcome.records)
        return outcomes

    def _run_batch(
        self,
        request: GenerationRequest,
        size: int,
        hint: Optional[str],
        unit: str,
        diagnostics: DiagnosticsCollector,
        timing: TimingLog,
    ) -> _BatchOutcome:
        """One model call. Failures become a partial failure and an empty batch."""
        prompt = build_generation_prompt(request, size, hint)
        try:
            with timed_phase(timing, "generation_call", unit_id=unit):
                text = self.client.call(
                    [TextPart(prompt)], EndpointVariant.GENERATION, deadline=self.config.call_deadline_s
                )
            parsed = repair_records(text, require_answer=True)
        except (TransportError, PayloadError) as e:
            diagnostics.add_error(FailureScope.BATCH, unit, e, requested=size)
            return _BatchOutcome(error=f"{unit}: {e}")

        for rejected in parsed.rejected:
            diagnostics.add(
                PartialFailure(
                    scope=FailureScope.RECORD,
                    unit=rejected.record_id,
                    message=rejected.reason,
                    error_type="RecordValidationError",
                    context={"batch": unit, "record_index": rejected.index},
                )
            )

        records: List[CandidateRecord] = []
        for record in parsed.records:
            if record.type is not request.type:
                diagnostics.add(
                    PartialFailure(
                        scope=FailureScope.RECORD,
                        unit=record.local_id,
                        message=f"type {record.type} does not match requested {request.type}",
                        error_type="RecordValidationError",
                        context={"batch": unit, "field": "type"},
                    )
                )
                continue
            if not record.topic:
                record.topic = request.topic
            records.append(record)

        logger.debug(f"{unit}: requested {size}, accepted {len(records)}", extra={"batch": unit})
        return _BatchOutcome(records=records)


def generate(
    topic: str,
    subject: str,
    grade: str,
    count: int,
    type: Union[QuestionType, str] = QuestionType.SINGLE_CHOICE,
    difficulty: int = 50,
    guidance: Optional[str] = None,
    *,
    client: GenerationClient,
    config: Optional[GeneratorConfig] = None,
) -> GenerationResult:
    """
    Generate ``count`` distinct questions.

    Raises:
        ConfigurationError: If the request itself is invalid (empty topic,
            non-positive count, unknown type, difficulty outside 1-100).
    """
    request = GenerationRequest(
        topic=topic,
        subject=subject,
        grade=grade,
        count=count,
        type=type,
        difficulty=difficulty,
        guidance=guidance,
    )
    return QuestionGenerator(client, config).generate(request)
