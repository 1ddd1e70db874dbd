"""
Recommendation orchestrator.

Per request: validate the job, resolve the active weights config, filter by
skills, find slots and score candidates in parallel, rank, explain, and write
the audit snapshot of every scored candidate.
"""

import logging
import uuid
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from datetime import date, datetime, timezone
from typing import Callable, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dispatchpilot.core.config import settings
from dispatchpilot.core.errors import (
    AuditPersistenceError,
    PersistenceUnavailable,
    ValidationFailure,
)
from dispatchpilot.db.database import SessionLocal

from .audit import build_candidates_snapshot, build_request_payload, write_audit_record
from .availability import find_slots
from .data_loader import (
    has_required_skills,
    load_active_assignments,
    load_active_contractors,
    load_job,
)
from .distance import BaseDistanceResolver, DistanceRequest, get_distance_resolver
from .rationale import generate_rationale
from .scoring import rank_candidates, score_candidate
from .types import (
    Assignment,
    Contractor,
    DistanceResult,
    ExcludedCandidate,
    Job,
    Recommendation,
    RecommendationResult,
    ScoredCandidate,
    ScoringWeightsConfig,
    TimeWindow,
)
from .weights_store import WeightsConfigStore


logger = logging.getLogger(__name__)

TERMINAL_JOB_STATUSES = {"CANCELLED", "COMPLETED"}


def compute_utilization(
    contractor: Contractor,
    assignments: Iterable[Assignment],
    service_window: TimeWindow,
    day: date,
) -> float:
    """
    Utilization used for the rotation boost.

    Stored counters win when they refer to the requested day; otherwise the
    share of the service window already taken by active assignments, capped at 1.
    """
    if contractor.utilization_date == day:
        return contractor.current_utilization

    busy_seconds = 0.0
    for a in assignments:
        if a.contractor_id != contractor.id or not a.is_active:
            continue
        start = max(a.window.start, service_window.start)
        end = min(a.window.end, service_window.end)
        if end > start:
            busy_seconds += (end - start).total_seconds()

    return min(1.0, busy_seconds / service_window.duration.total_seconds())


def _format_location(contractor: Contractor) -> str:
    if contractor.base_address:
        return contractor.base_address
    return f"{contractor.latitude:.4f}, {contractor.longitude:.4f}"


class RecommendationOrchestrator:
    """
    Entry point for recommendation requests.

    With durable_audit the audit record is written before returning and a
    failed write raises AuditPersistenceError carrying the computed result.
    Without it the write runs on audit_executor and failures are only logged.
    An executor the orchestrator starts itself is shut down by close().
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        weights_store: Optional[WeightsConfigStore] = None,
        distance_resolver: Optional[BaseDistanceResolver] = None,
        max_workers: Optional[int] = None,
        durable_audit: bool = True,
        audit_executor: Optional[Executor] = None,
    ):
        self._session_factory = session_factory
        self.weights_store = weights_store or WeightsConfigStore(session_factory)
        self.distance_resolver = distance_resolver or get_distance_resolver()
        self.max_workers = max_workers or settings.SCORING_MAX_WORKERS
        self.durable_audit = durable_audit
        self._audit_executor = audit_executor
        self._owns_audit_executor = False

    def request_recommendations(
        self,
        job_id: int,
        desired_date: Optional[date] = None,
        service_window: Optional[TimeWindow] = None,
        max_results: Optional[int] = None,
        actor: str = "system",
    ) -> RecommendationResult:
        max_results = self._validate_request(max_results, actor)
        request_id = str(uuid.uuid4())

        job, contractors, assignments, config = self._load(job_id, service_window)
        desired_date = desired_date or job.desired_date
        window = service_window or job.service_window

        eligible: list[Contractor] = []
        excluded: list[ExcludedCandidate] = []
        for c in contractors:
            if has_required_skills(c, job.required_skills):
                eligible.append(c)
            else:
                excluded.append(ExcludedCandidate(contractor_id=c.id, reason="skill_mismatch"))

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            slot_lists = list(pool.map(
                lambda c: list(find_slots(
                    c, job, desired_date,
                    service_window=window,
                    assignments=assignments,
                    max_slots=settings.MAX_SUGGESTED_SLOTS,
                )),
                eligible,
            ))

        available = []
        for contractor, slots in zip(eligible, slot_lists):
            if slots:
                available.append((contractor, slots))
            else:
                excluded.append(ExcludedCandidate(contractor_id=contractor.id, reason="no_availability"))
        excluded.sort(key=lambda e: e.contractor_id)

        if excluded:
            logger.debug(
                f"Request {request_id}: excluded {len(excluded)} contractors "
                f"({', '.join(f'{e.contractor_id}:{e.reason}' for e in excluded)})"
            )

        distances = self._resolve_distances(job, [c for c, _ in available])

        def _score(item):
            (contractor, slots), distance = item
            utilization = compute_utilization(contractor, assignments, window, desired_date)
            result = score_candidate(
                contractor, job, slots, distance.distance_meters, config,
                service_window=window, utilization=utilization,
            )
            return ScoredCandidate(
                contractor=contractor,
                slots=slots,
                distance=distance,
                utilization=utilization,
                result=result,
            )

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            scored = list(pool.map(_score, zip(available, distances)))

        ranked = rank_candidates(scored, config.tie_breakers)
        for candidate in ranked:
            candidate.rationale = generate_rationale(candidate.result.breakdown, candidate.final_score)
        top = ranked[:max_results]

        result = RecommendationResult(
            request_id=request_id,
            job_id=job.id,
            recommendations=[self._to_recommendation(c) for c in top],
            config_version=config.version,
            generated_at=datetime.now(timezone.utc),
            excluded=excluded,
        )

        request_payload = build_request_payload(
            job.id, desired_date, window, max_results, actor,
            window_overridden=service_window is not None,
        )
        snapshot = build_candidates_snapshot(ranked, len(top), excluded)
        self._persist_audit(result, request_payload, snapshot, config, actor)

        logger.info(
            f"Request {request_id}: job {job.id}, {len(scored)} scored, {len(top)} returned, "
            f"config version {config.version}"
        )
        return result

    def _validate_request(self, max_results: Optional[int], actor: str) -> int:
        errors = []
        if max_results is None:
            max_results = settings.DEFAULT_MAX_RESULTS
        if max_results < 1:
            errors.append(f"max_results must be at least 1, got {max_results}")
        if not actor or not actor.strip():
            errors.append("actor cannot be empty")
        if errors:
            raise ValidationFailure(errors)
        return min(max_results, settings.MAX_RESULTS_CAP)

    def _load(
        self,
        job_id: int,
        service_window: Optional[TimeWindow],
    ) -> tuple[Job, list[Contractor], list[Assignment], ScoringWeightsConfig]:
        db = self._session_factory()
        try:
            job = load_job(db, job_id)
            if job.status in TERMINAL_JOB_STATUSES:
                raise ValidationFailure(f"Job {job_id} is {job.status} and cannot receive recommendations")

            contractors = load_active_contractors(db)
            assignments = load_active_assignments(
                db, [c.id for c in contractors], service_window or job.service_window,
            )
        except SQLAlchemyError as e:
            raise PersistenceUnavailable(f"Could not load data for job {job_id}: {e}") from e
        finally:
            db.close()

        # the store manages its own sessions and may bootstrap version 1
        config = self.weights_store.get_active_or_bootstrap()
        return job, contractors, assignments, config

    def _resolve_distances(self, job: Job, contractors: list[Contractor]) -> list[DistanceResult]:
        """One batch call for the whole candidate set; any failure degrades to unknown distance."""
        if not contractors:
            return []

        requests = [
            DistanceRequest(c.latitude, c.longitude, job.latitude, job.longitude)
            for c in contractors
        ]
        try:
            results = self.distance_resolver.resolve_batch(requests)
        except Exception as e:
            logger.error(f"Distance resolver {self.distance_resolver.provider_name()} failed: {e}")
            return [DistanceResult() for _ in contractors]

        if len(results) != len(requests):
            logger.warning(
                f"Distance resolver returned {len(results)} results for {len(requests)} pairs; "
                "unmatched pairs marked unknown"
            )
            results = list(results[:len(requests)])
            results += [DistanceResult() for _ in range(len(requests) - len(results))]
        return results

    def _to_recommendation(self, candidate: ScoredCandidate) -> Recommendation:
        return Recommendation(
            contractor_id=candidate.contractor.id,
            contractor_name=candidate.contractor.name,
            final_score=candidate.final_score,
            breakdown=candidate.result.breakdown,
            rationale=candidate.rationale,
            suggested_slots=list(candidate.slots),
            distance_meters=candidate.distance.distance_meters,
            eta_minutes=candidate.distance.eta_minutes,
            contractor_base_location=_format_location(candidate.contractor),
        )

    def _persist_audit(
        self,
        result: RecommendationResult,
        request_payload: dict,
        snapshot: dict,
        config: ScoringWeightsConfig,
        actor: str,
    ) -> None:
        args = (
            self._session_factory, result.request_id, result.job_id,
            request_payload, snapshot, config.version, actor,
        )

        if self.durable_audit:
            try:
                result.audit_id = write_audit_record(*args)
            except SQLAlchemyError as e:
                logger.error(f"Audit write failed for request {result.request_id}: {e}")
                raise AuditPersistenceError(result.request_id, result) from e
            return

        if self._audit_executor is None:
            self._audit_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="audit")
            self._owns_audit_executor = True
        future = self._audit_executor.submit(write_audit_record, *args)
        future.add_done_callback(lambda f: self._log_background_audit(f, result.request_id))

    def close(self) -> None:
        """Wait for pending background audit writes and stop the executor started here."""
        if self._owns_audit_executor and self._audit_executor is not None:
            self._audit_executor.shutdown(wait=True)
            self._audit_executor = None
            self._owns_audit_executor = False

    def __enter__(self) -> "RecommendationOrchestrator":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @staticmethod
    def _log_background_audit(future: Future, request_id: str) -> None:
        error = future.exception()
        if error is not None:
            logger.error(f"Background audit write failed for request {request_id}: {error}")
