"""
Versioned scoring-weights configuration store.

Every change (update or rollback) appends a new version; old rows are never
modified apart from losing the active flag. Acquiring the next version,
deactivating the current row and inserting the new active row happen in one
transaction. The unique constraint on version (and the partial unique index
on is_active) make a racing writer fail with IntegrityError, after which it
refetches the next number and tries again.
"""

import logging
import threading
import time
from datetime import timezone
from typing import Callable, Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from tenacity import RetryCallState, RetryError, Retrying, retry_if_exception_type, stop_after_attempt

from dispatchpilot.core.config import settings
from dispatchpilot.core.errors import (
    ConcurrencyConflict,
    NotFoundError,
    PersistenceUnavailable,
    ValidationFailure,
)
from dispatchpilot.db.database import SessionLocal
from dispatchpilot.db.models.event_logs import EventLogs
from dispatchpilot.db.models.weights_configs import WeightsConfigs

from .types import (
    RotationConfig,
    ScoringWeightsConfig,
    TieBreakerFactor,
    WeightFactors,
)


logger = logging.getLogger(__name__)

MAX_ROTATION_BOOST = 20.0


def validate_weights_config(
    weights: WeightFactors,
    tie_breakers: Sequence[str],
    rotation: RotationConfig,
    sum_tolerance: Optional[float] = None,
) -> tuple[TieBreakerFactor, ...]:
    """
    Check a candidate configuration, collecting every problem before raising.

    Returns:
        The tie-breaker names parsed into the fixed factor set.

    Raises:
        ValidationFailure listing all problems found.
    """
    tolerance = sum_tolerance if sum_tolerance is not None else settings.WEIGHTS_SUM_TOLERANCE
    errors = []

    for name in ("availability", "rating", "distance"):
        value = getattr(weights, name)
        if not 0.0 <= value <= 1.0:
            errors.append(f"{name} weight must be between 0.0 and 1.0, got {value}")

    total = weights.availability + weights.rating + weights.distance
    if abs(total - 1.0) > tolerance:
        errors.append(f"weights must sum to 1.0, got {total:.4f}")

    parsed = []
    for name in tie_breakers:
        try:
            factor = TieBreakerFactor(str(name).strip().lower())
        except ValueError:
            errors.append(f"unknown tie-breaker factor: {name!r}")
            continue
        if factor in parsed:
            errors.append(f"duplicate tie-breaker factor: {factor.value}")
            continue
        parsed.append(factor)

    if not 0.0 <= rotation.boost <= MAX_ROTATION_BOOST:
        errors.append(f"rotation boost must be between 0.0 and {MAX_ROTATION_BOOST}, got {rotation.boost}")
    if not 0.0 <= rotation.under_utilization_threshold <= 1.0:
        errors.append(
            f"under-utilization threshold must be between 0.0 and 1.0, got {rotation.under_utilization_threshold}"
        )

    if errors:
        raise ValidationFailure(errors)
    return tuple(parsed)


def config_from_row(row: WeightsConfigs) -> ScoringWeightsConfig:
    data = row.config_json or {}
    weights = data.get("weights", {})
    rotation = data.get("rotation", {})
    created_at = row.created_at
    if created_at is not None and created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)

    return ScoringWeightsConfig(
        version=row.version,
        weights=WeightFactors(
            availability=float(weights.get("availability", 0.0)),
            rating=float(weights.get("rating", 0.0)),
            distance=float(weights.get("distance", 0.0)),
        ),
        tie_breakers=tuple(TieBreakerFactor(tb) for tb in data.get("tie_breakers", [])),
        rotation=RotationConfig(
            enabled=bool(rotation.get("enabled", False)),
            boost=float(rotation.get("boost", 0.0)),
            under_utilization_threshold=float(rotation.get("under_utilization_threshold", 0.0)),
        ),
        change_notes=row.change_notes,
        created_by=row.created_by,
        created_at=created_at,
        is_active=row.is_active,
    )


def default_config_values() -> tuple[WeightFactors, list[str], RotationConfig]:
    return (
        WeightFactors(
            availability=settings.DEFAULT_WEIGHT_AVAILABILITY,
            rating=settings.DEFAULT_WEIGHT_RATING,
            distance=settings.DEFAULT_WEIGHT_DISTANCE,
        ),
        list(settings.DEFAULT_TIE_BREAKERS),
        RotationConfig(
            enabled=settings.DEFAULT_ROTATION_ENABLED,
            boost=settings.DEFAULT_ROTATION_BOOST,
            under_utilization_threshold=settings.DEFAULT_ROTATION_THRESHOLD,
        ),
    )


class WeightsConfigStore:
    """
    Durable source of truth for scoring weights, shared by every process.

    The active config is cached in memory for cache_ttl_seconds; writes made
    through this instance refresh the cache immediately.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        cache_ttl_seconds: Optional[float] = None,
        max_retries: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._session_factory = session_factory
        self.cache_ttl_seconds = settings.WEIGHTS_CACHE_TTL_SECONDS if cache_ttl_seconds is None else cache_ttl_seconds
        self.max_retries = settings.WEIGHTS_MAX_RETRIES if max_retries is None else max_retries
        self._clock = clock
        self._cache_lock = threading.Lock()
        self._cached: Optional[ScoringWeightsConfig] = None
        self._cached_at = 0.0

    # ---- reads ----

    def get_active(self) -> Optional[ScoringWeightsConfig]:
        with self._cache_lock:
            if self._cached is not None and self._clock() - self._cached_at < self.cache_ttl_seconds:
                return self._cached

        db = self._session_factory()
        try:
            row = db.execute(
                select(WeightsConfigs).where(WeightsConfigs.is_active.is_(True))
            ).scalars().first()
            config = config_from_row(row) if row else None
        except SQLAlchemyError as e:
            raise PersistenceUnavailable(f"Could not read active weights config: {e}") from e
        finally:
            db.close()

        if config is not None:
            self._set_cache(config)
            logger.debug(f"Refreshed active weights config cache: version {config.version}")
        return config

    def get_active_or_bootstrap(self, actor: str = "system") -> ScoringWeightsConfig:
        """Active config; an empty store is seeded with the default weights as version 1."""
        config = self.get_active()
        if config is not None:
            return config

        logger.warning("No active weights config found. Creating one from default values.")
        weights, tie_breakers, rotation = default_config_values()
        return self.create_new_version(weights, tie_breakers, rotation, actor, "Default configuration")

    def get_by_version(self, version: int) -> Optional[ScoringWeightsConfig]:
        db = self._session_factory()
        try:
            row = db.execute(
                select(WeightsConfigs).where(WeightsConfigs.version == version)
            ).scalars().first()
            return config_from_row(row) if row else None
        except SQLAlchemyError as e:
            raise PersistenceUnavailable(f"Could not read weights config version {version}: {e}") from e
        finally:
            db.close()

    def get_history(self) -> list[ScoringWeightsConfig]:
        """All versions, newest first."""
        db = self._session_factory()
        try:
            rows = db.execute(
                select(WeightsConfigs).order_by(WeightsConfigs.version.desc())
            ).scalars().all()
            return [config_from_row(r) for r in rows]
        except SQLAlchemyError as e:
            raise PersistenceUnavailable(f"Could not read weights config history: {e}") from e
        finally:
            db.close()

    # ---- writes ----

    def create_new_version(
        self,
        weights: WeightFactors,
        tie_breakers: Sequence[str],
        rotation: RotationConfig,
        actor: str,
        change_notes: str = "",
    ) -> ScoringWeightsConfig:
        """Validate and append a new active version."""
        if not actor or not actor.strip():
            raise ValidationFailure("actor cannot be empty")
        parsed = validate_weights_config(weights, tie_breakers, rotation)

        candidate = ScoringWeightsConfig(version=0, weights=weights, tie_breakers=parsed, rotation=rotation)
        config = self._append_version(candidate.to_json(), actor, change_notes, "WeightsConfigCreated")
        logger.info(f"Created weights config version {config.version} by {actor}")
        return config

    def rollback(self, target_version: int, actor: str, change_notes: str = "") -> ScoringWeightsConfig:
        """Append a new active version carrying an older version's values."""
        if not actor or not actor.strip():
            raise ValidationFailure("actor cannot be empty")
        if target_version < 1:
            raise ValidationFailure(f"rollback target must be >= 1, got {target_version}")

        target = self.get_by_version(target_version)
        if target is None:
            raise NotFoundError("Weights config version", target_version)

        notes = f"Rollback to version {target_version}. {change_notes}".strip()
        config = self._append_version(
            target.to_json(), actor, notes, "WeightsConfigRolledBack",
            extra_event={"rolled_back_to": target_version},
        )
        logger.info(f"Rolled back weights config to version {target_version} as version {config.version} by {actor}")
        return config

    def invalidate_cache(self) -> None:
        with self._cache_lock:
            self._cached = None
            self._cached_at = 0.0

    def _set_cache(self, config: ScoringWeightsConfig) -> None:
        with self._cache_lock:
            self._cached = config
            self._cached_at = self._clock()

    def _next_version(self, db: Session) -> int:
        latest = db.execute(select(func.max(WeightsConfigs.version))).scalar()
        return (latest or 0) + 1

    def _append_version(
        self,
        config_json: dict,
        actor: str,
        change_notes: str,
        event_type: str,
        extra_event: Optional[dict] = None,
    ) -> ScoringWeightsConfig:
        """Write one new active version, retrying on version conflicts."""
        retrying = Retrying(
            stop=stop_after_attempt(self.max_retries),
            retry=retry_if_exception_type(IntegrityError),
            before_sleep=self._log_conflict,
            reraise=False,
        )
        try:
            config = retrying(self._write_version, config_json, actor, change_notes, event_type, extra_event)
        except RetryError as e:
            logger.error(f"Weights config write lost {self.max_retries} version races; giving up")
            raise ConcurrencyConflict(
                f"Failed to create weights configuration after {self.max_retries} attempts due to concurrent writers"
            ) from e

        self._set_cache(config)
        return config

    def _log_conflict(self, retry_state: RetryCallState) -> None:
        logger.warning(
            f"Weights config version conflict (attempt {retry_state.attempt_number}/{self.max_retries}), "
            "refetching next version"
        )

    def _write_version(
        self,
        config_json: dict,
        actor: str,
        change_notes: str,
        event_type: str,
        extra_event: Optional[dict],
    ) -> ScoringWeightsConfig:
        """Acquire next version, swap the active row and insert, all in one transaction."""
        db = self._session_factory()
        try:
            version = self._next_version(db)
            db.execute(
                update(WeightsConfigs)
                .where(WeightsConfigs.is_active.is_(True))
                .values(is_active=False)
            )
            row = WeightsConfigs(
                version=version,
                is_active=True,
                config_json=config_json,
                change_notes=change_notes,
                created_by=actor,
            )
            db.add(row)
            db.add(EventLogs(
                event_type=event_type,
                payload_json={"version": version, "actor": actor, **(extra_event or {})},
            ))
            db.commit()
            db.refresh(row)
            return config_from_row(row)
        except IntegrityError:
            db.rollback()
            raise
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceUnavailable(f"Could not write weights config: {e}") from e
        finally:
            db.close()
