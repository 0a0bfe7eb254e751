"""Generation duration tracking used to tune progress estimates."""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

DEFAULT_MAX_RECORDS = 100
DEFAULT_PERCENTILE = 95.0

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationTimeRecord:
    timestamp: float
    duration_ms: float
    generation_type: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class GenerationTimeStats:
    service: str
    generation_type: str
    count: int
    mean_ms: float
    median_ms: float
    p50_ms: float
    p75_ms: float
    p95_ms: float
    p99_ms: float
    min_ms: float
    max_ms: float
    recommended_estimated_ms: float
    durations: Tuple[float, ...]


def _percentile(durations: List[float], percentile: float) -> float:
    # nearest-rank on the sorted list, floor(count * p) clamped into range
    index = min(int(math.floor(len(durations) * percentile / 100.0)), len(durations) - 1)
    return durations[max(index, 0)]


def calculate_stats(
    records: List[GenerationTimeRecord],
    service: str,
    generation_type: str,
    recommended_percentile: float = DEFAULT_PERCENTILE,
) -> GenerationTimeStats:
    """Summarise *records*; an empty list yields zeroed statistics."""

    if not records:
        return GenerationTimeStats(
            service=service,
            generation_type=generation_type,
            count=0,
            mean_ms=0.0,
            median_ms=0.0,
            p50_ms=0.0,
            p75_ms=0.0,
            p95_ms=0.0,
            p99_ms=0.0,
            min_ms=0.0,
            max_ms=0.0,
            recommended_estimated_ms=0.0,
            durations=(),
        )

    durations = sorted(record.duration_ms for record in records)
    p50 = _percentile(durations, 50)
    return GenerationTimeStats(
        service=service,
        generation_type=generation_type,
        count=len(durations),
        mean_ms=sum(durations) / len(durations),
        median_ms=p50,
        p50_ms=p50,
        p75_ms=_percentile(durations, 75),
        p95_ms=_percentile(durations, 95),
        p99_ms=_percentile(durations, 99),
        min_ms=durations[0],
        max_ms=durations[-1],
        recommended_estimated_ms=_percentile(durations, recommended_percentile),
        durations=tuple(durations),
    )


class GenerationTimeTracker:
    """Keep the most recent generation durations per service and generation type.

    Records live in memory only; the tracker is meant to be shared by the
    controllers of one process so estimates improve as generations complete.
    """

    def __init__(
        self,
        *,
        max_records: int = DEFAULT_MAX_RECORDS,
        recommended_percentile: float = DEFAULT_PERCENTILE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_records < 1:
            raise ValueError("max_records must be >= 1")
        if not 0 <= recommended_percentile <= 100:
            raise ValueError("recommended_percentile must be within [0, 100]")
        self.max_records = max_records
        self.recommended_percentile = recommended_percentile
        self._clock = clock
        self._records: Dict[Tuple[str, str], List[GenerationTimeRecord]] = {}

    def record(
        self,
        service: str,
        generation_type: str,
        duration_ms: float,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> GenerationTimeRecord:
        if duration_ms < 0:
            raise ValueError("duration_ms must be non-negative")
        entry = GenerationTimeRecord(
            timestamp=self._clock() * 1000.0,
            duration_ms=float(duration_ms),
            generation_type=generation_type,
            metadata=dict(metadata or {}),
        )
        key = (service, generation_type)
        records = [entry] + self._records.get(key, [])
        records.sort(key=lambda item: item.timestamp, reverse=True)
        self._records[key] = records[: self.max_records]
        _LOGGER.debug(
            "Recorded %.0fms for %s/%s (%d records)",
            duration_ms,
            service,
            generation_type,
            len(self._records[key]),
        )
        return entry

    def records(self, service: str, generation_type: str) -> List[GenerationTimeRecord]:
        return list(self._records.get((service, generation_type), []))

    def stats(self, service: str, generation_type: str) -> Optional[GenerationTimeStats]:
        """Statistics for the pair, or ``None`` when nothing has been recorded."""

        records = self._records.get((service, generation_type))
        if not records:
            return None
        return calculate_stats(records, service, generation_type, self.recommended_percentile)

    def recommended_estimated_ms(self, service: str, generation_type: str, fallback_ms: float) -> float:
        stats = self.stats(service, generation_type)
        if stats is None:
            return fallback_ms
        return stats.recommended_estimated_ms

    def clear(self, service: str, generation_type: str) -> None:
        self._records.pop((service, generation_type), None)


__all__ = [
    "GenerationTimeRecord",
    "GenerationTimeStats",
    "GenerationTimeTracker",
    "calculate_stats",
]
