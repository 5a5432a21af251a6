"""
Build metrics: per-stage duration and memory, plus run totals.
"""

from __future__ import annotations

import time
import tracemalloc
from dataclasses import dataclass, field
from typing import Optional

from cairn.core.timing import current_memory, format_duration, format_memory


@dataclass(frozen=True)
class StageMetric:
    """Duration (seconds) and traced memory delta (bytes) of one stage."""

    name: str
    duration: float
    memory: int

    def summary(self) -> str:
        return f"{format_duration(self.duration)} ({format_memory(self.memory)})"


@dataclass(frozen=True)
class BuildMetrics:
    """Read-only record of a build run, stages in execution order."""

    stages: tuple[StageMetric, ...] = ()
    duration: float = 0.0
    memory: int = 0

    @property
    def stage_names(self) -> list[str]:
        return [s.name for s in self.stages]

    def summary(self) -> str:
        return f"{format_duration(self.duration)} ({format_memory(self.memory)})"


@dataclass
class MetricsRecorder:
    """Accumulates stage metrics during a run.

    Starts tracemalloc when it is not already tracing and stops it again on
    :meth:`finish`, so nested use (tests) leaves tracing as it found it.
    """

    _stages: list[StageMetric] = field(default_factory=list)
    _started_at: Optional[float] = None
    _start_memory: int = 0
    _owns_tracing: bool = False

    def start(self) -> None:
        if not tracemalloc.is_tracing():
            tracemalloc.start()
            self._owns_tracing = True
        self._stages = []
        self._started_at = time.perf_counter()
        self._start_memory = current_memory()

    def mark(self) -> tuple[float, int]:
        """Current (time, memory) pair to pass back to :meth:`record`."""
        return time.perf_counter(), current_memory()

    def record(self, name: str, started_at: float, start_memory: int) -> StageMetric:
        metric = StageMetric(
            name=name,
            duration=time.perf_counter() - started_at,
            memory=current_memory() - start_memory,
        )
        self._stages.append(metric)
        return metric

    def snapshot(self) -> BuildMetrics:
        """Metrics so far, without stopping the recorder."""
        started = self._started_at if self._started_at is not None else time.perf_counter()
        return BuildMetrics(
            stages=tuple(self._stages),
            duration=time.perf_counter() - started,
            memory=current_memory() - self._start_memory,
        )

    def finish(self) -> BuildMetrics:
        metrics = self.snapshot()
        if self._owns_tracing:
            tracemalloc.stop()
            self._owns_tracing = False
        return metrics
