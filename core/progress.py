"""
Progress aggregation and progress event fan-out.

Each phase of a run owns a slice of the 0-100 range: a base percentage and
a span. Phases with countable units (agents researching, articles being
written) move through their span as units complete; the next phase always
starts at or above the previous phase's ceiling, so progress observed for
a single task never goes down.
"""

from abc import ABC
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
import threading

from .observability import get_logger

logger = get_logger(__name__)

MIN_PROGRESS = 1e-6


@dataclass(frozen=True)
class PhaseWeight:
    base: float
    span: float = 0.0

    @property
    def ceiling(self) -> float:
        return self.base + self.span


# Keys match TaskStatus values
RESEARCH_PHASES: Dict[str, PhaseWeight] = {
    "started": PhaseWeight(0, 5),
    "configuring": PhaseWeight(5, 5),
    "researching": PhaseWeight(10, 80),
    "synthesizing": PhaseWeight(90, 10),
    "completed": PhaseWeight(100),
}

# Per-article generation pipeline
GENERATION_PHASES: Dict[str, PhaseWeight] = {
    "initializing": PhaseWeight(0, 5),
    "discovery": PhaseWeight(5, 15),
    "selection": PhaseWeight(20, 10),
    "researching": PhaseWeight(30, 40),
    "writing": PhaseWeight(70, 25),
    "publishing": PhaseWeight(95, 5),
    "completed": PhaseWeight(100),
}


def validate_phase_table(table: Dict[str, PhaseWeight]) -> None:
    """Check that phases, in table order, never overlap or exceed 100."""
    previous: Optional[Tuple[str, PhaseWeight]] = None
    for name, weight in table.items():
        if weight.base < 0 or weight.ceiling > 100:
            raise ValueError(f"Phase '{name}' falls outside 0-100")
        if previous and weight.base < previous[1].ceiling:
            raise ValueError(
                f"Phase '{name}' starts at {weight.base}, below the end of '{previous[0]}' "
                f"({previous[1].ceiling})"
            )
        previous = (name, weight)


def estimate_time_remaining(elapsed_seconds: float, progress: float) -> Optional[float]:
    """
    Rate-based estimate of the seconds left.

    Returns None while progress is zero; there is no rate to extrapolate yet.
    """
    if progress <= 0:
        return None
    if progress >= 100:
        return 0.0
    elapsed = max(elapsed_seconds, 0.0)
    return elapsed / max(progress, MIN_PROGRESS) * (100 - progress)


class ProgressTracker:
    """Progress of a single run through a phase table."""

    def __init__(self, phases: Optional[Dict[str, PhaseWeight]] = None, started_at: Optional[datetime] = None):
        self.phases = phases or RESEARCH_PHASES
        validate_phase_table(self.phases)
        self.started_at = started_at or datetime.now()
        self.phase = next(iter(self.phases))
        self.completed_units = 0
        self.total_units = 0
        self._percent = self.phases[self.phase].base

    @property
    def percent(self) -> float:
        return self._percent

    def enter_phase(self, phase: str, total_units: int = 0) -> float:
        """Move to `phase`, resetting the unit counter. Returns the new percent."""
        if phase not in self.phases:
            raise KeyError(f"Unknown phase '{phase}'")
        self.phase = phase
        self.completed_units = 0
        self.total_units = max(0, total_units)
        return self._advance(self.phases[phase].base)

    def complete_unit(self) -> float:
        """Record one finished unit (agent, article) of the current phase."""
        if self.total_units:
            self.completed_units = min(self.completed_units + 1, self.total_units)
        return self._advance(self._phase_percent())

    def _phase_percent(self) -> float:
        weight = self.phases[self.phase]
        if not self.total_units:
            return weight.base
        return weight.base + (self.completed_units / self.total_units) * weight.span

    def _advance(self, value: float) -> float:
        value = min(100.0, max(0.0, value))
        self._percent = max(self._percent, value)
        return self._percent

    def time_remaining(self, now: Optional[datetime] = None) -> Optional[float]:
        now = now or datetime.now()
        return estimate_time_remaining((now - self.started_at).total_seconds(), self._percent)


@dataclass
class ProgressEvent:
    """A change observed on a task."""
    type: str  # "phase_change" | "agent_update"
    task_id: str
    status: str
    progress: float
    agent: Optional[Dict[str, Any]] = None
    message: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "task_id": self.task_id,
            "status": self.status,
            "progress": self.progress,
            "agent": self.agent,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }


class ProgressListener(ABC):
    """Subscriber interface. Override the hooks you care about."""

    def on_phase_change(self, event: ProgressEvent) -> None:
        pass

    def on_agent_update(self, event: ProgressEvent) -> None:
        pass


class ProgressBus:
    """Explicit publish/subscribe channel for progress events."""

    def __init__(self):
        self._listeners: List[ProgressListener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: ProgressListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def unsubscribe(self, listener: ProgressListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def publish(self, event: ProgressEvent) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                if event.type == "phase_change":
                    listener.on_phase_change(event)
                else:
                    listener.on_agent_update(event)
            except Exception:
                # A broken subscriber must not stall task processing
                logger.exception("progress_listener_failed", listener=type(listener).__name__)
