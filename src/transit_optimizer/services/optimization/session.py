"""Optimization session state machine and in-memory session registry."""

from __future__ import annotations

import copy
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Callable, Optional

from ...schemas.optimization import SessionStatus

PHASES: tuple[str, ...] = (
    "data_preparation",
    "network_construction",
    "distance_filtering",
    "mobility_optimization",
    "results_generation",
)

PHASE_PROGRESS: dict[str, int] = {
    "data_preparation": 20,
    "network_construction": 40,
    "distance_filtering": 60,
    "mobility_optimization": 80,
    "results_generation": 100,
}

PHASE_DETAILS: dict[str, tuple[str, str]] = {
    "data_preparation": ("Data Preparation", "Loading mobility areas, demand matrix and distances"),
    "network_construction": ("Network Construction", "Building the scoped complete graph"),
    "distance_filtering": ("Distance Filtering", "Applying the distance threshold to sparsify the graph"),
    "mobility_optimization": ("Mobility Optimization", "Finding demand-weighted shortest paths"),
    "results_generation": ("Results Generation", "Comparing networks and ranking recommendations"),
}

TERMINAL_STATUSES = frozenset({"completed", "failed"})


class SessionStateError(RuntimeError):
    """Raised when a session transition is not allowed."""


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class PhaseState:
    status: str = "pending"
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    error: Optional[str] = None
    metrics: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class OptimizationSession:
    session_id: str
    region: str
    algorithm_params: dict[str, Any]
    requested_by: Optional[str] = None
    status: SessionStatus = "pending"
    current_phase: str = PHASES[0]
    progress: int = 0
    phases: dict[str, PhaseState] = field(default_factory=lambda: {name: PhaseState() for name in PHASES})
    results: Optional[dict[str, Any]] = None
    error_message: Optional[str] = None
    created_at: datetime = field(default_factory=_now)
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_ms: Optional[int] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def _require_running(self) -> None:
        if self.status != "running":
            raise SessionStateError(f"Session {self.session_id} is {self.status}, not running")

    def _phase(self, name: str) -> PhaseState:
        if name not in self.phases:
            raise SessionStateError(f"Unknown phase '{name}'")
        return self.phases[name]

    def start(self) -> None:
        if self.status != "pending":
            raise SessionStateError(f"Session {self.session_id} cannot start from {self.status}")
        self.status = "running"
        self.started_at = _now()

    def begin_phase(self, name: str) -> None:
        self._require_running()
        expected = PHASES.index(name)
        if any(self.phases[prior].status != "completed" for prior in PHASES[:expected]):
            raise SessionStateError(f"Phase '{name}' started before earlier phases completed")
        phase = self._phase(name)
        phase.status = "running"
        phase.start_time = _now()
        self.current_phase = name

    def complete_phase(self, name: str, metrics: dict[str, Any] | None = None) -> None:
        self._require_running()
        phase = self._phase(name)
        if phase.status != "running":
            raise SessionStateError(f"Phase '{name}' is {phase.status}, not running")
        phase.status = "completed"
        phase.end_time = _now()
        phase.metrics.update(metrics or {})
        self.update_progress(PHASE_PROGRESS[name])

    def update_progress(self, value: int) -> None:
        self._require_running()
        if not 0 <= value <= 100:
            raise SessionStateError(f"Progress {value} outside 0-100")
        if value < self.progress:
            raise SessionStateError(f"Progress cannot move backwards ({self.progress} -> {value})")
        self.progress = value

    def _finish(self) -> None:
        self.ended_at = _now()
        if self.started_at:
            self.duration_ms = int((self.ended_at - self.started_at).total_seconds() * 1000)

    def complete(self, results: dict[str, Any]) -> None:
        self._require_running()
        pending = [name for name in PHASES if self.phases[name].status != "completed"]
        if pending:
            raise SessionStateError(f"Cannot complete session with unfinished phases: {', '.join(pending)}")
        self.results = results
        self.status = "completed"
        self.progress = 100
        self._finish()
        self.completed_at = self.ended_at

    def fail(self, message: str, *, phase: str | None = None) -> None:
        if self.is_terminal:
            raise SessionStateError(f"Session {self.session_id} already {self.status}")
        if phase is not None:
            state = self._phase(phase)
            state.status = "failed"
            state.end_time = _now()
            state.error = message
        self.status = "failed"
        self.error_message = message
        self._finish()


def new_session_id() -> str:
    return f"opt_{uuid.uuid4().hex[:16]}"


class SessionStore:
    """Registry of published session snapshots.

    Every mutation works on a private copy that replaces the published one
    when the mutator returns, so readers always see a consistent snapshot and
    never wait on a running pipeline.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, OptimizationSession] = {}
        self._write_lock = Lock()

    def create(
        self,
        region: str,
        algorithm_params: dict[str, Any],
        *,
        requested_by: str | None = None,
    ) -> OptimizationSession:
        session = OptimizationSession(
            session_id=new_session_id(),
            region=region,
            algorithm_params=copy.deepcopy(algorithm_params),
            requested_by=requested_by,
        )
        with self._write_lock:
            self._sessions[session.session_id] = session
        return session

    def get(self, session_id: str) -> Optional[OptimizationSession]:
        return self._sessions.get(session_id)

    def mutate(self, session_id: str, mutator: Callable[[OptimizationSession], None]) -> OptimizationSession:
        with self._write_lock:
            current = self._sessions.get(session_id)
            if current is None:
                raise KeyError(session_id)
            draft = copy.deepcopy(current)
            mutator(draft)
            self._sessions[session_id] = draft
            return draft

    def list(
        self,
        *,
        status: str | None = None,
        region: str | None = None,
        limit: int | None = None,
    ) -> list[OptimizationSession]:
        # Registry order breaks created_at ties.
        ordered = sorted(enumerate(self._sessions.values()), key=lambda pair: (pair[1].created_at, pair[0]), reverse=True)
        sessions = [session for _, session in ordered]
        if status:
            sessions = [item for item in sessions if item.status == status]
        if region:
            sessions = [item for item in sessions if item.region == region]
        return sessions[:limit] if limit else sessions

    def delete(self, session_id: str) -> bool:
        with self._write_lock:
            return self._sessions.pop(session_id, None) is not None
