"""
Task registry: admission control, lifecycle and the only owner of task state.

Every write to a ResearchTask or its AgentStatus records goes through a
method of TaskRegistry and happens under `self._lock`, so the registry is
safe whether tasks are driven from one event loop or from several threads.
"""

import asyncio
import copy
import threading
from datetime import datetime
from typing import Any, Dict, List, Optional, Set, Tuple

from core.base_agent import ConfigurationAdvisor, ResearchExecutor, Synthesizer
from core.errors import CapacityExceeded, SynthesisFailure, TaskNotFound
from core.observability import bind_task_context, clear_task_context, get_logger
from core.profiles import DEEP_MODE_TEMPERATURE, cycle_profiles, deep_mode_focus, default_agent_setup
from core.progress import ProgressBus, ProgressEvent, ProgressTracker
from core.sources import dedupe_sources, remap_citations, rewrite_citations
from core.types import (
    AgentConfig,
    AgentMode,
    AgentOutcome,
    AgentRun,
    AgentState,
    AgentStatus,
    AutoAgentSetup,
    ResearchRequest,
    ResearchTask,
    TaskStatus,
    agent_status_id,
)
from storage.artifacts import ArtifactStore
from storage.memory import TaskStore

from .fanout import AgentReporter, FanOutExecutor

logger = get_logger(__name__)

CONFIGURATOR_ID = "configurator"
SYNTHESIS_ID = "synthesis-engine"

PHASE_ORDER = [
    TaskStatus.STARTED,
    TaskStatus.CONFIGURING,
    TaskStatus.RESEARCHING,
    TaskStatus.SYNTHESIZING,
    TaskStatus.COMPLETED,
]


class _TaskReporter(AgentReporter):
    """Routes fan-out notifications for one task back into the registry."""

    def __init__(self, registry: "TaskRegistry", task_id: str):
        self.registry = registry
        self.task_id = task_id

    def agent_started(self, agent_id: str) -> None:
        self.registry._update_agent(
            self.task_id, agent_id, AgentState.RESEARCHING, message="Starting investigation..."
        )

    def agent_finished(self, agent_id: str, outcome: AgentOutcome) -> None:
        self.registry._record_agent_outcome(self.task_id, agent_id, outcome)


class TaskRegistry:
    """
    Owns every research task from submission until it is swept.

    Collaborators are injected; the registry itself keeps no module-level
    state, so tests can build as many independent registries as they need.
    """

    def __init__(
        self,
        executor: ResearchExecutor,
        synthesizer: Synthesizer,
        advisor: Optional[ConfigurationAdvisor] = None,
        max_concurrent_tasks: int = 10,
        max_agents_manual: int = 10,
        deep_mode_agents: int = 100,
        default_agent_count: int = 3,
        agent_timeout_seconds: Optional[float] = None,
        max_parallel_agents: Optional[int] = None,
        artifact_store: Optional[ArtifactStore] = None,
        progress_bus: Optional[ProgressBus] = None,
    ):
        if max_concurrent_tasks < 1:
            raise ValueError("max_concurrent_tasks must be at least 1")
        self.synthesizer = synthesizer
        self.advisor = advisor
        self.max_concurrent_tasks = max_concurrent_tasks
        self.max_agents_manual = max(1, max_agents_manual)
        self.deep_mode_agents = max(1, deep_mode_agents)
        self.default_agent_count = max(1, default_agent_count)
        self.agent_timeout_seconds = agent_timeout_seconds or None
        self.artifact_store = artifact_store
        self.bus = progress_bus or ProgressBus()
        self.fanout = FanOutExecutor(
            executor,
            timeout_seconds=agent_timeout_seconds,
            max_parallel=max_parallel_agents,
        )

        self._lock = threading.RLock()
        self._store = TaskStore()
        self._active: Set[str] = set()
        self._trackers: Dict[str, ProgressTracker] = {}
        self._jobs: Dict[str, asyncio.Task] = {}

    @classmethod
    def from_config(
        cls,
        config: Any,
        executor: ResearchExecutor,
        synthesizer: Synthesizer,
        advisor: Optional[ConfigurationAdvisor] = None,
        artifact_store: Optional[ArtifactStore] = None,
    ) -> "TaskRegistry":
        return cls(
            executor=executor,
            synthesizer=synthesizer,
            advisor=advisor,
            max_concurrent_tasks=config.max_concurrent_tasks,
            max_agents_manual=config.max_agents_manual,
            deep_mode_agents=config.deep_mode_agents,
            default_agent_count=config.default_agent_count,
            agent_timeout_seconds=config.agent_timeout_seconds,
            max_parallel_agents=config.max_parallel_agents,
            artifact_store=artifact_store,
        )

    # ------------------------------------------------------------------
    # Public operations

    def submit(self, request: ResearchRequest) -> str:
        """
        Admit a task and start processing it in the background.

        The capacity check and the slot reservation happen under one lock
        with no suspension point in between.

        Raises:
            CapacityExceeded: the ceiling of non-terminal tasks is reached
            RuntimeError: called without a running event loop
        """
        loop = asyncio.get_running_loop()

        with self._lock:
            if len(self._active) >= self.max_concurrent_tasks:
                logger.warning(
                    "task_rejected_at_capacity",
                    active=len(self._active),
                    ceiling=self.max_concurrent_tasks,
                )
                raise CapacityExceeded(self.max_concurrent_tasks)

            task = ResearchTask(request=request)
            self._store.save(task)
            self._active.add(task.id)
            self._trackers[task.id] = ProgressTracker(started_at=task.created_at)

            job = loop.create_task(self._process(task.id), name=f"research-{task.id}")
            self._jobs[task.id] = job

        job.add_done_callback(lambda j, task_id=task.id: self._on_job_done(task_id, j))
        logger.info("task_accepted", task_id=task.id, topic=request.topic, mode=request.mode.value)
        return task.id

    def get_task(self, task_id: str) -> Optional[ResearchTask]:
        """Read-only snapshot of a task, or None if unknown."""
        with self._lock:
            task = self._store.get(task_id)
            return copy.deepcopy(task) if task else None

    def get_task_status(self, task_id: str) -> Dict[str, Any]:
        """Serializable snapshot including the time-remaining estimate."""
        with self._lock:
            task = self._store.get(task_id)
            if task is None:
                raise TaskNotFound(task_id)
            data = task.to_dict()
            tracker = self._trackers.get(task_id)
            if tracker and not task.status.is_terminal:
                remaining = tracker.time_remaining()
                if remaining is not None:
                    data["estimated_time_remaining"] = round(remaining, 1)
            return data

    def list_active_tasks(self) -> Dict[str, Any]:
        with self._lock:
            tasks = [self._store.get(task_id) for task_id in self._active]
            return {
                "tasks": [t.summary() for t in tasks if t is not None],
                "stats": self.get_stats(),
            }

    def get_stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "total": len(self._store),
                "active": len(self._active),
                "ceiling": self.max_concurrent_tasks,
            }

    @property
    def active_count(self) -> int:
        with self._lock:
            return len(self._active)

    async def configure_agents(self, topic: str) -> AutoAgentSetup:
        """Preview the auto-mode agent setup for a topic without creating a task."""
        setup, _ = await self._propose_agents(topic.strip())
        return setup

    async def wait_for(self, task_id: str, timeout: Optional[float] = None) -> ResearchTask:
        """Wait until a task reaches a terminal state and return its snapshot."""
        with self._lock:
            job = self._jobs.get(task_id)
        if job is not None:
            await asyncio.wait_for(asyncio.shield(job), timeout=timeout)
        task = self.get_task(task_id)
        if task is None:
            raise TaskNotFound(task_id)
        return task

    def prune_finished(self, retention_seconds: float, now: Optional[datetime] = None) -> int:
        """Delete terminal tasks last updated more than `retention_seconds` ago."""
        now = now or datetime.now()
        with self._lock:
            expired = [
                task.id
                for task in self._store.by_status([TaskStatus.COMPLETED, TaskStatus.ERROR])
                if (now - task.updated_at).total_seconds() > retention_seconds
            ]
            for task_id in expired:
                self._store.delete(task_id)
                self._trackers.pop(task_id, None)
                self._active.discard(task_id)
        return len(expired)

    async def shutdown(self) -> None:
        """Cancel in-flight processing; affected tasks end in `error`."""
        with self._lock:
            jobs = [j for j in self._jobs.values() if not j.done()]
        for job in jobs:
            job.cancel()
        if jobs:
            await asyncio.gather(*jobs, return_exceptions=True)

    # ------------------------------------------------------------------
    # Processing

    async def _process(self, task_id: str) -> None:
        bind_task_context(task_id)
        try:
            request = self._request_of(task_id)
            configs = await self._resolve_agents(task_id, request)
            agents = self._start_research(task_id, configs)

            runs = await self.fanout.run(request.topic, agents, _TaskReporter(self, task_id))

            successful = [run for run in runs if run.outcome.ok]
            sources = dedupe_sources(s for run in successful for s in run.outcome.sources)
            logger.info(
                "research_finished",
                agents=len(runs),
                succeeded=len(successful),
                sources=len(sources),
            )

            self._set_phase(task_id, TaskStatus.SYNTHESIZING)
            self._add_agent_status(
                task_id,
                AgentStatus(
                    id=SYNTHESIS_ID,
                    name="Synthesis Engine",
                    status=AgentState.SYNTHESIZING,
                    message="Compiling final report...",
                ),
            )

            report = await self.synthesizer.synthesize(
                request.topic,
                [_with_merged_citations(run, sources) for run in successful],
                sources,
                request.response_type,
                request.include_citations,
                request.limit_citations_to_three,
            )
            if request.include_citations and sources:
                report = rewrite_citations(report, sources)

            self._update_agent(task_id, SYNTHESIS_ID, AgentState.COMPLETED, message="Report generated.")
            self._complete(task_id, report, sources)
        except SynthesisFailure as e:
            logger.error("synthesis_failed", error=str(e), exc_info=True)
            self._fail(task_id, str(e))
        except Exception as e:
            logger.exception("task_failed")
            self._fail(task_id, str(e) or "Unknown error occurred")
        finally:
            self._release(task_id)
            clear_task_context()

        await self._persist(task_id)

    def _on_job_done(self, task_id: str, job: asyncio.Task) -> None:
        if job.cancelled():
            self._fail(task_id, "Task processing was cancelled")
            self._release(task_id)
        with self._lock:
            self._jobs.pop(task_id, None)

    async def _resolve_agents(self, task_id: str, request: ResearchRequest) -> List[AgentConfig]:
        mode = request.mode

        if mode is AgentMode.DEEP:
            focus = deep_mode_focus(request.topic)
            return [
                AgentConfig(name=f"Creative Agent #{i + 1}", focus=focus, temperature=DEEP_MODE_TEMPERATURE)
                for i in range(self.deep_mode_agents)
            ]

        if mode is AgentMode.AUTO:
            self._set_phase(task_id, TaskStatus.CONFIGURING)
            self._set_agent_statuses(
                task_id,
                [
                    AgentStatus(
                        id=CONFIGURATOR_ID,
                        name="AI Configurator",
                        status=AgentState.CONFIGURING,
                        message="Determining optimal agent setup...",
                    )
                ],
            )
            setup, fell_back = await self._propose_agents(request.topic)
            message = (
                f"Auto-configuration unavailable; using {setup.agent_count} default agents."
                if fell_back
                else f"Configured {setup.agent_count} agents."
            )
            self._update_agent(task_id, CONFIGURATOR_ID, AgentState.COMPLETED, message=message)
            return list(setup.agents)

        count = request.num_agents
        if count is None:
            count = len(request.agents) or self.default_agent_count
        count = min(max(1, count), self.max_agents_manual)
        supplied = list(request.agents[:count])
        return supplied + cycle_profiles(count - len(supplied), start=len(supplied))

    async def _propose_agents(self, topic: str) -> Tuple[AutoAgentSetup, bool]:
        """Ask the advisor; on any failure return the default setup. Never raises."""
        if self.advisor is None:
            return default_agent_setup(self.default_agent_count), True
        try:
            call = self.advisor.propose_agents(topic)
            if self.agent_timeout_seconds:
                setup = await asyncio.wait_for(call, timeout=self.agent_timeout_seconds)
            else:
                setup = await call
            agents = list(setup.agents)[: self.max_agents_manual]
            if not agents:
                raise ValueError("advisor proposed no agents")
            return AutoAgentSetup(agent_count=len(agents), agents=agents), False
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("agent_configuration_fallback", error=str(e) or type(e).__name__)
            return default_agent_setup(self.default_agent_count), True

    def _start_research(self, task_id: str, configs: List[AgentConfig]) -> List[Tuple[str, AgentConfig]]:
        agents = [(agent_status_id(c.name, i), c) for i, c in enumerate(configs)]
        statuses = [AgentStatus(id=agent_id, name=c.name) for agent_id, c in agents]
        with self._lock:
            task = self._require(task_id)
            configurator = task.find_agent(CONFIGURATOR_ID)
            if configurator is not None and configurator.status is AgentState.COMPLETED:
                statuses.insert(0, configurator)
        self._set_agent_statuses(task_id, statuses)
        self._set_phase(task_id, TaskStatus.RESEARCHING, total_units=len(agents))
        return agents

    async def _persist(self, task_id: str) -> None:
        if self.artifact_store is None:
            return
        snapshot = self.get_task(task_id)
        if snapshot is None:
            return
        try:
            await asyncio.to_thread(self.artifact_store.save, snapshot)
        except Exception:
            logger.exception("artifact_persist_failed", task_id=task_id)

    # ------------------------------------------------------------------
    # Mutators (the only code that writes task state)

    def _require(self, task_id: str) -> ResearchTask:
        task = self._store.get(task_id)
        if task is None:
            raise TaskNotFound(task_id)
        return task

    def _request_of(self, task_id: str) -> ResearchRequest:
        with self._lock:
            return self._require(task_id).request

    def _set_phase(self, task_id: str, status: TaskStatus, total_units: int = 0) -> None:
        with self._lock:
            event = self._apply_phase(self._require(task_id), status, total_units)
        logger.info("phase_changed", status=status.value, progress=event.progress)
        self.bus.publish(event)

    def _apply_phase(self, task: ResearchTask, status: TaskStatus, total_units: int = 0) -> ProgressEvent:
        if task.status.is_terminal:
            raise RuntimeError(f"Task {task.id} is already {task.status.value}")
        if PHASE_ORDER.index(status) < PHASE_ORDER.index(task.status):
            raise RuntimeError(f"Cannot move task from {task.status.value} back to {status.value}")
        task.status = status
        task.progress = self._trackers[task.id].enter_phase(status.value, total_units)
        task.touch()
        return ProgressEvent("phase_change", task.id, status.value, task.progress)

    def _set_agent_statuses(self, task_id: str, statuses: List[AgentStatus]) -> None:
        with self._lock:
            task = self._require(task_id)
            task.agent_statuses = statuses
            task.touch()

    def _add_agent_status(self, task_id: str, status: AgentStatus) -> None:
        with self._lock:
            task = self._require(task_id)
            task.agent_statuses.append(status)
            task.touch()
            event = ProgressEvent(
                "agent_update", task_id, task.status.value, task.progress, agent=status.to_dict()
            )
        self.bus.publish(event)

    def _update_agent(
        self,
        task_id: str,
        agent_id: str,
        state: AgentState,
        message: Optional[str] = None,
        research: Optional[str] = None,
        sources: Optional[list] = None,
    ) -> None:
        with self._lock:
            event = self._apply_agent_update(task_id, agent_id, state, message, research, sources)
        if event:
            self.bus.publish(event)

    def _apply_agent_update(
        self,
        task_id: str,
        agent_id: str,
        state: AgentState,
        message: Optional[str],
        research: Optional[str] = None,
        sources: Optional[list] = None,
    ) -> Optional[ProgressEvent]:
        task = self._require(task_id)
        agent = task.find_agent(agent_id)
        if agent is None or agent.status.is_terminal:
            return None
        agent.status = state
        agent.message = message
        agent.research = research
        agent.sources = sources
        task.touch()
        return ProgressEvent("agent_update", task_id, task.status.value, task.progress, agent=agent.to_dict())

    def _record_agent_outcome(self, task_id: str, agent_id: str, outcome: AgentOutcome) -> None:
        with self._lock:
            task = self._require(task_id)
            task.progress = self._trackers[task_id].complete_unit()
            if outcome.ok:
                event = self._apply_agent_update(
                    task_id,
                    agent_id,
                    AgentState.COMPLETED,
                    f"Found {len(outcome.sources)} potential sources.",
                    research=outcome.summary,
                    sources=list(outcome.sources),
                )
            else:
                event = self._apply_agent_update(
                    task_id, agent_id, AgentState.ERROR, _truncate(outcome.error or "Unknown error")
                )
        if event:
            self.bus.publish(event)

    def _complete(self, task_id: str, report: str, sources: list) -> None:
        with self._lock:
            task = self._require(task_id)
            # Report, sources and status become visible together
            event = self._apply_phase(task, TaskStatus.COMPLETED)
            task.final_report = report
            task.sources = list(sources)
        logger.info("phase_changed", status=event.status, progress=event.progress)
        self.bus.publish(event)
        logger.info("task_completed", sources=len(sources))

    def _fail(self, task_id: str, error: str) -> None:
        with self._lock:
            task = self._store.get(task_id)
            if task is None or task.status.is_terminal:
                return
            task.status = TaskStatus.ERROR
            task.error = error
            for agent in task.agent_statuses:
                if not agent.status.is_terminal:
                    agent.message = "Process halted." if agent.status is AgentState.PENDING else _truncate(error)
                    agent.status = AgentState.ERROR
            task.touch()
            event = ProgressEvent("phase_change", task_id, task.status.value, task.progress, message=error)
        self.bus.publish(event)

    def _release(self, task_id: str) -> None:
        with self._lock:
            self._active.discard(task_id)


def _truncate(text: str, limit: int = 100) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


def _with_merged_citations(run: AgentRun, merged: list) -> AgentRun:
    summary = remap_citations(run.outcome.summary or "", run.outcome.sources, merged)
    return AgentRun(run.agent_id, run.config, AgentOutcome.success(summary, run.outcome.sources))
