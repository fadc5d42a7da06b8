import asyncio
import threading

import pytest

from agents.mock_agents import MockConfigurationAdvisor, MockResearchExecutor, MockSynthesizer
from core.base_agent import ConfigurationAdvisor, ResearchExecutor
from core.errors import CapacityExceeded, TaskNotFound
from core.profiles import AGENT_PROFILES
from core.types import AgentConfig, AgentOutcome, AgentState, ResearchRequest, Source, TaskStatus
from orchestrator.registry import CONFIGURATOR_ID, SYNTHESIS_ID
from storage.artifacts import JsonArtifactStore

from conftest import GatedExecutor, RecordingListener

PROFILE_NAMES = [p.name for p in AGENT_PROFILES]


def manual(topic="Quantum error correction", **kwargs):
    kwargs.setdefault("num_agents", 3)
    return ResearchRequest(topic=topic, **kwargs)


async def run_to_end(registry, request):
    task_id = registry.submit(request)
    return await registry.wait_for(task_id, timeout=5)


# Admission

async def test_submit_returns_immediately_with_started_task(registry):
    task_id = registry.submit(manual())

    task = registry.get_task(task_id)
    assert task.status in (TaskStatus.STARTED, TaskStatus.RESEARCHING)
    assert registry.active_count == 1

    await registry.wait_for(task_id, timeout=5)
    assert registry.active_count == 0


async def test_submission_rejected_at_capacity(make_registry):
    gated = GatedExecutor()
    registry = make_registry(executor=gated, max_concurrent_tasks=2)

    first = registry.submit(manual(num_agents=1))
    second = registry.submit(manual(num_agents=1))
    with pytest.raises(CapacityExceeded) as exc_info:
        registry.submit(manual(num_agents=1))

    assert "Maximum number of concurrent tasks (2) reached" in str(exc_info.value)
    assert registry.get_stats() == {"total": 2, "active": 2, "ceiling": 2}

    gated.gate.set()
    await registry.wait_for(first, timeout=5)
    await registry.wait_for(second, timeout=5)
    assert registry.active_count == 0

    third = registry.submit(manual(num_agents=1))
    assert (await registry.wait_for(third, timeout=5)).status is TaskStatus.COMPLETED


async def test_rejection_at_capacity_leaves_running_task_untouched(make_registry):
    gated = GatedExecutor()
    registry = make_registry(executor=gated, max_concurrent_tasks=1)
    running = registry.submit(manual(num_agents=2))
    while gated.started < 1:
        await asyncio.sleep(0.01)
    before = registry.get_task_status(running)

    with pytest.raises(CapacityExceeded):
        registry.submit(manual(topic="Another topic", num_agents=1))

    after = registry.get_task_status(running)
    assert after["status"] == before["status"] == "researching"
    assert after["progress"] == before["progress"]
    assert after["agent_statuses"] == before["agent_statuses"]
    assert registry.get_stats() == {"total": 1, "active": 1, "ceiling": 1}

    gated.gate.set()
    assert (await registry.wait_for(running, timeout=5)).status is TaskStatus.COMPLETED


async def test_burst_of_submissions_never_exceeds_ceiling(make_registry):
    gated = GatedExecutor()
    registry = make_registry(executor=gated, max_concurrent_tasks=5)

    accepted, rejected = [], 0
    for i in range(20):
        try:
            accepted.append(registry.submit(manual(topic=f"topic {i}", num_agents=1)))
        except CapacityExceeded:
            rejected += 1

    assert len(accepted) == 5
    assert rejected == 15
    assert registry.active_count == 5

    gated.gate.set()
    for task_id in accepted:
        await registry.wait_for(task_id, timeout=5)


def test_submit_requires_running_loop(registry):
    with pytest.raises(RuntimeError):
        registry.submit(manual())
    assert registry.get_stats()["total"] == 0


def test_ceiling_must_be_positive(executor, synthesizer):
    from orchestrator.registry import TaskRegistry

    with pytest.raises(ValueError):
        TaskRegistry(executor, synthesizer, max_concurrent_tasks=0)


# Agent resolution

async def test_manual_mode_uses_profiles_in_order(registry, executor):
    await run_to_end(registry, manual(num_agents=3))

    assert sorted(c.name for c in executor.calls) == sorted(PROFILE_NAMES[:3])


async def test_manual_mode_clamps_to_cap_and_cycles(make_registry, executor):
    registry = make_registry(max_agents_manual=4)

    task = await run_to_end(registry, manual(num_agents=50))

    assert len(executor.calls) == 4
    research_ids = [a.id for a in task.agent_statuses if a.id != SYNTHESIS_ID]
    assert research_ids == [
        "Analyst-Agent-0",
        "Critical-Agent-1",
        "Innovator-Agent-2",
        "Historical-Agent-3",
    ]


async def test_manual_mode_wraps_profile_table(make_registry, executor):
    registry = make_registry(max_agents_manual=12)

    await run_to_end(registry, manual(num_agents=12))

    names = [c.name for c in executor.calls]
    assert len(names) == 12
    assert names.count("Analyst Agent") == 2
    assert names.count("Critical Agent") == 2


async def test_manual_mode_defaults_and_minimum(registry, executor):
    await run_to_end(registry, ResearchRequest(topic="Tides"))
    assert len(executor.calls) == 3

    executor.calls.clear()
    await run_to_end(registry, ResearchRequest(topic="Tides", num_agents=0))
    assert len(executor.calls) == 1


async def test_supplied_agents_come_first(registry, executor):
    custom = AgentConfig(name="Custom Agent", focus="Look at supply chains", temperature=0.3)

    task = await run_to_end(registry, manual(num_agents=3, agents=[custom]))

    ids = [a.id for a in task.agent_statuses]
    assert ids[:3] == ["Custom-Agent-0", "Critical-Agent-1", "Innovator-Agent-2"]
    assert custom in executor.calls


async def test_deep_mode_spawns_creative_agents(make_registry, executor):
    registry = make_registry(deep_mode_agents=6)
    listener = RecordingListener()
    registry.bus.subscribe(listener)

    task = await run_to_end(registry, ResearchRequest(topic="Urban farming", deep_mode=True, num_agents=2))

    assert len(executor.calls) == 6
    assert {c.temperature for c in executor.calls} == {1.0}
    assert all("Urban farming" in c.focus for c in executor.calls)
    assert task.find_agent("Creative-Agent-#1-0") is not None
    assert task.find_agent(CONFIGURATOR_ID) is None
    assert "configuring" not in [e.status for e in listener.events if e.type == "phase_change"]


async def test_auto_mode_uses_advisor_setup(registry, executor):
    listener = RecordingListener()
    registry.bus.subscribe(listener)

    task = await run_to_end(registry, ResearchRequest(topic="Coral reefs", auto_agents=True))

    assert {c.name for c in executor.calls} == {"Facet Agent 1", "Facet Agent 2"}
    configurator = task.agent_statuses[0]
    assert configurator.id == CONFIGURATOR_ID
    assert configurator.status is AgentState.COMPLETED
    assert configurator.message == "Configured 2 agents."
    assert "configuring" in [e.status for e in listener.events if e.type == "phase_change"]


@pytest.mark.parametrize("advisor", [None, MockConfigurationAdvisor(fail=True)])
async def test_auto_mode_falls_back_to_default_profiles(make_registry, executor, advisor):
    registry = make_registry(advisor=advisor)

    task = await run_to_end(registry, ResearchRequest(topic="Coral reefs", auto_agents=True))

    assert task.status is TaskStatus.COMPLETED
    assert sorted(c.name for c in executor.calls) == sorted(PROFILE_NAMES[:3])
    configurator = task.find_agent(CONFIGURATOR_ID)
    assert configurator.status is AgentState.COMPLETED
    assert configurator.message == "Auto-configuration unavailable; using 3 default agents."


class _StuckAdvisor(ConfigurationAdvisor):
    async def propose_agents(self, topic):
        await asyncio.sleep(10)


async def test_hanging_advisor_times_out_into_fallback(make_registry, executor):
    registry = make_registry(advisor=_StuckAdvisor(), agent_timeout_seconds=0.05)

    task = await run_to_end(registry, ResearchRequest(topic="Coral reefs", auto_agents=True))

    assert task.status is TaskStatus.COMPLETED
    assert len(executor.calls) == 3


async def test_advisor_setup_is_truncated_to_manual_cap(make_registry, executor):
    registry = make_registry(advisor=MockConfigurationAdvisor(count=8), max_agents_manual=5)

    await run_to_end(registry, ResearchRequest(topic="Coral reefs", auto_agents=True))

    assert len(executor.calls) == 5


async def test_configure_agents_preview_never_raises(make_registry):
    assert (await make_registry().configure_agents("  Rivers  ")).agent_count == 2

    fallback = await make_registry(advisor=MockConfigurationAdvisor(fail=True)).configure_agents("Rivers")
    assert fallback.agent_count == 3
    assert [a.name for a in fallback.agents] == PROFILE_NAMES[:3]


# Processing outcomes

async def test_one_failed_agent_does_not_fail_the_task(make_registry, synthesizer):
    executor = MockResearchExecutor(
        sources_by_agent={
            "Analyst Agent": ["https://a.example/overview", "https://a.example/stats"],
            "Innovator Agent": ["https://a.example/stats", "https://c.example/trends"],
        },
        failures={"Critical Agent": "search backend returned no results"},
    )
    registry = make_registry(executor=executor)

    task = await run_to_end(registry, manual(num_agents=3))

    assert task.status is TaskStatus.COMPLETED
    assert task.progress == 100
    assert {s.uri for s in task.sources} == {
        "https://a.example/overview",
        "https://a.example/stats",
        "https://c.example/trends",
    }
    assert [s.id for s in task.sources] == [1, 2, 3]

    critical = task.find_agent("Critical-Agent-1")
    assert critical.status is AgentState.ERROR
    assert critical.message == "search backend returned no results"
    analyst = task.find_agent("Analyst-Agent-0")
    assert analyst.status is AgentState.COMPLETED
    assert analyst.message == "Found 2 potential sources."
    assert analyst.research == "Analyst Agent findings on Quantum error correction."
    assert task.find_agent(SYNTHESIS_ID).status is AgentState.COMPLETED

    assert {run.config.name for run in synthesizer.received} == {"Analyst Agent", "Innovator Agent"}
    assert "[1](https://" in task.final_report


class _CitingExecutor(ResearchExecutor):
    """Every agent numbers its own single source as [1]."""

    async def run(self, topic, config):
        slug = config.name.split()[0].lower()
        uri = f"https://{slug}.example"
        return AgentOutcome.success(f"Claim by {slug} [1].", [Source(id=1, uri=uri, title=slug)])


async def test_agent_citations_are_renumbered_to_merged_sources(make_registry, synthesizer):
    registry = make_registry(executor=_CitingExecutor())

    task = await run_to_end(registry, manual(num_agents=2))

    merged_id = {s.uri: s.id for s in task.sources}
    assert sorted(merged_id.values()) == [1, 2]
    summaries = {run.config.name: run.outcome.summary for run in synthesizer.received}
    assert summaries["Analyst Agent"] == f"Claim by analyst [{merged_id['https://analyst.example']}]."
    assert summaries["Critical Agent"] == f"Claim by critical [{merged_id['https://critical.example']}]."
    critical_id = merged_id["https://critical.example"]
    assert f"Claim by critical [{critical_id}](https://critical.example)." in task.final_report
    # Per-agent status keeps the agent's own numbering
    assert task.find_agent("Critical-Agent-1").research == "Claim by critical [1]."


async def test_report_is_never_visible_before_completion(make_registry):
    registry = make_registry()
    stop = threading.Event()
    torn = []

    def watch(task_ids):
        while not stop.is_set():
            for task_id in list(task_ids):
                task = registry.get_task(task_id)
                if task and (task.final_report is not None) != (task.status is TaskStatus.COMPLETED):
                    torn.append((task.status, task.final_report is not None))

    task_ids = []
    watcher = threading.Thread(target=watch, args=(task_ids,), daemon=True)
    watcher.start()
    try:
        for i in range(10):
            task_id = registry.submit(manual(topic=f"topic {i}", num_agents=1))
            task_ids.append(task_id)
            await registry.wait_for(task_id, timeout=5)
    finally:
        stop.set()
        watcher.join(timeout=5)

    assert torn == []
    assert all(registry.get_task(t).status is TaskStatus.COMPLETED for t in task_ids)


async def test_all_agents_failing_still_completes(make_registry, synthesizer):
    executor = MockResearchExecutor(failures={name: "offline" for name in PROFILE_NAMES})
    registry = make_registry(executor=executor)

    task = await run_to_end(registry, manual(num_agents=3))

    assert task.status is TaskStatus.COMPLETED
    assert task.sources == []
    assert synthesizer.received == []
    assert "No research data was gathered" in task.final_report
    assert "](" not in task.final_report


async def test_citations_disabled_leaves_report_untouched(registry):
    task = await run_to_end(registry, manual(include_citations=False))

    assert task.status is TaskStatus.COMPLETED
    assert task.sources
    assert "Sources:" not in task.final_report
    assert "](" not in task.final_report


async def test_long_agent_errors_are_truncated(make_registry):
    executor = MockResearchExecutor(failures={"Analyst Agent": "x" * 300})
    registry = make_registry(executor=executor)

    task = await run_to_end(registry, manual(num_agents=1))

    assert task.find_agent("Analyst-Agent-0").message == "x" * 100 + "..."


async def test_synthesis_failure_fails_task_and_releases_slot(make_registry):
    registry = make_registry(synthesizer=MockSynthesizer(fail=True), max_concurrent_tasks=1)

    task = await run_to_end(registry, manual())

    assert task.status is TaskStatus.ERROR
    assert task.error == "synthesis backend unavailable"
    assert task.final_report is None
    assert "sources" not in registry.get_task_status(task.id)
    engine = task.find_agent(SYNTHESIS_ID)
    assert engine.status is AgentState.ERROR
    assert engine.message == "synthesis backend unavailable"
    assert task.find_agent("Analyst-Agent-0").status is AgentState.COMPLETED

    assert registry.active_count == 0
    await registry.wait_for(registry.submit(manual()), timeout=5)


async def test_shutdown_halts_running_and_pending_agents(make_registry):
    gated = GatedExecutor()
    registry = make_registry(executor=gated, max_parallel_agents=1)
    task_id = registry.submit(manual(num_agents=3))
    while gated.started < 1:
        await asyncio.sleep(0.01)

    await registry.shutdown()

    task = registry.get_task(task_id)
    assert task.status is TaskStatus.ERROR
    assert task.error == "Task processing was cancelled"
    messages = sorted(a.message for a in task.agent_statuses)
    assert messages == ["Process halted.", "Process halted.", "Task processing was cancelled"]
    assert all(a.status is AgentState.ERROR for a in task.agent_statuses)
    assert registry.active_count == 0


# Progress and state machine

async def test_progress_is_monotonic_and_phases_move_forward(registry):
    listener = RecordingListener()
    registry.bus.subscribe(listener)

    task = await run_to_end(registry, manual(num_agents=4))

    values = [e.progress for e in listener.events if e.task_id == task.id]
    assert values == sorted(values)
    assert values[-1] == 100
    phases = [e.status for e in listener.events if e.type == "phase_change"]
    assert phases == ["researching", "synthesizing", "completed"]


async def test_terminal_task_rejects_phase_changes(registry):
    task = await run_to_end(registry, manual())

    with pytest.raises(RuntimeError):
        registry._set_phase(task.id, TaskStatus.RESEARCHING)
    assert registry.get_task(task.id).status is TaskStatus.COMPLETED


async def test_terminal_agent_status_is_frozen(registry):
    task = await run_to_end(registry, manual())

    registry._update_agent(task.id, "Analyst-Agent-0", AgentState.RESEARCHING, message="again")

    agent = registry.get_task(task.id).find_agent("Analyst-Agent-0")
    assert agent.status is AgentState.COMPLETED
    assert agent.message == "Found 1 potential sources."


# Queries

async def test_get_task_returns_isolated_snapshot(registry):
    task = await run_to_end(registry, manual())

    task.final_report = "tampered"
    task.agent_statuses.clear()

    fresh = registry.get_task(task.id)
    assert fresh.final_report != "tampered"
    assert fresh.agent_statuses


async def test_unknown_task_lookups(registry):
    assert registry.get_task("nope") is None
    with pytest.raises(TaskNotFound):
        registry.get_task_status("nope")
    with pytest.raises(TaskNotFound):
        await registry.wait_for("nope")


async def test_status_dict_of_completed_task(registry):
    task = await run_to_end(registry, manual())

    status = registry.get_task_status(task.id)

    assert status["status"] == "completed"
    assert status["progress"] == 100
    assert status["final_report"]
    assert [s["id"] for s in status["sources"]] == [1, 2, 3]
    assert "estimated_time_remaining" not in status
    assert "error" not in status


async def test_list_active_tasks_only_shows_in_flight(make_registry):
    gated = GatedExecutor()
    registry = make_registry(executor=gated)
    running = registry.submit(manual(topic="Running topic", num_agents=1))
    while gated.started < 1:
        await asyncio.sleep(0.01)

    listing = registry.list_active_tasks()

    assert [t["task_id"] for t in listing["tasks"]] == [running]
    assert listing["tasks"][0]["topic"] == "Running topic"
    assert listing["tasks"][0]["status"] == "researching"
    assert listing["stats"] == {"total": 1, "active": 1, "ceiling": 5}
    status = registry.get_task_status(running)
    assert status["estimated_time_remaining"] >= 0

    gated.gate.set()
    await registry.wait_for(running, timeout=5)
    assert registry.list_active_tasks()["tasks"] == []
    assert registry.get_stats()["total"] == 1


# Persistence

async def test_finished_tasks_are_written_to_artifact_store(make_registry, tmp_path):
    store = JsonArtifactStore(str(tmp_path))
    registry = make_registry(artifact_store=store)

    task = await run_to_end(registry, manual())

    saved = store.load(task.id)
    assert saved["status"] == "completed"
    assert saved["final_report"] == task.final_report


async def test_artifact_store_errors_do_not_affect_task(make_registry):
    class _Broken(JsonArtifactStore):
        def __init__(self):
            pass

        def save(self, task):
            raise OSError("disk full")

    registry = make_registry(artifact_store=_Broken())

    task = await run_to_end(registry, manual())

    assert task.status is TaskStatus.COMPLETED
