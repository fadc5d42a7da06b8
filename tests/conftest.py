"""Shared fixtures: registries wired to offline collaborators."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from agents.mock_agents import MockConfigurationAdvisor, MockResearchExecutor, MockSynthesizer
from core.base_agent import ResearchExecutor
from core.progress import ProgressEvent, ProgressListener
from core.types import AgentConfig, AgentOutcome, Source
from orchestrator.registry import TaskRegistry


class GatedExecutor(ResearchExecutor):
    """Blocks every agent until `gate` is set."""

    def __init__(self):
        self.gate = asyncio.Event()
        self.started = 0

    async def run(self, topic: str, config: AgentConfig) -> AgentOutcome:
        self.started += 1
        await self.gate.wait()
        return AgentOutcome.success(f"{config.name} done", [Source(id=1, uri=f"https://gated.example/{config.name}")])


class RecordingListener(ProgressListener):
    def __init__(self):
        self.events = []

    def on_phase_change(self, event: ProgressEvent) -> None:
        self.events.append(event)

    def on_agent_update(self, event: ProgressEvent) -> None:
        self.events.append(event)


def llm_client_returning(*contents):
    """Chat completion client whose replies are `contents`, in order."""
    client = MagicMock()
    client.chat.completions.create = AsyncMock(
        side_effect=[
            SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=c))])
            for c in contents
        ]
    )
    return client


@pytest.fixture
def executor() -> MockResearchExecutor:
    return MockResearchExecutor()


@pytest.fixture
def synthesizer() -> MockSynthesizer:
    return MockSynthesizer()


@pytest.fixture
def make_registry(executor, synthesizer):
    """Factory so each test can tune limits and collaborators."""

    def _make(**overrides) -> TaskRegistry:
        params = dict(
            executor=executor,
            synthesizer=synthesizer,
            advisor=MockConfigurationAdvisor(count=2),
            max_concurrent_tasks=5,
            max_agents_manual=10,
            deep_mode_agents=6,
            default_agent_count=3,
        )
        params.update(overrides)
        return TaskRegistry(**params)

    return _make


@pytest.fixture
def registry(make_registry) -> TaskRegistry:
    return make_registry()
