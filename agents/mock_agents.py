"""
Deterministic offline collaborators.

Used by `demo.py --mock` and by the test suite; they never touch the
network.
"""

import asyncio
from typing import Dict, List, Optional, Sequence

from core.base_agent import ConfigurationAdvisor, ResearchExecutor, Synthesizer
from core.errors import ConfigurationFailure, SynthesisFailure
from core.types import AgentConfig, AgentOutcome, AgentRun, AutoAgentSetup, ResponseType, Source


class MockResearchExecutor(ResearchExecutor):
    """
    Returns canned findings per agent name.

    `failures` maps agent names to error messages; `delays` maps agent names
    to seconds to sleep before answering.
    """

    def __init__(
        self,
        sources_by_agent: Optional[Dict[str, Sequence[str]]] = None,
        failures: Optional[Dict[str, str]] = None,
        delays: Optional[Dict[str, float]] = None,
        default_delay: float = 0.0,
    ):
        self.sources_by_agent = dict(sources_by_agent or {})
        self.failures = dict(failures or {})
        self.delays = dict(delays or {})
        self.default_delay = default_delay
        self.calls: List[AgentConfig] = []

    async def run(self, topic: str, config: AgentConfig) -> AgentOutcome:
        self.calls.append(config)
        await asyncio.sleep(self.delays.get(config.name, self.default_delay))
        if config.name in self.failures:
            return AgentOutcome.failure(self.failures[config.name])

        uris = self.sources_by_agent.get(
            config.name,
            [f"https://example.com/{config.name.lower().replace(' ', '-')}"],
        )
        sources = [Source(id=i + 1, uri=uri, title=f"Source for {config.name}") for i, uri in enumerate(uris)]
        return AgentOutcome.success(f"{config.name} findings on {topic}.", sources)


class MockConfigurationAdvisor(ConfigurationAdvisor):
    """Proposes `count` agents, or fails when `fail` is set."""

    def __init__(self, count: int = 2, fail: bool = False):
        self.count = count
        self.fail = fail

    async def propose_agents(self, topic: str) -> AutoAgentSetup:
        if self.fail:
            raise ConfigurationFailure("advisor unavailable")
        agents = [
            AgentConfig(name=f"Facet Agent {i + 1}", focus=f"Study facet {i + 1} of {topic}", temperature=0.5)
            for i in range(self.count)
        ]
        return AutoAgentSetup(agent_count=len(agents), agents=agents)


class MockSynthesizer(Synthesizer):
    """Lists every finding and cites every source as [n]."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.received: List[AgentRun] = []

    async def synthesize(
        self,
        topic: str,
        findings: List[AgentRun],
        sources: List[Source],
        response_type: ResponseType = ResponseType.REPORT,
        include_citations: bool = True,
        limit_citations_to_three: bool = True,
    ) -> str:
        self.received = list(findings)
        if self.fail:
            raise SynthesisFailure("synthesis backend unavailable")
        lines = [f"# {response_type.value}: {topic}", ""]
        if not findings:
            lines.append("No research data was gathered by the agents.")
        for run in findings:
            lines.append(f"- {run.config.name}: {run.outcome.summary}")
        if include_citations and sources:
            lines.append("")
            lines.append("Sources: " + " ".join(f"[{s.id}]" for s in sources))
        return "\n".join(lines)
