"""
Agent fan-out: run every configured agent of one task concurrently.

Agents never see the task. They report through an `AgentReporter`, which
the registry implements, and the fan-out returns once every agent has
finished, whatever the individual outcomes.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Tuple

from core.base_agent import ResearchExecutor
from core.observability import get_logger
from core.types import AgentConfig, AgentOutcome, AgentRun

logger = get_logger(__name__)


class AgentReporter(ABC):
    """Narrow interface the fan-out uses to report per-agent progress."""

    @abstractmethod
    def agent_started(self, agent_id: str) -> None:
        pass

    @abstractmethod
    def agent_finished(self, agent_id: str, outcome: AgentOutcome) -> None:
        pass


class FanOutExecutor:
    """
    Launches agents concurrently and joins on all of them.

    Args:
        executor: The research executor used for every agent
        timeout_seconds: Per-agent timeout; a hang becomes a failure outcome
            for that agent only. None or 0 disables it.
        max_parallel: Optional cap on agents running at once within a task.
            None or 0 means unbounded.
    """

    def __init__(
        self,
        executor: ResearchExecutor,
        timeout_seconds: Optional[float] = None,
        max_parallel: Optional[int] = None,
    ):
        self.executor = executor
        self.timeout = timeout_seconds or None
        self.max_parallel = max_parallel or None

    async def run(
        self,
        topic: str,
        agents: Sequence[Tuple[str, AgentConfig]],
        reporter: AgentReporter,
    ) -> List[AgentRun]:
        """
        Run all agents and wait for every one of them.

        Args:
            topic: Research topic shared by all agents
            agents: (agent_id, config) pairs
            reporter: Receives start/finish notifications as they happen

        Returns:
            One AgentRun per agent, in the order the agents finished
        """
        finished: List[AgentRun] = []
        semaphore = asyncio.Semaphore(self.max_parallel) if self.max_parallel else None

        async def _one(agent_id: str, config: AgentConfig) -> None:
            if semaphore:
                async with semaphore:
                    outcome = await self._execute(agent_id, topic, config, reporter)
            else:
                outcome = await self._execute(agent_id, topic, config, reporter)
            finished.append(AgentRun(agent_id=agent_id, config=config, outcome=outcome))
            reporter.agent_finished(agent_id, outcome)

        await asyncio.gather(*(_one(agent_id, config) for agent_id, config in agents))
        return finished

    async def _execute(
        self,
        agent_id: str,
        topic: str,
        config: AgentConfig,
        reporter: AgentReporter,
    ) -> AgentOutcome:
        reporter.agent_started(agent_id)
        try:
            if self.timeout:
                outcome = await asyncio.wait_for(self.executor.run(topic, config), timeout=self.timeout)
            else:
                outcome = await self.executor.run(topic, config)
        except asyncio.TimeoutError:
            logger.warning("agent_timeout", agent_id=agent_id, timeout=self.timeout)
            return AgentOutcome.failure(f"Timeout after {self.timeout:g}s")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("agent_crashed", agent_id=agent_id, error=str(e), exc_info=True)
            return AgentOutcome.failure(str(e) or type(e).__name__)

        if not isinstance(outcome, AgentOutcome):
            return AgentOutcome.failure(f"Agent returned {type(outcome).__name__}, expected AgentOutcome")
        if not outcome.ok:
            logger.warning("agent_failed", agent_id=agent_id, error=outcome.error)
        return outcome
