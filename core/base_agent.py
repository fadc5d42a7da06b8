from abc import ABC, abstractmethod
from typing import List, Dict, Any

from .types import AgentConfig, AgentOutcome, AgentRun, AutoAgentSetup, ResponseType, Source


class ResearchExecutor(ABC):
    """Runs one research agent for a topic."""

    @abstractmethod
    async def run(self, topic: str, config: AgentConfig) -> AgentOutcome:
        """
        Research `topic` with the given agent configuration.

        Ordinary research failures come back as `AgentOutcome.failure`;
        only infrastructure faults should raise.
        """
        pass


class ConfigurationAdvisor(ABC):
    """Proposes an agent setup for a topic. May raise ConfigurationFailure."""

    @abstractmethod
    async def propose_agents(self, topic: str) -> AutoAgentSetup:
        pass


class Synthesizer(ABC):
    """Combines agent findings into one document."""

    @abstractmethod
    async def synthesize(
        self,
        topic: str,
        findings: List[AgentRun],
        sources: List[Source],
        response_type: ResponseType = ResponseType.REPORT,
        include_citations: bool = True,
        limit_citations_to_three: bool = True,
    ) -> str:
        """Must still produce a document when `findings` is empty."""
        pass


class LLMAgent:
    """Mixin for collaborators that talk to a chat completion client."""

    def __init__(self, llm_client: Any, model: str, max_tokens: int = 4096):
        self.llm_client = llm_client
        self.model = model
        self.max_tokens = max_tokens

    async def _call_llm(
        self,
        messages: List[Dict[str, str]],
        temperature: float = 0.5,
    ) -> str:
        """Make a call to the LLM and return the text of the first choice."""
        response = await self.llm_client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=temperature,
            max_tokens=self.max_tokens,
        )
        content = response.choices[0].message.content
        if content is None:
            raise RuntimeError("LLM returned no text content")
        return content
